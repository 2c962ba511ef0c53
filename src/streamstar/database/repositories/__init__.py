"""
StreamStar Repository Layer
Data access layer with async CRUD operations
"""

from .base import BaseRepository, RepositoryError, NotFoundError, ConflictError
from .generation_repository import GenerationRepository
from .song_repository import SongRepository
from .notification_repository import NotificationRepository
from .follow_repository import FollowRepository

__all__ = [
    "BaseRepository",
    "RepositoryError",
    "NotFoundError",
    "ConflictError",
    "GenerationRepository",
    "SongRepository",
    "NotificationRepository",
    "FollowRepository"
]
