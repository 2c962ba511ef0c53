"""
StreamStar Database Module
Exports database models, connection management, and Base
"""

from .connection import Base, DatabaseManager, database_manager
from .models import (
    Song,
    SongVersion,
    Generation,
    GenerationConversion,
    Notification,
    Follow
)

__all__ = [
    "Base",
    "DatabaseManager",
    "database_manager",
    "Song",
    "SongVersion",
    "Generation",
    "GenerationConversion",
    "Notification",
    "Follow"
]
