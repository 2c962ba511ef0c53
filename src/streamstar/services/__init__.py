"""
StreamStar Services
Provider client and domain services behind the HTTP routes
"""

from .musicgpt_provider import MusicGPTProvider, ProviderTask, ConversionDetails
from .generation_service import GenerationService
from .song_service import SongService
from .notification_service import NotificationService
from .reconciliation_service import GenerationReconciler, ReconciliationOutcome, classify_payload

__all__ = [
    "MusicGPTProvider",
    "ProviderTask",
    "ConversionDetails",
    "GenerationService",
    "SongService",
    "NotificationService",
    "GenerationReconciler",
    "ReconciliationOutcome",
    "classify_payload"
]
