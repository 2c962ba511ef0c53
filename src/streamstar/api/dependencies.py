"""
StreamStar API Dependencies
FastAPI providers for sessions, locks and services; tests override these
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..core.config import StreamStarSettings, get_settings
from ..core.locks import GenerationLockManager
from ..database.connection import DatabaseManager, database_manager
from ..services.generation_service import GenerationService
from ..services.musicgpt_provider import MusicGPTProvider
from ..services.notification_service import NotificationService
from ..services.reconciliation_service import GenerationReconciler
from ..services.song_service import SongService


def get_database_manager() -> DatabaseManager:
    return database_manager


def get_session_factory(
    manager: DatabaseManager = Depends(get_database_manager)
) -> async_sessionmaker:
    return manager.session_factory


def get_lock_manager(
    manager: DatabaseManager = Depends(get_database_manager)
) -> GenerationLockManager:
    return manager.lock_manager


def get_provider(request: Request) -> MusicGPTProvider:
    """The provider client created during application startup"""
    return request.app.state.musicgpt_provider


def get_song_service(
    session_factory: async_sessionmaker = Depends(get_session_factory)
) -> SongService:
    return SongService(session_factory)


def get_notification_service(
    session_factory: async_sessionmaker = Depends(get_session_factory)
) -> NotificationService:
    return NotificationService(session_factory)


def get_generation_service(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    provider: MusicGPTProvider = Depends(get_provider),
    settings: StreamStarSettings = Depends(get_settings)
) -> GenerationService:
    return GenerationService(session_factory, provider, webhook_url=settings.webhook_callback_url)


def get_reconciler(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    lock_manager: GenerationLockManager = Depends(get_lock_manager),
    notification_service: NotificationService = Depends(get_notification_service),
    provider: MusicGPTProvider = Depends(get_provider),
    settings: StreamStarSettings = Depends(get_settings)
) -> GenerationReconciler:
    config = settings.get_reconciliation_config()
    return GenerationReconciler(
        session_factory,
        lock_manager,
        notification_service,
        provider=provider,
        enrichment_enabled=config["enrichment_enabled"],
        enrichment_timeout=config["enrichment_timeout"],
        stems_mode=config["stems_mode"],
        notify_followers=config["notify_followers"],
        unmatched_retry_delay=config["unmatched_retry_delay"],
    )
