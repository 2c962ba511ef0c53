"""
StreamStar Testing Configuration
Pytest fixtures: per-test SQLite database, seed helpers, fake provider, API client
"""
from typing import Any, Dict, List, Optional, Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from streamstar.core.locks import LocalLockManager
from streamstar.core.result import Result
from streamstar.database.connection import Base
from streamstar.database.models import Follow, Generation, Notification, Song, SongVersion
from streamstar.database.repositories import GenerationRepository
from streamstar.services.musicgpt_provider import ConversionDetails, MusicGPTProvider, ProviderTask
from streamstar.services.notification_service import NotificationService
from streamstar.services.reconciliation_service import GenerationReconciler


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite so concurrent sessions see each other's commits"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'streamstar_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Seeder:
    """Insert fixture rows in committed transactions"""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def song(
        self,
        title: str = "Night Drive",
        owner_id: str = "user-1",
        artist_id: Optional[str] = "artist-1",
        **kwargs
    ) -> Song:
        async with self._session_factory() as session:
            async with session.begin():
                song = Song(title=title, owner_id=owner_id, artist_id=artist_id, **kwargs)
                session.add(song)
        return song

    async def generation(
        self,
        song_id: str,
        conversion_ids: Sequence[str] = ("c1", "c2"),
        task_id: Optional[str] = "task-1",
        status: str = "processing",
        **kwargs
    ) -> Generation:
        processed = kwargs.pop("processed", [])
        metadata = kwargs.pop("metadata", {})
        async with self._session_factory() as session:
            async with session.begin():
                generation = Generation(
                    song_id=song_id,
                    provider="musicgpt",
                    status=status,
                    provider_task_id=task_id,
                    provider_conversion_ids=[],
                    provider_processed_conversions=list(processed),
                    output_metadata=dict(metadata),
                    parameters={},
                    **kwargs
                )
                session.add(generation)
                await session.flush()
                await GenerationRepository(session).set_conversion_ids(generation, list(conversion_ids))
        return generation

    async def version(
        self,
        song_id: str,
        version_number: int,
        provider_output_id: Optional[str],
        is_primary: bool = False,
        audio_url: str = "https://cdn.example.com/existing.mp3"
    ) -> SongVersion:
        async with self._session_factory() as session:
            async with session.begin():
                version = SongVersion(
                    song_id=song_id,
                    version_number=version_number,
                    title="Existing",
                    audio_url=audio_url,
                    provider_output_id=provider_output_id,
                    is_primary=is_primary
                )
                session.add(version)
        return version

    async def follow(self, follower_id: str, artist_id: str) -> Follow:
        async with self._session_factory() as session:
            async with session.begin():
                follow = Follow(follower_id=follower_id, artist_id=artist_id)
                session.add(follow)
        return follow


class Store:
    """Read-back helpers for assertions"""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def generation(self, generation_id: str) -> Generation:
        async with self._session_factory() as session:
            result = await session.execute(select(Generation).where(Generation.id == generation_id))
            return result.scalar_one()

    async def song(self, song_id: str) -> Song:
        async with self._session_factory() as session:
            result = await session.execute(select(Song).where(Song.id == song_id))
            return result.scalar_one()

    async def versions(self, song_id: str) -> List[SongVersion]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SongVersion)
                .where(SongVersion.song_id == song_id)
                .order_by(SongVersion.version_number)
            )
            return list(result.scalars().all())

    async def notifications(self, user_id: Optional[str] = None) -> List[Notification]:
        async with self._session_factory() as session:
            query = select(Notification)
            if user_id is not None:
                query = query.where(Notification.user_id == user_id)
            result = await session.execute(query)
            return list(result.scalars().all())


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
def store(session_factory):
    return Store(session_factory)


@pytest.fixture
def conversion_details():
    return {
        "status": "COMPLETED",
        "createdAt": "2026-01-01T00:00:00Z",
        "updatedAt": "2026-01-01T00:01:00Z",
        "album_cover_path": "https://cdn.example.com/cover.png",
        "album_cover_thumbnail": "https://cdn.example.com/cover_thumb.png",
    }


@pytest.fixture
def fake_provider(conversion_details):
    """Provider double; get_conversion succeeds with album art by default"""
    provider = MagicMock(spec=MusicGPTProvider)
    provider.get_conversion = AsyncMock(
        return_value=Result.ok(ConversionDetails(success=True, conversion=conversion_details))
    )
    provider.create_song = AsyncMock(
        return_value=Result.ok(ProviderTask(task_id="task-new", conversion_ids=["n1", "n2"]))
    )
    return provider


@pytest.fixture
def lock_manager():
    return LocalLockManager()


@pytest.fixture
def notification_service(session_factory):
    return NotificationService(session_factory)


@pytest.fixture
def reconciler(session_factory, lock_manager, notification_service, fake_provider):
    return GenerationReconciler(
        session_factory,
        lock_manager,
        notification_service,
        provider=fake_provider,
        enrichment_timeout=1.0
    )


@pytest.fixture
def completion_payload():
    """Build a conversion-completion webhook body"""
    def build(
        conversion_id: str,
        conversion_path: Optional[str] = None,
        task_id: str = "task-1",
        **extra: Any
    ) -> Dict[str, Any]:
        payload = {
            "task_id": task_id,
            "conversion_id": conversion_id,
            "conversion_path": conversion_path or f"https://x/{conversion_id}.mp3",
            "is_flagged": False,
        }
        payload.update(extra)
        return payload
    return build


@pytest.fixture
def app(session_factory, lock_manager, fake_provider):
    from streamstar.api.dependencies import get_lock_manager, get_provider, get_session_factory
    from streamstar.core.config import StreamStarSettings, get_settings
    from streamstar.main import create_app

    application = create_app()
    application.dependency_overrides[get_settings] = lambda: StreamStarSettings(
        _env_file=None, UNMATCHED_RETRY_DELAY_SECONDS=0
    )
    application.dependency_overrides[get_session_factory] = lambda: session_factory
    application.dependency_overrides[get_lock_manager] = lambda: lock_manager
    application.dependency_overrides[get_provider] = lambda: fake_provider
    return application


@pytest.fixture
async def api_client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
