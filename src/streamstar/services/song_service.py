"""
StreamStar Song Service
Song lookups and primary-version promotion
"""

from typing import List

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..database.models import Song, SongVersion
from ..database.repositories import SongRepository


class SongService:
    """Read songs and their versions, and promote a version to primary"""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get_song(self, song_id: str) -> Song:
        """Raises NotFoundError for an unknown song"""
        async with self._session_factory() as session:
            return await SongRepository(session).get_or_404(song_id)

    async def get_song_versions(self, song_id: str) -> List[SongVersion]:
        async with self._session_factory() as session:
            songs = SongRepository(session)
            await songs.get_or_404(song_id)
            return await songs.get_versions(song_id)

    async def set_primary_song_version(self, song_id: str, version_id: str) -> SongVersion:
        """Make ``version_id`` the song's only primary version and its current pointer"""
        async with self._session_factory() as session:
            async with session.begin():
                return await SongRepository(session).set_primary_version(song_id, version_id)
