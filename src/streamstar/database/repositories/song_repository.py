"""
Song Repository
Songs, their versions, and the primary-version pointer
"""

from typing import Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from ..models import Song, SongVersion
from ...core.reconciliation import VersionPlan
from .base import BaseRepository, ConflictError, NotFoundError, RepositoryError


class SongRepository(BaseRepository[Song]):
    """Repository for Song and SongVersion operations"""

    def __init__(self, session: AsyncSession):
        super().__init__(Song, session)

    async def get_versions(self, song_id: str) -> List[SongVersion]:
        """All versions of a song ordered by version number"""
        try:
            result = await self.session.execute(
                select(SongVersion)
                .where(SongVersion.song_id == song_id)
                .order_by(SongVersion.version_number)
            )
            return list(result.scalars().all())
        except Exception as e:
            raise RepositoryError(f"Error getting song versions: {str(e)}")

    async def create_version(
        self,
        song_id: str,
        plan: VersionPlan,
        created_by: Optional[str] = None
    ) -> SongVersion:
        """Insert a planned version; a taken output id or version number raises ConflictError"""
        version = SongVersion(
            song_id=song_id,
            version_number=plan.version_number,
            title=plan.title,
            audio_url=plan.audio_url,
            provider_output_id=plan.provider_output_id,
            is_primary=plan.is_primary,
            parent_version_id=plan.parent_version_id,
            created_by=created_by,
        )
        self.session.add(version)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise ConflictError(
                f"Version {plan.version_number} for output {plan.provider_output_id} conflicts: {str(e)}"
            )
        return version

    async def get_for_update(self, song_id: str) -> Optional[Song]:
        """Re-read a song with a row lock; serializes version numbering per song"""
        try:
            result = await self.session.execute(
                select(Song)
                .where(Song.id == song_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()
        except Exception as e:
            raise RepositoryError(f"Error locking song: {str(e)}")

    async def set_current_version(self, song: Song, version_id: str) -> Song:
        song.current_version_id = version_id
        await self.session.flush()
        return song

    async def apply_album_cover(self, song: Song, updates: Dict[str, str]) -> Song:
        for field, value in updates.items():
            setattr(song, field, value)
        await self.session.flush()
        return song

    async def set_primary_version(self, song_id: str, version_id: str) -> SongVersion:
        """Flip ``is_primary`` across the song's versions and move the pointer in one flush"""
        song = await self.get_or_404(song_id)

        versions = await self.get_versions(song_id)
        target = next((v for v in versions if v.id == version_id), None)
        if target is None:
            raise NotFoundError(f"SongVersion {version_id} not found for song {song_id}")

        for version in versions:
            version.is_primary = version.id == version_id
        song.current_version_id = version_id
        await self.session.flush()
        return target
