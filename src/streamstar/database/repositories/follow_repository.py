"""
Follow Repository
"""

from typing import List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Follow
from .base import BaseRepository, RepositoryError


class FollowRepository(BaseRepository[Follow]):
    """Repository for Follow operations"""

    def __init__(self, session: AsyncSession):
        super().__init__(Follow, session)

    async def get_follower_ids(self, artist_id: str) -> List[str]:
        try:
            result = await self.session.execute(
                select(Follow.follower_id)
                .where(Follow.artist_id == artist_id)
                .order_by(Follow.created_at)
            )
            return list(result.scalars().all())
        except Exception as e:
            raise RepositoryError(f"Error getting followers: {str(e)}")
