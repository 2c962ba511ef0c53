"""
Notification Repository
Idempotent notification records keyed by user, song, generation and type
"""

from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Notification
from .base import BaseRepository, RepositoryError

SONG_READY = "song_ready"


class NotificationRepository(BaseRepository[Notification]):
    """Repository for Notification operations"""

    def __init__(self, session: AsyncSession):
        super().__init__(Notification, session)

    async def find_by_key(
        self,
        user_id: str,
        song_id: str,
        generation_id: str,
        type: str = SONG_READY
    ) -> Optional[Notification]:
        try:
            result = await self.session.execute(
                select(Notification).where(
                    Notification.user_id == user_id,
                    Notification.song_id == song_id,
                    Notification.generation_id == generation_id,
                    Notification.type == type
                )
            )
            return result.scalar_one_or_none()
        except Exception as e:
            raise RepositoryError(f"Error finding notification: {str(e)}")

    async def get_unread(self, user_id: str, limit: int = 100) -> List[Notification]:
        """Unread, not deleted, newest first"""
        try:
            result = await self.session.execute(
                select(Notification)
                .where(
                    Notification.user_id == user_id,
                    Notification.read.is_(False),
                    Notification.deleted_at.is_(None)
                )
                .order_by(Notification.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
        except Exception as e:
            raise RepositoryError(f"Error getting unread notifications: {str(e)}")

    async def mark_read(self, notification_id: str) -> Notification:
        notification = await self.get_or_404(notification_id)
        notification.read = True
        await self.session.flush()
        return notification
