"""
StreamStar Notification Service
Idempotent song-ready notifications and follower fan-out
"""

import asyncio
from typing import List

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..core.logging import webhook_logger
from ..database.models import Notification
from ..database.repositories import ConflictError, FollowRepository, NotificationRepository
from ..database.repositories.notification_repository import SONG_READY


class NotificationService:
    """Create and read user notifications"""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def create_song_ready_notification(
        self,
        user_id: str,
        song_id: str,
        generation_id: str
    ) -> Notification:
        """Return the existing notification for this key, or create it.

        A concurrent creator losing the unique-key race re-reads and returns
        the winner's record.
        """
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    notifications = NotificationRepository(session)
                    existing = await notifications.find_by_key(user_id, song_id, generation_id)
                    if existing is not None:
                        return existing
                    return await notifications.create(
                        user_id=user_id,
                        type=SONG_READY,
                        song_id=song_id,
                        generation_id=generation_id,
                        read=False
                    )
        except ConflictError:
            async with self._session_factory() as session:
                existing = await NotificationRepository(session).find_by_key(
                    user_id, song_id, generation_id
                )
            if existing is None:
                raise
            return existing

    async def notify_artist_followers(self, artist_id: str, song_id: str, generation_id: str) -> int:
        """Fan out one idempotent notification per follower; returns how many succeeded"""
        async with self._session_factory() as session:
            follower_ids = await FollowRepository(session).get_follower_ids(artist_id)

        if not follower_ids:
            return 0

        results = await asyncio.gather(
            *(
                self.create_song_ready_notification(follower_id, song_id, generation_id)
                for follower_id in follower_ids
            ),
            return_exceptions=True
        )

        delivered = 0
        for follower_id, result in zip(follower_ids, results):
            if isinstance(result, Exception):
                webhook_logger.log_side_effect_failed(
                    "follower_notification",
                    str(result),
                    follower_id=follower_id,
                    song_id=song_id,
                    generation_id=generation_id
                )
            else:
                delivered += 1
        return delivered

    async def get_unread_notifications(self, user_id: str) -> List[Notification]:
        async with self._session_factory() as session:
            return await NotificationRepository(session).get_unread(user_id)

    async def mark_notification_read(self, notification_id: str) -> Notification:
        """Raises NotFoundError for an unknown id"""
        async with self._session_factory() as session:
            async with session.begin():
                return await NotificationRepository(session).mark_read(notification_id)
