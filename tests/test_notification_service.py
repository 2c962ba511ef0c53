"""
Test suite for notifications
"""
import asyncio
from unittest.mock import AsyncMock

import pytest

from streamstar.database.repositories import NotFoundError


@pytest.mark.integration
class TestNotificationService:
    """Idempotent creation, fan-out and reads"""

    @pytest.mark.asyncio
    async def test_create_is_idempotent_by_key(self, notification_service, store):
        first = await notification_service.create_song_ready_notification("user-1", "song-1", "gen-1")
        second = await notification_service.create_song_ready_notification("user-1", "song-1", "gen-1")

        assert first.id == second.id
        assert len(await store.notifications("user-1")) == 1

    @pytest.mark.asyncio
    async def test_concurrent_creates_yield_one_record(self, notification_service, store):
        results = await asyncio.gather(*(
            notification_service.create_song_ready_notification("user-1", "song-1", "gen-1")
            for _ in range(3)
        ))

        assert len({n.id for n in results}) == 1
        assert len(await store.notifications("user-1")) == 1

    @pytest.mark.asyncio
    async def test_different_generation_is_a_new_notification(self, notification_service, store):
        await notification_service.create_song_ready_notification("user-1", "song-1", "gen-1")
        await notification_service.create_song_ready_notification("user-1", "song-1", "gen-2")

        assert len(await store.notifications("user-1")) == 2

    @pytest.mark.asyncio
    async def test_notify_artist_followers(self, notification_service, seed, store):
        await seed.follow("fan-1", "artist-1")
        await seed.follow("fan-2", "artist-1")
        await seed.follow("fan-3", "someone-else")

        delivered = await notification_service.notify_artist_followers("artist-1", "song-1", "gen-1")

        assert delivered == 2
        assert sorted(n.user_id for n in await store.notifications()) == ["fan-1", "fan-2"]

    @pytest.mark.asyncio
    async def test_fan_out_continues_past_failures(self, notification_service, seed):
        await seed.follow("fan-1", "artist-1")
        await seed.follow("fan-2", "artist-1")

        original = notification_service.create_song_ready_notification

        async def flaky(user_id, song_id, generation_id):
            if user_id == "fan-1":
                raise RuntimeError("write failed")
            return await original(user_id, song_id, generation_id)

        notification_service.create_song_ready_notification = AsyncMock(side_effect=flaky)

        assert await notification_service.notify_artist_followers("artist-1", "song-1", "gen-1") == 1

    @pytest.mark.asyncio
    async def test_no_followers(self, notification_service):
        assert await notification_service.notify_artist_followers("lonely", "song-1", "gen-1") == 0

    @pytest.mark.asyncio
    async def test_unread_and_mark_read(self, notification_service):
        older = await notification_service.create_song_ready_notification("user-1", "song-1", "gen-1")
        newer = await notification_service.create_song_ready_notification("user-1", "song-2", "gen-2")

        unread = await notification_service.get_unread_notifications("user-1")
        assert [n.id for n in unread] == [newer.id, older.id]

        marked = await notification_service.mark_notification_read(older.id)
        assert marked.read is True
        assert [n.id for n in await notification_service.get_unread_notifications("user-1")] == [newer.id]

    @pytest.mark.asyncio
    async def test_mark_unknown_notification(self, notification_service):
        with pytest.raises(NotFoundError):
            await notification_service.mark_notification_read("missing")


@pytest.mark.integration
class TestNotificationRoutes:
    """Notification HTTP endpoints"""

    @pytest.mark.asyncio
    async def test_list_and_mark_read(self, api_client, notification_service):
        created = await notification_service.create_song_ready_notification("user-1", "song-1", "gen-1")

        listing = await api_client.get("/api/notifications", params={"user_id": "user-1"})
        assert listing.status_code == 200
        assert [n["id"] for n in listing.json()] == [created.id]

        marked = await api_client.post(f"/api/notifications/{created.id}/read")
        assert marked.status_code == 200
        assert marked.json()["read"] is True

    @pytest.mark.asyncio
    async def test_mark_unknown_returns_404(self, api_client):
        response = await api_client.post("/api/notifications/missing/read")
        assert response.status_code == 404
