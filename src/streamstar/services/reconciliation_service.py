"""
StreamStar Reconciliation Service
Folds MusicGPT webhook deliveries into generations, song versions and notifications

Each delivery is matched to a generation, then reconciled under a
per-generation lock inside a single transaction that re-reads the
generation row. The pure reducer in ``core.reconciliation`` decides every
state change; this module only loads, persists and runs side effects.
Enrichment and notifications run after the core transaction commits and
never fail the delivery.
"""

import asyncio
from enum import Enum
from typing import Any, Callable, Mapping, NamedTuple, Optional, Union

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.exceptions import DataIntegrityError, PayloadValidationError, ReconciliationConflictError
from ..core.locks import GenerationLockManager
from ..core.logging import provider_logger, webhook_logger
from ..core.reconciliation import (
    LYRICS_SUBTYPES,
    CompletionEvent,
    IdempotencyVerdict,
    LyricsEvent,
    album_cover_updates,
    check_idempotency,
    fold_completion,
    fold_lyrics,
    merge_enrichment,
    plan_version,
)
from ..database.models import utcnow
from ..database.repositories import ConflictError, GenerationRepository, SongRepository
from ..database.schemas import MusicGPTWebhookPayload
from .musicgpt_provider import MusicGPTProvider
from .notification_service import NotificationService


class ReconciliationOutcome(str, Enum):
    UNMATCHED = "unmatched"
    DUPLICATE = "duplicate"
    VERSION_CREATED = "version_created"
    REPAIRED = "repaired"
    COMPLETED = "completed"
    LYRICS_UPDATED = "lyrics_updated"


class _Applied(NamedTuple):
    outcome: ReconciliationOutcome
    completed_now: bool = False
    version_created: bool = False
    song_id: Optional[str] = None
    owner_id: Optional[str] = None
    artist_id: Optional[str] = None


def classify_payload(body: Any) -> Union[CompletionEvent, LyricsEvent]:
    """Validate a webhook body and turn it into a completion or lyrics event"""
    if not isinstance(body, Mapping):
        raise PayloadValidationError("Payload must be a JSON object")

    try:
        payload = MusicGPTWebhookPayload.model_validate(dict(body))
    except ValidationError as e:
        raise PayloadValidationError(f"Invalid payload: {e.error_count()} invalid field(s)")

    if not payload.task_id or not payload.conversion_id:
        raise PayloadValidationError("Missing task_id or conversion_id")

    if payload.subtype in LYRICS_SUBTYPES:
        return LyricsEvent(
            task_id=payload.task_id,
            conversion_id=payload.conversion_id,
            subtype=payload.subtype,
            lyrics=payload.lyrics,
            lyrics_timestamped=payload.lyrics_timestamped,
        )

    if not payload.conversion_path:
        raise PayloadValidationError("Missing conversion_path")

    return CompletionEvent(
        task_id=payload.task_id,
        conversion_id=payload.conversion_id,
        conversion_path=payload.conversion_path,
        conversion_path_wav=payload.conversion_path_wav,
        conversion_duration=payload.conversion_duration,
        lyrics=payload.lyrics,
        lyrics_timestamped=payload.lyrics_timestamped,
        title=payload.title,
    )


class GenerationReconciler:
    """Applies provider callbacks to generation state"""

    MAX_APPLY_ATTEMPTS = 3

    def __init__(
        self,
        session_factory: async_sessionmaker,
        lock_manager: GenerationLockManager,
        notification_service: NotificationService,
        provider: Optional[MusicGPTProvider] = None,
        enrichment_enabled: bool = True,
        enrichment_timeout: float = 10.0,
        stems_mode: str = "replace",
        notify_followers: bool = False,
        unmatched_retry_delay: float = 0.0,
        clock: Callable = utcnow
    ):
        self._session_factory = session_factory
        self._locks = lock_manager
        self._notifications = notification_service
        self._provider = provider
        self._enrichment_enabled = enrichment_enabled
        self._enrichment_timeout = enrichment_timeout
        self._stems_mode = stems_mode
        self._notify_followers = notify_followers
        self._unmatched_retry_delay = unmatched_retry_delay
        self._clock = clock

    async def handle_webhook(self, body: Any) -> ReconciliationOutcome:
        """Entry point for a parsed webhook body"""
        event = classify_payload(body)
        webhook_logger.log_received(
            event.task_id,
            event.conversion_id,
            subtype=getattr(event, "subtype", None)
        )

        if isinstance(event, LyricsEvent):
            return await self.process_lyrics_update(event)
        return await self.process_completion(event)

    # ------------------------------------------------------------------
    # Completion branch
    # ------------------------------------------------------------------

    async def process_completion(self, event: CompletionEvent) -> ReconciliationOutcome:
        generation_id = await self._match_completion(event)
        if generation_id is None and self._unmatched_retry_delay > 0:
            # The submitting request records task and conversion ids only after
            # the provider answers; a fast callback can land before that write
            await asyncio.sleep(self._unmatched_retry_delay)
            generation_id = await self._match_completion(event)

        if generation_id is None:
            webhook_logger.log_unmatched(event.task_id, event.conversion_id, "completion")
            return ReconciliationOutcome.UNMATCHED

        applied = await self._apply_with_retry(generation_id, event)

        if applied.version_created:
            await self._enrich(generation_id, applied.song_id, event.conversion_id)

        if applied.completed_now:
            await self._notify_completion(generation_id, applied)

        return applied.outcome

    async def _apply_with_retry(self, generation_id: str, event: CompletionEvent) -> _Applied:
        """Run the locked transaction, re-planning when a version insert loses a race.

        A retry re-reads the generation and the song's versions, so a delivery
        that was already materialized comes back as a duplicate or a repair
        through the idempotency guard, and a taken version number is re-planned.
        """
        for attempt in range(1, self.MAX_APPLY_ATTEMPTS + 1):
            try:
                async with self._locks.lock(generation_id):
                    async with self._session_factory() as session:
                        async with session.begin():
                            return await self._apply_completion(session, generation_id, event)
            except ConflictError as e:
                webhook_logger.log_conflict_retry(generation_id, event.conversion_id, attempt, str(e))

        raise ReconciliationConflictError(
            f"Could not materialize conversion {event.conversion_id} for generation {generation_id}"
        )

    async def _match_completion(self, event: CompletionEvent) -> Optional[str]:
        async with self._session_factory() as session:
            generations = GenerationRepository(session)
            generation = await generations.find_by_task_id(event.task_id)
            if generation is None:
                generation = await generations.find_active_by_conversion_id(event.conversion_id)
            return generation.id if generation is not None else None

    async def _apply_completion(
        self,
        session: AsyncSession,
        generation_id: str,
        event: CompletionEvent
    ) -> _Applied:
        generations = GenerationRepository(session)
        songs = SongRepository(session)
        conversion_id = event.conversion_id

        generation = await generations.get_for_update(generation_id)
        if generation is None:
            webhook_logger.log_unmatched(event.task_id, conversion_id, "completion")
            return _Applied(ReconciliationOutcome.UNMATCHED)

        state = generation.to_state()
        verdict = check_idempotency(state, conversion_id)
        if verdict != IdempotencyVerdict.PROCESS:
            webhook_logger.log_duplicate(generation_id, conversion_id, verdict.value)
            return _Applied(ReconciliationOutcome.DUPLICATE)

        song = await songs.get_for_update(state.song_id)
        if song is None:
            raise DataIntegrityError(f"Song {state.song_id} not found for generation {generation_id}")

        versions = await songs.get_versions(song.id)
        verdict = check_idempotency(
            state,
            conversion_id,
            [v.provider_output_id for v in versions if v.provider_output_id]
        )

        version_created = False
        if verdict == IdempotencyVerdict.VERSION_EXISTS:
            webhook_logger.log_duplicate(generation_id, conversion_id, verdict.value)
        else:
            plan = plan_version(
                [v.version_number for v in versions],
                song.title,
                song.current_version_id,
                event
            )
            version = await songs.create_version(song.id, plan, created_by=song.owner_id)
            if plan.is_primary:
                await songs.set_current_version(song, version.id)
            version_created = True
            webhook_logger.log_version_created(
                generation_id, song.id, version.id, plan.version_number, plan.is_primary
            )

        result = fold_completion(state, event, self._clock(), self._stems_mode)
        await generations.save_state(generation, result.state)

        if result.completed_now:
            webhook_logger.log_generation_completed(
                generation_id, song.id, len(result.state.provider_processed_conversions)
            )
            outcome = ReconciliationOutcome.COMPLETED
        elif version_created:
            outcome = ReconciliationOutcome.VERSION_CREATED
        else:
            outcome = ReconciliationOutcome.REPAIRED

        return _Applied(
            outcome=outcome,
            completed_now=result.completed_now,
            version_created=version_created,
            song_id=song.id,
            owner_id=song.owner_id,
            artist_id=song.artist_id,
        )

    # ------------------------------------------------------------------
    # Lyrics branch
    # ------------------------------------------------------------------

    async def process_lyrics_update(self, event: LyricsEvent) -> ReconciliationOutcome:
        """Patch lyrics metadata only; never creates versions or changes status"""
        async with self._session_factory() as session:
            generations = GenerationRepository(session)
            generation = await generations.find_by_conversion_id(event.conversion_id)
            if generation is None:
                generation = await generations.find_by_task_id(event.task_id)
            generation_id = generation.id if generation is not None else None

        if generation_id is None:
            webhook_logger.log_unmatched(event.task_id, event.conversion_id, "lyrics")
            return ReconciliationOutcome.UNMATCHED

        async with self._locks.lock(generation_id):
            async with self._session_factory() as session:
                async with session.begin():
                    generations = GenerationRepository(session)
                    generation = await generations.get_for_update(generation_id)
                    if generation is None:
                        webhook_logger.log_unmatched(event.task_id, event.conversion_id, "lyrics")
                        return ReconciliationOutcome.UNMATCHED

                    state = fold_lyrics(generation.to_state(), event, self._clock())
                    await generations.save_state(generation, state)

        webhook_logger.log_lyrics_updated(generation_id, event.conversion_id)
        return ReconciliationOutcome.LYRICS_UPDATED

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    async def _enrich(self, generation_id: str, song_id: str, conversion_id: str) -> None:
        """Best-effort provider lookup merged into metadata and album art"""
        if not self._enrichment_enabled or self._provider is None:
            provider_logger.log_enrichment_skipped(conversion_id, "disabled")
            return

        try:
            result = await asyncio.wait_for(
                self._provider.get_conversion(conversion_id),
                timeout=self._enrichment_timeout
            )
            if result.is_err():
                provider_logger.log_enrichment_skipped(conversion_id, result.error)
                return

            details = result.unwrap().conversion

            async with self._locks.lock(generation_id):
                async with self._session_factory() as session:
                    async with session.begin():
                        generations = GenerationRepository(session)
                        songs = SongRepository(session)

                        generation = await generations.get_for_update(generation_id)
                        if generation is not None:
                            state = merge_enrichment(generation.to_state(), conversion_id, details)
                            await generations.save_state(generation, state)

                        song = await songs.get(song_id)
                        if song is not None:
                            updates = album_cover_updates(
                                song.album_cover_path, song.album_cover_thumbnail, details
                            )
                            if updates:
                                await songs.apply_album_cover(song, updates)

        except asyncio.TimeoutError:
            provider_logger.log_enrichment_skipped(conversion_id, "timeout")
        except Exception as e:
            webhook_logger.log_side_effect_failed(
                "enrichment", str(e), generation_id=generation_id, conversion_id=conversion_id
            )

    async def _notify_completion(self, generation_id: str, applied: _Applied) -> None:
        try:
            await self._notifications.create_song_ready_notification(
                applied.owner_id, applied.song_id, generation_id
            )
        except Exception as e:
            webhook_logger.log_side_effect_failed(
                "notification", str(e), generation_id=generation_id, song_id=applied.song_id
            )

        if self._notify_followers and applied.artist_id:
            try:
                await self._notifications.notify_artist_followers(
                    applied.artist_id, applied.song_id, generation_id
                )
            except Exception as e:
                webhook_logger.log_side_effect_failed(
                    "follower_notification", str(e), generation_id=generation_id
                )
