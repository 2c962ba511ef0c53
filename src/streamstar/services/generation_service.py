"""
StreamStar Generation Service
Submit song generations to the provider and track their lifecycle
"""

from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..core.exceptions import ProviderError
from ..core.logging import provider_logger
from ..database.models import Generation, utcnow
from ..database.repositories import GenerationRepository, SongRepository
from .musicgpt_provider import MusicGPTProvider


class GenerationService:
    """Creates generations and registers them with MusicGPT"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        provider: MusicGPTProvider,
        webhook_url: Optional[str] = None
    ):
        self._session_factory = session_factory
        self._provider = provider
        self._webhook_url = webhook_url

    async def create_generation(
        self,
        song_id: str,
        prompt: str,
        provider: str = "musicgpt",
        parameters: Optional[Dict[str, Any]] = None,
        lyrics: Optional[str] = None,
        music_style: Optional[str] = None,
        is_instrumental: Optional[bool] = None
    ) -> Generation:
        """Insert a pending generation and submit it.

        Raises NotFoundError when the song does not exist and ProviderError
        when the provider refuses the task; in the latter case the
        generation is kept as ``failed`` with the provider's error.
        """
        async with self._session_factory() as session:
            async with session.begin():
                await SongRepository(session).get_or_404(song_id)
                generation = await GenerationRepository(session).create(
                    song_id=song_id,
                    provider=provider,
                    prompt=prompt,
                    parameters=dict(parameters or {}),
                    provider_conversion_ids=[],
                    provider_processed_conversions=[],
                    output_metadata={}
                )
                generation_id = generation.id

        # Callbacks landing before the ids below are committed get a second
        # match attempt in the reconciler (UNMATCHED_RETRY_DELAY_SECONDS)
        result = await self._provider.create_song(
            prompt=prompt,
            lyrics=lyrics,
            music_style=music_style,
            is_instrumental=is_instrumental,
            webhook_url=self._webhook_url
        )

        async with self._session_factory() as session:
            async with session.begin():
                generations = GenerationRepository(session)
                generation = await generations.get_or_404(generation_id)

                if result.is_err():
                    await generations.mark_failed(generation, result.error, utcnow())
                else:
                    task = result.unwrap()
                    await generations.set_conversion_ids(generation, task.conversion_ids)
                    await generations.mark_processing(generation, task.task_id)

        if result.is_err():
            provider_logger.log_request_error(
                "create_generation", result.error, generation_id=generation_id
            )
            raise ProviderError(result.error)

        return generation

    async def get_generation(self, generation_id: str) -> Generation:
        """Raises NotFoundError for an unknown id"""
        async with self._session_factory() as session:
            return await GenerationRepository(session).get_or_404(generation_id)
