"""
Generation Repository
Lookup and state persistence for provider generations
"""

from typing import List, Optional, Sequence
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Generation, GenerationConversion
from ...core.reconciliation import GenerationState, GenerationStatus
from .base import BaseRepository, RepositoryError

ACTIVE_STATUSES = (GenerationStatus.PENDING.value, GenerationStatus.PROCESSING.value)


class GenerationRepository(BaseRepository[Generation]):
    """Repository for Generation operations"""

    def __init__(self, session: AsyncSession):
        super().__init__(Generation, session)

    async def get_for_update(self, generation_id: str) -> Optional[Generation]:
        """Re-read a generation with a row lock held until the transaction ends"""
        try:
            result = await self.session.execute(
                select(Generation)
                .where(Generation.id == generation_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()
        except Exception as e:
            raise RepositoryError(f"Error locking generation: {str(e)}")

    async def find_by_task_id(self, task_id: str) -> Optional[Generation]:
        """Exact match on the provider task id"""
        try:
            result = await self.session.execute(
                select(Generation)
                .where(Generation.provider_task_id == task_id)
                .order_by(Generation.created_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()
        except Exception as e:
            raise RepositoryError(f"Error finding generation by task id: {str(e)}")

    async def find_by_conversion_id(
        self,
        conversion_id: str,
        statuses: Optional[Sequence[str]] = None
    ) -> Optional[Generation]:
        """Find the generation whose expected conversions contain ``conversion_id``"""
        try:
            query = (
                select(Generation)
                .join(GenerationConversion, GenerationConversion.generation_id == Generation.id)
                .where(GenerationConversion.conversion_id == conversion_id)
            )
            if statuses:
                query = query.where(Generation.status.in_(list(statuses)))

            result = await self.session.execute(
                query.order_by(Generation.created_at.desc()).limit(1)
            )
            return result.scalar_one_or_none()
        except Exception as e:
            raise RepositoryError(f"Error finding generation by conversion id: {str(e)}")

    async def find_active_by_conversion_id(self, conversion_id: str) -> Optional[Generation]:
        return await self.find_by_conversion_id(conversion_id, ACTIVE_STATUSES)

    async def set_conversion_ids(self, generation: Generation, conversion_ids: Sequence[str]) -> None:
        """Replace the expected conversion list and its lookup rows"""
        await self.session.execute(
            delete(GenerationConversion).where(GenerationConversion.generation_id == generation.id)
        )
        unique_ids: List[str] = list(dict.fromkeys(conversion_ids))
        self.session.add_all([
            GenerationConversion(generation_id=generation.id, conversion_id=cid, position=position)
            for position, cid in enumerate(unique_ids)
        ])
        generation.provider_conversion_ids = unique_ids
        await self.session.flush()

    async def save_state(self, generation: Generation, state: GenerationState) -> Generation:
        """Persist a reduced state, keeping the lookup rows in step with it"""
        previous_ids = list(generation.provider_conversion_ids or [])
        generation.apply_state(state)

        added = [cid for cid in state.provider_conversion_ids if cid not in previous_ids]
        self.session.add_all([
            GenerationConversion(
                generation_id=generation.id,
                conversion_id=cid,
                position=len(previous_ids) + offset
            )
            for offset, cid in enumerate(added)
        ])
        await self.session.flush()
        return generation

    async def mark_processing(self, generation: Generation, task_id: str) -> Generation:
        generation.provider_task_id = task_id
        generation.status = GenerationStatus.PROCESSING.value
        await self.session.flush()
        return generation

    async def mark_failed(self, generation: Generation, error: str, failed_at) -> Generation:
        generation.status = GenerationStatus.FAILED.value
        generation.error = error
        generation.completed_at = failed_at
        await self.session.flush()
        return generation
