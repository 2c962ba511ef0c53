"""
StreamStar Generation Routes
Submit generations to MusicGPT and read their state
"""

from fastapi import APIRouter, Depends

from ...database.schemas import GenerationCreate, GenerationResponse
from ...services.generation_service import GenerationService
from ..dependencies import get_generation_service

router = APIRouter()


@router.post("", response_model=GenerationResponse, status_code=201)
async def create_generation(
    request: GenerationCreate,
    service: GenerationService = Depends(get_generation_service)
):
    """Create a generation and register it with the provider"""
    generation = await service.create_generation(
        song_id=request.song_id,
        prompt=request.prompt,
        provider=request.provider,
        parameters=request.parameters,
        lyrics=request.lyrics,
        music_style=request.music_style,
        is_instrumental=request.is_instrumental
    )
    return GenerationResponse.model_validate(generation)


@router.get("/{generation_id}", response_model=GenerationResponse)
async def get_generation(
    generation_id: str,
    service: GenerationService = Depends(get_generation_service)
):
    generation = await service.get_generation(generation_id)
    return GenerationResponse.model_validate(generation)
