"""
StreamStar Song Routes
Song version listing and primary-version promotion
"""

from typing import List

from fastapi import APIRouter, Depends

from ...database.schemas import SetPrimaryVersionRequest, SongResponse, SongVersionResponse
from ...services.song_service import SongService
from ..dependencies import get_song_service

router = APIRouter()


@router.get("/{song_id}", response_model=SongResponse)
async def get_song(
    song_id: str,
    service: SongService = Depends(get_song_service)
):
    song = await service.get_song(song_id)
    return SongResponse.model_validate(song)


@router.get("/{song_id}/versions", response_model=List[SongVersionResponse])
async def list_song_versions(
    song_id: str,
    service: SongService = Depends(get_song_service)
):
    """Versions of a song ordered by version number"""
    versions = await service.get_song_versions(song_id)
    return [SongVersionResponse.model_validate(v) for v in versions]


@router.post("/{song_id}/primary-version", response_model=SongVersionResponse)
async def set_primary_version(
    song_id: str,
    request: SetPrimaryVersionRequest,
    service: SongService = Depends(get_song_service)
):
    version = await service.set_primary_song_version(song_id, request.version_id)
    return SongVersionResponse.model_validate(version)
