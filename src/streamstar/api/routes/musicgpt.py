"""
StreamStar MusicGPT Routes
Server-side proxy for provider conversion lookups
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...core.logging import provider_logger
from ...database.schemas import ConversionDetailsResponse
from ...services.musicgpt_provider import MusicGPTProvider
from ..dependencies import get_provider

router = APIRouter()


@router.get("/conversion/{conversion_id}", response_model=ConversionDetailsResponse)
async def get_conversion(
    conversion_id: str,
    provider: MusicGPTProvider = Depends(get_provider)
):
    """Fetch conversion details without exposing the API key to clients"""
    result = await provider.get_conversion(conversion_id)

    if result.is_err():
        provider_logger.log_request_error("conversion_proxy", result.error, conversion_id=conversion_id)
        return JSONResponse(status_code=404, content={"error": "Failed to fetch conversion details"})

    details = result.unwrap()
    return ConversionDetailsResponse(success=details.success, conversion=details.conversion)
