"""
StreamStar Webhook Routes
Provider callbacks for generation completion and lyrics updates
"""

import json

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ...core.config import StreamStarSettings, get_settings
from ...core.exceptions import PayloadValidationError, StreamStarError
from ...core.logging import webhook_logger
from ...core.signature import require_valid_signature
from ...database.schemas import ErrorResponse, WebhookAck
from ...services.reconciliation_service import GenerationReconciler
from ..dependencies import get_reconciler

router = APIRouter()


@router.post(
    "/musicgpt",
    response_model=WebhookAck,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    }
)
async def musicgpt_webhook(
    request: Request,
    reconciler: GenerationReconciler = Depends(get_reconciler),
    settings: StreamStarSettings = Depends(get_settings)
):
    """Receive a MusicGPT callback.

    Well-formed deliveries are always acknowledged with ``{"ok": true}``,
    including unmatched and duplicate events, so the provider stops retrying.
    """
    raw_body = await request.body()

    try:
        require_valid_signature(
            raw_body,
            request.headers.get(settings.webhook_signature_header),
            settings.MUSICGPT_WEBHOOK_SECRET,
            require_secret=settings.WEBHOOK_REQUIRE_SIGNATURE
        )

        try:
            body = json.loads(raw_body)
        except ValueError:
            raise PayloadValidationError("Invalid JSON body")

        outcome = await reconciler.handle_webhook(body)

    except StreamStarError as e:
        webhook_logger.log_rejected(str(e), e.status_code)
        return JSONResponse(status_code=e.status_code, content={"error": str(e)})

    except Exception as e:
        webhook_logger.logger.error("Webhook processing failed", error=str(e), exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    webhook_logger.logger.debug("Webhook handled", outcome=outcome.value)
    return WebhookAck(ok=True)
