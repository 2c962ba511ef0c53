"""
StreamStar Logging Configuration
Structured logging setup with file rotation for webhook reconciliation
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Optional

import structlog
from pythonjsonlogger import jsonlogger

from .config import get_settings

settings = get_settings()


def setup_logging() -> logging.Logger:
    """Set up structured logging for StreamStar"""

    log_dir = Path(settings.LOG_FILE_PATH).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper()),
        format=settings.LOG_FORMAT,
        handlers=[]
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)

    if settings.is_development:
        console_formatter = logging.Formatter(
            '\033[92m%(asctime)s\033[0m - '
            '\033[94m%(name)s\033[0m - '
            '%(levelname)s - '
            '%(message)s',
            datefmt='%H:%M:%S'
        )
    else:
        console_formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(name)s %(levelname)s %(message)s'
        )

    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    file_handler = logging.handlers.RotatingFileHandler(
        settings.LOG_FILE_PATH,
        maxBytes=settings.LOG_MAX_SIZE,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding='utf-8'
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(jsonlogger.JsonFormatter(
        '%(asctime)s %(name)s %(levelname)s %(pathname)s %(lineno)d %(funcName)s %(message)s'
    ))
    root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if not settings.is_development
            else structlog.dev.ConsoleRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Adjust third-party library log levels
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("fastapi").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.getLogger("streamstar.webhook").setLevel(logging.DEBUG)
    logging.getLogger("streamstar.provider").setLevel(logging.INFO)

    logger = logging.getLogger("streamstar")
    logger.info(f"Logging configured - Level: {settings.LOG_LEVEL}")

    return logger


class WebhookLogger:
    """Specialized logger for provider webhook reconciliation"""

    def __init__(self):
        self.logger = structlog.get_logger("streamstar.webhook")

    def log_received(self, task_id: Optional[str], conversion_id: Optional[str], subtype: Optional[str] = None) -> None:
        self.logger.info(
            "Webhook received",
            task_id=task_id,
            conversion_id=conversion_id,
            subtype=subtype
        )

    def log_rejected(self, reason: str, status_code: int, **kwargs: Any) -> None:
        """Log a webhook rejected before any state mutation"""
        self.logger.warning(
            "Webhook rejected",
            reason=reason,
            status_code=status_code,
            **kwargs
        )

    def log_unmatched(self, task_id: str, conversion_id: str, branch: str) -> None:
        """Log an acknowledged webhook that matched no generation"""
        self.logger.warning(
            "No generation found for webhook",
            task_id=task_id,
            conversion_id=conversion_id,
            branch=branch
        )

    def log_duplicate(self, generation_id: str, conversion_id: str, reason: str) -> None:
        self.logger.info(
            "Webhook already processed, skipping",
            generation_id=generation_id,
            conversion_id=conversion_id,
            reason=reason
        )

    def log_conflict_retry(self, generation_id: str, conversion_id: str, attempt: int, error: str) -> None:
        """Log a version insert that lost a race and will be re-planned"""
        self.logger.warning(
            "Song version conflict, retrying",
            generation_id=generation_id,
            conversion_id=conversion_id,
            attempt=attempt,
            error=error
        )

    def log_version_created(
        self,
        generation_id: str,
        song_id: str,
        version_id: str,
        version_number: int,
        is_primary: bool
    ) -> None:
        self.logger.info(
            "Song version materialized",
            generation_id=generation_id,
            song_id=song_id,
            version_id=version_id,
            version_number=version_number,
            is_primary=is_primary
        )

    def log_generation_completed(self, generation_id: str, song_id: str, processed: int) -> None:
        self.logger.info(
            "Generation completed",
            generation_id=generation_id,
            song_id=song_id,
            processed_conversions=processed
        )

    def log_lyrics_updated(self, generation_id: str, conversion_id: str) -> None:
        self.logger.info(
            "Lyrics metadata updated",
            generation_id=generation_id,
            conversion_id=conversion_id
        )

    def log_side_effect_failed(self, effect: str, error: str, **kwargs: Any) -> None:
        """Log failure of a best-effort step (enrichment, notification, fan-out)"""
        self.logger.error(
            "Best-effort step failed",
            effect=effect,
            error=error,
            **kwargs
        )


class ProviderLogger:
    """Specialized logger for generation provider HTTP calls"""

    def __init__(self):
        self.logger = structlog.get_logger("streamstar.provider")

    def log_request_start(self, operation: str, **kwargs: Any) -> None:
        self.logger.info(
            "Provider request started",
            operation=operation,
            **kwargs
        )

    def log_request_complete(self, operation: str, duration_ms: float, **kwargs: Any) -> None:
        self.logger.info(
            "Provider request completed",
            operation=operation,
            duration_ms=duration_ms,
            **kwargs
        )

    def log_request_error(self, operation: str, error: str, **kwargs: Any) -> None:
        self.logger.error(
            "Provider request failed",
            operation=operation,
            error=error,
            **kwargs
        )

    def log_enrichment_skipped(self, conversion_id: str, reason: str) -> None:
        self.logger.warning(
            "Conversion enrichment skipped",
            conversion_id=conversion_id,
            reason=reason
        )


class PerformanceLogger:
    """Logger for performance monitoring"""

    def __init__(self):
        self.logger = structlog.get_logger("streamstar.performance")

    def log_lock_wait(self, key: str, wait_ms: float, backend: str) -> None:
        """Log time spent waiting for a per-generation lock"""
        self.logger.debug(
            "Generation lock acquired",
            key=key,
            wait_ms=wait_ms,
            backend=backend
        )


# Create global logger instances
webhook_logger = WebhookLogger()
provider_logger = ProviderLogger()
performance_logger = PerformanceLogger()

__all__ = [
    "setup_logging",
    "WebhookLogger",
    "ProviderLogger",
    "PerformanceLogger",
    "webhook_logger",
    "provider_logger",
    "performance_logger"
]
