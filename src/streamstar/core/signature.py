"""
Webhook Signature Verification
HMAC-SHA256 over the raw request body, delivered as a hex digest header
"""

import hashlib
import hmac
from typing import Optional

from .exceptions import WebhookAuthenticationError
from .logging import webhook_logger


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the raw body"""
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(
    raw_body: bytes,
    signature: Optional[str],
    secret: Optional[str],
    require_secret: bool = False
) -> bool:
    """Check a webhook signature against the shared secret.

    With no secret configured verification is skipped and a warning is
    logged, unless ``require_secret`` is set, in which case every delivery
    is refused. Comparison is exact (case-sensitive hex).
    """
    if not secret:
        if require_secret:
            webhook_logger.logger.error(
                "Webhook secret not configured while signatures are required"
            )
            return False
        webhook_logger.logger.warning(
            "Webhook secret is not set; skipping signature verification"
        )
        return True

    if not signature:
        return False

    expected = compute_signature(raw_body, secret)
    return hmac.compare_digest(expected, signature)


def require_valid_signature(
    raw_body: bytes,
    signature: Optional[str],
    secret: Optional[str],
    require_secret: bool = False
) -> None:
    """Raise WebhookAuthenticationError unless the signature verifies"""
    if not verify_signature(raw_body, signature, secret, require_secret):
        raise WebhookAuthenticationError("Invalid signature")
