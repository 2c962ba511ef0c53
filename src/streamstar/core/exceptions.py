"""
StreamStar Exceptions
Error taxonomy for the webhook reconciliation flow, mapped to HTTP status codes
"""


class StreamStarError(Exception):
    """Base error for reconciliation failures surfaced to callers"""
    status_code = 500


class WebhookAuthenticationError(StreamStarError):
    """Missing or invalid webhook signature"""
    status_code = 401


class PayloadValidationError(StreamStarError):
    """Webhook payload is malformed or missing required fields"""
    status_code = 400


class DataIntegrityError(StreamStarError):
    """A matched record points at data that no longer exists"""
    status_code = 400


class ProviderError(StreamStarError):
    """Generation provider rejected or failed a task submission"""
    status_code = 502


class ReconciliationConflictError(StreamStarError):
    """A version insert kept conflicting; the provider should redeliver"""
    status_code = 500
