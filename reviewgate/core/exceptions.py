"""Error taxonomy for the review engine.

Each error carries an explicit ``retryable`` flag so the orchestrator can
decide between returning a record to PENDING and failing it, without caring
which collaborator raised it. ``code`` and ``status_code`` are used when an
error escapes to the HTTP layer.
"""

from typing import Optional


class ReviewGateError(Exception):
    code = "REVIEW_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message: str, retryable: Optional[bool] = None):
        super().__init__(message)
        self.message = message
        if retryable is not None:
            self.retryable = retryable

    def describe(self) -> str:
        return f"{self.code}: {self.message}"


class SourceControlError(ReviewGateError):
    """GitLab API or network failure."""

    code = "SOURCE_CONTROL_ERROR"
    status_code = 502
    retryable = True


class ContextUnavailableError(ReviewGateError):
    code = "CONTEXT_UNAVAILABLE"
    status_code = 503
    retryable = True


class AiRetryableError(ReviewGateError):
    """Timeouts, rate limits, 5xx and unusable responses from the AI backend."""

    code = "AI_RETRYABLE"
    status_code = 502
    retryable = True


class CircuitOpenError(AiRetryableError):
    code = "AI_CIRCUIT_OPEN"
    status_code = 503


class AiNonRetryableError(ReviewGateError):
    """Bad request, auth or permission failures: retrying cannot succeed."""

    code = "AI_NON_RETRYABLE"
    status_code = 500
    retryable = False


class WebhookValidationError(ReviewGateError):
    code = "WEBHOOK_VALIDATION"

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message, retryable=False)
        self.status_code = status_code


class BackpressureError(ReviewGateError):
    code = "PROCESSING_QUEUE_FULL"
    status_code = 503
    retryable = True


class OptimisticConflict(ReviewGateError):
    """The record changed underneath a writer."""

    code = "OPTIMISTIC_CONFLICT"
    status_code = 409


# Client errors that are still worth repeating.
RETRYABLE_CLIENT_STATUSES = (408, 429)


def is_retryable_status(status_code: Optional[int]) -> bool:
    """HTTP 4xx other than 408/429 are permanent; everything else may pass on retry."""
    if status_code is None:
        return True
    if 400 <= status_code < 500:
        return status_code in RETRYABLE_CLIENT_STATUSES
    return True
