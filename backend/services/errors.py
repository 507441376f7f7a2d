"""Error taxonomy for the job-fit pipeline.

Every error carries a machine-readable ``code``, a user-facing ``message``
and a ``retryable`` flag so callers can decide whether to offer a retry.
"""


class PipelineError(Exception):
    """Base class for all errors surfaced by the analysis pipeline."""

    default_code = "PIPELINE_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message: str, code: str | None = None, retryable: bool | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        if retryable is not None:
            self.retryable = retryable

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "retryable": self.retryable}


class ValidationError(PipelineError):
    """Bad input shape or length. Reported immediately, never retried."""

    default_code = "VALIDATION_ERROR"
    status_code = 400


class AuthError(PipelineError):
    default_code = "AUTH_FAILED"
    status_code = 401


class TransportError(PipelineError):
    """Rate limit, timeout or connection failure talking to the completion service."""

    default_code = "TRANSPORT_ERROR"
    status_code = 503
    retryable = True


class ExtractionError(PipelineError):
    default_code = "EXTRACTION_FAILED"
    status_code = 502


class ScoringConfigError(PipelineError):
    default_code = "SCORING_CONFIG_ERROR"
    status_code = 502


class GenerationError(PipelineError):
    default_code = "GENERATION_FAILED"
    status_code = 502


class QuotaExceededError(PipelineError):
    default_code = "QUOTA_EXCEEDED"
    status_code = 403
