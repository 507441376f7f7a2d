"""Job description preconditions checked before any completion call."""

import logging

from config import Settings, settings as default_settings
from services.errors import ValidationError

logger = logging.getLogger(__name__)

KEYWORD_MATCH_TYPES = ("exact", "flexible")


def validate_job_description(job_description: str | None, settings: Settings | None = None) -> str:
    """Return the trimmed job description or raise ValidationError."""
    settings = settings or default_settings
    text = (job_description or "").strip()

    if not text:
        raise ValidationError("Job description is required", code="JD_EMPTY")
    if len(text) < settings.jd_min_chars:
        raise ValidationError(
            f"Job description is too short ({len(text)} characters). "
            f"Please paste at least {settings.jd_min_chars} characters.",
            code="JD_TOO_SHORT",
        )
    if len(text) > settings.jd_max_chars:
        raise ValidationError(
            f"Job description is too long ({len(text)} characters, maximum "
            f"{settings.jd_max_chars}). Please paste only the job posting.",
            code="JD_TOO_LONG",
        )
    words = len(text.split())
    if words < settings.jd_min_words:
        raise ValidationError(
            f"Job description has too few words ({words}). "
            f"Please paste the full posting, at least {settings.jd_min_words} words.",
            code="JD_TOO_FEW_WORDS",
        )
    return text


def validate_match_type(match_type: str | None) -> str:
    match_type = (match_type or "exact").lower()
    if match_type not in KEYWORD_MATCH_TYPES:
        raise ValidationError(
            f"keyword_match_type must be one of {', '.join(KEYWORD_MATCH_TYPES)}",
            code="INVALID_MATCH_TYPE",
        )
    return match_type
