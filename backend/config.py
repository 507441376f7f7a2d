import os
from pydantic_settings import BaseSettings


def _parse_cors_origins() -> list[str] | None:
    """Parse CORS_ORIGINS env var as comma-separated string or JSON list."""
    raw = os.environ.get("CORS_ORIGINS")
    if not raw:
        return None
    if raw.startswith("["):
        import json
        return json.loads(raw)
    return [o.strip() for o in raw.split(",") if o.strip()]


class Settings(BaseSettings):
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    request_timeout_seconds: float = 45.0
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]
    debug: bool = False
    log_level: str = "INFO"

    # Bearer token -> user id. Stand-in for the real identity provider.
    auth_tokens: dict[str, str] = {}
    # JSON array of candidate profiles loaded at startup
    candidate_profiles_path: str = ""

    # Completion budgets per stage
    temperature_extraction: float = 0.0
    temperature_bullets: float = 0.15
    stage1_max_tokens: int = 3000
    stage2b_max_tokens: int = 4000

    # Retry (fixed delay between attempts, transport errors only)
    max_attempts: int = 3
    retry_delay_seconds: float = 1.0

    # Scoring and bullets
    fit_threshold: int = 80
    max_bullets_per_role: int = 6
    visual_width_max: float = 179.0

    # Stage 1 cache
    cache_enabled: bool = True
    cache_ttl_hours: int = 24

    # Job description preconditions
    jd_min_chars: int = 400
    jd_min_words: int = 50
    jd_max_chars: int = 10000

    # Free tier quota
    free_analyses_limit: int = 10
    free_bullets_limit: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


_cors_override = _parse_cors_origins()
settings = Settings(**{"cors_origins": _cors_override} if _cors_override else {})
