"""Cached Stage 1 results keyed by user and job description hash."""

from datetime import datetime

from pydantic import BaseModel

from models.schemas.job_requirements import Stage1Result


class CacheEntry(BaseModel):
    jd_hash: str  # sha256 hex of the trimmed, lower-cased job description
    user_id: str
    stage1_results: Stage1Result
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now
