"""Content-addressed cache of Stage 1 results with TTL expiry.

Fail-open: storage errors on read are a miss, on write they are logged and
swallowed. The pipeline never fails because the cache is unavailable.
"""

import hashlib
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from models.schemas.cache import CacheEntry
from models.schemas.job_requirements import Stage1Result
from services.stores import CacheStore

logger = logging.getLogger(__name__)


def hash_job_description(job_description: str) -> str:
    """SHA-256 hex of the trimmed, lower-cased job description."""
    return hashlib.sha256(job_description.strip().lower().encode("utf-8")).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnalysisCache:
    def __init__(
        self,
        store: CacheStore,
        ttl_hours: float = 24,
        enabled: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.ttl = timedelta(hours=ttl_hours)
        self.enabled = enabled
        self._clock = clock

    async def get(self, user_id: str, job_description: str) -> Stage1Result | None:
        if not self.enabled:
            return None
        jd_hash = hash_job_description(job_description)
        try:
            entry = await self.store.fetch(user_id, jd_hash)
        except Exception as e:
            logger.warning("Cache read failed for %s, treating as miss: %s", user_id, e)
            return None

        if entry is None:
            logger.info("Cache miss (hash=%s)", jd_hash[:12])
            return None
        if entry.is_expired(self._clock()):
            logger.info("Cache entry expired (hash=%s)", jd_hash[:12])
            return None
        logger.info("Cache hit (hash=%s)", jd_hash[:12])
        return entry.stage1_results

    async def put(self, user_id: str, job_description: str, result: Stage1Result) -> None:
        if not self.enabled:
            return
        now = self._clock()
        entry = CacheEntry(
            jd_hash=hash_job_description(job_description),
            user_id=user_id,
            stage1_results=result,
            created_at=now,
            expires_at=now + self.ttl,
        )
        try:
            await self.store.upsert(entry)
        except Exception as e:
            logger.warning("Cache write failed for %s (ignored): %s", user_id, e)
