"""Collaborator stores: candidate data, usage quota, Stage 1 cache and identity.

Each store is a Protocol plus an in-process implementation. The in-process
versions keep everything in dicts guarded by a lock so concurrent requests
can read and upsert without corrupting entries.
"""

import logging
import threading
from pathlib import Path
from typing import Protocol

from pydantic import TypeAdapter

from models.schemas.cache import CacheEntry
from models.schemas.candidate import CandidateExperience, CandidateProfile, Company, Role
from models.schemas.usage import UsageRecord
from services.errors import AuthError

logger = logging.getLogger(__name__)


def role_key(company_name: str, role_title: str) -> str:
    return f"{company_name or 'Unknown'} - {role_title}"


def group_experiences_by_role(
    experiences: list[CandidateExperience],
    roles: list[Role],
    companies: list[Company],
) -> dict[str, list[CandidateExperience]]:
    """Group STAR experiences under "<Company> - <Role>" keys, in role order.

    Experiences pointing at an unknown role are dropped.
    """
    company_names = {c.id: c.name for c in companies}
    keys = {r.id: role_key(company_names.get(r.company_id, ""), r.title) for r in roles}

    grouped: dict[str, list[CandidateExperience]] = {}
    for role in roles:
        grouped.setdefault(keys[role.id], [])
    for exp in experiences:
        key = keys.get(exp.role_id)
        if key is None:
            logger.warning("Experience %s references unknown role %s", exp.id, exp.role_id)
            continue
        grouped[key].append(exp)
    return {k: v for k, v in grouped.items() if v}


class CandidateStore(Protocol):
    async def load_profile(self, user_id: str) -> CandidateProfile: ...


class QuotaStore(Protocol):
    async def get_usage(self, user_id: str) -> UsageRecord: ...

    async def reserve_analysis(self, user_id: str, free_limit: int) -> UsageRecord | None: ...

    async def release_analysis(self, user_id: str) -> None: ...

    async def record_usage(self, user_id: str, analyses: int = 0, bullets: int = 0) -> UsageRecord: ...


class CacheStore(Protocol):
    async def fetch(self, user_id: str, jd_hash: str) -> CacheEntry | None: ...

    async def upsert(self, entry: CacheEntry) -> None: ...


class IdentityResolver(Protocol):
    def resolve(self, token: str) -> str: ...


_PROFILES_ADAPTER = TypeAdapter(list[CandidateProfile])


class InMemoryCandidateStore:
    def __init__(self, profiles: dict[str, CandidateProfile] | None = None) -> None:
        self._profiles = dict(profiles or {})
        self._lock = threading.Lock()

    @classmethod
    def from_json_file(cls, path: str | Path) -> "InMemoryCandidateStore":
        """Load a JSON array of candidate profiles."""
        profiles = _PROFILES_ADAPTER.validate_json(Path(path).read_bytes())
        store = cls()
        for profile in profiles:
            store.save_profile(profile)
        logger.info("Loaded %d candidate profiles from %s", len(profiles), path)
        return store

    def save_profile(self, profile: CandidateProfile) -> None:
        with self._lock:
            self._profiles[profile.user_id] = profile

    async def load_profile(self, user_id: str) -> CandidateProfile:
        with self._lock:
            profile = self._profiles.get(user_id)
        # A user with no data yet is an empty profile, not an error
        return profile.model_copy(deep=True) if profile else CandidateProfile(user_id=user_id)


class InMemoryQuotaStore:
    def __init__(self) -> None:
        self._usage: dict[str, UsageRecord] = {}
        self._lock = threading.Lock()

    def set_tier(self, user_id: str, tier: str) -> None:
        with self._lock:
            current = self._usage.get(user_id, UsageRecord())
            self._usage[user_id] = current.model_copy(update={"subscription_tier": tier})

    async def get_usage(self, user_id: str) -> UsageRecord:
        with self._lock:
            return self._usage.get(user_id, UsageRecord()).model_copy()

    async def reserve_analysis(self, user_id: str, free_limit: int) -> UsageRecord | None:
        """Check the free analysis limit and count one analysis in a single step.

        Returns the usage as it was before the reservation, or None when the
        limit is already reached.
        """
        with self._lock:
            current = self._usage.get(user_id, UsageRecord())
            if current.is_free_tier and current.analyses_used >= free_limit:
                return None
            self._usage[user_id] = current.model_copy(update={"analyses_used": current.analyses_used + 1})
        return current.model_copy()

    async def release_analysis(self, user_id: str) -> None:
        with self._lock:
            current = self._usage.get(user_id, UsageRecord())
            self._usage[user_id] = current.model_copy(
                update={"analyses_used": max(0, current.analyses_used - 1)}
            )

    async def record_usage(self, user_id: str, analyses: int = 0, bullets: int = 0) -> UsageRecord:
        with self._lock:
            current = self._usage.get(user_id, UsageRecord())
            updated = current.model_copy(update={
                "analyses_used": current.analyses_used + analyses,
                "bullets_generated": current.bullets_generated + bullets,
            })
            self._usage[user_id] = updated
        logger.info(
            "Usage for %s: analyses=%d bullets=%d",
            user_id, updated.analyses_used, updated.bullets_generated,
        )
        return updated.model_copy()


class InMemoryCacheStore:
    """Last write wins per (user_id, jd_hash)."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], CacheEntry] = {}
        self._lock = threading.Lock()

    async def fetch(self, user_id: str, jd_hash: str) -> CacheEntry | None:
        with self._lock:
            return self._entries.get((user_id, jd_hash))

    async def upsert(self, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[(entry.user_id, entry.jd_hash)] = entry

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class StaticTokenResolver:
    """Resolves bearer tokens from a fixed token -> user id map."""

    def __init__(self, tokens: dict[str, str]) -> None:
        self._tokens = dict(tokens)

    def resolve(self, token: str) -> str:
        if not token:
            raise AuthError("Missing authentication token", code="AUTH_REQUIRED")
        user_id = self._tokens.get(token)
        if not user_id:
            raise AuthError("Invalid or expired authentication token", code="AUTH_INVALID")
        return user_id
