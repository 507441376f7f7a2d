from datetime import datetime, timedelta, timezone

import pytest

from models.schemas.job_requirements import Category, Importance, JobRequirement, Stage1Result
from services.analysis_cache import AnalysisCache, hash_job_description
from services.stores import InMemoryCacheStore

JD = "Senior Product Manager with 5+ years in product management and strong SQL."


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


class BrokenStore:
    async def fetch(self, user_id, jd_hash):
        raise ConnectionError("database unavailable")

    async def upsert(self, entry):
        raise ConnectionError("database unavailable")


@pytest.fixture
def stage1():
    return Stage1Result(
        job_requirements=[
            JobRequirement(requirement="SQL proficiency", importance=Importance.HIGH,
                           category=Category.TECHNICAL_SKILL),
        ],
        all_keywords=["SQL"],
        job_title="Senior Product Manager",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return AnalysisCache(InMemoryCacheStore(), ttl_hours=24, clock=clock)


def test_hash_ignores_case_and_surrounding_whitespace():
    assert hash_job_description(JD) == hash_job_description(f"  {JD.upper()}\n")
    assert len(hash_job_description(JD)) == 64


def test_hash_differs_for_different_text():
    assert hash_job_description(JD) != hash_job_description(JD + " Remote.")


@pytest.mark.asyncio
async def test_round_trip(cache, stage1):
    await cache.put("user-1", JD, stage1)
    assert await cache.get("user-1", JD) == stage1


@pytest.mark.asyncio
async def test_round_trip_normalised_description(cache, stage1):
    await cache.put("user-1", JD, stage1)
    assert await cache.get("user-1", f"\n  {JD.lower()}  ") == stage1


@pytest.mark.asyncio
async def test_keyed_per_user(cache, stage1):
    await cache.put("user-1", JD, stage1)
    assert await cache.get("user-2", JD) is None


@pytest.mark.asyncio
async def test_expired_entry_is_a_miss(cache, clock, stage1):
    await cache.put("user-1", JD, stage1)
    clock.now += timedelta(hours=23, minutes=59)
    assert await cache.get("user-1", JD) == stage1
    clock.now += timedelta(minutes=2)
    assert await cache.get("user-1", JD) is None


@pytest.mark.asyncio
async def test_upsert_last_write_wins(cache, stage1):
    await cache.put("user-1", JD, stage1)
    newer = stage1.model_copy(update={"job_title": "Staff Product Manager"})
    await cache.put("user-1", JD, newer)
    assert (await cache.get("user-1", JD)).job_title == "Staff Product Manager"
    assert len(cache.store) == 1


@pytest.mark.asyncio
async def test_read_failure_is_a_miss(stage1):
    cache = AnalysisCache(BrokenStore())
    assert await cache.get("user-1", JD) is None


@pytest.mark.asyncio
async def test_write_failure_is_swallowed(stage1):
    cache = AnalysisCache(BrokenStore())
    await cache.put("user-1", JD, stage1)


@pytest.mark.asyncio
async def test_disabled_cache(stage1):
    store = InMemoryCacheStore()
    cache = AnalysisCache(store, enabled=False)
    await cache.put("user-1", JD, stage1)
    assert len(store) == 0
    assert await cache.get("user-1", JD) is None
