import asyncio

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_identity_resolver, get_orchestrator
from api.router import limiter
from config import Settings
from main import app
from services import completion_client
from services.analysis_cache import AnalysisCache
from services.errors import TransportError
from services.pipeline.bullet_synthesizer import BulletSynthesizer
from services.pipeline.fit_scorer import FitScorer
from services.pipeline.orchestrator import PipelineOrchestrator
from services.pipeline.requirement_extractor import RequirementExtractor
from services.stores import (
    InMemoryCacheStore,
    InMemoryCandidateStore,
    InMemoryQuotaStore,
    StaticTokenResolver,
)

client = TestClient(app)

AUTH = {"Authorization": "Bearer token-1"}


async def _no_sleep(seconds):
    return None


@pytest.fixture(autouse=True)
def wired(stub_completion, sample_profile, today):
    limiter.reset()
    quota = InMemoryQuotaStore()
    cache = AnalysisCache(InMemoryCacheStore())
    orchestrator = PipelineOrchestrator(
        extractor=RequirementExtractor(stub_completion, cache=cache),
        scorer=FitScorer(fit_threshold=80, today=today),
        synthesizer=BulletSynthesizer(stub_completion),
        candidate_store=InMemoryCandidateStore({sample_profile.user_id: sample_profile}),
        quota_store=quota,
        cache=cache,
        settings=Settings(),
        sleep=_no_sleep,
        today=today,
    )
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_identity_resolver] = lambda: StaticTokenResolver({"token-1": "user-1"})
    yield quota
    app.dependency_overrides.clear()


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert "completion_configured" in data


def test_health_reports_configured_completion(monkeypatch):
    monkeypatch.setattr(completion_client, "_service", completion_client.GeminiCompletionService(api_key="key"))
    assert client.get("/health").json()["completion_configured"] is True

    monkeypatch.setattr(completion_client, "_service", completion_client.GeminiCompletionService(api_key=""))
    assert client.get("/health").json()["completion_configured"] is False


def test_missing_token_is_401():
    response = client.post("/analyze-job-fit", json={"job_description": "x"})
    assert response.status_code == 401
    assert response.json() == {
        "error": "Missing authentication token",
        "code": "AUTH_REQUIRED",
        "retryable": False,
    }


def test_unknown_token_is_401():
    response = client.post(
        "/analyze-job-fit",
        json={"job_description": "x"},
        headers={"Authorization": "Bearer nope"},
    )
    assert response.status_code == 401
    assert response.json()["code"] == "AUTH_INVALID"


def test_short_description_is_400(stub_completion):
    response = client.post("/analyze-job-fit", json={"job_description": "Need a PM."}, headers=AUTH)
    assert response.status_code == 400
    assert response.json()["code"] == "JD_TOO_SHORT"
    assert stub_completion.calls == []


def test_analyze_job_fit(stub_completion, sample_jd, stage1_text, bullets_text):
    stub_completion.queue(stage1_text, bullets_text)
    response = client.post(
        "/analyze-job-fit",
        json={"job_description": sample_jd, "keyword_match_type": "flexible"},
        headers=AUTH,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["is_fit"] is True
    assert data["overall_score"] == 100
    assert data["fit_level"] == "Excellent"
    assert data["pipeline_state"] == "DONE"
    assert data["from_cache"] is False
    assert data["action_plan"]["ready_for_bullet_generation"] is True
    bullets = data["resume_bullets"]
    assert bullets["generated_from"]["keyword_match_type"] == "flexible"
    assert bullets["bullet_organization"][0]["name"] == "Beta Payments"


def test_transport_failure_is_503(stub_completion, sample_jd):
    stub_completion.queue(*[TransportError("Service temporarily unavailable", code="UNAVAILABLE")] * 3)
    response = client.post("/analyze-job-fit", json={"job_description": sample_jd}, headers=AUTH)
    assert response.status_code == 503
    data = response.json()
    assert data["code"] == "UNAVAILABLE"
    assert data["retryable"] is True


def test_unparseable_extraction_is_502(stub_completion, sample_jd):
    stub_completion.queue("Sorry, here is a summary instead.")
    response = client.post("/analyze-job-fit", json={"job_description": sample_jd}, headers=AUTH)
    assert response.status_code == 502
    assert response.json()["code"] == "EXTRACTION_FAILED"


def test_quota_exceeded_is_403(wired, sample_jd):
    asyncio.run(wired.record_usage("user-1", analyses=10))
    response = client.post("/analyze-job-fit", json={"job_description": sample_jd}, headers=AUTH)
    assert response.status_code == 403
    assert response.json()["code"] == "QUOTA_EXCEEDED"
