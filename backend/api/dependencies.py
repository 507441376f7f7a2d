"""Shared dependencies for API routes."""

import logging

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import settings
from services.analysis_cache import AnalysisCache
from services.completion_client import CompletionService, get_completion_service
from services.pipeline.bullet_synthesizer import BulletSynthesizer
from services.pipeline.fit_scorer import FitScorer
from services.pipeline.orchestrator import PipelineOrchestrator
from services.pipeline.requirement_extractor import RequirementExtractor
from services.stores import (
    IdentityResolver,
    InMemoryCacheStore,
    InMemoryCandidateStore,
    InMemoryQuotaStore,
    StaticTokenResolver,
)

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


def _load_candidate_store() -> InMemoryCandidateStore:
    if not settings.candidate_profiles_path:
        logger.warning("CANDIDATE_PROFILES_PATH not set - every user is scored against an empty profile")
        return InMemoryCandidateStore()
    return InMemoryCandidateStore.from_json_file(settings.candidate_profiles_path)


# Process-wide stores, shared by all requests
candidate_store = _load_candidate_store()
quota_store = InMemoryQuotaStore()
cache_store = InMemoryCacheStore()


def get_completion() -> CompletionService:
    return get_completion_service()


def get_identity_resolver() -> IdentityResolver:
    return StaticTokenResolver(settings.auth_tokens)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> str:
    token = credentials.credentials if credentials else ""
    return resolver.resolve(token)


def get_orchestrator(completion: CompletionService = Depends(get_completion)) -> PipelineOrchestrator:
    cache = AnalysisCache(
        cache_store,
        ttl_hours=settings.cache_ttl_hours,
        enabled=settings.cache_enabled,
    )
    return PipelineOrchestrator(
        extractor=RequirementExtractor(completion, cache=cache),
        scorer=FitScorer(),
        synthesizer=BulletSynthesizer(completion),
        candidate_store=candidate_store,
        quota_store=quota_store,
        cache=cache,
    )
