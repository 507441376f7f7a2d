"""Pipeline orchestrator: sequences the three stages for one request.

Flow:
    job_description + user_id
      ├─ validate input, reserve quota         (no network)
      ├─ EXTRACTING: AnalysisCache.get  → hit: Stage1Result
      │              miss: RequirementExtractor.extract (retried) → Stage1Result
      ├─ MATCHING:   FitScorer.score(requirements, candidate data) → FitAssessment
      ├─ is_fit and experiences and bullet quota left?
      │     yes → GENERATING: BulletSynthesizer.synthesize (retried) → BulletResult
      │     no  → SKIPPED
      └─ DONE: merge → FitAnalysisResponse, count bullets once

Any failure other than bullet generation moves to FAILED and re-raises.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import date
from enum import Enum
from typing import Any, TypeVar

from config import Settings, settings as default_settings
from models.responses import (
    BulletGenerationError,
    CompanyBullets,
    FitAnalysisResponse,
    GeneratedFrom,
    LimitReached,
    ResumeBullets,
    RoleBullets,
)
from models.schemas.bullets import BulletResult
from models.schemas.candidate import RoleWithDuration
from models.schemas.usage import UsageRecord
from services import experience_calculator, validation
from services.analysis_cache import AnalysisCache
from services.errors import PipelineError, QuotaExceededError, TransportError
from services.pipeline.bullet_synthesizer import BulletSynthesizer
from services.pipeline.fit_scorer import FitScorer
from services.pipeline.requirement_extractor import RequirementExtractor
from services.stores import CandidateStore, QuotaStore, group_experiences_by_role, role_key

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PipelineState(str, Enum):
    START = "START"
    EXTRACTING = "EXTRACTING"
    MATCHING = "MATCHING"
    GENERATING = "GENERATING"
    SKIPPED = "SKIPPED"
    DONE = "DONE"
    FAILED = "FAILED"


def organize_bullets(result: BulletResult, roles: list[RoleWithDuration]) -> list[CompanyBullets]:
    """Regroup "<Company> - <Role>" bullet lists into company -> roles, in role order."""
    companies: dict[str, CompanyBullets] = {}
    for role in roles:
        key = role_key(role.company, role.title)
        if key not in result.bullets_by_role:
            continue
        name = role.company or "Unknown"
        company = companies.setdefault(name, CompanyBullets(name=name))
        if any(r.title == role.title for r in company.roles):
            continue
        company.roles.append(RoleBullets(title=role.title, bullet_points=result.bullets_by_role[key]))
    return list(companies.values())


class _Run:
    """State trail of one request."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        self.state = PipelineState.START
        self.trace = [PipelineState.START.value]

    def transition(self, state: PipelineState) -> None:
        logger.info("Pipeline %s: %s -> %s", self.user_id, self.state.value, state.value)
        self.state = state
        self.trace.append(state.value)


class PipelineOrchestrator:
    def __init__(
        self,
        extractor: RequirementExtractor,
        scorer: FitScorer,
        synthesizer: BulletSynthesizer,
        candidate_store: CandidateStore,
        quota_store: QuotaStore,
        cache: AnalysisCache | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        today: date | None = None,
    ) -> None:
        self.extractor = extractor
        self.scorer = scorer
        self.synthesizer = synthesizer
        self.candidate_store = candidate_store
        self.quota_store = quota_store
        self.cache = cache
        self.settings = settings or default_settings
        self._sleep = sleep
        self.today = today

    async def _with_retry(self, stage: str, func: Callable[..., Awaitable[T]], *args: Any) -> T:
        """Retry transport failures with a fixed delay. Everything else propagates."""
        attempts = max(1, self.settings.max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return await func(*args)
            except TransportError as e:
                if attempt == attempts:
                    logger.error("%s failed after %d attempts: %s", stage, attempts, e.message)
                    raise
                logger.warning(
                    "%s attempt %d/%d failed (%s), retrying in %.1fs",
                    stage, attempt, attempts, e.code, self.settings.retry_delay_seconds,
                )
                await self._sleep(self.settings.retry_delay_seconds)
        raise AssertionError("unreachable")

    async def run(self, user_id: str, job_description: str, keyword_match_type: str = "exact") -> FitAnalysisResponse:
        run = _Run(user_id)
        try:
            return await self._run(run, job_description, keyword_match_type)
        except Exception as e:
            run.transition(PipelineState.FAILED)
            if isinstance(e, PipelineError):
                logger.warning("Pipeline failed for %s: [%s] %s", user_id, e.code, e.message)
            else:
                logger.exception("Pipeline failed for %s with an unexpected error", user_id)
            raise

    async def _run(self, run: _Run, job_description: str, keyword_match_type: str) -> FitAnalysisResponse:
        user_id = run.user_id
        job_description = validation.validate_job_description(job_description, self.settings)
        match_mode = validation.validate_match_type(keyword_match_type)

        usage = await self.quota_store.reserve_analysis(user_id, self.settings.free_analyses_limit)
        if usage is None:
            raise QuotaExceededError(
                f"You have used all {self.settings.free_analyses_limit} free job analyses. "
                "Upgrade your plan to keep analyzing jobs."
            )

        try:
            return await self._analyze(run, job_description, match_mode, usage)
        except BaseException:
            # Cancellation included: an unfinished request counts nothing
            await self.quota_store.release_analysis(user_id)
            raise

    async def _analyze(
        self, run: _Run, job_description: str, match_mode: str, usage: UsageRecord
    ) -> FitAnalysisResponse:
        user_id = run.user_id

        # --- Stage 1: requirements (cache first) ---
        run.transition(PipelineState.EXTRACTING)
        stage1 = await self.cache.get(user_id, job_description) if self.cache else None
        from_cache = stage1 is not None
        if stage1 is None:
            stage1 = await self._with_retry(
                self.extractor.stage_name, self.extractor.extract, job_description, user_id
            )

        # --- Stage 2a: local scoring ---
        run.transition(PipelineState.MATCHING)
        profile = await self.candidate_store.load_profile(user_id)
        roles = experience_calculator.enrich_roles_with_duration(profile.roles, profile.companies, self.today)
        experiences_by_role = group_experiences_by_role(profile.experiences, profile.roles, profile.companies)
        assessment = self.scorer.score(
            stage1.job_requirements,
            stage1.all_keywords,
            experiences_by_role,
            profile.education,
            roles,
        )

        # --- Stage 2b: bullets, only for a fit candidate ---
        bullets_left = (
            not usage.is_free_tier or usage.bullets_generated < self.settings.free_bullets_limit
        )
        ready_for_bullets = assessment.is_fit and bool(experiences_by_role)
        resume_bullets = None
        generation_error = None
        limit_reached = None
        bullets_produced = False

        if not ready_for_bullets or not bullets_left:
            if not assessment.is_fit:
                reason = f"score {assessment.overall_score} below threshold or absolute gaps"
            elif not experiences_by_role:
                reason = "no experiences"
            else:
                reason = "bullet quota exhausted"
                limit_reached = LimitReached(
                    type="bullets", used=usage.bullets_generated, limit=self.settings.free_bullets_limit
                )
            logger.info("Skipping bullet generation for %s: %s", user_id, reason)
            run.transition(PipelineState.SKIPPED)
        else:
            run.transition(PipelineState.GENERATING)
            try:
                bullet_result = await self._with_retry(
                    self.synthesizer.stage_name,
                    self.synthesizer.synthesize,
                    experiences_by_role,
                    assessment.matched_requirements,
                    stage1.all_keywords,
                    match_mode,
                )
            except PipelineError as e:
                # The assessment stands on its own
                logger.warning("Bullet generation failed for %s, returning assessment only: %s", user_id, e.message)
                generation_error = BulletGenerationError(code=e.code, message=e.message)
            else:
                bullets_produced = any(bullet_result.bullets_by_role.values())
                resume_bullets = ResumeBullets(
                    bullet_organization=organize_bullets(bullet_result, roles),
                    keywords_used=bullet_result.keywords_used,
                    keywords_not_used=bullet_result.keywords_not_used,
                    generated_from=GeneratedFrom(
                        total_experiences=sum(len(v) for v in experiences_by_role.values()),
                        keyword_match_type=match_mode,
                        score_threshold=self.scorer.fit_threshold,
                        visual_width_max=self.synthesizer.visual_width_max,
                    ),
                )

        # --- Usage: the analysis was reserved up front, bullets count once ---
        updated = await self.quota_store.record_usage(user_id, bullets=1 if bullets_produced else 0)
        if (
            bullets_produced
            and updated.is_free_tier
            and updated.bullets_generated >= self.settings.free_bullets_limit
        ):
            limit_reached = LimitReached(
                type="bullets", used=updated.bullets_generated, limit=self.settings.free_bullets_limit
            )

        run.transition(PipelineState.DONE)
        return FitAnalysisResponse.from_stages(
            stage1,
            assessment,
            ready_for_bullet_generation=ready_for_bullets,
            resume_bullets=resume_bullets,
            bullet_generation_error=generation_error,
            limit_reached=limit_reached,
            pipeline_state=run.state.value,
            pipeline_trace=run.trace,
            from_cache=from_cache,
        )
