from pydantic import BaseModel

from models.schemas.bullets import BulletPoint
from models.schemas.fit_assessment import FitAssessment, FitLevel, MatchResult
from models.schemas.job_requirements import JobRequirement, Stage1Result


class RoleBullets(BaseModel):
    title: str
    bullet_points: list[BulletPoint] = []


class CompanyBullets(BaseModel):
    name: str
    roles: list[RoleBullets] = []


class GeneratedFrom(BaseModel):
    total_experiences: int = 0
    keyword_match_type: str = "exact"
    score_threshold: int = 80
    visual_width_max: float = 179.0


class ResumeBullets(BaseModel):
    bullet_organization: list[CompanyBullets] = []
    keywords_used: list[str] = []
    keywords_not_used: list[str] = []
    generated_from: GeneratedFrom = GeneratedFrom()


class ActionPlan(BaseModel):
    ready_for_application: bool = False
    ready_for_bullet_generation: bool = False
    critical_gaps: list[str] = []
    absolute_gaps: list[str] = []


class LimitReached(BaseModel):
    type: str  # "bullets"
    used: int
    limit: int


class BulletGenerationError(BaseModel):
    code: str
    message: str


class FitAnalysisResponse(BaseModel):
    """Unified result of one pipeline run."""
    # Stage 1
    job_title: str = "Position"
    company_summary: str = "Company"
    job_requirements: list[JobRequirement] = []
    all_keywords: list[str] = []
    # Stage 2a
    overall_score: int = 0
    fit_level: FitLevel = FitLevel.POOR
    is_fit: bool = False
    matched_requirements: list[MatchResult] = []
    unmatched_requirements: list[MatchResult] = []
    critical_gaps: list[str] = []
    absolute_gaps: list[str] = []
    absolute_gap_explanation: str | None = None
    recommendations: list[str] = []
    # Stage 2b (only when fit)
    resume_bullets: ResumeBullets | None = None
    bullet_generation_error: BulletGenerationError | None = None
    limit_reached: LimitReached | None = None

    action_plan: ActionPlan = ActionPlan()
    pipeline_state: str = "DONE"
    pipeline_trace: list[str] = []  # every state visited, e.g. START ... SKIPPED, DONE
    from_cache: bool = False

    @classmethod
    def from_stages(
        cls,
        stage1: Stage1Result,
        assessment: FitAssessment,
        ready_for_bullet_generation: bool = False,
        **extra,
    ) -> "FitAnalysisResponse":
        action_plan = ActionPlan(
            ready_for_application=assessment.is_fit,
            ready_for_bullet_generation=ready_for_bullet_generation,
            critical_gaps=assessment.critical_gaps,
            absolute_gaps=assessment.absolute_gaps,
        )
        return cls(**stage1.model_dump(), **assessment.model_dump(), action_plan=action_plan, **extra)


class ErrorResponse(BaseModel):
    error: str
    code: str
    retryable: bool = False
