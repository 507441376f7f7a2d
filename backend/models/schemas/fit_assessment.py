"""Stage 2a output: per-requirement matches and the overall fit decision."""

from enum import Enum

from pydantic import BaseModel

from models.schemas.job_requirements import JobRequirement


class MatchType(str, Enum):
    EXACT = "exact"
    SYNONYM = "synonym"
    RELATED = "related"
    NONE = "none"


class EvidenceStrength(str, Enum):
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"


class FitLevel(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"


class MatchResult(BaseModel):
    """Outcome of matching one requirement against the candidate."""
    requirement: JobRequirement
    matched_experience_id: str | None = None
    match_type: MatchType = MatchType.NONE
    evidence_strength: EvidenceStrength = EvidenceStrength.WEAK
    evidence: str = ""  # the candidate text that satisfied the requirement
    source: str = ""  # where it came from, e.g. "Acme - PM: Launched billing"

    @property
    def is_matched(self) -> bool:
        return self.match_type != MatchType.NONE


class FitAssessment(BaseModel):
    """Structured output of the Fit Scorer (Stage 2a)."""
    overall_score: int = 0  # 0-100
    fit_level: FitLevel = FitLevel.POOR
    is_fit: bool = False
    matched_requirements: list[MatchResult] = []
    unmatched_requirements: list[MatchResult] = []
    critical_gaps: list[str] = []
    absolute_gaps: list[str] = []
    absolute_gap_explanation: str | None = None
    recommendations: list[str] = []
