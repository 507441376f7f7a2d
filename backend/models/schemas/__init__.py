"""Inter-stage Pydantic contracts for the job-fit pipeline."""

from models.schemas.job_requirements import (
    Category,
    DegreeLevel,
    Importance,
    JobRequirement,
    Stage1Result,
)
from models.schemas.candidate import (
    CandidateExperience,
    CandidateProfile,
    Company,
    Education,
    Role,
    RoleWithDuration,
)
from models.schemas.fit_assessment import (
    EvidenceStrength,
    FitAssessment,
    FitLevel,
    MatchResult,
    MatchType,
)
from models.schemas.bullets import BulletPoint, BulletResult
from models.schemas.cache import CacheEntry
from models.schemas.usage import UsageRecord

__all__ = [
    "Category",
    "DegreeLevel",
    "Importance",
    "JobRequirement",
    "Stage1Result",
    "CandidateExperience",
    "CandidateProfile",
    "Company",
    "Education",
    "Role",
    "RoleWithDuration",
    "EvidenceStrength",
    "FitAssessment",
    "FitLevel",
    "MatchResult",
    "MatchType",
    "BulletPoint",
    "BulletResult",
    "CacheEntry",
    "UsageRecord",
]
