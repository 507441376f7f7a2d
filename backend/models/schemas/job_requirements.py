"""Stage 1 output: structured requirements extracted from a job description."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator


class Importance(str, Enum):
    """Ordinal priority of a requirement. ``absolute`` caps the score if unmet."""
    ABSOLUTE = "absolute"
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Category(str, Enum):
    EDUCATION_DEGREE = "education_degree"
    EDUCATION_FIELD = "education_field"
    YEARS_EXPERIENCE = "years_experience"
    ROLE_TITLE = "role_title"
    TECHNICAL_SKILL = "technical_skill"
    SOFT_SKILL = "soft_skill"
    DOMAIN_KNOWLEDGE = "domain_knowledge"


class DegreeLevel(str, Enum):
    OTHER = "Other"
    DIPLOMA = "Diploma"
    ASSOCIATE = "Associate"
    BACHELORS = "Bachelor's"
    MASTERS = "Master's"
    PHD = "PhD"


class JobRequirement(BaseModel):
    """A single atomic requirement. Compound requirements are split upstream."""
    model_config = ConfigDict(frozen=True)

    requirement: str
    importance: Importance = Importance.MEDIUM
    category: Category
    minimum_years: float | None = None
    specific_role: str | None = None
    minimum_degree_level: DegreeLevel | None = None
    required_field: str | None = None
    field_criteria: str | None = None  # e.g. "STEM", "technical field"
    required_title_keywords: list[str] = []

    @field_validator("requirement")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()


class Stage1Result(BaseModel):
    """Structured output of the Requirement Extractor (Stage 1)."""
    job_requirements: list[JobRequirement] = []
    all_keywords: list[str] = []
    job_title: str = "Position"
    company_summary: str = "Company"
