"""Stage 1: Requirement Extractor.

Turns raw job description text into atomic, categorised requirements plus a
flat keyword list via one deterministic (temperature 0) completion call.

The completion returns camelCase JSON which is validated here and converted
to JobRequirement records. Anything that does not fit the expected shape is
an ExtractionError; transport failures propagate untouched so the
orchestrator can retry them.
"""

import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaValidationError

from config import settings
from models.schemas.job_requirements import (
    Category,
    DegreeLevel,
    Importance,
    JobRequirement,
    Stage1Result,
)
from services import education_matcher, prompt_builder
from services.analysis_cache import AnalysisCache
from services.completion_client import CompletionConfig, CompletionService, parse_json_response
from services.errors import ExtractionError
from services.pipeline.base import CompletionStage

logger = logging.getLogger(__name__)

# "Equivalent practical experience" on its own: the alternative pathway to a degree
_EQUIVALENT_ALTERNATIVE_RE = re.compile(
    r"^\s*(?:or\s+)?(?:an?\s+)?equivalent\s+(?:\w+\s+){0,2}experience\b", re.IGNORECASE
)
# "... degree or equivalent practical experience" tail on a degree requirement
_EQUIVALENT_TAIL_RE = re.compile(
    r",?\s+or\s+(?:an?\s+)?equivalent\s+(?:\w+\s+){0,2}experience.*$", re.IGNORECASE
)


class _RawRequirement(BaseModel):
    """One requirement exactly as the completion service emits it."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    requirement: str
    importance: str = "medium"
    category: str
    minimum_years: float | None = Field(default=None, alias="minimumYears")
    specific_role: str | None = Field(default=None, alias="specificRole")
    minimum_degree_level: str | None = Field(default=None, alias="minimumDegreeLevel")
    required_field: str | None = Field(default=None, alias="requiredField")
    field_criteria: str | None = Field(default=None, alias="fieldCriteria")
    required_title_keywords: list[str] | None = Field(default=None, alias="requiredTitleKeywords")


class _RawStage1(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    job_requirements: list[_RawRequirement] = Field(alias="jobRequirements")
    all_keywords: list[str] = Field(alias="allKeywords")
    job_title: str | None = Field(default=None, alias="jobTitle")
    company_summary: str | None = Field(default=None, alias="companySummary")


def _to_importance(value: str) -> Importance:
    try:
        return Importance(value.strip().lower())
    except ValueError:
        logger.warning("Unknown importance %r, defaulting to medium", value)
        return Importance.MEDIUM


def _to_degree_level(value: str | None) -> DegreeLevel | None:
    if not value:
        return None
    return education_matcher.parse_degree_level(value)


def _convert(raw: _RawRequirement) -> JobRequirement:
    try:
        category = Category(raw.category.strip().lower())
    except ValueError as e:
        raise ExtractionError(
            f"Requirement extraction returned an unknown category {raw.category!r}. "
            "Please try again or shorten the job description."
        ) from e

    return JobRequirement(
        requirement=raw.requirement,
        importance=_to_importance(raw.importance),
        category=category,
        minimum_years=raw.minimum_years,
        specific_role=(raw.specific_role or "").strip() or None,
        minimum_degree_level=_to_degree_level(raw.minimum_degree_level),
        required_field=(raw.required_field or "").strip() or None,
        field_criteria=(raw.field_criteria or "").strip() or None,
        required_title_keywords=[k.strip() for k in raw.required_title_keywords or [] if k.strip()],
    )


def drop_equivalent_experience(requirements: list[JobRequirement]) -> list[JobRequirement]:
    """Remove "or equivalent experience" pathways that accompany a degree requirement.

    Only education allows the alternative to be discarded; "or related"
    qualifiers on experience requirements are left intact.
    """
    if not any(r.category == Category.EDUCATION_DEGREE for r in requirements):
        return requirements

    kept = []
    for req in requirements:
        if req.category == Category.EDUCATION_DEGREE:
            text = _EQUIVALENT_TAIL_RE.sub("", req.requirement).strip()
            if text and text != req.requirement:
                req = req.model_copy(update={"requirement": text})
            kept.append(req)
        elif _EQUIVALENT_ALTERNATIVE_RE.match(req.requirement) and not req.specific_role:
            logger.info("Dropping equivalent-experience alternative: %s", req.requirement)
        else:
            kept.append(req)
    return kept


def dedupe_keywords(keywords: list[str]) -> list[str]:
    """Case-insensitive de-duplication keeping the first spelling seen."""
    seen: set[str] = set()
    result = []
    for kw in keywords:
        kw = kw.strip()
        if kw and kw.lower() not in seen:
            seen.add(kw.lower())
            result.append(kw)
    return result


def parse_stage1_response(text: str) -> Stage1Result:
    """Validate a raw Stage 1 completion and convert it to a Stage1Result."""
    try:
        data: Any = parse_json_response(text)
        raw = _RawStage1.model_validate(data)
    except (ValueError, SchemaValidationError) as e:
        # json.JSONDecodeError is a ValueError
        logger.warning("Stage 1 response did not match the expected shape: %s", e)
        raise ExtractionError(
            "Could not read the requirements extracted from this job description. "
            "Please try again or shorten the job description."
        ) from e

    requirements = [_convert(r) for r in raw.job_requirements if r.requirement.strip()]
    requirements = drop_equivalent_experience(requirements)

    if not raw.job_title:
        logger.warning("Stage 1 response missing jobTitle, using default")
    if not raw.company_summary:
        logger.warning("Stage 1 response missing companySummary, using default")

    return Stage1Result(
        job_requirements=requirements,
        all_keywords=dedupe_keywords(raw.all_keywords),
        job_title=(raw.job_title or "").strip() or "Position",
        company_summary=(raw.company_summary or "").strip() or "Company",
    )


class RequirementExtractor(CompletionStage):
    stage_name = "stage1_extraction"

    def __init__(self, completion: CompletionService, cache: AnalysisCache | None = None) -> None:
        super().__init__(completion)
        self.cache = cache

    async def extract(self, job_description: str, user_id: str) -> Stage1Result:
        logger.info("Starting Stage 1 for %s (jd_length=%d)", user_id, len(job_description))

        config = CompletionConfig(
            temperature=settings.temperature_extraction,
            max_output_tokens=settings.stage1_max_tokens,
            system_instruction=prompt_builder.EXTRACTION_SYSTEM_MESSAGE,
            stage=self.stage_name,
        )
        text = await self._complete(prompt_builder.build_extraction_prompt(job_description.strip()), config)
        result = parse_stage1_response(text)

        by_category: dict[str, int] = {}
        for req in result.job_requirements:
            by_category[req.category.value] = by_category.get(req.category.value, 0) + 1
        logger.info(
            "Stage 1 complete: %d requirements %s, %d keywords, title=%r",
            len(result.job_requirements), json.dumps(by_category),
            len(result.all_keywords), result.job_title,
        )

        if self.cache is not None:
            await self.cache.put(user_id, job_description, result)
        return result
