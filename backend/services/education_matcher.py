"""Degree-level normalisation and education requirement checks."""

import logging
import re

from pydantic import BaseModel

from models.schemas.candidate import Education
from models.schemas.fit_assessment import MatchType
from models.schemas.job_requirements import Category, DegreeLevel, JobRequirement
from services import keyword_matcher

logger = logging.getLogger(__name__)

# Higher number = higher degree
DEGREE_HIERARCHY: dict[DegreeLevel, int] = {
    DegreeLevel.OTHER: 0,
    DegreeLevel.DIPLOMA: 1,
    DegreeLevel.ASSOCIATE: 2,
    DegreeLevel.BACHELORS: 3,
    DegreeLevel.MASTERS: 4,
    DegreeLevel.PHD: 5,
}

DEGREE_PATTERNS: dict[DegreeLevel, list[str]] = {
    DegreeLevel.PHD: [
        r"ph\.?d\.?", r"doctorate", r"doctoral", r"doctor of philosophy", r"d\.?phil",
    ],
    DegreeLevel.MASTERS: [
        r"m\.?s\.?", r"m\.?sc\.?", r"m\.?eng", r"m\.?tech", r"mba", r"m\.?a\.?",
        r"master(?:'?s)?",
    ],
    DegreeLevel.BACHELORS: [
        r"b\.?s\.?", r"b\.?sc\.?", r"b\.?eng", r"b\.?tech", r"b\.?a\.?", r"bba",
        r"bachelor(?:'?s)?", r"undergraduate degree",
    ],
    DegreeLevel.ASSOCIATE: [
        r"a\.?s\.?", r"a\.?a\.?", r"associate(?:'?s)?",
    ],
    DegreeLevel.DIPLOMA: [
        r"diploma", r"high school", r"ged", r"certificate",
    ],
}

_DEGREE_COMPILED: dict[DegreeLevel, re.Pattern] = {
    level: re.compile(rf"(?<![a-z])(?:{'|'.join(patterns)})(?![a-z])", re.IGNORECASE)
    for level, patterns in DEGREE_PATTERNS.items()
}

# Order matters: check highest first
_DEGREE_PRIORITY = [
    DegreeLevel.PHD,
    DegreeLevel.MASTERS,
    DegreeLevel.BACHELORS,
    DegreeLevel.ASSOCIATE,
    DegreeLevel.DIPLOMA,
]

# Broad field criteria -> fields that satisfy them
FIELD_GROUPS: dict[str, set[str]] = {
    "stem": {
        "computer science", "software engineering", "computer engineering",
        "electrical engineering", "mechanical engineering", "engineering",
        "mathematics", "math", "statistics", "physics", "chemistry", "biology",
        "data science", "information technology", "information systems",
    },
    "technical": {
        "computer science", "software engineering", "computer engineering",
        "electrical engineering", "engineering", "information technology",
        "information systems", "data science", "mathematics", "statistics",
    },
    "business": {
        "business administration", "business", "economics", "finance",
        "marketing", "management", "accounting", "mba",
    },
    "quantitative": {
        "mathematics", "math", "statistics", "economics", "physics",
        "computer science", "data science", "finance", "engineering",
    },
}


class EducationCheck(BaseModel):
    meets: bool = False
    evidence: str = ""
    source: str = ""


def parse_degree_level(degree: str) -> DegreeLevel:
    """Map a free-text degree name to a DegreeLevel ("BS in CS" -> Bachelor's)."""
    for level in DegreeLevel:
        if degree.strip().lower() == level.value.lower():
            return level
    for level in _DEGREE_PRIORITY:
        if _DEGREE_COMPILED[level].search(degree):
            return level
    return DegreeLevel.OTHER


def get_degree_rank(degree: str | DegreeLevel) -> int:
    level = degree if isinstance(degree, DegreeLevel) else parse_degree_level(degree)
    return DEGREE_HIERARCHY[level]


def highest_degree(education: list[Education]) -> Education | None:
    """Highest-ranked education record; the first one wins ties."""
    best: Education | None = None
    for edu in education:
        if best is None or get_degree_rank(edu.degree) > get_degree_rank(best.degree):
            best = edu
    return best


def _describe(edu: Education) -> tuple[str, str]:
    evidence = f"{edu.degree} in {edu.field}" if edu.field else edu.degree
    source = f"Education: {evidence}"
    if edu.school:
        source += f" from {edu.school}"
    return evidence, source


def meets_education_requirement(
    education: list[Education], required_level: DegreeLevel | str
) -> EducationCheck:
    """Compare the candidate's highest degree against a required level."""
    best = highest_degree(education)
    if best is None:
        return EducationCheck()

    meets = get_degree_rank(best.degree) >= get_degree_rank(required_level)
    evidence, source = _describe(best)
    return EducationCheck(meets=meets, evidence=evidence, source=source)


def lowest_degree_requirement(requirements: list[JobRequirement]) -> DegreeLevel | None:
    """The most lenient degree level asked for across all education_degree requirements.

    A degree requirement without a level counts as Bachelor's.
    """
    levels = [
        r.minimum_degree_level or DegreeLevel.BACHELORS
        for r in requirements
        if r.category == Category.EDUCATION_DEGREE
    ]
    if not levels:
        return None
    return min(levels, key=lambda lvl: DEGREE_HIERARCHY[lvl])


def _field_group(criteria: str) -> set[str]:
    lower = criteria.lower()
    fields: set[str] = set()
    for group, members in FIELD_GROUPS.items():
        if group in lower:
            fields |= members
    return fields


def match_field(
    education: list[Education],
    required_field: str | None,
    field_criteria: str | None = None,
    allow_related: bool = False,
) -> tuple[MatchType, Education | None]:
    """Classify how well any education record's field satisfies a field requirement.

    Returns the best match type and the record that produced it.
    """
    best_type = MatchType.NONE
    best_edu: Education | None = None
    rank = {MatchType.EXACT: 3, MatchType.SYNONYM: 2, MatchType.RELATED: 1, MatchType.NONE: 0}
    group = _field_group(field_criteria) if field_criteria else set()

    for edu in education:
        if not edu.field:
            continue
        field_norm = keyword_matcher.normalize(edu.field)
        match_type = MatchType.NONE

        if required_field:
            match_type = keyword_matcher.classify_match(required_field, edu.field)
            # Same broad field group only counts when the posting says "or related"
            if match_type == MatchType.NONE and allow_related and group_overlap(required_field, edu.field):
                match_type = MatchType.RELATED

        if match_type == MatchType.NONE and group:
            if any(keyword_matcher.contains_phrase(field_norm, f) for f in group):
                match_type = MatchType.SYNONYM

        if rank[match_type] > rank[best_type]:
            best_type, best_edu = match_type, edu

    return best_type, best_edu


def group_overlap(field_a: str, field_b: str) -> bool:
    """True when both fields belong to a common broad field group."""
    a = keyword_matcher.normalize(field_a)
    b = keyword_matcher.normalize(field_b)
    for members in FIELD_GROUPS.values():
        if any(keyword_matcher.contains_phrase(a, m) for m in members) and any(
            keyword_matcher.contains_phrase(b, m) for m in members
        ):
            return True
    return False
