"""Stage 2a: Fit Scorer - deterministic local requirement matching.

Every requirement is matched against the candidate by category:
    education_degree  -> highest degree vs. the most lenient level required
    education_field   -> education fields (exact, synonym, related)
    years_experience  -> overlap-free tenure across (matching) roles
    role_title        -> role titles and specialties, then experience titles
    *_skill, domain   -> free text of every STAR experience

Each requirement contributes weight(importance) x match score x evidence
multiplier. The weighted sum is normalised by the total weight. Any unmet
absolute requirement caps the score at 79.
"""

import logging
import re
from collections.abc import Callable
from datetime import date

from config import settings
from models.schemas.candidate import CandidateExperience, Education, RoleWithDuration
from models.schemas.fit_assessment import (
    EvidenceStrength,
    FitAssessment,
    FitLevel,
    MatchResult,
    MatchType,
)
from models.schemas.job_requirements import Category, DegreeLevel, Importance, JobRequirement
from services import education_matcher, experience_calculator, keyword_matcher
from services.errors import ScoringConfigError
from services.pipeline.base import BaseStage

logger = logging.getLogger(__name__)

IMPORTANCE_WEIGHTS: dict[Importance, float] = {
    Importance.ABSOLUTE: 1.0,
    Importance.CRITICAL: 1.0,
    Importance.HIGH: 1.0,
    Importance.MEDIUM: 0.75,
    Importance.LOW: 0.5,
}

MATCH_TYPE_SCORES: dict[MatchType, float] = {
    MatchType.EXACT: 1.0,
    MatchType.SYNONYM: 0.9,
    MatchType.RELATED: 0.6,
    MatchType.NONE: 0.0,
}

EVIDENCE_MULTIPLIERS: dict[EvidenceStrength, float] = {
    EvidenceStrength.STRONG: 1.0,
    EvidenceStrength.MODERATE: 0.85,
    EvidenceStrength.WEAK: 0.7,
}

ABSOLUTE_GAP_CAP = 79
EXCELLENT_SCORE = 90
FAIR_SCORE = 60
MAX_RECOMMENDATIONS = 3

# Experience fields in the order they are searched, with the evidence they carry
_EXPERIENCE_FIELDS: list[tuple[str, EvidenceStrength]] = [
    ("tags", EvidenceStrength.STRONG),
    ("action", EvidenceStrength.STRONG),
    ("result", EvidenceStrength.STRONG),
    ("title", EvidenceStrength.MODERATE),
    ("task", EvidenceStrength.MODERATE),
    ("specialty", EvidenceStrength.MODERATE),
    ("situation", EvidenceStrength.WEAK),
]

_YEARS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*\+?\s*(?:-\s*\d+\s*)?(?:years|yrs)", re.IGNORECASE)


def is_fit(overall_score: int, absolute_gaps: list[str], threshold: int) -> bool:
    return overall_score >= threshold and not absolute_gaps


def fit_level_for(overall_score: int, threshold: int) -> FitLevel:
    if overall_score >= EXCELLENT_SCORE:
        return FitLevel.EXCELLENT
    if overall_score >= threshold:
        return FitLevel.GOOD
    if overall_score >= FAIR_SCORE:
        return FitLevel.FAIR
    return FitLevel.POOR


def contribution(match: MatchResult) -> float:
    """Weighted points earned by one match (before normalisation)."""
    weight = IMPORTANCE_WEIGHTS[match.requirement.importance]
    return weight * MATCH_TYPE_SCORES[match.match_type] * EVIDENCE_MULTIPLIERS[match.evidence_strength]


def _quality(match_type: MatchType, strength: EvidenceStrength) -> float:
    return MATCH_TYPE_SCORES[match_type] * EVIDENCE_MULTIPLIERS[strength]


def _parse_years(text: str) -> float | None:
    m = _YEARS_RE.search(text)
    return float(m.group(1)) if m else None


class _Candidate:
    """Read-only view of the candidate data one scoring run needs."""

    def __init__(
        self,
        experiences_by_role: dict[str, list[CandidateExperience]],
        education: list[Education],
        roles: list[RoleWithDuration],
    ) -> None:
        self.education = education
        self.roles = roles
        self.degree_floor: DegreeLevel | None = None
        self._roles_by_id = {r.id: r for r in roles}
        self.experiences: list[tuple[str, CandidateExperience]] = [
            (key, exp) for key, exps in experiences_by_role.items() for exp in exps
        ]

    def field_text(self, exp: CandidateExperience, field: str) -> str:
        if field == "tags":
            return ", ".join(exp.tags)
        if field == "specialty":
            role = self._roles_by_id.get(exp.role_id)
            return (role.specialty or "") if role else ""
        return getattr(exp, field) or ""

    def all_text(self) -> str:
        parts = []
        for _, exp in self.experiences:
            parts.extend(self.field_text(exp, f) for f, _ in _EXPERIENCE_FIELDS)
        return " | ".join(p for p in parts if p)


class FitScorer(BaseStage):
    stage_name = "stage2a_matching"

    def __init__(self, fit_threshold: int | None = None, today: date | None = None) -> None:
        self.fit_threshold = fit_threshold if fit_threshold is not None else settings.fit_threshold
        self.today = today
        self._matchers: dict[Category, Callable[[JobRequirement, _Candidate], MatchResult]] = {
            Category.EDUCATION_DEGREE: self._match_degree,
            Category.EDUCATION_FIELD: self._match_field,
            Category.YEARS_EXPERIENCE: self._match_years,
            Category.ROLE_TITLE: self._match_role_title,
            Category.TECHNICAL_SKILL: self._match_text,
            Category.SOFT_SKILL: self._match_text,
            Category.DOMAIN_KNOWLEDGE: self._match_text,
        }

    def score(
        self,
        requirements: list[JobRequirement],
        keywords: list[str],
        experiences_by_role: dict[str, list[CandidateExperience]],
        education: list[Education],
        roles: list[RoleWithDuration],
    ) -> FitAssessment:
        # Validate the whole list first: an unknown category means the extractor
        # and scorer disagree on the contract and no partial score is meaningful.
        for req in requirements:
            if self._matchers.get(req.category) is None:
                raise ScoringConfigError(
                    f"Unknown requirement category {req.category!r} for requirement {req.requirement!r}"
                )

        candidate = _Candidate(experiences_by_role, education, roles)
        # Meeting the most lenient degree level satisfies every degree requirement
        candidate.degree_floor = education_matcher.lowest_degree_requirement(requirements)
        matches = [self._matchers[req.category](req, candidate) for req in requirements]

        total_weight = sum(IMPORTANCE_WEIGHTS[m.requirement.importance] for m in matches)
        earned = sum(contribution(m) for m in matches)
        overall = round(100 * earned / total_weight) if total_weight else 0

        matched = [m for m in matches if m.is_matched]
        unmatched = [m for m in matches if not m.is_matched]
        absolute_gaps = [m.requirement.requirement for m in unmatched
                         if m.requirement.importance == Importance.ABSOLUTE]
        critical_gaps = [m.requirement.requirement for m in unmatched
                         if m.requirement.importance == Importance.CRITICAL]

        explanation = None
        if absolute_gaps:
            raw = overall
            overall = min(overall, ABSOLUTE_GAP_CAP)
            explanation = (
                f"Score capped at {ABSOLUTE_GAP_CAP}% (weighted score {raw}%) because these "
                f"non-negotiable requirements are not met: {'; '.join(absolute_gaps)}"
            )

        fit = is_fit(overall, absolute_gaps, self.fit_threshold)
        assessment = FitAssessment(
            overall_score=overall,
            fit_level=fit_level_for(overall, self.fit_threshold),
            is_fit=fit,
            matched_requirements=matched,
            unmatched_requirements=unmatched,
            critical_gaps=critical_gaps,
            absolute_gaps=absolute_gaps,
            absolute_gap_explanation=explanation,
        )
        if not fit:
            assessment.recommendations = self._recommendations(assessment, keywords, candidate)

        logger.info(
            "Stage 2a complete: score=%d level=%s fit=%s matched=%d/%d critical_gaps=%d absolute_gaps=%d",
            overall, assessment.fit_level.value, fit, len(matched), len(matches),
            len(critical_gaps), len(absolute_gaps),
        )
        return assessment

    # --- education -------------------------------------------------------

    def _match_degree(self, req: JobRequirement, candidate: _Candidate) -> MatchResult:
        required = candidate.degree_floor or req.minimum_degree_level or DegreeLevel.BACHELORS
        check = education_matcher.meets_education_requirement(candidate.education, required)
        if not check.meets:
            return MatchResult(requirement=req, evidence=check.evidence, source=check.source)
        return MatchResult(
            requirement=req,
            match_type=MatchType.EXACT,
            evidence_strength=EvidenceStrength.STRONG,
            evidence=check.evidence,
            source=check.source,
        )

    def _match_field(self, req: JobRequirement, candidate: _Candidate) -> MatchResult:
        required_field = req.required_field
        if not required_field and not req.field_criteria:
            required_field = keyword_matcher.core_phrase(req.requirement)
        match_type, edu = education_matcher.match_field(
            candidate.education,
            required_field,
            field_criteria=req.field_criteria,
            allow_related=keyword_matcher.has_related_qualifier(req.requirement),
        )
        if edu is None or match_type == MatchType.NONE:
            return MatchResult(requirement=req)
        strength = EvidenceStrength.MODERATE if match_type == MatchType.RELATED else EvidenceStrength.STRONG
        evidence = f"{edu.degree} in {edu.field}"
        return MatchResult(
            requirement=req,
            match_type=match_type,
            evidence_strength=strength,
            evidence=evidence,
            source=f"Education: {evidence}" + (f" from {edu.school}" if edu.school else ""),
        )

    # --- experience ------------------------------------------------------

    def _match_years(self, req: JobRequirement, candidate: _Candidate) -> MatchResult:
        minimum = req.minimum_years
        if minimum is None:
            minimum = _parse_years(req.requirement)
        required_months = round((minimum or 0) * 12)

        if not req.specific_role:
            months = experience_calculator.total_tenure_months(candidate.roles, self.today)
            tally = experience_calculator.format_tenure_calculation(candidate.roles, months)
            if months > 0 and months >= required_months:
                return MatchResult(
                    requirement=req,
                    match_type=MatchType.EXACT,
                    evidence_strength=EvidenceStrength.STRONG,
                    evidence=tally,
                    source="Total career tenure",
                )
            return MatchResult(requirement=req, evidence=tally, source="Total career tenure")

        matching, related = experience_calculator.split_roles_by_relevance(candidate.roles, req.specific_role)
        strict_months = experience_calculator.total_tenure_months(matching, self.today)
        if matching and strict_months >= required_months:
            return MatchResult(
                requirement=req,
                match_type=MatchType.EXACT,
                evidence_strength=EvidenceStrength.STRONG,
                evidence=experience_calculator.format_tenure_calculation(matching, strict_months),
                source=f"Roles matching {req.specific_role}",
            )

        if related and keyword_matcher.has_related_qualifier(req.requirement):
            combined = matching + related
            months = experience_calculator.total_tenure_months(combined, self.today)
            if months >= required_months:
                return MatchResult(
                    requirement=req,
                    match_type=MatchType.RELATED,
                    evidence_strength=EvidenceStrength.MODERATE,
                    evidence=experience_calculator.format_tenure_calculation(combined, months),
                    source=f"Roles related to {req.specific_role}",
                )

        return MatchResult(
            requirement=req,
            evidence=experience_calculator.format_tenure_calculation(matching, strict_months),
            source=f"Roles matching {req.specific_role}",
        )

    def _match_role_title(self, req: JobRequirement, candidate: _Candidate) -> MatchResult:
        phrases = req.required_title_keywords or [req.requirement]

        best: MatchResult | None = None
        for role in candidate.roles:
            text = role.title + (f" | {role.specialty}" if role.specialty else "")
            for phrase in phrases:
                match_type = keyword_matcher.classify_match(phrase, text)
                if match_type == MatchType.NONE:
                    continue
                strength = EvidenceStrength.WEAK if match_type == MatchType.RELATED else EvidenceStrength.STRONG
                if best is None or _quality(match_type, strength) > _quality(best.match_type, best.evidence_strength):
                    best = MatchResult(
                        requirement=req,
                        match_type=match_type,
                        evidence_strength=strength,
                        evidence=role.title,
                        source=f"Role: {role.title} at {role.company or 'Unknown'}",
                    )
        if best is not None and best.match_type != MatchType.RELATED:
            return best

        for key, exp in candidate.experiences:
            for phrase in phrases:
                match_type = keyword_matcher.classify_match(phrase, exp.title)
                if match_type == MatchType.NONE:
                    continue
                strength = EvidenceStrength.WEAK if match_type == MatchType.RELATED else EvidenceStrength.MODERATE
                if best is None or _quality(match_type, strength) > _quality(best.match_type, best.evidence_strength):
                    best = MatchResult(
                        requirement=req,
                        matched_experience_id=exp.id,
                        match_type=match_type,
                        evidence_strength=strength,
                        evidence=exp.title,
                        source=f"{key}: {exp.title}",
                    )
        return best or MatchResult(requirement=req)

    def _match_text(self, req: JobRequirement, candidate: _Candidate) -> MatchResult:
        """Best STAR experience for a skill or domain requirement.

        Ties keep the first experience in input order.
        """
        best: MatchResult | None = None
        strong_hits = 0

        for key, exp in candidate.experiences:
            exp_best: tuple[MatchType, EvidenceStrength, str] | None = None
            for field, strength in _EXPERIENCE_FIELDS:
                text = candidate.field_text(exp, field)
                if not text:
                    continue
                match_type = keyword_matcher.classify_match(req.requirement, text)
                if match_type == MatchType.NONE:
                    continue
                if match_type == MatchType.RELATED:
                    strength = EvidenceStrength.WEAK
                if exp_best is None or _quality(match_type, strength) > _quality(exp_best[0], exp_best[1]):
                    exp_best = (match_type, strength, text)

            if exp_best is None:
                continue
            match_type, strength, text = exp_best
            if match_type in (MatchType.EXACT, MatchType.SYNONYM):
                strong_hits += 1
            if best is None or _quality(match_type, strength) > _quality(best.match_type, best.evidence_strength):
                best = MatchResult(
                    requirement=req,
                    matched_experience_id=exp.id,
                    match_type=match_type,
                    evidence_strength=strength,
                    evidence=text,
                    source=f"{key}: {exp.title}",
                )

        if best is None:
            return MatchResult(requirement=req)
        # Demonstrated in two or more experiences
        if strong_hits >= 2 and best.match_type != MatchType.RELATED:
            best.evidence_strength = EvidenceStrength.STRONG
        return best

    # --- recommendations -------------------------------------------------

    def _recommendations(
        self, assessment: FitAssessment, keywords: list[str], candidate: _Candidate
    ) -> list[str]:
        recs: list[str] = []
        for gap in assessment.absolute_gaps:
            recs.append(f"This role has a non-negotiable requirement you have not shown: {gap}")
        for gap in assessment.critical_gaps:
            recs.append(f"Add a STAR experience that demonstrates: {gap}")

        weak = [
            m.requirement.requirement for m in assessment.matched_requirements
            if m.match_type == MatchType.RELATED
        ]
        if weak:
            recs.append(f"Strengthen evidence for partially matched requirements: {', '.join(weak[:3])}")

        if len(recs) < 2:
            text = candidate.all_text()
            missing = [k for k in keywords if not keyword_matcher.is_keyword_in_text(text, k, "flexible")]
            if missing:
                recs.append(
                    "Describe your experiences with the language of this posting, e.g. "
                    + ", ".join(missing[:5])
                )
        if len(recs) < 2:
            recs.append(
                f"Your score of {assessment.overall_score}% is below the {self.fit_threshold}% "
                "needed for bullet generation. Add detail and measurable results to relevant experiences."
            )
        return recs[:MAX_RECOMMENDATIONS]
