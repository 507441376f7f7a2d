"""Stage 2b: Bullet Synthesizer.

Asks the completion service for resume bullets per role, then verifies the
output locally: claimed keywords must really appear in the text, every bullet
gets a visual width, quantified bullets are sorted first and each role is cut
to the bullet cap. The service's own judgment of width and keyword use is not
trusted.
"""

import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as SchemaValidationError

from config import settings
from models.schemas.bullets import BulletPoint, BulletResult
from models.schemas.candidate import CandidateExperience
from models.schemas.fit_assessment import MatchResult
from services import keyword_matcher, prompt_builder, visual_width
from services.completion_client import CompletionConfig, CompletionService, parse_json_response
from services.errors import GenerationError
from services.pipeline.base import CompletionStage

logger = logging.getLogger(__name__)

DEFAULT_RELEVANCE = 5

_QUANT_PATTERNS = [
    re.compile(r"\d+%"),                       # 40%
    re.compile(r"\$\d+[KMB]?", re.I),          # $500K
    re.compile(r"\b\d+[KMB]\b\+?"),           # 2M+
    re.compile(r"\d+x\b", re.I),               # 10x
    re.compile(r"\d+\s*-\s*\d+"),              # 5-10
    re.compile(r"\b(?:reduced|increased|grew|saved|generated|improved|decreased|raised|achieved)\b.*?\d+", re.I),
    re.compile(r"\d+\s*(?:month|year|week|day)", re.I),
    re.compile(r"\bwithin\s+\d+", re.I),
]


class _RawBullet(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    text: str = ""
    experience_id: str | None = Field(default=None, alias="experienceId")
    keywords_used: list[str] = Field(default=[], alias="keywordsUsed")
    relevance_score: int | None = Field(default=None, alias="relevanceScore")

    @field_validator("relevance_score", mode="before")
    @classmethod
    def _coerce_score(cls, v: Any) -> Any:
        # Models occasionally answer 7.5 or "8"
        if isinstance(v, (int, float, str)) and str(v).replace(".", "", 1).isdigit():
            return round(float(v))
        return None


class _RawBullets(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    bullet_points: dict[str, list[_RawBullet | str]] = Field(alias="bulletPoints")


def has_quantitative_result(text: str) -> bool:
    """Numbers, percentages, money, multipliers or time periods in a bullet."""
    return any(p.search(text) for p in _QUANT_PATTERNS)


def sort_bullets(bullets: list[BulletPoint]) -> list[BulletPoint]:
    """Quantified bullets first, then by relevance (descending). Stable."""
    return sorted(bullets, key=lambda b: (not b.has_quantitative_result, -b.relevance_score))


def verify_keywords(text: str, claimed: list[str], keywords: list[str], match_mode: str) -> list[str]:
    """Keywords that really appear in ``text``.

    Claimed keywords that are absent are dropped. Supplied keywords that are
    present but were not claimed are credited.
    """
    verified = []
    seen: set[str] = set()
    for kw in list(claimed) + list(keywords):
        key = kw.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        if keyword_matcher.is_keyword_in_text(text, kw, match_mode):
            verified.append(kw)
    return verified


class BulletSynthesizer(CompletionStage):
    stage_name = "stage2b_bullets"

    def __init__(
        self,
        completion: CompletionService,
        max_bullets_per_role: int | None = None,
        visual_width_max: float | None = None,
    ) -> None:
        super().__init__(completion)
        self.max_bullets_per_role = max_bullets_per_role or settings.max_bullets_per_role
        self.visual_width_max = visual_width_max or settings.visual_width_max

    async def synthesize(
        self,
        experiences_by_role: dict[str, list[CandidateExperience]],
        matched_requirements: list[MatchResult],
        keywords: list[str],
        match_mode: str = "exact",
    ) -> BulletResult:
        logger.info(
            "Starting Stage 2b: %d roles, %d experiences, %d keywords, mode=%s",
            len(experiences_by_role),
            sum(len(v) for v in experiences_by_role.values()),
            len(keywords), match_mode,
        )
        prompt = prompt_builder.build_bullets_prompt(
            experiences_by_role,
            matched_requirements,
            keywords,
            match_mode,
            self.max_bullets_per_role,
            self.visual_width_max,
        )
        config = CompletionConfig(
            temperature=settings.temperature_bullets,
            max_output_tokens=settings.stage2b_max_tokens,
            system_instruction=prompt_builder.BULLETS_SYSTEM_MESSAGE,
            stage=self.stage_name,
        )
        text = await self._complete(prompt, config)
        return self.process_response(text, experiences_by_role, keywords, match_mode)

    def process_response(
        self,
        text: str,
        experiences_by_role: dict[str, list[CandidateExperience]],
        keywords: list[str],
        match_mode: str,
    ) -> BulletResult:
        try:
            raw = _RawBullets.model_validate(parse_json_response(text))
        except (ValueError, SchemaValidationError) as e:
            logger.warning("Stage 2b response did not match the expected shape: %s", e)
            raise GenerationError(
                "Could not generate bullets from this response. Try shortening the job "
                "description or the experiences you include, then try again."
            ) from e

        unknown = [k for k in raw.bullet_points if k not in experiences_by_role]
        if unknown:
            logger.warning("Dropping bullets for unknown roles: %s", unknown)

        used: set[str] = set()
        bullets_by_role: dict[str, list[BulletPoint]] = {}
        for role_key in experiences_by_role:
            bullets = []
            for item in raw.bullet_points.get(role_key, []):
                if isinstance(item, str):
                    item = _RawBullet(text=item)
                bullet_text = item.text.strip()
                if not bullet_text:
                    continue
                verified = verify_keywords(bullet_text, item.keywords_used, keywords, match_mode)
                width = visual_width.calculate_visual_width(bullet_text)
                score = item.relevance_score if item.relevance_score is not None else DEFAULT_RELEVANCE
                bullets.append(BulletPoint(
                    text=bullet_text,
                    visual_width=width,
                    exceeds_width=visual_width.exceeds_width(bullet_text, self.visual_width_max),
                    experience_id=item.experience_id,
                    keywords_used=verified,
                    relevance_score=min(10, max(1, score)),
                    has_quantitative_result=has_quantitative_result(bullet_text),
                ))

            ordered = sort_bullets(bullets)
            if len(ordered) > self.max_bullets_per_role:
                logger.info(
                    "Role %s: %d bullets returned, keeping %d",
                    role_key, len(ordered), self.max_bullets_per_role,
                )
            bullets_by_role[role_key] = ordered[:self.max_bullets_per_role]
            for bullet in bullets_by_role[role_key]:
                used.update(k.lower() for k in bullet.keywords_used)

        keywords_used = [k for k in keywords if k.lower() in used]
        keywords_not_used = [k for k in keywords if k.lower() not in used]

        total = sum(len(b) for b in bullets_by_role.values())
        logger.info(
            "Stage 2b complete: %d bullets, %d quantified, %d too wide, keywords %d/%d",
            total,
            sum(b.has_quantitative_result for bs in bullets_by_role.values() for b in bs),
            sum(b.exceeds_width for bs in bullets_by_role.values() for b in bs),
            len(keywords_used), len(keywords),
        )
        return BulletResult(
            bullets_by_role=bullets_by_role,
            keywords_used=keywords_used,
            keywords_not_used=keywords_not_used,
        )
