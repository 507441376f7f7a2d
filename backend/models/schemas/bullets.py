"""Stage 2b output: resume bullets per role with width and keyword metadata."""

from pydantic import BaseModel


class BulletPoint(BaseModel):
    text: str
    visual_width: float = 0.0  # weighted character sum, not a character count
    exceeds_width: bool = False
    experience_id: str | None = None
    keywords_used: list[str] = []  # verified present in text
    relevance_score: int = 5  # 1-10, as judged by the completion service
    has_quantitative_result: bool = False


class BulletResult(BaseModel):
    """Structured output of the Bullet Synthesizer (Stage 2b)."""
    bullets_by_role: dict[str, list[BulletPoint]] = {}
    keywords_used: list[str] = []
    keywords_not_used: list[str] = []
