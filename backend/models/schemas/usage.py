"""Per-user usage counters for the free tier quota."""

from pydantic import BaseModel


class UsageRecord(BaseModel):
    analyses_used: int = 0
    bullets_generated: int = 0
    subscription_tier: str = "free"

    @property
    def is_free_tier(self) -> bool:
        return not self.subscription_tier or self.subscription_tier == "free"
