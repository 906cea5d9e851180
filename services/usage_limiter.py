# Usage limits consulted before an influencer applies to a campaign or invites a brand.
# Plan enforcement lives with billing; the default policy allows everything.

from dataclasses import dataclass
from typing import Optional


class LimitedAction:
    APPLY_TO_CAMPAIGN = "apply_to_campaign"
    INVITE_BRAND = "invite_brand"


@dataclass
class LimitCheck:
    allowed: bool
    reason: Optional[str] = None


class UsageLimiter:
    def check_limit(self, actor_id: str, actor_type: str, action: str) -> LimitCheck:
        return LimitCheck(allowed=True)


_limiter = UsageLimiter()


def get_usage_limiter() -> UsageLimiter:
    """FastAPI dependency. Billing overrides this with a plan-aware limiter."""
    return _limiter
