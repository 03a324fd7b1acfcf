"""Per-user AI request limiter over the gateway's atomic counter."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from jiralite.config import DEFAULT_LIMITS
from jiralite.gateway.base import RateLimitDecision, RecordGateway
from jiralite.timeutil import utcnow


def rate_limit_message(decision: RateLimitDecision) -> str:
    return f"AI request limit reached. Retry after {decision.remaining_seconds} seconds."


@dataclass
class RateLimiter:
    gateway: RecordGateway
    ceiling: int = DEFAULT_LIMITS.ai_rate_limit_per_minute
    window_seconds: int = DEFAULT_LIMITS.ai_rate_limit_window_seconds
    clock: Callable[[], datetime] = field(default=utcnow)

    async def check(self, user_id: str) -> RateLimitDecision:
        """Consume one request for *user_id*; raises ``GatewayError`` on backend failure."""
        result = await self.gateway.consume_rate_limit(
            user_id,
            ceiling=self.ceiling,
            window_seconds=self.window_seconds,
            now=self.clock(),
        )
        return result.unwrap()
