"""AI assistance: Gemini client, artifact cache, rate limiting, advisory calls."""

from __future__ import annotations

from jiralite.ai.assistant import AIAssistant, AIFailure, AIResult
from jiralite.ai.cache import AICache, invalidation_targets
from jiralite.ai.gemini import AIEndpointError, GeminiClient, TextGenerator
from jiralite.ai.rate_limit import RateLimiter

__all__ = [
    "AIAssistant",
    "AICache",
    "AIEndpointError",
    "AIFailure",
    "AIResult",
    "GeminiClient",
    "RateLimiter",
    "TextGenerator",
    "invalidation_targets",
]
