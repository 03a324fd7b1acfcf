"""Text-generation endpoint: the Gemini ``generateContent`` REST API over httpx."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Protocol

import httpx

from jiralite.config import DEFAULT_AI_MODEL

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_OUTPUT_TOKENS = 500
DEFAULT_TIMEOUT_SECONDS = 30.0


class AIEndpointError(Exception):
    """The text endpoint failed (transport error, non-2xx, unreadable body)."""


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str: ...


def extract_text(payload: Any) -> str:
    """Return ``candidates[0].content.parts[0].text`` or ``""`` if absent."""
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return ""
    return text if isinstance(text, str) else ""


class GeminiClient:
    """Async Gemini client. Owns its ``httpx.AsyncClient`` unless one is passed in."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str = DEFAULT_AI_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def url(self) -> str:
        return f"{GEMINI_API_BASE}/{self.model}:generateContent"

    async def __aenter__(self) -> GeminiClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise AIEndpointError("GEMINI_API_KEY is not set")
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }
        t0 = perf_counter()
        try:
            resp = await self._client.post(self.url, params={"key": self.api_key}, json=body)
        except httpx.HTTPError as exc:
            logger.warning("Gemini request failed: %s", exc)
            raise AIEndpointError(f"Gemini request failed: {exc}") from exc
        duration_ms = round((perf_counter() - t0) * 1000, 1)
        if resp.is_error:
            logger.warning(
                "Gemini returned HTTP %s",
                resp.status_code,
                extra={"op": "ai_generate", "duration_ms": duration_ms, "error": resp.status_code},
            )
            raise AIEndpointError(f"Gemini returned HTTP {resp.status_code}")
        try:
            payload = resp.json()
        except ValueError as exc:
            raise AIEndpointError("Gemini returned a non-JSON body") from exc
        logger.info("Gemini call ok", extra={"op": "ai_generate", "duration_ms": duration_ms})
        return extract_text(payload)
