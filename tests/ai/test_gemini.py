"""Tests for the Gemini text endpoint client, over httpx.MockTransport."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from jiralite.ai.gemini import GEMINI_API_BASE, AIEndpointError, GeminiClient, extract_text


def _client(handler: Callable[[httpx.Request], httpx.Response], **kwargs: object) -> GeminiClient:
    return GeminiClient("test-key", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)), **kwargs)  # type: ignore[arg-type]


def _reply(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class TestExtractText:
    def test_first_candidate(self) -> None:
        assert extract_text(_reply("hello")) == "hello"

    @pytest.mark.parametrize("payload", [{}, {"candidates": []}, {"candidates": [{"content": {}}]}, None, _reply(None)])  # type: ignore[arg-type]
    def test_missing_text_is_empty(self, payload: object) -> None:
        assert extract_text(payload) == ""


class TestGenerate:
    async def test_request_shape(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_reply("A summary."))

        client = _client(handler, model="gemini-test", temperature=0.2, max_output_tokens=64)
        assert await client.generate("Summarize this") == "A summary."
        await client.aclose()

        request = seen[0]
        assert str(request.url).startswith(f"{GEMINI_API_BASE}/gemini-test:generateContent")
        assert request.url.params["key"] == "test-key"
        body = json.loads(request.content)
        assert body["contents"][0]["parts"][0]["text"] == "Summarize this"
        assert body["generationConfig"] == {"temperature": 0.2, "maxOutputTokens": 64}

    async def test_http_error_raises(self) -> None:
        client = _client(lambda request: httpx.Response(503, text="overloaded"))
        with pytest.raises(AIEndpointError, match="503"):
            await client.generate("x")

    async def test_transport_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(AIEndpointError, match="request failed"):
            await _client(handler).generate("x")

    async def test_non_json_body_raises(self) -> None:
        client = _client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(AIEndpointError, match="non-JSON"):
            await client.generate("x")

    async def test_empty_candidates_yield_empty_text(self) -> None:
        client = _client(lambda request: httpx.Response(200, json={"candidates": []}))
        assert await client.generate("x") == ""

    async def test_missing_key_fails_without_request(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json=_reply("never"))

        client = GeminiClient("", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(AIEndpointError, match="GEMINI_API_KEY"):
            await client.generate("x")
        assert calls == []

    async def test_context_manager_closes_owned_client(self) -> None:
        async with GeminiClient("k") as client:
            pass
        assert client._client.is_closed
