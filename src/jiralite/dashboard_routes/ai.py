"""AI route handlers: cached artifacts and advisory suggestions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, assert_never

from starlette.requests import Request

if TYPE_CHECKING:
    from fastapi import APIRouter
    from fastapi.responses import JSONResponse

from jiralite.ai.assistant import AIAssistant, AIFailure, AIResult
from jiralite.ai.gemini import TextGenerator
from jiralite.config import Limits
from jiralite.dashboard_routes.common import (
    _error_response,
    _notice_payload,
    _parse_json_body,
    _require_str,
    _validate_actor,
)
from jiralite.gateway.sqlite import SQLiteGateway
from jiralite.issues import IssueService
from jiralite.signals import NoticeBoard

logger = logging.getLogger(__name__)


def _failure_response(result: AIResult) -> JSONResponse:
    message = result.error or "AI request failed"
    match result.failure:
        case AIFailure.PRECONDITION:
            return _error_response(message, "PRECONDITION_FAILED", 422)
        case AIFailure.RATE_LIMITED:
            return _error_response(message, "RATE_LIMITED", 429, {"retry_after": result.retry_after})
        case AIFailure.ENDPOINT:
            return _error_response(message, "AI_ERROR", 502)
        case AIFailure.STORAGE:
            return _error_response(message, "STORAGE_ERROR", 503)
        case None:
            return _error_response(message, "AI_ERROR", 500)
        case _:
            assert_never(result.failure)


def create_router() -> APIRouter:
    """Build the APIRouter for ``/ai/*`` endpoints."""
    from fastapi import APIRouter, Depends
    from fastapi.responses import JSONResponse

    from jiralite.dashboard import _get_gateway, _get_generator, _get_limits

    router = APIRouter(prefix="/ai")

    def _respond(result: AIResult, notices: NoticeBoard) -> JSONResponse:
        if not result.ok:
            return _failure_response(result)
        return JSONResponse({"content": result.content, "notices": _notice_payload(notices)})

    async def _issue_request(
        request: Request, gateway: SQLiteGateway
    ) -> tuple[dict[str, object], str] | JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        actor, actor_err = _validate_actor(body.get("actor"))
        if actor_err:
            return actor_err
        issue_id, err = _require_str(body, "issue_id")
        if err:
            return err
        try:
            issue = await IssueService(gateway).get_issue(issue_id)
        except KeyError:
            return _error_response(f"Issue not found: {issue_id}", "NOT_FOUND", 404)
        return dict(issue), actor

    @router.post("/summary")
    async def api_summary(
        request: Request,
        gateway: SQLiteGateway = Depends(_get_gateway),
        generator: TextGenerator = Depends(_get_generator),
        limits: Limits = Depends(_get_limits),
    ) -> JSONResponse:
        parsed = await _issue_request(request, gateway)
        if isinstance(parsed, JSONResponse):
            return parsed
        issue, actor = parsed
        notices = NoticeBoard()
        assistant = AIAssistant(gateway, generator, notices, limits=limits)
        return _respond(await assistant.generate_summary(issue, user_id=actor), notices)

    @router.post("/suggestion")
    async def api_suggestion(
        request: Request,
        gateway: SQLiteGateway = Depends(_get_gateway),
        generator: TextGenerator = Depends(_get_generator),
        limits: Limits = Depends(_get_limits),
    ) -> JSONResponse:
        parsed = await _issue_request(request, gateway)
        if isinstance(parsed, JSONResponse):
            return parsed
        issue, actor = parsed
        notices = NoticeBoard()
        assistant = AIAssistant(gateway, generator, notices, limits=limits)
        return _respond(await assistant.generate_suggestion(issue, user_id=actor), notices)

    @router.post("/comment-summary")
    async def api_comment_summary(
        request: Request,
        gateway: SQLiteGateway = Depends(_get_gateway),
        generator: TextGenerator = Depends(_get_generator),
        limits: Limits = Depends(_get_limits),
    ) -> JSONResponse:
        parsed = await _issue_request(request, gateway)
        if isinstance(parsed, JSONResponse):
            return parsed
        issue, actor = parsed
        notices = NoticeBoard()
        assistant = AIAssistant(gateway, generator, notices, limits=limits)
        return _respond(await assistant.generate_comment_summary(str(issue["id"]), user_id=actor), notices)

    @router.post("/suggest-labels")
    async def api_suggest_labels(
        request: Request,
        gateway: SQLiteGateway = Depends(_get_gateway),
        generator: TextGenerator = Depends(_get_generator),
        limits: Limits = Depends(_get_limits),
    ) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        project_id, err = _require_str(body, "project_id")
        if err:
            return err
        title, err = _require_str(body, "title")
        if err:
            return err
        description = body.get("description")
        if description is not None and not isinstance(description, str):
            return _error_response("description must be a string", "VALIDATION_ERROR", 400)
        assistant = AIAssistant(gateway, generator, NoticeBoard(), limits=limits)
        labels = await assistant.suggest_labels(project_id, title, description)
        return JSONResponse({"labels": labels})

    @router.post("/find-duplicates")
    async def api_find_duplicates(
        request: Request,
        gateway: SQLiteGateway = Depends(_get_gateway),
        generator: TextGenerator = Depends(_get_generator),
        limits: Limits = Depends(_get_limits),
    ) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        project_id, err = _require_str(body, "project_id")
        if err:
            return err
        title, err = _require_str(body, "title")
        if err:
            return err
        assistant = AIAssistant(gateway, generator, NoticeBoard(), limits=limits)
        duplicates = await assistant.find_duplicates(project_id, title)
        return JSONResponse({"duplicates": duplicates})

    return router
