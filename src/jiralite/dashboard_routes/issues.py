"""Issue detail, comment and subtask route handlers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from starlette.requests import Request

if TYPE_CHECKING:
    from fastapi import APIRouter

from jiralite.ai.cache import AICache
from jiralite.config import Limits
from jiralite.dashboard_routes.common import (
    _error_response,
    _last_error,
    _notice_payload,
    _parse_json_body,
    _validate_actor,
)
from jiralite.gateway.sqlite import SQLiteGateway
from jiralite.issue_lists import CommentThread, SubtaskChecklist
from jiralite.issues import IssueService
from jiralite.signals import NoticeBoard
from jiralite.validation import validate_text

logger = logging.getLogger(__name__)


def create_router() -> APIRouter:
    """Build the APIRouter for issue detail and its child collections.

    NOTE: All handlers are async despite doing synchronous SQLite I/O, so
    gateway access stays on the event loop thread.
    """
    from fastapi import APIRouter, Depends
    from fastapi.responses import JSONResponse

    from jiralite.dashboard import _get_gateway, _get_limits

    router = APIRouter()

    async def _issue_exists(service: IssueService, issue_id: str) -> JSONResponse | None:
        try:
            await service.get_issue(issue_id)
        except KeyError:
            return _error_response(f"Issue not found: {issue_id}", "NOT_FOUND", 404)
        return None

    def _write_failed(notices: NoticeBoard, default: str) -> JSONResponse:
        return _error_response(_last_error(notices, default), "WRITE_FAILED", 409)

    def _invalid_comment(body: dict[str, Any], limits: Limits) -> JSONResponse | None:
        _, err = validate_text(body.get("content"), name="comment", max_length=limits.comment_max)
        return _error_response(err, "VALIDATION_ERROR", 400) if err else None

    @router.post("/projects/{project_id}/issues", status_code=201)
    async def api_create_issue(
        project_id: str,
        request: Request,
        gateway: SQLiteGateway = Depends(_get_gateway),
        limits: Limits = Depends(_get_limits),
    ) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        actor, actor_err = _validate_actor(body.get("actor"))
        if actor_err:
            return actor_err
        label_ids = body.get("label_ids", [])
        if not isinstance(label_ids, list) or not all(isinstance(x, str) for x in label_ids):
            return _error_response("label_ids must be a list of strings", "VALIDATION_ERROR", 400)
        service = IssueService(gateway, limits=limits)
        try:
            issue = await service.create_issue(
                project_id,
                body.get("title"),  # type: ignore[arg-type]
                actor=actor,
                description=body.get("description"),
                priority=body.get("priority", "MEDIUM"),
                status_id=body.get("status_id"),
                assignee_id=body.get("assignee_id"),
                due_date=body.get("due_date"),
                label_ids=label_ids,
            )
        except KeyError:
            return _error_response(f"Project not found: {project_id}", "NOT_FOUND", 404)
        except ValueError as e:
            return _error_response(str(e), "VALIDATION_ERROR", 400)
        return JSONResponse(issue, status_code=201)

    @router.get("/issues/{issue_id}")
    async def api_issue_detail(
        issue_id: str,
        gateway: SQLiteGateway = Depends(_get_gateway),
        limits: Limits = Depends(_get_limits),
    ) -> JSONResponse:
        """Issue with labels, history, active AI artifacts and subtask progress."""
        service = IssueService(gateway, limits=limits)
        try:
            issue = await service.get_issue(issue_id)
        except KeyError:
            return _error_response(f"Issue not found: {issue_id}", "NOT_FOUND", 404)
        checklist = SubtaskChecklist(gateway, issue_id, notices=NoticeBoard(), limits=limits)
        await checklist.load()
        completed, total = checklist.progress()
        artifacts = await AICache(gateway).active_for_issue(issue_id)
        detail: dict[str, Any] = {
            **issue,
            "labels": await service.labels(issue_id),
            "history": await service.history(issue_id),
            "subtask_progress": {"completed": completed, "total": total},
            "ai": {str(t): a["content"] for t, a in artifacts.items()},
        }
        return JSONResponse(detail)

    @router.patch("/issues/{issue_id}")
    async def api_update_issue(
        issue_id: str,
        request: Request,
        gateway: SQLiteGateway = Depends(_get_gateway),
        limits: Limits = Depends(_get_limits),
    ) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        actor, actor_err = _validate_actor(body.pop("actor", None))
        if actor_err:
            return actor_err
        service = IssueService(gateway, limits=limits)
        try:
            issue = await service.update_issue(issue_id, body, actor=actor)
        except KeyError:
            return _error_response(f"Issue not found: {issue_id}", "NOT_FOUND", 404)
        except ValueError as e:
            return _error_response(str(e), "VALIDATION_ERROR", 400)
        return JSONResponse({**issue, "labels": await service.labels(issue_id)})

    @router.delete("/issues/{issue_id}")
    async def api_delete_issue(issue_id: str, gateway: SQLiteGateway = Depends(_get_gateway)) -> JSONResponse:
        try:
            await IssueService(gateway).delete_issue(issue_id)
        except KeyError:
            return _error_response(f"Issue not found: {issue_id}", "NOT_FOUND", 404)
        return JSONResponse({"deleted": issue_id})

    # -- comments -------------------------------------------------------------

    @router.get("/issues/{issue_id}/comments")
    async def api_comments(issue_id: str, gateway: SQLiteGateway = Depends(_get_gateway)) -> JSONResponse:
        missing = await _issue_exists(IssueService(gateway), issue_id)
        if missing:
            return missing
        thread = CommentThread(gateway, issue_id, notices=NoticeBoard())
        return JSONResponse(await thread.load())

    @router.post("/issues/{issue_id}/comments", status_code=201)
    async def api_add_comment(
        issue_id: str,
        request: Request,
        gateway: SQLiteGateway = Depends(_get_gateway),
        limits: Limits = Depends(_get_limits),
    ) -> JSONResponse:
        missing = await _issue_exists(IssueService(gateway), issue_id)
        if missing:
            return missing
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        actor, actor_err = _validate_actor(body.get("actor"))
        if actor_err:
            return actor_err
        invalid = _invalid_comment(body, limits)
        if invalid:
            return invalid
        notices = NoticeBoard()
        thread = CommentThread(gateway, issue_id, notices=notices, limits=limits)
        await thread.load()
        if not await thread.add_comment(body.get("content"), user_id=actor):  # type: ignore[arg-type]
            return _write_failed(notices, "Failed to add comment")
        return JSONResponse({"comments": thread.items, "notices": _notice_payload(notices)}, status_code=201)

    @router.patch("/issues/{issue_id}/comments/{comment_id}")
    async def api_edit_comment(
        issue_id: str,
        comment_id: str,
        request: Request,
        gateway: SQLiteGateway = Depends(_get_gateway),
        limits: Limits = Depends(_get_limits),
    ) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        invalid = _invalid_comment(body, limits)
        if invalid:
            return invalid
        notices = NoticeBoard()
        thread = CommentThread(gateway, issue_id, notices=notices, limits=limits)
        await thread.load()
        if not any(c["id"] == comment_id for c in thread.items):
            return _error_response(f"Comment not found: {comment_id}", "NOT_FOUND", 404)
        if not await thread.edit_comment(comment_id, body.get("content")):  # type: ignore[arg-type]
            return _write_failed(notices, "Failed to update comment")
        return JSONResponse({"comments": thread.items, "notices": _notice_payload(notices)})

    @router.delete("/issues/{issue_id}/comments/{comment_id}")
    async def api_delete_comment(
        issue_id: str,
        comment_id: str,
        gateway: SQLiteGateway = Depends(_get_gateway),
    ) -> JSONResponse:
        notices = NoticeBoard()
        thread = CommentThread(gateway, issue_id, notices=notices)
        await thread.load()
        if not any(c["id"] == comment_id for c in thread.items):
            return _error_response(f"Comment not found: {comment_id}", "NOT_FOUND", 404)
        if not await thread.delete_comment(comment_id):
            return _write_failed(notices, "Failed to delete comment")
        return JSONResponse({"comments": thread.items, "notices": _notice_payload(notices)})

    # -- subtasks -------------------------------------------------------------

    @router.get("/issues/{issue_id}/subtasks")
    async def api_subtasks(issue_id: str, gateway: SQLiteGateway = Depends(_get_gateway)) -> JSONResponse:
        missing = await _issue_exists(IssueService(gateway), issue_id)
        if missing:
            return missing
        checklist = SubtaskChecklist(gateway, issue_id, notices=NoticeBoard())
        return JSONResponse(await checklist.load())

    @router.post("/issues/{issue_id}/subtasks", status_code=201)
    async def api_add_subtask(
        issue_id: str,
        request: Request,
        gateway: SQLiteGateway = Depends(_get_gateway),
        limits: Limits = Depends(_get_limits),
    ) -> JSONResponse:
        missing = await _issue_exists(IssueService(gateway), issue_id)
        if missing:
            return missing
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        title, err = validate_text(body.get("title"), name="subtask title", max_length=limits.subtask_title_max)
        if err:
            return _error_response(err, "VALIDATION_ERROR", 400)
        notices = NoticeBoard()
        checklist = SubtaskChecklist(gateway, issue_id, notices=notices, limits=limits)
        await checklist.load()
        if not await checklist.add_subtask(title):
            return _write_failed(notices, "Failed to add subtask")
        return JSONResponse({"subtasks": checklist.items, "notices": _notice_payload(notices)}, status_code=201)

    @router.post("/issues/{issue_id}/subtasks/{subtask_id}/toggle")
    async def api_toggle_subtask(
        issue_id: str,
        subtask_id: str,
        gateway: SQLiteGateway = Depends(_get_gateway),
    ) -> JSONResponse:
        notices = NoticeBoard()
        checklist = SubtaskChecklist(gateway, issue_id, notices=notices)
        await checklist.load()
        if not any(s["id"] == subtask_id for s in checklist.items):
            return _error_response(f"Subtask not found: {subtask_id}", "NOT_FOUND", 404)
        if not await checklist.toggle_subtask(subtask_id):
            return _write_failed(notices, "Failed to change subtask")
        return JSONResponse({"subtasks": checklist.items, "notices": _notice_payload(notices)})

    @router.delete("/issues/{issue_id}/subtasks/{subtask_id}")
    async def api_delete_subtask(
        issue_id: str,
        subtask_id: str,
        gateway: SQLiteGateway = Depends(_get_gateway),
    ) -> JSONResponse:
        notices = NoticeBoard()
        checklist = SubtaskChecklist(gateway, issue_id, notices=notices)
        await checklist.load()
        if not any(s["id"] == subtask_id for s in checklist.items):
            return _error_response(f"Subtask not found: {subtask_id}", "NOT_FOUND", 404)
        if not await checklist.delete_subtask(subtask_id):
            return _write_failed(notices, "Failed to delete subtask")
        return JSONResponse({"subtasks": checklist.items, "notices": _notice_payload(notices)})

    return router
