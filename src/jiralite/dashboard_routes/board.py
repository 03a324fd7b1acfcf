"""Kanban board route handlers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from starlette.requests import Request

if TYPE_CHECKING:
    from fastapi import APIRouter

from jiralite.board import DropLocation, KanbanBoard, MoveOutcome
from jiralite.dashboard_routes.common import (
    _error_response,
    _notice_payload,
    _parse_json_body,
    _require_str,
    _validate_actor,
)
from jiralite.gateway.sqlite import SQLiteGateway
from jiralite.signals import NoticeBoard

logger = logging.getLogger(__name__)


def _board_payload(board: KanbanBoard) -> dict[str, Any]:
    return {
        "project_id": board.project_id,
        "is_archived": board.is_archived,
        "columns": [
            {
                "status": status,
                "cards": cards,
                "over_limit": board.is_over_limit(status["id"]),
            }
            for status, cards in board.columns()
        ],
    }


def create_router() -> APIRouter:
    """Build the APIRouter for board reads and drag-and-drop moves.

    NOTE: All handlers are async despite doing synchronous SQLite I/O, so
    gateway access stays on the event loop thread.
    """
    from fastapi import APIRouter, Depends
    from fastapi.responses import JSONResponse

    from jiralite.dashboard import _get_gateway

    router = APIRouter()

    async def _load(project_id: str, gateway: SQLiteGateway, notices: NoticeBoard) -> KanbanBoard | JSONResponse:
        board = KanbanBoard(gateway, project_id, notices=notices)
        await board.load()
        if not board.statuses:
            return _error_response(f"Project not found: {project_id}", "NOT_FOUND", 404)
        return board

    @router.get("/projects/{project_id}/board")
    async def api_board(project_id: str, gateway: SQLiteGateway = Depends(_get_gateway)) -> JSONResponse:
        board = await _load(project_id, gateway, NoticeBoard())
        if isinstance(board, JSONResponse):
            return board
        return JSONResponse(_board_payload(board))

    @router.post("/projects/{project_id}/board/move")
    async def api_move_card(
        project_id: str,
        request: Request,
        gateway: SQLiteGateway = Depends(_get_gateway),
    ) -> JSONResponse:
        """Move a card to ``status_id`` at ``index``; body mirrors a drop event."""
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        actor, actor_err = _validate_actor(body.get("actor"))
        if actor_err:
            return actor_err
        card_id, err = _require_str(body, "card_id")
        if err:
            return err
        status_id = body.get("status_id")
        index = body.get("index")
        if status_id is not None and not isinstance(status_id, str):
            return _error_response("status_id must be a string or null", "VALIDATION_ERROR", 400)
        if status_id is not None and (isinstance(index, bool) or not isinstance(index, int) or index < 0):
            return _error_response("index must be a non-negative integer", "VALIDATION_ERROR", 400)

        notices = NoticeBoard()
        board = await _load(project_id, gateway, notices)
        if isinstance(board, JSONResponse):
            return board
        source = board.locate(card_id)
        if source is None:
            return _error_response(f"Issue not on this board: {card_id}", "NOT_FOUND", 404)

        destination = DropLocation(status_id, index) if status_id is not None else None
        outcome = await board.move_card(card_id, source, destination, actor=actor)
        if outcome is MoveOutcome.FAILED:
            return _error_response("Failed to move issue", "MOVE_FAILED", 409, {"card_id": card_id})
        return JSONResponse({"outcome": outcome.value, "board": _board_payload(board), "notices": _notice_payload(notices)})

    return router
