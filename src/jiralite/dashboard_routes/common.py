"""Shared helpers for API route modules."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fastapi.responses import JSONResponse
    from starlette.requests import Request

from jiralite.signals import Notice, NoticeBoard
from jiralite.validation import sanitize_actor as _sanitize_actor

logger = logging.getLogger(__name__)


def _error_response(
    message: str,
    code: str,
    status_code: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Return a structured error response and log the error."""
    from fastapi.responses import JSONResponse

    logger.warning("API error [%s] %s: %s", status_code, code, message)
    return JSONResponse(
        {"error": {"message": message, "code": code, "details": details or {}}},
        status_code=status_code,
    )


async def _parse_json_body(request: Request) -> dict[str, Any] | JSONResponse:
    """Parse and validate a JSON object body, returning 400 on failure."""
    import json

    try:
        body = await request.json()
    except (json.JSONDecodeError, ValueError, UnicodeDecodeError):
        return _error_response("Invalid JSON body", "VALIDATION_ERROR", 400)
    if not isinstance(body, dict):
        return _error_response("Request body must be a JSON object", "VALIDATION_ERROR", 400)
    return body


def _validate_actor(value: Any) -> tuple[str, JSONResponse | None]:
    """Validate the acting user id from a JSON body.

    Returns (cleaned_actor, None) on success or ("", JSONResponse) on error.
    """
    cleaned, err = _sanitize_actor(value)
    if err:
        return ("", _error_response(err, "VALIDATION_ERROR", 400))
    return (cleaned, None)


def _require_str(body: dict[str, Any], key: str) -> tuple[str, JSONResponse | None]:
    value = body.get(key)
    if not isinstance(value, str) or not value.strip():
        return ("", _error_response(f"{key} is required", "VALIDATION_ERROR", 400))
    return (value, None)


def _notice_payload(notices: NoticeBoard) -> list[dict[str, str]]:
    return [_notice_dict(n) for n in notices.drain()]


def _notice_dict(notice: Notice) -> dict[str, str]:
    return {"level": notice.level.value, "message": notice.message}


def _last_error(notices: NoticeBoard, default: str) -> str:
    errors = notices.errors()
    return errors[-1].message if errors else default
