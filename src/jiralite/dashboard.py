"""Web API for jiralite: board, issue detail and AI endpoints.

Single-workspace local server. Module-level ``_gateway`` and ``_generator``
are set at startup (or by test fixtures) and injected via ``Depends``.

Usage:
    jiralite dashboard                    # Serves on localhost:8377
    jiralite dashboard --port 9000        # Custom port
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fastapi.responses import JSONResponse

from jiralite.ai.gemini import GeminiClient, TextGenerator
from jiralite.config import (
    DEFAULT_AI_MODEL,
    DEFAULT_LIMITS,
    Limits,
    find_jiralite_root,
    gemini_api_key,
    load_limits,
    read_config,
)
from jiralite.gateway.sqlite import SQLiteGateway

DEFAULT_PORT = 8377

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level state, set by main() or test fixtures
# ---------------------------------------------------------------------------

_gateway: SQLiteGateway | None = None
_generator: TextGenerator | None = None
_limits: Limits = DEFAULT_LIMITS


def _get_gateway() -> SQLiteGateway:
    from fastapi import HTTPException

    if _gateway is None:
        raise HTTPException(status_code=500, detail="Database not initialized")
    return _gateway


def _get_generator() -> TextGenerator:
    from fastapi import HTTPException

    if _generator is None:
        raise HTTPException(status_code=503, detail="AI endpoint not configured")
    return _generator


def _get_limits() -> Limits:
    return _limits


def create_app() -> Any:
    """Create the FastAPI application with all API routers mounted under ``/api``."""
    import contextlib
    from collections.abc import AsyncIterator

    from fastapi import FastAPI
    from fastapi.responses import JSONResponse

    from jiralite.dashboard_routes import ai, board, issues
    from jiralite.gateway.base import GatewayUnavailable

    @contextlib.asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        if isinstance(_generator, GeminiClient):
            await _generator.aclose()

    app = FastAPI(title="Jira Lite", docs_url=None, redoc_url=None, lifespan=_lifespan)

    app.include_router(board.create_router(), prefix="/api")
    app.include_router(issues.create_router(), prefix="/api")
    app.include_router(ai.create_router(), prefix="/api")

    @app.exception_handler(GatewayUnavailable)
    async def _unavailable(request: Any, exc: GatewayUnavailable) -> JSONResponse:
        from jiralite.dashboard_routes.common import _error_response

        return _error_response(f"Storage unavailable: {exc.message}", "UNAVAILABLE", 503)

    @app.get("/api/health")
    async def api_health() -> JSONResponse:
        return JSONResponse({"status": "ok", "ai": _generator is not None})

    return app


def main(port: int = DEFAULT_PORT) -> None:
    """Start the API server for the workspace found from the cwd."""
    import uvicorn

    global _gateway, _generator, _limits

    jiralite_dir = find_jiralite_root()
    config = read_config(jiralite_dir)
    _limits = load_limits(config)
    _gateway = SQLiteGateway.from_workspace(jiralite_dir.parent, check_same_thread=False)
    api_key = gemini_api_key()
    if api_key:
        _generator = GeminiClient(api_key, model=config.get("ai_model", DEFAULT_AI_MODEL))
    else:
        logger.warning("GEMINI_API_KEY is not set; AI endpoints are disabled")

    app = create_app()
    print(f"Jira Lite API: http://localhost:{port}")
    uvicorn.run(app, host="127.0.0.1", port=port, log_level="warning")
