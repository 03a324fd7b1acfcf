"""Fixtures for HTTP API tests (FastAPI)."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient

import jiralite.dashboard as dash_module
from jiralite.config import DEFAULT_LIMITS
from jiralite.dashboard import create_app

if TYPE_CHECKING:
    from tests.conftest import FakeGenerator, Seeded


@pytest.fixture
async def client(seeded: Seeded, generator: FakeGenerator) -> AsyncIterator[AsyncClient]:
    """Test client over the seeded workspace with a fake text endpoint."""
    dash_module._gateway = seeded.gateway
    dash_module._generator = generator
    dash_module._limits = DEFAULT_LIMITS
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    dash_module._gateway = None
    dash_module._generator = None


@pytest.fixture
async def bare_client(seeded: Seeded) -> AsyncIterator[AsyncClient]:
    """Test client with no text endpoint configured."""
    dash_module._gateway = seeded.gateway
    dash_module._generator = None
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    dash_module._gateway = None
