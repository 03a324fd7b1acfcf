"""Shared pytest fixtures for jiralite tests."""

from __future__ import annotations

from collections.abc import Generator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from jiralite.config import DB_FILENAME, JIRALITE_DIR_NAME, STORAGE_DIRNAME, write_config
from jiralite.gateway.base import GatewayError, GatewayResult, GatewayUnavailable
from jiralite.gateway.sqlite import SQLiteGateway
from jiralite.issues import IssueService
from jiralite.signals import NoticeBoard
from jiralite.storage import LocalObjectStorage
from jiralite.teams import ProfileService, TeamService

LONG_DESCRIPTION = "Login fails on Safari when third-party cookies are disabled."


@pytest.fixture
def gateway(tmp_path: Path) -> Generator[SQLiteGateway, None, None]:
    """Fresh SQLite gateway for each test."""
    g = SQLiteGateway(tmp_path / "jiralite.db")
    g.initialize()
    yield g
    g.close()


@pytest.fixture
def notices() -> NoticeBoard:
    return NoticeBoard()


@pytest.fixture
def storage(tmp_path: Path) -> LocalObjectStorage:
    return LocalObjectStorage(tmp_path / "storage", public_base_url="http://test/storage")


# ---------------------------------------------------------------------------
# Seeded workspace
# ---------------------------------------------------------------------------


@dataclass
class Seeded:
    """IDs of a representative workspace.

    - users alice (team owner) and bob (member)
    - team "Core" with project "Web" and the default statuses
    - Backlog: "Login fails", "Signup slow", "Fix typo" (positions 0..2)
    - In Progress: "Refactor auth"
    - Done: empty
    """

    gateway: SQLiteGateway
    alice: str
    bob: str
    team_id: str
    project_id: str
    statuses: dict[str, str] = field(default_factory=dict)
    issues: dict[str, str] = field(default_factory=dict)


@pytest.fixture
async def seeded(gateway: SQLiteGateway, storage: LocalObjectStorage) -> Seeded:
    profiles = ProfileService(gateway, storage)
    alice = await profiles.create_user("alice@example.com", "Alice")
    bob = await profiles.create_user("bob@example.com", "Bob")
    teams = TeamService(gateway)
    team = await teams.create_team("Core", owner_id=alice["id"])
    await teams.add_member(team["id"], bob["id"])
    project = await teams.create_project(team["id"], "Web", actor=alice["id"])

    rows = (await gateway.select("project_statuses", filters=[], order_by="position")).unwrap()
    statuses = {row["name"]: row["id"] for row in rows if row["project_id"] == project["id"]}

    issues = IssueService(gateway)
    ids: dict[str, str] = {}
    for title, status, description in (
        ("Login fails", "Backlog", LONG_DESCRIPTION),
        ("Signup slow", "Backlog", "Signup takes ten seconds on mobile networks."),
        ("Fix typo", "Backlog", None),
        ("Refactor auth", "In Progress", "Split the auth module into session and token parts."),
    ):
        issue = await issues.create_issue(
            project["id"],
            title,
            actor=alice["id"],
            description=description,
            status_id=statuses[status],
        )
        ids[title] = issue["id"]

    return Seeded(
        gateway=gateway,
        alice=alice["id"],
        bob=bob["id"],
        team_id=team["id"],
        project_id=project["id"],
        statuses=statuses,
        issues=ids,
    )


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FakeGenerator:
    """Text endpoint double: replays queued replies, then a default."""

    def __init__(self, default: str = "Generated text.") -> None:
        self.default = default
        self.replies: list[str | Exception] = []
        self.prompts: list[str] = []

    def queue(self, *replies: str | Exception) -> None:
        self.replies.extend(replies)

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        return reply


@dataclass
class _Failure:
    mode: str
    skip: int
    times: int | None


class FailingGateway:
    """Wraps a real gateway; (op, table) pairs registered via ``fail`` go wrong.

    ``mode="error"`` returns a rejected ``GatewayResult``; ``mode="raise"``
    raises ``GatewayUnavailable``. ``skip`` lets that many matching calls through
    first; ``times`` heals the pair after that many failures. Every call is
    recorded in ``calls``.
    """

    def __init__(self, inner: SQLiteGateway) -> None:
        self.inner = inner
        self.calls: list[tuple[str, str]] = []
        self._failures: dict[tuple[str, str], _Failure] = {}

    def fail(self, op: str, table: str, *, mode: str = "error", skip: int = 0, times: int | None = None) -> None:
        self._failures[(op, table)] = _Failure(mode, skip, times)

    def heal(self) -> None:
        self._failures.clear()

    def writes(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] in ("insert", "update", "delete", "consume_rate_limit")]

    def _check(self, op: str, table: str) -> GatewayResult[Any] | None:
        self.calls.append((op, table))
        failure = self._failures.get((op, table))
        if failure is None:
            return None
        if failure.skip > 0:
            failure.skip -= 1
            return None
        if failure.times is not None:
            failure.times -= 1
            if failure.times <= 0:
                del self._failures[(op, table)]
        if failure.mode == "raise":
            raise GatewayUnavailable(f"injected {op} failure on {table}")
        return GatewayResult(error=GatewayError(f"injected {op} failure on {table}", "INJECTED"))

    async def select(self, table: str, **kwargs: Any) -> GatewayResult[list[dict[str, Any]]]:
        return self._check("select", table) or await self.inner.select(table, **kwargs)

    async def count(self, table: str, **kwargs: Any) -> GatewayResult[int]:
        return self._check("count", table) or await self.inner.count(table, **kwargs)

    async def insert(self, table: str, values: dict[str, Any]) -> GatewayResult[dict[str, Any]]:
        return self._check("insert", table) or await self.inner.insert(table, values)

    async def update(self, table: str, values: dict[str, Any], **kwargs: Any) -> GatewayResult[list[dict[str, Any]]]:
        return self._check("update", table) or await self.inner.update(table, values, **kwargs)

    async def delete(self, table: str, **kwargs: Any) -> GatewayResult[int]:
        return self._check("delete", table) or await self.inner.delete(table, **kwargs)

    async def consume_rate_limit(self, user_id: str, **kwargs: Any) -> Any:
        return self._check("consume_rate_limit", "ai_rate_limits") or await self.inner.consume_rate_limit(user_id, **kwargs)


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def failing(gateway: SQLiteGateway) -> FailingGateway:
    return FailingGateway(gateway)


# ---------------------------------------------------------------------------
# Workspace on disk
# ---------------------------------------------------------------------------


@pytest.fixture
def jiralite_workspace(tmp_path: Path) -> Path:
    """A tmp directory set up as a jiralite workspace (.jiralite/ with config + db).

    Returns the workspace root (parent of .jiralite/).
    """
    jiralite_dir = tmp_path / JIRALITE_DIR_NAME
    jiralite_dir.mkdir()
    (jiralite_dir / STORAGE_DIRNAME).mkdir()
    write_config(jiralite_dir, {"name": "proj", "version": 1})
    with SQLiteGateway(jiralite_dir / DB_FILENAME) as g:
        g.initialize()
    return tmp_path


@pytest.fixture
def cli_runner() -> CliRunner:
    """Click CLI test runner."""
    return CliRunner()
