"""Fixtures for CLI interface tests."""

from __future__ import annotations

import os
from collections.abc import Generator
from dataclasses import dataclass
from pathlib import Path

import pytest
from click.testing import CliRunner

from jiralite.cli import cli


@pytest.fixture
def cli_in_project(tmp_path: Path, cli_runner: CliRunner) -> Generator[tuple[CliRunner, Path], None, None]:
    """Initialize a jiralite workspace in tmp_path and return (runner, workspace_root)."""
    original_cwd = os.getcwd()
    os.chdir(str(tmp_path))
    result = cli_runner.invoke(cli, ["init", "--name", "demo"])
    assert result.exit_code == 0
    yield cli_runner, tmp_path
    os.chdir(original_cwd)


@dataclass
class CliWorkspace:
    runner: CliRunner
    root: Path
    user_id: str
    team_id: str
    project_id: str


@pytest.fixture
def cli_project(cli_in_project: tuple[CliRunner, Path]) -> CliWorkspace:
    """A workspace with one user, one team and one project, all created through the CLI."""
    runner, root = cli_in_project
    user_id = _last_line(runner.invoke(cli, ["create-user", "ada@example.com", "Ada"]).output)
    team_id = _last_line(runner.invoke(cli, ["--actor", user_id, "create-team", "Core"]).output)
    project_id = _last_line(runner.invoke(cli, ["--actor", user_id, "create-project", team_id, "Web"]).output)
    return CliWorkspace(runner, root, user_id, team_id, project_id)


def _last_line(output: str) -> str:
    """Ids are printed alone on the final output line."""
    return output.strip().splitlines()[-1]
