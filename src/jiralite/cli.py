"""CLI for the jiralite issue tracker.

Convention-based: discovers .jiralite/ by walking up from cwd.

Usage:
    jiralite init                                   # Initialize .jiralite/ in cwd
    jiralite create-user ada@example.com "Ada"      # Register a user
    jiralite --actor <user> create-team "Core"      # Team owned by the actor
    jiralite --actor <user> create-project <team> "Web"
    jiralite board <project>                        # Print the kanban board
    jiralite --actor <user> summarize <issue>       # Generate an AI summary
    jiralite dashboard                              # Serve the web API
"""

from __future__ import annotations

import asyncio
import json as json_mod
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import click

from jiralite import __version__
from jiralite.ai.assistant import AIAssistant
from jiralite.ai.gemini import GeminiClient
from jiralite.board import KanbanBoard
from jiralite.config import (
    DB_FILENAME,
    DEFAULT_AI_MODEL,
    DEFAULT_PUBLIC_BASE_URL,
    JIRALITE_DIR_NAME,
    STORAGE_DIRNAME,
    find_jiralite_root,
    gemini_api_key,
    load_limits,
    read_config,
    write_config,
)
from jiralite.gateway.base import GatewayError
from jiralite.gateway.sqlite import SQLiteGateway
from jiralite.issues import IssueService
from jiralite.logging import setup_logging
from jiralite.signals import NoticeBoard
from jiralite.storage import LocalObjectStorage
from jiralite.teams import ProfileService, TeamService

T = TypeVar("T")


def _run(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except GatewayError as exc:
        click.echo(f"Error: {exc.message}", err=True)
        sys.exit(1)


def _get_gateway() -> tuple[Path, SQLiteGateway]:
    """Discover .jiralite/ and return it with an initialized gateway."""
    try:
        jiralite_dir = find_jiralite_root()
    except FileNotFoundError:
        click.echo(f"No {JIRALITE_DIR_NAME}/ found. Run 'jiralite init' first.", err=True)
        sys.exit(1)
    setup_logging(jiralite_dir)
    gateway = SQLiteGateway(jiralite_dir / DB_FILENAME)
    gateway.initialize()
    return jiralite_dir, gateway


def _print_notices(notices: NoticeBoard) -> None:
    for notice in notices.drain():
        click.echo(f"[{notice.level}] {notice.message}", err=notice.level == "error")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="jiralite")
@click.option("--actor", default="", help="Acting user id")
@click.pass_context
def cli(ctx: click.Context, actor: str) -> None:
    """Jira Lite: team issue tracker with AI assistance."""
    ctx.ensure_object(dict)
    ctx.obj["actor"] = actor


def _actor(ctx: click.Context) -> str:
    actor: str = ctx.obj["actor"]
    if not actor:
        click.echo("This command needs --actor <user id>", err=True)
        sys.exit(1)
    return actor


@cli.command()
@click.option("--name", default=None, help="Workspace name (default: directory name)")
def init(name: str | None) -> None:
    """Initialize .jiralite/ in the current directory."""
    cwd = Path.cwd()
    jiralite_dir = cwd / JIRALITE_DIR_NAME

    if jiralite_dir.exists():
        click.echo(f"{JIRALITE_DIR_NAME}/ already exists in {cwd}")
        # Still ensure DB is initialized
        with SQLiteGateway(jiralite_dir / DB_FILENAME) as gateway:
            gateway.initialize()
        (jiralite_dir / STORAGE_DIRNAME).mkdir(exist_ok=True)
        return

    name = name or cwd.name
    jiralite_dir.mkdir()
    (jiralite_dir / STORAGE_DIRNAME).mkdir()
    write_config(
        jiralite_dir,
        {"name": name, "version": 1, "ai_model": DEFAULT_AI_MODEL, "public_base_url": DEFAULT_PUBLIC_BASE_URL},
    )
    with SQLiteGateway(jiralite_dir / DB_FILENAME) as gateway:
        gateway.initialize()

    click.echo(f"Initialized {JIRALITE_DIR_NAME}/ in {cwd}")
    click.echo(f"  Name: {name}")
    click.echo(f"  Database: {jiralite_dir / DB_FILENAME}")
    click.echo(f"  Storage: {jiralite_dir / STORAGE_DIRNAME}/")


@cli.command("create-user")
@click.argument("email")
@click.argument("name")
def create_user(email: str, name: str) -> None:
    """Register a user and print its id."""
    jiralite_dir, gateway = _get_gateway()
    config = read_config(jiralite_dir)
    storage = LocalObjectStorage(
        jiralite_dir / STORAGE_DIRNAME,
        public_base_url=config.get("public_base_url", DEFAULT_PUBLIC_BASE_URL),
    )
    profiles = ProfileService(gateway, storage, limits=load_limits(config))
    try:
        user = _run(profiles.create_user(email, name))
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        gateway.close()
    click.echo(user["id"])


@cli.command("create-team")
@click.argument("name")
@click.pass_context
def create_team(ctx: click.Context, name: str) -> None:
    """Create a team owned by the acting user and print its id."""
    actor = _actor(ctx)
    jiralite_dir, gateway = _get_gateway()
    teams = TeamService(gateway, limits=load_limits(read_config(jiralite_dir)))
    try:
        team = _run(teams.create_team(name, owner_id=actor))
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        gateway.close()
    click.echo(team["id"])


@cli.command("create-project")
@click.argument("team_id")
@click.argument("name")
@click.option("--description", "-d", default=None, help="Description")
@click.pass_context
def create_project(ctx: click.Context, team_id: str, name: str, description: str | None) -> None:
    """Create a project with the default statuses and print its id."""
    actor = _actor(ctx)
    jiralite_dir, gateway = _get_gateway()
    teams = TeamService(gateway, limits=load_limits(read_config(jiralite_dir)))
    try:
        project = _run(teams.create_project(team_id, name, actor=actor, description=description))
    except KeyError:
        click.echo(f"Not found: {team_id}", err=True)
        sys.exit(1)
    except (ValueError, PermissionError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        gateway.close()
    click.echo(project["id"])


@cli.command()
@click.argument("project_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def board(project_id: str, as_json: bool) -> None:
    """Show the kanban board of a project."""
    _, gateway = _get_gateway()
    kanban = KanbanBoard(gateway, project_id, notices=NoticeBoard())
    try:
        _run(kanban.load())
    finally:
        gateway.close()
    if not kanban.statuses:
        click.echo(f"Not found: {project_id}", err=True)
        sys.exit(1)

    if as_json:
        columns = [{"status": s, "cards": cards} for s, cards in kanban.columns()]
        click.echo(json_mod.dumps(columns, indent=2, default=str))
        return

    for status, cards in kanban.columns():
        limit = f"/{status['wip_limit']}" if status.get("wip_limit") else ""
        flag = " (over WIP limit)" if kanban.is_over_limit(status["id"]) else ""
        click.echo(f"{status['name']} [{len(cards)}{limit}]{flag}")
        for card in cards:
            click.echo(f"  {card['id']}  [{card['priority']}] {card['title']}")


@cli.command()
@click.argument("issue_id")
@click.pass_context
def summarize(ctx: click.Context, issue_id: str) -> None:
    """Generate (or regenerate) the AI summary of an issue."""
    actor = _actor(ctx)
    api_key = gemini_api_key()
    if not api_key:
        click.echo("GEMINI_API_KEY is not set", err=True)
        sys.exit(1)
    jiralite_dir, gateway = _get_gateway()
    config = read_config(jiralite_dir)
    notices = NoticeBoard()

    async def _summarize() -> str | None:
        issue = await IssueService(gateway).get_issue(issue_id)
        async with GeminiClient(api_key, model=config.get("ai_model", DEFAULT_AI_MODEL)) as client:
            assistant = AIAssistant(gateway, client, notices, limits=load_limits(config))
            result = await assistant.generate_summary(issue, user_id=actor)
        return result.content if result.ok else None

    try:
        content = _run(_summarize())
    except KeyError:
        click.echo(f"Not found: {issue_id}", err=True)
        sys.exit(1)
    finally:
        gateway.close()
    _print_notices(notices)
    if content is None:
        sys.exit(1)
    click.echo(content)


@cli.command()
@click.option("--port", default=8377, type=int, help="Port (default: 8377)")
def dashboard(port: int) -> None:
    """Serve the web API for the current workspace."""
    try:
        from jiralite.dashboard import main as dashboard_main
    except ImportError:
        click.echo('Dashboard requires extra dependencies. Install with: pip install "jiralite[dashboard]"', err=True)
        sys.exit(1)
    try:
        jiralite_dir = find_jiralite_root()
    except FileNotFoundError:
        click.echo(f"No {JIRALITE_DIR_NAME}/ found. Run 'jiralite init' first.", err=True)
        sys.exit(1)
    setup_logging(jiralite_dir)
    dashboard_main(port=port)


if __name__ == "__main__":
    cli()
