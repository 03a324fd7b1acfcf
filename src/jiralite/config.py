"""Project configuration and data limits.

Convention-based discovery: each workspace has a `.jiralite/` directory
containing `jiralite.db` (SQLite), `config.json` and a `storage/` tree for
uploaded objects.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jiralite.types.core import ProjectConfig

logger = logging.getLogger(__name__)

JIRALITE_DIR_NAME = ".jiralite"
DB_FILENAME = "jiralite.db"
CONFIG_FILENAME = "config.json"
STORAGE_DIRNAME = "storage"

DEFAULT_AI_MODEL = "gemini-1.5-flash"
DEFAULT_PUBLIC_BASE_URL = "http://localhost:8377/storage"
GEMINI_API_KEY_ENV = "GEMINI_API_KEY"


@dataclass(frozen=True)
class Limits:
    """Hard data limits. Any field can be overridden via ``config.json``."""

    max_projects_per_team: int = 15
    max_issues_per_project: int = 200
    max_subtasks_per_issue: int = 20
    max_labels_per_issue: int = 5

    team_name_max: int = 50
    project_name_max: int = 100
    project_description_max: int = 2000
    issue_title_max: int = 200
    issue_description_max: int = 5000
    subtask_title_max: int = 200
    comment_max: int = 1000
    user_name_max: int = 50

    ai_min_description_length: int = 10
    ai_min_comments_for_summary: int = 5
    ai_rate_limit_per_minute: int = 10
    ai_rate_limit_window_seconds: int = 60
    ai_duplicate_scan_window: int = 50
    ai_duplicate_prompt_window: int = 30
    ai_max_suggested_labels: int = 3

    @classmethod
    def from_overrides(cls, overrides: dict[str, Any] | None) -> Limits:
        """Build limits from a config mapping, ignoring unknown or non-int keys."""
        if not overrides:
            return cls()
        known = {f.name for f in dataclasses.fields(cls)}
        clean: dict[str, int] = {}
        for key, value in overrides.items():
            if key not in known:
                logger.warning("Ignoring unknown limit '%s' in config", key)
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                logger.warning("Ignoring invalid value for limit '%s': %r", key, value)
                continue
            clean[key] = value
        return cls(**clean)


DEFAULT_LIMITS = Limits()

# Seeded into every new project, in column order.
DEFAULT_STATUSES: tuple[dict[str, Any], ...] = (
    {"name": "Backlog", "color": "#6B7280", "position": 0, "is_default": True},
    {"name": "In Progress", "color": "#3B82F6", "position": 1, "is_default": True},
    {"name": "Done", "color": "#10B981", "position": 2, "is_default": True},
)


def find_jiralite_root(start: Path | None = None) -> Path:
    """Walk up from start (default cwd) looking for .jiralite/ directory.

    Returns the .jiralite/ directory path (not the workspace root).
    """
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        candidate = parent / JIRALITE_DIR_NAME
        if candidate.is_dir():
            return candidate
    msg = f"No {JIRALITE_DIR_NAME}/ directory found in {current} or any parent"
    raise FileNotFoundError(msg)


def read_config(jiralite_dir: Path) -> ProjectConfig:
    """Read .jiralite/config.json. Returns defaults if missing or corrupt."""
    defaults = ProjectConfig(name="jiralite", version=1, ai_model=DEFAULT_AI_MODEL)
    config_path = jiralite_dir / CONFIG_FILENAME
    if not config_path.exists():
        return defaults
    try:
        result: ProjectConfig = json.loads(config_path.read_text())
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read %s, using defaults: %s", config_path, exc)
        return defaults
    if not isinstance(result, dict):
        logger.warning("Config %s is not a JSON object, using defaults", config_path)
        return defaults
    return result


def write_config(jiralite_dir: Path, config: dict[str, Any] | ProjectConfig) -> None:
    """Write .jiralite/config.json."""
    config_path = jiralite_dir / CONFIG_FILENAME
    config_path.write_text(json.dumps(config, indent=2) + "\n")


def load_limits(config: ProjectConfig) -> Limits:
    return Limits.from_overrides(config.get("limits"))


def gemini_api_key() -> str:
    return os.environ.get(GEMINI_API_KEY_ENV, "")
