"""Jira Lite: team issue tracker with a kanban board and cached AI assistance."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("jiralite")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from jiralite.board import DropLocation, KanbanBoard, MoveOutcome
from jiralite.gateway import SQLiteGateway
from jiralite.issues import IssueService
from jiralite.signals import NoticeBoard

__all__ = ["DropLocation", "IssueService", "KanbanBoard", "MoveOutcome", "NoticeBoard", "SQLiteGateway", "__version__"]
