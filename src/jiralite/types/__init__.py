# IMPORT CONSTRAINT: types/ modules must only import from typing, stdlib, and each other.
# NEVER import from the gateway or service modules.
"""Typed row shapes and closed variants for jiralite."""

from __future__ import annotations

from jiralite.types.core import (
    ActivityRecord,
    ArtifactRecord,
    CommentRecord,
    DuplicateCandidate,
    HistoryRecord,
    ISOTimestamp,
    IssueRecord,
    LabelRecord,
    ProjectConfig,
    StatusRecord,
    SubtaskRecord,
)
from jiralite.types.enums import (
    ActivityAction,
    ArtifactState,
    ArtifactType,
    NoticeLevel,
    NotificationType,
    Priority,
    TeamRole,
)

__all__ = [
    "ActivityAction",
    "ActivityRecord",
    "ArtifactRecord",
    "ArtifactState",
    "ArtifactType",
    "CommentRecord",
    "DuplicateCandidate",
    "HistoryRecord",
    "ISOTimestamp",
    "IssueRecord",
    "LabelRecord",
    "NoticeLevel",
    "NotificationType",
    "Priority",
    "ProjectConfig",
    "StatusRecord",
    "SubtaskRecord",
    "TeamRole",
]
