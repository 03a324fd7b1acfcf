"""Row shapes returned by the record gateway."""

from __future__ import annotations

from typing import Any, NewType, TypedDict

ISOTimestamp = NewType("ISOTimestamp", str)


class ProjectConfig(TypedDict, total=False):
    """Shape of .jiralite/config.json."""

    name: str
    version: int
    ai_model: str
    public_base_url: str
    limits: dict[str, int]


class StatusRecord(TypedDict):
    id: str
    project_id: str
    name: str
    color: str
    position: int
    is_default: bool
    wip_limit: int | None
    created_at: ISOTimestamp


class IssueRecord(TypedDict):
    id: str
    project_id: str
    title: str
    description: str | None
    status_id: str
    priority: str
    assignee_id: str | None
    owner_id: str
    due_date: str | None
    position: int
    created_at: ISOTimestamp
    updated_at: ISOTimestamp
    deleted_at: ISOTimestamp | None


class CommentRecord(TypedDict):
    id: str
    issue_id: str
    user_id: str
    content: str
    created_at: ISOTimestamp
    updated_at: ISOTimestamp
    deleted_at: ISOTimestamp | None


class SubtaskRecord(TypedDict):
    id: str
    issue_id: str
    title: str
    is_completed: bool
    position: int
    created_at: ISOTimestamp
    updated_at: ISOTimestamp


class HistoryRecord(TypedDict):
    id: str
    issue_id: str
    field: str
    old_value: str | None
    new_value: str | None
    changed_by: str
    changed_at: ISOTimestamp


class ArtifactRecord(TypedDict):
    id: str
    issue_id: str
    type: str
    content: str
    created_at: ISOTimestamp
    invalidated_at: ISOTimestamp | None


class LabelRecord(TypedDict):
    id: str
    project_id: str
    name: str
    color: str


class DuplicateCandidate(TypedDict):
    id: str
    title: str
    similarity: str


class ActivityRecord(TypedDict):
    id: str
    team_id: str
    actor_id: str
    action: str
    target_type: str
    target_id: str
    details: dict[str, Any]
    created_at: ISOTimestamp
