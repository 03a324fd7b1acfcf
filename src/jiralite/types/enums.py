"""Closed string variants stored in discriminator columns.

Each enum mirrors a CHECK constraint in ``jiralite.gateway.schema``.
"""

from __future__ import annotations

from enum import StrEnum


class ArtifactType(StrEnum):
    SUMMARY = "summary"
    SUGGESTION = "suggestion"
    COMMENT_SUMMARY = "comment_summary"


class ArtifactState(StrEnum):
    """Lifecycle of the cached artifact for one (issue, type) pair."""

    ABSENT = "absent"
    ACTIVE = "active"
    INVALIDATED = "invalidated"


class Priority(StrEnum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class TeamRole(StrEnum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class NotificationType(StrEnum):
    ISSUE_ASSIGNED = "issue_assigned"
    COMMENT_ADDED = "comment_added"
    DUE_DATE_APPROACHING = "due_date_approaching"
    DUE_DATE_TODAY = "due_date_today"
    TEAM_INVITATION = "team_invitation"
    ROLE_CHANGED = "role_changed"


class ActivityAction(StrEnum):
    TEAM_CREATED = "team_created"
    MEMBER_JOINED = "member_joined"
    MEMBER_LEFT = "member_left"
    MEMBER_KICKED = "member_kicked"
    ROLE_CHANGED = "role_changed"
    PROJECT_CREATED = "project_created"
    PROJECT_DELETED = "project_deleted"
    PROJECT_ARCHIVED = "project_archived"
    TEAM_UPDATED = "team_updated"


class NoticeLevel(StrEnum):
    SUCCESS = "success"
    ERROR = "error"
