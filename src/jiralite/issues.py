"""Issue CRUD with change history, assignment notifications and AI invalidation.

Validation happens before any write and raises ``ValueError``; a missing or
deleted issue raises ``KeyError``. Gateway rejections propagate as
``GatewayError``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, cast

from jiralite.ai.cache import AICache
from jiralite.config import DEFAULT_LIMITS, Limits
from jiralite.gateway.base import RecordGateway, eq, in_, is_null
from jiralite.notifications import NotificationService
from jiralite.timeutil import now_iso, parse_iso
from jiralite.types.core import HistoryRecord, IssueRecord
from jiralite.types.enums import NotificationType, Priority
from jiralite.validation import validate_priority, validate_text

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"title", "description", "status_id", "priority", "assignee_id", "due_date"})

# Column -> history field name. Description edits are not tracked in history.
HISTORY_FIELDS: dict[str, str] = {
    "title": "title",
    "status_id": "status",
    "priority": "priority",
    "assignee_id": "assignee",
    "due_date": "due_date",
}

UNASSIGNED = "Unassigned"


def _validate_due_date(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        msg = "due_date must be an ISO date string"
        raise ValueError(msg)
    try:
        parse_iso(value)
    except ValueError:
        msg = f"Invalid due_date: {value!r}"
        raise ValueError(msg) from None
    return value


class IssueService:
    def __init__(
        self,
        gateway: RecordGateway,
        *,
        limits: Limits = DEFAULT_LIMITS,
        cache: AICache | None = None,
    ) -> None:
        self.gateway = gateway
        self.limits = limits
        self.cache = cache or AICache(gateway)
        self.notifications = NotificationService(gateway)

    # -- reads ----------------------------------------------------------------

    async def get_issue(self, issue_id: str) -> IssueRecord:
        result = await self.gateway.select("issues", filters=[eq("id", issue_id), is_null("deleted_at")], limit=1)
        rows = result.unwrap()
        if not rows:
            raise KeyError(issue_id)
        return cast(IssueRecord, rows[0])

    async def list_issues(self, project_id: str) -> list[IssueRecord]:
        result = await self.gateway.select(
            "issues", filters=[eq("project_id", project_id), is_null("deleted_at")], order_by="created_at"
        )
        return cast(list[IssueRecord], result.unwrap())

    async def history(self, issue_id: str) -> list[HistoryRecord]:
        result = await self.gateway.select(
            "issue_history", filters=[eq("issue_id", issue_id)], order_by="changed_at", descending=True
        )
        return cast(list[HistoryRecord], result.unwrap())

    async def labels(self, issue_id: str) -> list[dict[str, Any]]:
        links = (await self.gateway.select("issue_labels", filters=[eq("issue_id", issue_id)])).unwrap()
        if not links:
            return []
        result = await self.gateway.select(
            "project_labels", filters=[in_("id", [link["label_id"] for link in links])], order_by="name"
        )
        return result.unwrap()

    # -- helpers --------------------------------------------------------------

    async def _project(self, project_id: str) -> dict[str, Any]:
        rows = (
            await self.gateway.select("projects", filters=[eq("id", project_id), is_null("deleted_at")], limit=1)
        ).unwrap()
        if not rows:
            raise KeyError(project_id)
        return rows[0]

    async def _statuses(self, project_id: str) -> list[dict[str, Any]]:
        result = await self.gateway.select("project_statuses", filters=[eq("project_id", project_id)], order_by="position")
        return result.unwrap()

    async def _column_size(self, status_id: str) -> int:
        result = await self.gateway.count("issues", filters=[eq("status_id", status_id), is_null("deleted_at")])
        return result.unwrap()

    async def _user_name(self, user_id: str | None) -> str:
        if not user_id:
            return UNASSIGNED
        rows = (await self.gateway.select("users", filters=[eq("id", user_id)], limit=1)).unwrap()
        return rows[0]["name"] if rows else user_id

    async def _check_user(self, user_id: str) -> None:
        rows = (await self.gateway.select("users", filters=[eq("id", user_id), is_null("deleted_at")], limit=1)).unwrap()
        if not rows:
            msg = f"Unknown user: {user_id}"
            raise ValueError(msg)

    async def _check_labels(self, project_id: str, label_ids: Any) -> list[str]:
        if (
            isinstance(label_ids, str)
            or not isinstance(label_ids, Sequence)
            or not all(isinstance(label_id, str) for label_id in label_ids)
        ):
            msg = "label_ids must be a list of label ids"
            raise ValueError(msg)
        unique = list(dict.fromkeys(label_ids))
        if len(unique) > self.limits.max_labels_per_issue:
            msg = f"An issue can have at most {self.limits.max_labels_per_issue} labels"
            raise ValueError(msg)
        if unique:
            known = (
                await self.gateway.select("project_labels", filters=[eq("project_id", project_id), in_("id", unique)])
            ).unwrap()
            missing = set(unique) - {label["id"] for label in known}
            if missing:
                msg = f"Unknown labels for project {project_id}: {', '.join(sorted(missing))}"
                raise ValueError(msg)
        return unique

    async def _replace_labels(self, issue_id: str, label_ids: Sequence[str]) -> None:
        (await self.gateway.delete("issue_labels", filters=[eq("issue_id", issue_id)])).unwrap()
        for label_id in label_ids:
            (await self.gateway.insert("issue_labels", {"issue_id": issue_id, "label_id": label_id})).unwrap()

    async def _notify_assignee(self, issue: Mapping[str, Any], assignee_id: str, actor: str) -> None:
        if assignee_id == actor:
            return
        await self.notifications.notify(
            assignee_id,
            NotificationType.ISSUE_ASSIGNED,
            "Issue assigned to you",
            content=issue["title"],
            link=f"/issues/{issue['id']}",
        )

    # -- writes ---------------------------------------------------------------

    async def create_issue(
        self,
        project_id: str,
        title: str,
        *,
        actor: str,
        description: str | None = None,
        priority: str | Priority = Priority.MEDIUM,
        status_id: str | None = None,
        assignee_id: str | None = None,
        due_date: str | None = None,
        label_ids: Sequence[str] = (),
    ) -> IssueRecord:
        title, err = validate_text(title, name="title", max_length=self.limits.issue_title_max)
        if err:
            raise ValueError(err)
        description, err = validate_text(
            description, name="description", max_length=self.limits.issue_description_max, required=False
        )
        if err:
            raise ValueError(err)
        checked_priority, err = validate_priority(priority)
        if err:
            raise ValueError(err)
        due_date = _validate_due_date(due_date)

        project = await self._project(project_id)
        if project["is_archived"]:
            msg = "Cannot add issues to an archived project"
            raise ValueError(msg)
        live = (await self.gateway.count("issues", filters=[eq("project_id", project_id), is_null("deleted_at")])).unwrap()
        if live >= self.limits.max_issues_per_project:
            msg = f"A project can have at most {self.limits.max_issues_per_project} issues"
            raise ValueError(msg)

        statuses = await self._statuses(project_id)
        if not statuses:
            msg = f"Project {project_id} has no statuses"
            raise ValueError(msg)
        if status_id is None:
            status_id = statuses[0]["id"]
        elif status_id not in {s["id"] for s in statuses}:
            msg = f"Unknown status for project {project_id}: {status_id}"
            raise ValueError(msg)

        label_ids = await self._check_labels(project_id, label_ids)
        if assignee_id:
            await self._check_user(assignee_id)

        issue = (
            await self.gateway.insert(
                "issues",
                {
                    "project_id": project_id,
                    "title": title,
                    "description": description or None,
                    "status_id": status_id,
                    "priority": checked_priority,
                    "assignee_id": assignee_id or None,
                    "owner_id": actor,
                    "due_date": due_date,
                    "position": await self._column_size(status_id),
                },
            )
        ).unwrap()
        for label_id in label_ids:
            (await self.gateway.insert("issue_labels", {"issue_id": issue["id"], "label_id": label_id})).unwrap()
        if assignee_id:
            await self._notify_assignee(issue, assignee_id, actor)

        logger.info("Created issue %s in project %s", issue["id"], project_id)
        return cast(IssueRecord, issue)

    async def _validated_changes(self, current: Mapping[str, Any], changes: Mapping[str, Any]) -> dict[str, Any]:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            msg = f"Cannot update field(s): {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        clean: dict[str, Any] = {}
        for key, value in changes.items():
            match key:
                case "title":
                    value, err = validate_text(value, name="title", max_length=self.limits.issue_title_max)
                case "description":
                    value, err = validate_text(
                        value, name="description", max_length=self.limits.issue_description_max, required=False
                    )
                    value = value or None
                case "priority":
                    value, err = validate_priority(value)
                case "due_date":
                    value, err = _validate_due_date(value), None
                case "assignee_id":
                    value, err = (value or None), None
                    if value is not None:
                        await self._check_user(value)
                case "status_id":
                    statuses = await self._statuses(current["project_id"])
                    err = None if value in {s["id"] for s in statuses} else f"Unknown status: {value}"
                case _:
                    err = f"Cannot update field: {key}"
            if err:
                raise ValueError(err)
            if value != current.get(key):
                clean[key] = value
        return clean

    async def _history_values(self, current: Mapping[str, Any], key: str, new: Any) -> tuple[str | None, str | None]:
        match key:
            case "status_id":
                names = {s["id"]: s["name"] for s in await self._statuses(current["project_id"])}
                return names.get(current[key]), names.get(new)
            case "assignee_id":
                return await self._user_name(current[key]), await self._user_name(new)
            case _:
                old = current.get(key)
                return (None if old is None else str(old)), (None if new is None else str(new))

    async def update_issue(self, issue_id: str, changes: Mapping[str, Any], *, actor: str) -> IssueRecord:
        """Apply field changes; ``label_ids`` in ``changes`` replaces the issue's whole label set."""
        current = await self.get_issue(issue_id)
        clean = await self._validated_changes(current, {k: v for k, v in changes.items() if k != "label_ids"})
        label_ids: list[str] | None = None
        if "label_ids" in changes:
            label_ids = await self._check_labels(current["project_id"], changes["label_ids"])
            if set(label_ids) == {label["id"] for label in await self.labels(issue_id)}:
                label_ids = None
        if not clean and label_ids is None:
            return current

        updated: Mapping[str, Any] = current
        if clean:
            values = dict(clean)
            if "status_id" in clean:
                values["position"] = await self._column_size(clean["status_id"])
            rows = (await self.gateway.update("issues", values, filters=[eq("id", issue_id)])).unwrap()
            if not rows:
                raise KeyError(issue_id)
            updated = rows[0]
        if label_ids is not None:
            await self._replace_labels(issue_id, label_ids)

        for key, new in clean.items():
            field_name = HISTORY_FIELDS.get(key)
            if field_name is None:
                continue
            old_value, new_value = await self._history_values(current, key, new)
            (
                await self.gateway.insert(
                    "issue_history",
                    {
                        "issue_id": issue_id,
                        "field": field_name,
                        "old_value": old_value,
                        "new_value": new_value,
                        "changed_by": actor,
                    },
                )
            ).unwrap()

        if "description" in clean:
            await self.cache.invalidate_for(issue_id, "description")
        if clean.get("assignee_id"):
            await self._notify_assignee(updated, clean["assignee_id"], actor)

        changed = sorted(clean) + ([] if label_ids is None else ["labels"])
        logger.info("Updated issue %s (%s)", issue_id, ", ".join(changed))
        return cast(IssueRecord, updated)

    async def delete_issue(self, issue_id: str) -> None:
        await self.get_issue(issue_id)
        (await self.gateway.update("issues", {"deleted_at": now_iso()}, filters=[eq("id", issue_id)])).unwrap()
        logger.info("Deleted issue %s", issue_id)
