"""Concrete optimistic lists attached to an issue: comments and subtasks."""

from __future__ import annotations

from jiralite.ai.cache import AICache
from jiralite.config import DEFAULT_LIMITS, Limits
from jiralite.gateway.base import RecordGateway
from jiralite.reconciler import ListBinding, OptimisticList
from jiralite.signals import NoticeBoard
from jiralite.validation import validate_text

COMMENT_BINDING = ListBinding(
    table="comments",
    parent_column="issue_id",
    label="comment",
    soft_delete=True,
)

SUBTASK_BINDING = ListBinding(
    table="subtasks",
    parent_column="issue_id",
    label="subtask",
    positioned=True,
    order_by="position",
    defaults={"is_completed": False},
)


class CommentThread(OptimisticList):
    """Comments under one issue. Any confirmed change stales the comment summary."""

    def __init__(
        self,
        gateway: RecordGateway,
        issue_id: str,
        *,
        notices: NoticeBoard,
        cache: AICache | None = None,
        limits: Limits = DEFAULT_LIMITS,
    ) -> None:
        super().__init__(gateway, COMMENT_BINDING, issue_id, notices=notices, on_change=self._invalidate_summary)
        self.cache = cache or AICache(gateway)
        self.limits = limits

    async def _invalidate_summary(self) -> None:
        await self.cache.invalidate_for(self.parent_id, "comments")

    def _checked(self, content: object) -> str | None:
        text, err = validate_text(content, name="comment", max_length=self.limits.comment_max)
        if err:
            self.notices.error(err)
            return None
        return text

    async def add_comment(self, content: str, *, user_id: str) -> bool:
        text = self._checked(content)
        if text is None:
            return False
        return await self.add({"content": text, "user_id": user_id, "deleted_at": None})

    async def edit_comment(self, comment_id: str, content: str) -> bool:
        text = self._checked(content)
        if text is None:
            return False
        return await self.edit(comment_id, {"content": text})

    async def delete_comment(self, comment_id: str) -> bool:
        return await self.delete(comment_id)


class SubtaskChecklist(OptimisticList):
    """Ordered subtasks under one issue, capped per issue."""

    def __init__(
        self,
        gateway: RecordGateway,
        issue_id: str,
        *,
        notices: NoticeBoard,
        limits: Limits = DEFAULT_LIMITS,
    ) -> None:
        super().__init__(gateway, SUBTASK_BINDING, issue_id, notices=notices)
        self.limits = limits

    def _checked(self, title: object) -> str | None:
        text, err = validate_text(title, name="subtask title", max_length=self.limits.subtask_title_max)
        if err:
            self.notices.error(err)
            return None
        return text

    async def add_subtask(self, title: str) -> bool:
        text = self._checked(title)
        if text is None:
            return False
        cap = self.limits.max_subtasks_per_issue
        if len(self.items) >= cap:
            self.notices.error(f"An issue can have at most {cap} subtasks")
            return False
        return await self.add({"title": text})

    async def rename_subtask(self, subtask_id: str, title: str) -> bool:
        text = self._checked(title)
        if text is None:
            return False
        return await self.edit(subtask_id, {"title": text})

    async def toggle_subtask(self, subtask_id: str) -> bool:
        return await self.toggle(subtask_id, "is_completed")

    async def delete_subtask(self, subtask_id: str) -> bool:
        return await self.delete(subtask_id)

    def progress(self) -> tuple[int, int]:
        """``(completed, total)`` over the current in-memory list."""
        return (sum(1 for s in self.items if s.get("is_completed")), len(self.items))
