"""Optimistic list reconciliation for child collections of an issue.

An ``OptimisticList`` applies add/edit/delete/toggle to its in-memory
``items`` immediately, then confirms or undoes the change once the remote
write resolves. Rules:

- Add appends a provisional record with a ``temp-`` id; on success the whole
  list is reloaded from the gateway (the temporary id is never patched), on
  failure the provisional record is removed again.
- Edit and toggle on a temporary id are silent no-ops; delete on a temporary
  id only drops it locally.
- Any remote failure restores the pre-operation snapshot and posts one error
  notice. Nothing is retried and no exception escapes an operation.

Each instance owns its list exclusively; mutations are not serialized, so two
overlapping writes to the same record are last-write-wins.
"""

from __future__ import annotations

import copy
import logging
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from jiralite.gateway.base import GatewayError, GatewayResult, RecordGateway, eq, is_null
from jiralite.signals import NoticeBoard
from jiralite.timeutil import now_iso

logger = logging.getLogger(__name__)

TEMP_ID_PREFIX = "temp-"

ChangeHook = Callable[[], Awaitable[None]]
Record = dict[str, Any]


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid.uuid4().hex[:12]}"


def is_temp_id(record_id: str) -> bool:
    return record_id.startswith(TEMP_ID_PREFIX)


@dataclass(frozen=True)
class ListBinding:
    """How a collection maps onto its table."""

    table: str
    parent_column: str
    label: str
    positioned: bool = False
    soft_delete: bool = False
    order_by: str = "created_at"
    defaults: Mapping[str, Any] = field(default_factory=dict)


class OptimisticList:
    def __init__(
        self,
        gateway: RecordGateway,
        binding: ListBinding,
        parent_id: str,
        *,
        notices: NoticeBoard,
        on_change: ChangeHook | None = None,
    ) -> None:
        self.gateway = gateway
        self.binding = binding
        self.parent_id = parent_id
        self.notices = notices
        self.on_change = on_change
        self.items: list[Record] = []

    # -- reads ----------------------------------------------------------------

    async def load(self) -> list[Record]:
        """Replace ``items`` with the source of truth. A failed read yields []."""
        filters = [eq(self.binding.parent_column, self.parent_id)]
        if self.binding.soft_delete:
            filters.append(is_null("deleted_at"))
        result = await self.gateway.select(self.binding.table, filters=filters, order_by=self.binding.order_by)
        if result.ok:
            self.items = list(result.data or [])
        else:
            logger.warning("Loading %s for %s failed: %s", self.binding.table, self.parent_id, result.error)
            self.items = []
        return self.items

    def snapshot(self) -> list[Record]:
        return copy.deepcopy(self.items)

    def _index(self, record_id: str) -> int | None:
        for idx, item in enumerate(self.items):
            if item["id"] == record_id:
                return idx
        return None

    # -- mutations ------------------------------------------------------------

    async def add(self, values: Mapping[str, Any]) -> bool:
        temp_id = new_temp_id()
        provisional: Record = {
            **self.binding.defaults,
            **values,
            "id": temp_id,
            self.binding.parent_column: self.parent_id,
        }
        if self.binding.positioned:
            provisional["position"] = len(self.items)
        self.items.append(provisional)

        payload = {k: v for k, v in provisional.items() if k != "id"}
        if not await self._write(self.gateway.insert(self.binding.table, payload), f"add {self.binding.label}"):
            idx = self._index(temp_id)
            if idx is not None:
                del self.items[idx]
            self.notices.error(f"Failed to add {self.binding.label}")
            return False

        await self._changed()
        self.notices.success(f"{self.binding.label.capitalize()} added")
        await self.load()
        return True

    async def edit(self, record_id: str, changes: Mapping[str, Any]) -> bool:
        if is_temp_id(record_id):
            return False
        idx = self._index(record_id)
        if idx is None:
            return False
        before = copy.deepcopy(self.items[idx])
        self.items[idx] = {**before, **changes}

        write = self.gateway.update(self.binding.table, dict(changes), filters=[eq("id", record_id)])
        if not await self._write(write, f"edit {self.binding.label}"):
            self._restore(record_id, before)
            self.notices.error(f"Failed to update {self.binding.label}")
            return False

        await self._changed()
        self.notices.success(f"{self.binding.label.capitalize()} updated")
        return True

    async def delete(self, record_id: str) -> bool:
        idx = self._index(record_id)
        if idx is None:
            return False
        if is_temp_id(record_id):
            del self.items[idx]
            return False
        removed = self.items.pop(idx)

        if self.binding.soft_delete:
            write = self.gateway.update(self.binding.table, {"deleted_at": now_iso()}, filters=[eq("id", record_id)])
        else:
            write = self.gateway.delete(self.binding.table, filters=[eq("id", record_id)])
        if not await self._write(write, f"delete {self.binding.label}"):
            self.items.insert(min(idx, len(self.items)), removed)
            if self.binding.positioned:
                self.items.sort(key=lambda item: item.get("position", 0))
            self.notices.error(f"Failed to delete {self.binding.label}")
            return False

        await self._changed()
        self.notices.success(f"{self.binding.label.capitalize()} deleted")
        return True

    async def toggle(self, record_id: str, field_name: str) -> bool:
        if is_temp_id(record_id):
            return False
        idx = self._index(record_id)
        if idx is None:
            return False
        before = copy.deepcopy(self.items[idx])
        flipped = not bool(before.get(field_name))
        self.items[idx] = {**before, field_name: flipped}

        write = self.gateway.update(self.binding.table, {field_name: flipped}, filters=[eq("id", record_id)])
        if not await self._write(write, f"toggle {self.binding.label}"):
            self._restore(record_id, before)
            self.notices.error(f"Failed to change {self.binding.label}")
            return False

        await self._changed()
        self.notices.success(f"{self.binding.label.capitalize()} updated")
        return True

    # -- helpers --------------------------------------------------------------

    async def _write(self, pending: Awaitable[GatewayResult[Any]], what: str) -> bool:
        """Await a remote write; True on success, False (logged) on any gateway failure."""
        try:
            result = await pending
        except GatewayError as exc:
            logger.warning("Could not %s on %s: %s", what, self.parent_id, exc)
            return False
        if not result.ok:
            logger.warning("Could not %s on %s: %s", what, self.parent_id, result.error)
            return False
        if isinstance(result.data, list) and not result.data:
            logger.warning("Could not %s on %s: record no longer exists", what, self.parent_id)
            return False
        return True

    def _restore(self, record_id: str, before: Record) -> None:
        idx = self._index(record_id)
        if idx is not None:
            self.items[idx] = before

    async def _changed(self) -> None:
        """Run the change hook; its failure never undoes a confirmed write."""
        if self.on_change is None:
            return
        try:
            await self.on_change()
        except GatewayError as exc:
            logger.warning("Change hook for %s failed: %s", self.parent_id, exc)
