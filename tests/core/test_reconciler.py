"""Tests for optimistic list reconciliation: rollback, temporary ids, reload."""

from __future__ import annotations

from typing import TYPE_CHECKING

from jiralite.gateway.base import GatewayError
from jiralite.issue_lists import SUBTASK_BINDING
from jiralite.reconciler import OptimisticList, is_temp_id, new_temp_id
from jiralite.types.enums import NoticeLevel

if TYPE_CHECKING:
    from jiralite.signals import NoticeBoard
    from tests.conftest import FailingGateway, Seeded


async def _checklist(failing: FailingGateway, seeded: Seeded, notices: NoticeBoard, *titles: str) -> OptimisticList:
    lst = OptimisticList(failing, SUBTASK_BINDING, seeded.issues["Login fails"], notices=notices)
    for title in titles:
        assert await lst.add({"title": title})
    notices.drain()
    failing.calls.clear()
    return lst


class TestTempIds:
    def test_prefix(self) -> None:
        tid = new_temp_id()
        assert is_temp_id(tid)
        assert not is_temp_id("0f3c2a")

    async def test_edit_and_toggle_on_temp_id_are_silent(
        self, failing: FailingGateway, seeded: Seeded, notices: NoticeBoard
    ) -> None:
        lst = await _checklist(failing, seeded, notices)
        tid = new_temp_id()
        lst.items.append({"id": tid, "title": "pending", "is_completed": False, "position": 0})
        before = lst.snapshot()

        assert await lst.edit(tid, {"title": "renamed"}) is False
        assert await lst.toggle(tid, "is_completed") is False
        assert lst.items == before
        assert failing.writes() == []
        assert notices.pending == []

    async def test_delete_on_temp_id_is_local_only(
        self, failing: FailingGateway, seeded: Seeded, notices: NoticeBoard
    ) -> None:
        lst = await _checklist(failing, seeded, notices, "kept")
        tid = new_temp_id()
        lst.items.append({"id": tid, "title": "pending", "is_completed": False, "position": 1})

        assert await lst.delete(tid) is False
        assert [i["title"] for i in lst.items] == ["kept"]
        assert failing.writes() == []


class TestAdd:
    async def test_success_reloads_with_server_ids(
        self, failing: FailingGateway, seeded: Seeded, notices: NoticeBoard
    ) -> None:
        lst = await _checklist(failing, seeded, notices, "one")
        assert await lst.add({"title": "two"})
        assert [i["title"] for i in lst.items] == ["one", "two"]
        assert [i["position"] for i in lst.items] == [0, 1]
        assert not any(is_temp_id(i["id"]) for i in lst.items)
        assert [(n.level, n.message) for n in notices.drain()] == [(NoticeLevel.SUCCESS, "Subtask added")]

    async def test_failure_removes_provisional_record(
        self, failing: FailingGateway, seeded: Seeded, notices: NoticeBoard
    ) -> None:
        lst = await _checklist(failing, seeded, notices, "one")
        before = lst.snapshot()
        failing.fail("insert", "subtasks")

        assert await lst.add({"title": "two"}) is False
        assert lst.items == before
        assert [n.message for n in notices.errors()] == ["Failed to add subtask"]
        assert len(notices.pending) == 1

    async def test_raised_failure_is_contained(
        self, failing: FailingGateway, seeded: Seeded, notices: NoticeBoard
    ) -> None:
        lst = await _checklist(failing, seeded, notices)
        failing.fail("insert", "subtasks", mode="raise")
        assert await lst.add({"title": "two"}) is False
        assert lst.items == []


class TestEditToggleDelete:
    async def test_edit_failure_restores_snapshot(
        self, failing: FailingGateway, seeded: Seeded, notices: NoticeBoard
    ) -> None:
        lst = await _checklist(failing, seeded, notices, "one", "two")
        before = lst.snapshot()
        failing.fail("update", "subtasks")

        assert await lst.edit(lst.items[1]["id"], {"title": "changed"}) is False
        assert lst.items == before
        assert [n.message for n in notices.drain()] == ["Failed to update subtask"]

    async def test_edit_success_keeps_change(
        self, failing: FailingGateway, seeded: Seeded, notices: NoticeBoard
    ) -> None:
        lst = await _checklist(failing, seeded, notices, "one")
        assert await lst.edit(lst.items[0]["id"], {"title": "changed"})
        assert lst.items[0]["title"] == "changed"
        await lst.load()
        assert lst.items[0]["title"] == "changed"

    async def test_toggle_failure_restores_snapshot(
        self, failing: FailingGateway, seeded: Seeded, notices: NoticeBoard
    ) -> None:
        lst = await _checklist(failing, seeded, notices, "one")
        before = lst.snapshot()
        failing.fail("update", "subtasks", mode="raise")

        assert await lst.toggle(lst.items[0]["id"], "is_completed") is False
        assert lst.items == before
        assert len(notices.errors()) == 1

    async def test_toggle_flips_flag(self, failing: FailingGateway, seeded: Seeded, notices: NoticeBoard) -> None:
        lst = await _checklist(failing, seeded, notices, "one")
        assert await lst.toggle(lst.items[0]["id"], "is_completed")
        assert lst.items[0]["is_completed"] is True
        assert [(n.level, n.message) for n in notices.drain()] == [(NoticeLevel.SUCCESS, "Subtask updated")]
        await lst.load()
        assert lst.items[0]["is_completed"] is True

    async def test_delete_failure_reinserts_at_original_index(
        self, failing: FailingGateway, seeded: Seeded, notices: NoticeBoard
    ) -> None:
        lst = await _checklist(failing, seeded, notices, "one", "two", "three")
        before = lst.snapshot()
        failing.fail("delete", "subtasks")

        assert await lst.delete(lst.items[1]["id"]) is False
        assert lst.items == before
        assert [n.message for n in notices.drain()] == ["Failed to delete subtask"]

    async def test_update_of_vanished_record_counts_as_failure(
        self, failing: FailingGateway, seeded: Seeded, notices: NoticeBoard
    ) -> None:
        lst = await _checklist(failing, seeded, notices, "one")
        before = lst.snapshot()
        failing.inner.conn.execute("DELETE FROM subtasks")
        failing.inner.conn.commit()

        assert await lst.edit(lst.items[0]["id"], {"title": "ghost"}) is False
        assert lst.items == before


class TestChangeHook:
    async def test_hook_runs_after_confirmed_write(self, failing: FailingGateway, seeded: Seeded, notices: NoticeBoard) -> None:
        fired: list[str] = []

        async def hook() -> None:
            fired.append("changed")

        lst = OptimisticList(failing, SUBTASK_BINDING, seeded.issues["Login fails"], notices=notices, on_change=hook)
        assert await lst.add({"title": "one"})
        assert fired == ["changed"]

        failing.fail("update", "subtasks")
        await lst.edit(lst.items[0]["id"], {"title": "x"})
        assert fired == ["changed"]

    async def test_hook_failure_does_not_undo_write(
        self, failing: FailingGateway, seeded: Seeded, notices: NoticeBoard
    ) -> None:
        async def hook() -> None:
            raise GatewayError("cache down")

        lst = OptimisticList(failing, SUBTASK_BINDING, seeded.issues["Login fails"], notices=notices, on_change=hook)
        assert await lst.add({"title": "one"})
        assert [i["title"] for i in lst.items] == ["one"]


class TestLoad:
    async def test_failed_read_yields_empty(self, failing: FailingGateway, seeded: Seeded, notices: NoticeBoard) -> None:
        lst = await _checklist(failing, seeded, notices, "one")
        failing.fail("select", "subtasks")
        assert await lst.load() == []
