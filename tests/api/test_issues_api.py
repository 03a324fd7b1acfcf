"""Tests for issue detail, comment and subtask endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

import jiralite.dashboard as dash_module
from jiralite.ai.cache import AICache
from jiralite.types.enums import ArtifactType

if TYPE_CHECKING:
    from httpx import AsyncClient

    from tests.conftest import FailingGateway, Seeded


class TestIssueCrud:
    async def test_create_issue(self, client: AsyncClient, seeded: Seeded) -> None:
        resp = await client.post(
            f"/api/projects/{seeded.project_id}/issues",
            json={"actor": seeded.alice, "title": "New bug", "priority": "high"},
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["priority"] == "HIGH"
        assert data["status_id"] == seeded.statuses["Backlog"]

    async def test_create_validation_error(self, client: AsyncClient, seeded: Seeded) -> None:
        resp = await client.post(f"/api/projects/{seeded.project_id}/issues", json={"actor": seeded.alice, "title": ""})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_create_in_unknown_project(self, client: AsyncClient, seeded: Seeded) -> None:
        resp = await client.post("/api/projects/missing/issues", json={"actor": seeded.alice, "title": "x"})
        assert resp.status_code == 404

    async def test_label_ids_must_be_strings(self, client: AsyncClient, seeded: Seeded) -> None:
        resp = await client.post(
            f"/api/projects/{seeded.project_id}/issues",
            json={"actor": seeded.alice, "title": "x", "label_ids": [1]},
        )
        assert resp.status_code == 400

    async def test_detail_includes_history_progress_and_ai(self, client: AsyncClient, seeded: Seeded) -> None:
        issue_id = seeded.issues["Login fails"]
        await client.patch(f"/api/issues/{issue_id}", json={"actor": seeded.bob, "priority": "LOW"})
        await client.post(f"/api/issues/{issue_id}/subtasks", json={"title": "Reproduce"})
        await AICache(seeded.gateway).store(issue_id, ArtifactType.SUMMARY, "Cookie problem.")

        detail = (await client.get(f"/api/issues/{issue_id}")).json()
        assert detail["priority"] == "LOW"
        assert [(h["field"], h["old_value"], h["new_value"]) for h in detail["history"]] == [("priority", "MEDIUM", "LOW")]
        assert detail["subtask_progress"] == {"completed": 0, "total": 1}
        assert detail["ai"] == {"summary": "Cookie problem."}
        assert detail["labels"] == []

    async def test_detail_missing(self, client: AsyncClient) -> None:
        resp = await client.get("/api/issues/missing")
        assert resp.status_code == 404

    async def test_patch_unknown_field(self, client: AsyncClient, seeded: Seeded) -> None:
        resp = await client.patch(f"/api/issues/{seeded.issues['Fix typo']}", json={"actor": seeded.alice, "position": 9})
        assert resp.status_code == 400

    async def test_patch_replaces_labels(self, client: AsyncClient, seeded: Seeded) -> None:
        issue_id = seeded.issues["Fix typo"]
        bug = (await seeded.gateway.insert("project_labels", {"project_id": seeded.project_id, "name": "bug"})).unwrap()
        docs = (await seeded.gateway.insert("project_labels", {"project_id": seeded.project_id, "name": "docs"})).unwrap()

        resp = await client.patch(f"/api/issues/{issue_id}", json={"actor": seeded.alice, "label_ids": [bug["id"]]})
        assert resp.status_code == 200
        assert [label["name"] for label in resp.json()["labels"]] == ["bug"]

        resp = await client.patch(f"/api/issues/{issue_id}", json={"actor": seeded.alice, "label_ids": [docs["id"]]})
        assert [label["name"] for label in resp.json()["labels"]] == ["docs"]
        detail = (await client.get(f"/api/issues/{issue_id}")).json()
        assert [label["name"] for label in detail["labels"]] == ["docs"]

    async def test_patch_unknown_label_is_400(self, client: AsyncClient, seeded: Seeded) -> None:
        resp = await client.patch(
            f"/api/issues/{seeded.issues['Fix typo']}", json={"actor": seeded.alice, "label_ids": ["nope"]}
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_patch_requires_actor(self, client: AsyncClient, seeded: Seeded) -> None:
        resp = await client.patch(f"/api/issues/{seeded.issues['Fix typo']}", json={"title": "x"})
        assert resp.status_code == 400

    async def test_delete(self, client: AsyncClient, seeded: Seeded) -> None:
        issue_id = seeded.issues["Fix typo"]
        assert (await client.delete(f"/api/issues/{issue_id}")).json() == {"deleted": issue_id}
        assert (await client.get(f"/api/issues/{issue_id}")).status_code == 404
        assert (await client.delete(f"/api/issues/{issue_id}")).status_code == 404


class TestComments:
    async def test_add_list_edit_delete(self, client: AsyncClient, seeded: Seeded) -> None:
        issue_id = seeded.issues["Login fails"]
        resp = await client.post(f"/api/issues/{issue_id}/comments", json={"actor": seeded.bob, "content": "Seen it too"})
        assert resp.status_code == 201
        body = resp.json()
        assert [c["content"] for c in body["comments"]] == ["Seen it too"]
        assert body["notices"] == [{"level": "success", "message": "Comment added"}]
        comment_id = body["comments"][0]["id"]

        resp = await client.patch(f"/api/issues/{issue_id}/comments/{comment_id}", json={"content": "Seen it on 17.2"})
        assert resp.json()["comments"][0]["content"] == "Seen it on 17.2"

        resp = await client.delete(f"/api/issues/{issue_id}/comments/{comment_id}")
        assert resp.json()["comments"] == []
        assert (await client.get(f"/api/issues/{issue_id}/comments")).json() == []

    async def test_blank_comment_is_400(self, client: AsyncClient, seeded: Seeded) -> None:
        resp = await client.post(
            f"/api/issues/{seeded.issues['Login fails']}/comments", json={"actor": seeded.bob, "content": "  "}
        )
        assert resp.status_code == 400

    async def test_unknown_issue_or_comment(self, client: AsyncClient, seeded: Seeded) -> None:
        assert (await client.get("/api/issues/missing/comments")).status_code == 404
        resp = await client.delete(f"/api/issues/{seeded.issues['Login fails']}/comments/missing")
        assert resp.status_code == 404

    async def test_write_failure_is_409(self, client: AsyncClient, seeded: Seeded, failing: FailingGateway) -> None:
        failing.fail("insert", "comments")
        dash_module._gateway = failing  # type: ignore[assignment]
        resp = await client.post(
            f"/api/issues/{seeded.issues['Login fails']}/comments", json={"actor": seeded.bob, "content": "lost"}
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == {"message": "Failed to add comment", "code": "WRITE_FAILED", "details": {}}


class TestSubtasks:
    async def test_add_toggle_delete(self, client: AsyncClient, seeded: Seeded) -> None:
        issue_id = seeded.issues["Refactor auth"]
        for title in ("Extract session", "Extract token"):
            resp = await client.post(f"/api/issues/{issue_id}/subtasks", json={"title": title})
            assert resp.status_code == 201
        subtasks = (await client.get(f"/api/issues/{issue_id}/subtasks")).json()
        assert [(s["title"], s["position"]) for s in subtasks] == [("Extract session", 0), ("Extract token", 1)]

        resp = await client.post(f"/api/issues/{issue_id}/subtasks/{subtasks[0]['id']}/toggle")
        assert resp.json()["subtasks"][0]["is_completed"] is True

        resp = await client.delete(f"/api/issues/{issue_id}/subtasks/{subtasks[1]['id']}")
        assert [s["title"] for s in resp.json()["subtasks"]] == ["Extract session"]

    async def test_blank_title_is_400(self, client: AsyncClient, seeded: Seeded) -> None:
        resp = await client.post(f"/api/issues/{seeded.issues['Refactor auth']}/subtasks", json={"title": ""})
        assert resp.status_code == 400

    async def test_toggle_unknown(self, client: AsyncClient, seeded: Seeded) -> None:
        resp = await client.post(f"/api/issues/{seeded.issues['Refactor auth']}/subtasks/missing/toggle")
        assert resp.status_code == 404

    async def test_toggle_failure_is_409(self, client: AsyncClient, seeded: Seeded, failing: FailingGateway) -> None:
        issue_id = seeded.issues["Refactor auth"]
        added = (await client.post(f"/api/issues/{issue_id}/subtasks", json={"title": "one"})).json()
        failing.fail("update", "subtasks")
        dash_module._gateway = failing  # type: ignore[assignment]
        resp = await client.post(f"/api/issues/{issue_id}/subtasks/{added['subtasks'][0]['id']}/toggle")
        assert resp.status_code == 409
        assert resp.json()["error"]["message"] == "Failed to change subtask"
