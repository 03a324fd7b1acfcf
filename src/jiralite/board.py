"""Kanban board: status columns of issue cards with drag-and-drop moves.

A move is applied to the in-memory cards first, then persisted. Positions in
every column touched by a move are renumbered densely (0..n-1): the target
column always, and the column the card left when it changes status. Any
remote failure puts the cards already written back where they were and
restores the whole pre-drag card list, not a partial undo. If that undo fails
too the board reloads, so it never disagrees with the store.

WIP limits are advisory: an over-limit column is flagged, never refused.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from jiralite.gateway.base import GatewayError, RecordGateway, eq, is_null
from jiralite.signals import NoticeBoard

logger = logging.getLogger(__name__)

Card = dict[str, Any]


@dataclass(frozen=True)
class DropLocation:
    status_id: str
    index: int


class MoveOutcome(StrEnum):
    NOOP = "noop"
    MOVED = "moved"
    FAILED = "failed"


class KanbanBoard:
    def __init__(self, gateway: RecordGateway, project_id: str, *, notices: NoticeBoard) -> None:
        self.gateway = gateway
        self.project_id = project_id
        self.notices = notices
        self.is_archived = False
        self.statuses: list[dict[str, Any]] = []
        self.cards: list[Card] = []

    async def load(self) -> None:
        """Re-sync statuses and cards from the gateway; failed reads leave them empty."""
        project = await self.gateway.select("projects", filters=[eq("id", self.project_id)], limit=1)
        rows = project.data if project.ok else None
        self.is_archived = bool(rows and rows[0].get("is_archived"))

        statuses = await self.gateway.select("project_statuses", filters=[eq("project_id", self.project_id)], order_by="position")
        if not statuses.ok:
            logger.warning("Loading statuses for %s failed: %s", self.project_id, statuses.error)
        self.statuses = list(statuses.data or []) if statuses.ok else []

        cards = await self.gateway.select(
            "issues",
            filters=[eq("project_id", self.project_id), is_null("deleted_at")],
            order_by="position",
        )
        if not cards.ok:
            logger.warning("Loading cards for %s failed: %s", self.project_id, cards.error)
        self.cards = list(cards.data or []) if cards.ok else []

    # -- queries --------------------------------------------------------------

    def status(self, status_id: str) -> dict[str, Any] | None:
        return next((s for s in self.statuses if s["id"] == status_id), None)

    def cards_in(self, status_id: str) -> list[Card]:
        return sorted((c for c in self.cards if c["status_id"] == status_id), key=lambda c: c["position"])

    def columns(self) -> list[tuple[dict[str, Any], list[Card]]]:
        return [(s, self.cards_in(s["id"])) for s in self.statuses]

    def is_over_limit(self, status_id: str) -> bool:
        status = self.status(status_id)
        if status is None or not status.get("wip_limit"):
            return False
        return len(self.cards_in(status_id)) > status["wip_limit"]

    def locate(self, card_id: str) -> DropLocation | None:
        for card in self.cards:
            if card["id"] == card_id:
                ordered = self.cards_in(card["status_id"])
                return DropLocation(card["status_id"], [c["id"] for c in ordered].index(card_id))
        return None

    # -- moves ----------------------------------------------------------------

    def _apply_move(self, card_id: str, destination: DropLocation) -> tuple[str, list[Card]]:
        """Mutate ``cards`` for the move; return (old status id, cards whose fields changed)."""
        moved = next(c for c in self.cards if c["id"] == card_id)
        old_status = moved["status_id"]

        target = [c for c in self.cards_in(destination.status_id) if c["id"] != card_id]
        index = max(0, min(destination.index, len(target)))
        target.insert(index, moved)
        placement: dict[str, tuple[str, int]] = {c["id"]: (destination.status_id, i) for i, c in enumerate(target)}
        if old_status != destination.status_id:
            left = [c for c in self.cards_in(old_status) if c["id"] != card_id]
            placement.update({c["id"]: (old_status, i) for i, c in enumerate(left)})

        changed: list[Card] = []
        updated: list[Card] = []
        for card in self.cards:
            if card["id"] not in placement:
                updated.append(card)
                continue
            status_id, position = placement[card["id"]]
            if card["status_id"] == status_id and card["position"] == position:
                updated.append(card)
                continue
            new_card = {**card, "status_id": status_id, "position": position}
            updated.append(new_card)
            changed.append(new_card)
        self.cards = updated
        return old_status, changed

    async def move_card(
        self,
        card_id: str,
        source: DropLocation,
        destination: DropLocation | None,
        *,
        actor: str,
    ) -> MoveOutcome:
        if destination is None or self.is_archived:
            return MoveOutcome.NOOP
        if source == destination:
            return MoveOutcome.NOOP
        if self.status(destination.status_id) is None or not any(c["id"] == card_id for c in self.cards):
            logger.warning("Ignoring drop of %s onto unknown target %s", card_id, destination)
            return MoveOutcome.NOOP

        before = copy.deepcopy(self.cards)
        old_status, changed = self._apply_move(card_id, destination)
        if not changed:
            return MoveOutcome.NOOP

        written: list[Card] = []
        try:
            await self._persist(card_id, changed, written)
            if old_status != destination.status_id:
                await self._record_status_change(card_id, old_status, destination.status_id, actor=actor)
        except GatewayError as exc:
            logger.warning("Moving %s to %s failed: %s", card_id, destination, exc)
            await self._undo(written, before)
            self.notices.error("Failed to move issue")
            return MoveOutcome.FAILED

        self.notices.success("Issue moved")
        await self.load()
        return MoveOutcome.MOVED

    async def _persist(self, card_id: str, changed: list[Card], written: list[Card]) -> None:
        """Write the moved card first, then sibling positions; ``written`` collects each confirmed write."""
        ordered = sorted(changed, key=lambda c: c["id"] != card_id)
        for card in ordered:
            values: dict[str, Any] = {"position": card["position"]}
            if card["id"] == card_id:
                values["status_id"] = card["status_id"]
            result = await self.gateway.update("issues", values, filters=[eq("id", card["id"])])
            if not result.unwrap():
                raise GatewayError(f"Issue not found: {card['id']}", "NOT_FOUND")
            written.append(card)

    async def _record_status_change(self, card_id: str, old_status: str, new_status: str, *, actor: str) -> None:
        old = self.status(old_status)
        new = self.status(new_status)
        history = await self.gateway.insert(
            "issue_history",
            {
                "issue_id": card_id,
                "field": "status",
                "old_value": old["name"] if old else None,
                "new_value": new["name"] if new else None,
                "changed_by": actor,
            },
        )
        history.unwrap()

    async def _undo(self, written: list[Card], before: list[Card]) -> None:
        """Put already-written cards back where they were, then restore the snapshot.

        When a compensating write fails as well the board reloads, so it shows
        what the store holds rather than the snapshot.
        """
        original = {c["id"]: c for c in before}
        try:
            for card in reversed(written):
                prior = original[card["id"]]
                result = await self.gateway.update(
                    "issues",
                    {"status_id": prior["status_id"], "position": prior["position"]},
                    filters=[eq("id", card["id"])],
                )
                result.unwrap()
        except GatewayError as exc:
            logger.error("Undoing a partial move on %s failed, reloading: %s", self.project_id, exc)
            await self.load()
            return
        self.cards = before
