"""AI artifact cache: supersede-on-write, invalidate-on-edit.

Per (issue_id, type) an artifact is Absent, Active or Invalidated. Storing a
new artifact first invalidates every active row of that type, so at most one
row with ``invalidated_at IS NULL`` exists per pair. Invalidated rows are kept
as history and never deleted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import cast

from jiralite.gateway.base import GatewayError, RecordGateway, eq, in_, is_null
from jiralite.timeutil import to_iso, utcnow
from jiralite.types.core import ArtifactRecord
from jiralite.types.enums import ArtifactState, ArtifactType

logger = logging.getLogger(__name__)

_TABLE = "ai_cache"

# Which cached artifacts go stale when a given source changes.
INVALIDATION_TARGETS: dict[str, frozenset[ArtifactType]] = {
    "description": frozenset({ArtifactType.SUMMARY, ArtifactType.SUGGESTION}),
    "comments": frozenset({ArtifactType.COMMENT_SUMMARY}),
}


def invalidation_targets(source: str) -> frozenset[ArtifactType]:
    """Artifact types derived from *source*; empty for fields no artifact reads."""
    return INVALIDATION_TARGETS.get(source, frozenset())


class AICache:
    def __init__(self, gateway: RecordGateway, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.gateway = gateway
        self._clock = clock

    async def active(self, issue_id: str, artifact_type: ArtifactType) -> ArtifactRecord | None:
        """Newest non-invalidated artifact, or None (also on a failed read)."""
        result = await self.gateway.select(
            _TABLE,
            filters=[eq("issue_id", issue_id), eq("type", artifact_type), is_null("invalidated_at")],
            order_by="created_at",
            descending=True,
            limit=1,
        )
        if not result.ok:
            logger.warning("Reading %s artifact for %s failed: %s", artifact_type, issue_id, result.error)
            return None
        rows = result.data or []
        return cast(ArtifactRecord, rows[0]) if rows else None

    async def active_for_issue(self, issue_id: str) -> dict[ArtifactType, ArtifactRecord]:
        found: dict[ArtifactType, ArtifactRecord] = {}
        for artifact_type in ArtifactType:
            record = await self.active(issue_id, artifact_type)
            if record is not None:
                found[artifact_type] = record
        return found

    async def state(self, issue_id: str, artifact_type: ArtifactType) -> ArtifactState:
        if await self.active(issue_id, artifact_type) is not None:
            return ArtifactState.ACTIVE
        total = await self.gateway.count(_TABLE, filters=[eq("issue_id", issue_id), eq("type", artifact_type)])
        if total.ok and (total.data or 0) > 0:
            return ArtifactState.INVALIDATED
        return ArtifactState.ABSENT

    async def invalidate(self, issue_id: str, types: Iterable[ArtifactType]) -> int:
        """Mark every active artifact of *types* for *issue_id* stale.

        Returns the number of rows invalidated. Raises ``GatewayError`` when
        the backend rejects the write.
        """
        wanted = sorted(set(types))
        if not wanted:
            return 0
        result = await self.gateway.update(
            _TABLE,
            {"invalidated_at": to_iso(self._clock())},
            filters=[eq("issue_id", issue_id), in_("type", wanted), is_null("invalidated_at")],
        )
        rows = result.unwrap()
        if rows:
            logger.info("Invalidated %d AI artifact(s) for %s: %s", len(rows), issue_id, ", ".join(wanted))
        return len(rows)

    async def invalidate_for(self, issue_id: str, source: str) -> int:
        return await self.invalidate(issue_id, invalidation_targets(source))

    async def store(self, issue_id: str, artifact_type: ArtifactType, content: str) -> ArtifactRecord:
        """Supersede the active artifact of this type with a fresh one."""
        await self.invalidate(issue_id, [artifact_type])
        result = await self.gateway.insert(
            _TABLE,
            {"issue_id": issue_id, "type": artifact_type, "content": content, "invalidated_at": None},
        )
        record = result.unwrap()
        if record is None:
            raise GatewayError("Insert returned no row", "EMPTY_RESULT")
        return cast(ArtifactRecord, record)
