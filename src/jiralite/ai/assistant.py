"""AI features for an issue: cached artifacts plus one-shot advisory calls.

Cached generation (summary, suggestion, comment summary) runs in a fixed
order: input precondition, rate limit, generate, store. A failed step stops
the chain and is reported once through the notice board; nothing is raised
to the caller.

Label suggestion and duplicate detection are advisory: no cache, no rate
limit, and malformed model output degrades to an empty list.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, assert_never, cast

from jiralite.ai.cache import AICache
from jiralite.ai.gemini import AIEndpointError, TextGenerator
from jiralite.ai.prompts import (
    comment_summary_prompt,
    duplicates_prompt,
    label_prompt,
    parse_duplicates,
    parse_label_names,
    suggestion_prompt,
    summary_prompt,
)
from jiralite.ai.rate_limit import RateLimiter, rate_limit_message
from jiralite.config import DEFAULT_LIMITS, Limits
from jiralite.gateway.base import GatewayError, RecordGateway, eq, in_, is_null
from jiralite.signals import NoticeBoard
from jiralite.timeutil import utcnow
from jiralite.types.core import DuplicateCandidate, LabelRecord
from jiralite.types.enums import ArtifactType

logger = logging.getLogger(__name__)

ANONYMOUS_AUTHOR = "Anonymous"
MAX_DUPLICATES = 3


class AIFailure(StrEnum):
    PRECONDITION = "precondition"
    RATE_LIMITED = "rate_limited"
    ENDPOINT = "endpoint"
    STORAGE = "storage"


@dataclass(frozen=True)
class AIResult:
    ok: bool
    content: str = ""
    error: str | None = None
    failure: AIFailure | None = None
    retry_after: int | None = None


def artifact_label(artifact_type: ArtifactType) -> str:
    match artifact_type:
        case ArtifactType.SUMMARY:
            return "Summary"
        case ArtifactType.SUGGESTION:
            return "Suggestion"
        case ArtifactType.COMMENT_SUMMARY:
            return "Comment summary"
        case _:
            assert_never(artifact_type)


class AIAssistant:
    def __init__(
        self,
        gateway: RecordGateway,
        generator: TextGenerator,
        notices: NoticeBoard,
        *,
        limits: Limits = DEFAULT_LIMITS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.gateway = gateway
        self.generator = generator
        self.notices = notices
        self.limits = limits
        self.cache = AICache(gateway, clock=clock)
        self.rate_limiter = RateLimiter(
            gateway,
            ceiling=limits.ai_rate_limit_per_minute,
            window_seconds=limits.ai_rate_limit_window_seconds,
            clock=clock,
        )

    # -- cached artifacts -----------------------------------------------------

    def _description_too_short(self, description: str | None) -> AIResult | None:
        minimum = self.limits.ai_min_description_length
        if len(description or "") <= minimum:
            return self._reject(AIFailure.PRECONDITION, f"Description must be longer than {minimum} characters")
        return None

    async def generate_summary(self, issue: Mapping[str, Any], *, user_id: str) -> AIResult:
        rejected = self._description_too_short(issue.get("description"))
        if rejected is not None:
            return rejected
        return await self._generate(issue["id"], ArtifactType.SUMMARY, user_id, summary_prompt(issue["description"]))

    async def generate_suggestion(self, issue: Mapping[str, Any], *, user_id: str) -> AIResult:
        rejected = self._description_too_short(issue.get("description"))
        if rejected is not None:
            return rejected
        prompt = suggestion_prompt(issue.get("title") or "", issue["description"])
        return await self._generate(issue["id"], ArtifactType.SUGGESTION, user_id, prompt)

    async def generate_comment_summary(self, issue_id: str, *, user_id: str) -> AIResult:
        comments = await self._comment_lines(issue_id)
        minimum = self.limits.ai_min_comments_for_summary
        if len(comments) < minimum:
            return self._reject(AIFailure.PRECONDITION, f"At least {minimum} comments are needed for a summary")
        return await self._generate(issue_id, ArtifactType.COMMENT_SUMMARY, user_id, comment_summary_prompt(comments))

    async def _comment_lines(self, issue_id: str) -> list[str]:
        """Live comments as ``"<author>: <content>"``, oldest first. Read failure -> []."""
        result = await self.gateway.select(
            "comments",
            filters=[eq("issue_id", issue_id), is_null("deleted_at")],
            order_by="created_at",
        )
        if not result.ok:
            logger.warning("Reading comments for %s failed: %s", issue_id, result.error)
            return []
        comments = result.data or []
        names: dict[str, str] = {}
        author_ids = sorted({c["user_id"] for c in comments})
        if author_ids:
            users = await self.gateway.select("users", filters=[in_("id", author_ids)])
            names = {u["id"]: u["name"] for u in users.data or []} if users.ok else {}
        return [f"{names.get(c['user_id']) or ANONYMOUS_AUTHOR}: {c['content']}" for c in comments]

    async def _generate(self, issue_id: str, artifact_type: ArtifactType, user_id: str, prompt: str) -> AIResult:
        label = artifact_label(artifact_type)
        try:
            decision = await self.rate_limiter.check(user_id)
        except GatewayError as exc:
            logger.error("Rate limit check failed for %s: %s", user_id, exc)
            return self._reject(AIFailure.STORAGE, f"{label} could not be generated")
        if not decision.allowed:
            return self._reject(
                AIFailure.RATE_LIMITED,
                rate_limit_message(decision),
                retry_after=decision.remaining_seconds,
            )

        try:
            text = (await self.generator.generate(prompt)).strip()
        except AIEndpointError as exc:
            logger.warning("%s generation failed for %s: %s", label, issue_id, exc)
            return self._reject(AIFailure.ENDPOINT, f"Failed to generate {label.lower()}")
        if not text:
            return self._reject(AIFailure.ENDPOINT, f"Failed to generate {label.lower()}: empty response")

        try:
            await self.cache.store(issue_id, artifact_type, text)
        except GatewayError as exc:
            logger.error("Storing %s for %s failed: %s", artifact_type, issue_id, exc)
            return self._reject(AIFailure.STORAGE, f"{label} could not be saved")

        self.notices.success(f"{label} generated")
        return AIResult(ok=True, content=text)

    def _reject(self, failure: AIFailure, message: str, *, retry_after: int | None = None) -> AIResult:
        self.notices.error(message)
        return AIResult(ok=False, error=message, failure=failure, retry_after=retry_after)

    # -- advisory calls -------------------------------------------------------

    async def suggest_labels(self, project_id: str, title: str, description: str | None = None) -> list[LabelRecord]:
        result = await self.gateway.select("project_labels", filters=[eq("project_id", project_id)], order_by="name")
        if not result.ok:
            logger.warning("Reading labels for %s failed: %s", project_id, result.error)
            return []
        labels = cast(list[LabelRecord], result.data or [])
        if not labels:
            return []
        names = [label["name"] for label in labels]
        limit = self.limits.ai_max_suggested_labels
        try:
            text = await self.generator.generate(label_prompt(title, description or "", names, max_labels=limit))
        except AIEndpointError as exc:
            logger.warning("Label suggestion failed for %s: %s", project_id, exc)
            self.notices.error("Failed to suggest labels")
            return []
        picked = parse_label_names(text, names, limit=limit)
        by_name = {label["name"]: label for label in labels}
        return [by_name[name] for name in picked]

    async def find_duplicates(self, project_id: str, title: str) -> list[DuplicateCandidate]:
        result = await self.gateway.select(
            "issues",
            filters=[eq("project_id", project_id), is_null("deleted_at")],
            order_by="created_at",
            descending=True,
            limit=self.limits.ai_duplicate_scan_window,
        )
        if not result.ok:
            logger.warning("Reading issues for %s failed: %s", project_id, result.error)
            return []
        issues = result.data or []
        if not issues:
            return []
        prompt = duplicates_prompt(
            title,
            issues[: self.limits.ai_duplicate_prompt_window],
            max_results=MAX_DUPLICATES,
        )
        try:
            text = await self.generator.generate(prompt)
        except AIEndpointError as exc:
            logger.warning("Duplicate detection failed for %s: %s", project_id, exc)
            self.notices.error("Failed to check for duplicates")
            return []
        return parse_duplicates(text, issues, limit=MAX_DUPLICATES)
