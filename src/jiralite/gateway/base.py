"""Record gateway contract: filters, the value-or-error result, and the Protocol.

The gateway stands in for the hosted relational store. Backend rejections
come back as ``GatewayResult(error=...)``; transport-level failures are raised
as ``GatewayUnavailable``.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, Literal, Protocol, TypeVar

T = TypeVar("T")

FilterOp = Literal["eq", "neq", "is_null", "not_null", "in", "gt", "gte", "lt", "lte"]


class GatewayError(Exception):
    """A write or read the backend rejected (constraint, unknown column, ...)."""

    def __init__(self, message: str, code: str = "GATEWAY_ERROR") -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class GatewayUnavailable(GatewayError):
    """The backend could not be reached at all (closed, locked, I/O failure)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="UNAVAILABLE")


@dataclass(frozen=True)
class GatewayResult(Generic[T]):
    data: T | None = None
    error: GatewayError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return ``data`` or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.data  # type: ignore[return-value]


@dataclass(frozen=True)
class Filter:
    column: str
    op: FilterOp
    value: Any = None


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def neq(column: str, value: Any) -> Filter:
    return Filter(column, "neq", value)


def is_null(column: str) -> Filter:
    return Filter(column, "is_null")


def not_null(column: str) -> Filter:
    return Filter(column, "not_null")


def in_(column: str, values: Sequence[Any]) -> Filter:
    return Filter(column, "in", tuple(values))


def gt(column: str, value: Any) -> Filter:
    return Filter(column, "gt", value)


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def lt(column: str, value: Any) -> Filter:
    return Filter(column, "lt", value)


def lte(column: str, value: Any) -> Filter:
    return Filter(column, "lte", value)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    count: int
    window_start: datetime
    remaining_seconds: int = 0

    @classmethod
    def rejected(cls, count: int, window_start: datetime, now: datetime, window_seconds: int) -> RateLimitDecision:
        left = (window_start.timestamp() + window_seconds) - now.timestamp()
        remaining = max(1, min(window_seconds, math.ceil(left)))
        return cls(allowed=False, count=count, window_start=window_start, remaining_seconds=remaining)


class RecordGateway(Protocol):
    """CRUD over named record collections plus the atomic rate-limit counter."""

    async def select(
        self,
        table: str,
        *,
        filters: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> GatewayResult[list[dict[str, Any]]]: ...

    async def count(self, table: str, *, filters: Sequence[Filter] = ()) -> GatewayResult[int]: ...

    async def insert(self, table: str, values: dict[str, Any]) -> GatewayResult[dict[str, Any]]: ...

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        *,
        filters: Sequence[Filter],
    ) -> GatewayResult[list[dict[str, Any]]]: ...

    async def delete(self, table: str, *, filters: Sequence[Filter]) -> GatewayResult[int]: ...

    async def consume_rate_limit(
        self,
        user_id: str,
        *,
        ceiling: int,
        window_seconds: int,
        now: datetime,
    ) -> GatewayResult[RateLimitDecision]: ...
