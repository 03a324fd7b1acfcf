"""Record gateway: the persistence collaborator behind every jiralite operation."""

from __future__ import annotations

from jiralite.gateway.base import (
    Filter,
    GatewayError,
    GatewayResult,
    GatewayUnavailable,
    RateLimitDecision,
    RecordGateway,
    eq,
    gt,
    gte,
    in_,
    is_null,
    lt,
    lte,
    neq,
    not_null,
)
from jiralite.gateway.sqlite import SQLiteGateway

__all__ = [
    "Filter",
    "GatewayError",
    "GatewayResult",
    "GatewayUnavailable",
    "RateLimitDecision",
    "RecordGateway",
    "SQLiteGateway",
    "eq",
    "gt",
    "gte",
    "in_",
    "is_null",
    "lt",
    "lte",
    "neq",
    "not_null",
]
