"""SQLite implementation of the record gateway.

Direct SQLite with WAL mode. Methods are ``async`` so callers treat every
call as a remote round-trip, but the SQLite work runs inline on the event
loop thread, which serializes access to the single shared connection.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from collections.abc import Sequence
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any

from jiralite.config import DB_FILENAME, find_jiralite_root
from jiralite.gateway.base import (
    Filter,
    GatewayError,
    GatewayResult,
    GatewayUnavailable,
    RateLimitDecision,
)
from jiralite.gateway.schema import BOOL_COLUMNS, CURRENT_SCHEMA_VERSION, JSON_COLUMNS, SCHEMA_SQL
from jiralite.timeutil import now_iso, parse_iso, to_iso

logger = logging.getLogger(__name__)

_AUTO_TIMESTAMPS = ("created_at", "updated_at", "changed_at")
_COMPARISON_SQL = {"eq": "=", "neq": "!=", "gt": ">", "gte": ">=", "lt": "<", "lte": "<="}


def _encode(column: str, value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return to_iso(value)
    if column in JSON_COLUMNS and not isinstance(value, str):
        return json.dumps(value)
    return value


def _decode(row: sqlite3.Row) -> dict[str, Any]:
    record = dict(row)
    for key, value in record.items():
        if key in BOOL_COLUMNS and value is not None:
            record[key] = bool(value)
        elif key in JSON_COLUMNS and isinstance(value, str):
            try:
                record[key] = json.loads(value)
            except json.JSONDecodeError:
                logger.warning("Corrupt JSON in column %s, returning empty object", key)
                record[key] = {}
    return record


class SQLiteGateway:
    """Record gateway over a local SQLite database."""

    def __init__(self, db_path: str | Path, *, check_same_thread: bool = True) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._check_same_thread = check_same_thread
        self._columns: dict[str, frozenset[str]] = {}

    @classmethod
    def from_workspace(cls, start: Path | None = None, *, check_same_thread: bool = True) -> SQLiteGateway:
        """Create a gateway by discovering .jiralite/ from *start* (or cwd)."""
        jiralite_dir = find_jiralite_root(start)
        gateway = cls(jiralite_dir / DB_FILENAME, check_same_thread=check_same_thread)
        gateway.initialize()
        return gateway

    def __enter__(self) -> SQLiteGateway:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                isolation_level="DEFERRED",
                check_same_thread=self._check_same_thread,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.execute("PRAGMA busy_timeout=5000")
        return self._conn

    def initialize(self) -> None:
        """Create tables on a fresh database and load the column catalogue."""
        version: int = self.conn.execute("PRAGMA user_version").fetchone()[0]
        if version == 0:
            self.conn.executescript(SCHEMA_SQL)
            self.conn.execute(f"PRAGMA user_version = {CURRENT_SCHEMA_VERSION}")
        elif version > CURRENT_SCHEMA_VERSION:
            msg = f"Database schema v{version} is newer than this jiralite (v{CURRENT_SCHEMA_VERSION})"
            raise RuntimeError(msg)
        self.conn.commit()
        self._load_columns()

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # -- catalogue ------------------------------------------------------------

    def _load_columns(self) -> None:
        tables = [r["name"] for r in self.conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()]
        self._columns = {
            # table names come from sqlite_master, never from callers
            t: frozenset(r["name"] for r in self.conn.execute(f"PRAGMA table_info({t})").fetchall())
            for t in tables
            if not t.startswith("sqlite_")
        }

    def _check_names(self, table: str, columns: Sequence[str]) -> GatewayError | None:
        if not self._columns:
            self._load_columns()
        known = self._columns.get(table)
        if known is None:
            return GatewayError(f"Unknown table: {table}", "UNKNOWN_TABLE")
        unknown = [c for c in columns if c not in known]
        if unknown:
            return GatewayError(f"Unknown column(s) on {table}: {', '.join(unknown)}", "UNKNOWN_COLUMN")
        return None

    @staticmethod
    def _where(filters: Sequence[Filter]) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        for f in filters:
            match f.op:
                case "is_null":
                    clauses.append(f"{f.column} IS NULL")
                case "not_null":
                    clauses.append(f"{f.column} IS NOT NULL")
                case "in":
                    values = [_encode(f.column, v) for v in f.value]
                    if not values:
                        clauses.append("0")
                        continue
                    clauses.append(f"{f.column} IN ({','.join('?' * len(values))})")
                    params.extend(values)
                case "eq" | "neq" | "gt" | "gte" | "lt" | "lte":
                    clauses.append(f"{f.column} {_COMPARISON_SQL[f.op]} ?")
                    params.append(_encode(f.column, f.value))
        return (" AND ".join(clauses) or "1"), params

    def _fail(self, exc: sqlite3.Error, op: str, table: str) -> GatewayResult[Any]:
        """Map a sqlite error: constraint violations become results, the rest raise."""
        if self._conn is not None and self._conn.in_transaction:
            self._conn.rollback()
        if isinstance(exc, sqlite3.IntegrityError):
            logger.warning("Gateway %s on %s rejected: %s", op, table, exc)
            return GatewayResult(error=GatewayError(str(exc), "CONSTRAINT"))
        logger.error("Gateway %s on %s failed: %s", op, table, exc)
        raise GatewayUnavailable(str(exc)) from exc

    # -- record operations ----------------------------------------------------

    async def select(
        self,
        table: str,
        *,
        filters: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> GatewayResult[list[dict[str, Any]]]:
        names = [f.column for f in filters] + ([order_by] if order_by else [])
        err = self._check_names(table, names)
        if err is not None:
            return GatewayResult(error=err)
        where, params = self._where(filters)
        sql = f"SELECT * FROM {table} WHERE {where}"
        direction = "DESC" if descending else "ASC"
        if order_by:
            sql += f" ORDER BY {order_by} {direction}, rowid {direction}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        try:
            rows = self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            return self._fail(exc, "select", table)
        return GatewayResult(data=[_decode(r) for r in rows])

    async def count(self, table: str, *, filters: Sequence[Filter] = ()) -> GatewayResult[int]:
        err = self._check_names(table, [f.column for f in filters])
        if err is not None:
            return GatewayResult(error=err)
        where, params = self._where(filters)
        try:
            total: int = self.conn.execute(f"SELECT COUNT(*) FROM {table} WHERE {where}", params).fetchone()[0]
        except sqlite3.Error as exc:
            return self._fail(exc, "count", table)
        return GatewayResult(data=total)

    async def insert(self, table: str, values: dict[str, Any]) -> GatewayResult[dict[str, Any]]:
        err = self._check_names(table, list(values))
        if err is not None:
            return GatewayResult(error=err)
        columns = self._columns[table]
        row = {k: _encode(k, v) for k, v in values.items()}
        if "id" in columns and not row.get("id"):
            row["id"] = uuid.uuid4().hex
        now = now_iso()
        for stamp in _AUTO_TIMESTAMPS:
            if stamp in columns and stamp not in row:
                row[stamp] = now
        names = list(row)
        try:
            self.conn.execute(
                f"INSERT INTO {table} ({', '.join(names)}) VALUES ({', '.join('?' * len(names))})",
                [row[n] for n in names],
            )
            self.conn.commit()
            created = self.conn.execute(f"SELECT * FROM {table} WHERE id = ?", (row["id"],)).fetchone()
        except sqlite3.Error as exc:
            return self._fail(exc, "insert", table)
        return GatewayResult(data=_decode(created))

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        *,
        filters: Sequence[Filter],
    ) -> GatewayResult[list[dict[str, Any]]]:
        if not filters:
            return GatewayResult(error=GatewayError("update requires at least one filter", "UNFILTERED_WRITE"))
        if not values:
            return GatewayResult(error=GatewayError("update requires at least one value", "EMPTY_UPDATE"))
        err = self._check_names(table, list(values) + [f.column for f in filters])
        if err is not None:
            return GatewayResult(error=err)
        changes = {k: _encode(k, v) for k, v in values.items()}
        if "updated_at" in self._columns[table] and "updated_at" not in changes:
            changes["updated_at"] = now_iso()
        where, params = self._where(filters)
        try:
            rowids = [r[0] for r in self.conn.execute(f"SELECT rowid FROM {table} WHERE {where}", params).fetchall()]
            if not rowids:
                return GatewayResult(data=[])
            id_ph = ",".join("?" * len(rowids))
            set_sql = ", ".join(f"{c} = ?" for c in changes)
            self.conn.execute(
                f"UPDATE {table} SET {set_sql} WHERE rowid IN ({id_ph})",
                [*changes.values(), *rowids],
            )
            self.conn.commit()
            rows = self.conn.execute(f"SELECT * FROM {table} WHERE rowid IN ({id_ph}) ORDER BY rowid", rowids).fetchall()
        except sqlite3.Error as exc:
            return self._fail(exc, "update", table)
        return GatewayResult(data=[_decode(r) for r in rows])

    async def delete(self, table: str, *, filters: Sequence[Filter]) -> GatewayResult[int]:
        if not filters:
            return GatewayResult(error=GatewayError("delete requires at least one filter", "UNFILTERED_WRITE"))
        err = self._check_names(table, [f.column for f in filters])
        if err is not None:
            return GatewayResult(error=err)
        where, params = self._where(filters)
        try:
            cursor = self.conn.execute(f"DELETE FROM {table} WHERE {where}", params)
            self.conn.commit()
        except sqlite3.Error as exc:
            return self._fail(exc, "delete", table)
        return GatewayResult(data=cursor.rowcount)

    async def consume_rate_limit(
        self,
        user_id: str,
        *,
        ceiling: int,
        window_seconds: int,
        now: datetime,
    ) -> GatewayResult[RateLimitDecision]:
        """Check and bump the per-user request counter in one IMMEDIATE transaction.

        A window no more than *window_seconds* old is incremented unless it is
        already at *ceiling*; a missing or older window restarts at 1.
        """
        stamp = to_iso(now)
        try:
            if self.conn.in_transaction:
                self.conn.commit()
            self.conn.execute("BEGIN IMMEDIATE")
            row = self.conn.execute("SELECT * FROM ai_rate_limits WHERE user_id = ?", (user_id,)).fetchone()
            if row is not None:
                window_start = parse_iso(row["window_start"])
                if window_start >= now - timedelta(seconds=window_seconds):
                    if row["count"] >= ceiling:
                        self.conn.commit()
                        return GatewayResult(
                            data=RateLimitDecision.rejected(row["count"], window_start, now, window_seconds),
                        )
                    new_count = row["count"] + 1
                    self.conn.execute(
                        "UPDATE ai_rate_limits SET count = ?, updated_at = ? WHERE user_id = ?",
                        (new_count, stamp, user_id),
                    )
                    self.conn.commit()
                    return GatewayResult(data=RateLimitDecision(allowed=True, count=new_count, window_start=window_start))
                self.conn.execute(
                    "UPDATE ai_rate_limits SET count = 1, window_start = ?, updated_at = ? WHERE user_id = ?",
                    (stamp, stamp, user_id),
                )
            else:
                self.conn.execute(
                    "INSERT INTO ai_rate_limits (id, user_id, count, window_start, created_at, updated_at) VALUES (?, ?, 1, ?, ?, ?)",
                    (uuid.uuid4().hex, user_id, stamp, stamp, stamp),
                )
            self.conn.commit()
        except sqlite3.Error as exc:
            return self._fail(exc, "consume_rate_limit", "ai_rate_limits")
        return GatewayResult(data=RateLimitDecision(allowed=True, count=1, window_start=now))
