"""Append-only event log with per-stream optimistic concurrency.

Each stream is an ordered sequence of events numbered from ``0``.  Appends can
carry an expected position: the position of the stream's current last event,
``NO_STREAM`` for a stream that must not exist yet, or ``ANY``.  A mismatch
raises :class:`WrongExpectedPositionError` and nothing is written.

:class:`SqlEventLog` keeps every stream in one SQL table keyed on
``(stream, position)``, so two writers racing past the precondition check
still collide on the key and the loser sees the same conflict.  The store runs
on SQLAlchemy's asyncio engine (``aiosqlite`` for SQLite).
"""
from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Sequence, Union
from uuid import uuid4

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from ..errors import AccessError, CommitConflictError

logger = logging.getLogger(__name__)

ANY = "any"
NO_STREAM = "no_stream"

ExpectedPosition = Union[int, str]


class WrongExpectedPositionError(CommitConflictError):
    def __init__(self, stream: str, expected: ExpectedPosition, actual: Optional[int]):
        self.stream = stream
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"append to {stream!r} expected position {expected}, stream is at {actual}"
        )


@dataclass(frozen=True)
class EventData:
    """An event ready to be appended."""

    event_type: str
    data: Dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid4()))


@dataclass(frozen=True)
class RecordedEvent:
    """An event as stored, with its stream position."""

    stream: str
    position: int
    event_id: str
    event_type: str
    data: str
    created_at: str


class EventLog(Protocol):
    async def read_stream(
        self, stream: str, *, backwards: bool = False, limit: Optional[int] = None
    ) -> List[RecordedEvent]:
        ...

    async def last_position(self, stream: str) -> Optional[int]:
        ...

    async def append(
        self,
        stream: str,
        events: Sequence[EventData],
        expected_position: ExpectedPosition = ANY,
    ) -> int:
        """Append ``events`` and return the position of the last one written."""
        ...


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_event(row) -> RecordedEvent:
    mapping = row._mapping
    return RecordedEvent(
        stream=mapping["stream"],
        position=int(mapping["position"]),
        event_id=mapping["event_id"],
        event_type=mapping["event_type"],
        data=mapping["data"],
        created_at=mapping["created_at"],
    )


async def _max_position(conn: AsyncConnection, stream: str) -> Optional[int]:
    result = await conn.execute(
        text("SELECT MAX(position) FROM events WHERE stream = :stream"),
        {"stream": stream},
    )
    value = result.scalar()
    return None if value is None else int(value)


class SqlEventLog:
    """:class:`EventLog` stored in the ``events`` table of a SQL database."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def ensure_schema(self) -> None:
        ddl = """
        CREATE TABLE IF NOT EXISTS events (
          stream VARCHAR(255) NOT NULL,
          position BIGINT NOT NULL,
          event_id VARCHAR(64) NOT NULL,
          event_type VARCHAR(64) NOT NULL,
          data TEXT NOT NULL,
          created_at VARCHAR(40) NOT NULL,
          PRIMARY KEY (stream, position)
        )
        """
        try:
            async with self.engine.begin() as conn:
                await conn.execute(text(ddl))
        except SQLAlchemyError as exc:
            raise AccessError(str(exc)) from exc

    async def read_stream(
        self, stream: str, *, backwards: bool = False, limit: Optional[int] = None
    ) -> List[RecordedEvent]:
        order = "DESC" if backwards else "ASC"
        query = (
            "SELECT stream, position, event_id, event_type, data, created_at FROM events "
            f"WHERE stream = :stream ORDER BY position {order}"
        )
        params: Dict[str, Any] = {"stream": stream}
        if limit is not None:
            query += " LIMIT :limit"
            params["limit"] = limit
        try:
            async with self.engine.connect() as conn:
                rows = (await conn.execute(text(query), params)).fetchall()
        except SQLAlchemyError as exc:
            raise AccessError(str(exc)) from exc
        return [_row_to_event(row) for row in rows]

    async def last_position(self, stream: str) -> Optional[int]:
        try:
            async with self.engine.connect() as conn:
                return await _max_position(conn, stream)
        except SQLAlchemyError as exc:
            raise AccessError(str(exc)) from exc

    async def append(
        self,
        stream: str,
        events: Sequence[EventData],
        expected_position: ExpectedPosition = ANY,
    ) -> int:
        events = list(events)
        insert_sql = text(
            """
            INSERT INTO events (stream, position, event_id, event_type, data, created_at)
            VALUES (:stream, :position, :event_id, :event_type, :data, :created_at)
            """
        )
        try:
            async with self.engine.begin() as conn:
                last = await _max_position(conn, stream)
                if expected_position == NO_STREAM and last is not None:
                    raise WrongExpectedPositionError(stream, expected_position, last)
                if isinstance(expected_position, int) and expected_position != last:
                    raise WrongExpectedPositionError(stream, expected_position, last)
                start = -1 if last is None else last
                if events:
                    created_at = _utc_now_iso()
                    rows = [
                        {
                            "stream": stream,
                            "position": start + offset,
                            "event_id": event.event_id,
                            "event_type": event.event_type,
                            "data": json.dumps(event.data),
                            "created_at": created_at,
                        }
                        for offset, event in enumerate(events, 1)
                    ]
                    await conn.execute(insert_sql, rows)
        except IntegrityError as exc:
            raise WrongExpectedPositionError(stream, expected_position, None) from exc
        except SQLAlchemyError as exc:
            raise AccessError(str(exc)) from exc
        position = start + len(events)
        logger.debug("appended %d event(s) to %s, now at %d", len(events), stream, position)
        return position


def async_dsn(dsn: str) -> str:
    """Swap a plain SQLite URL for its ``aiosqlite`` driver form."""

    if dsn.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + dsn[len("sqlite://") :]
    return dsn


def create_log_engine(dsn: str) -> AsyncEngine:
    """Create an async engine for ``dsn``; SQLite files get their parent directory created."""

    dsn = async_dsn(dsn)
    if not dsn.startswith("sqlite+aiosqlite://"):
        return create_async_engine(dsn, pool_pre_ping=True)
    path = dsn[len("sqlite+aiosqlite:///") :] if dsn.startswith("sqlite+aiosqlite:///") else ""
    if path in ("", ":memory:"):
        return create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    return create_async_engine(dsn)


@asynccontextmanager
async def open_event_log(dsn: str) -> AsyncIterator[SqlEventLog]:
    """Open the log for the duration of a ``async with`` block."""

    try:
        engine = create_log_engine(dsn)
    except (OSError, SQLAlchemyError) as exc:
        raise AccessError(str(exc)) from exc
    log = SqlEventLog(engine)
    try:
        await log.ensure_schema()
        yield log
    finally:
        await engine.dispose()


__all__ = [
    "ANY",
    "NO_STREAM",
    "EventData",
    "RecordedEvent",
    "EventLog",
    "SqlEventLog",
    "WrongExpectedPositionError",
    "async_dsn",
    "create_log_engine",
    "open_event_log",
]
