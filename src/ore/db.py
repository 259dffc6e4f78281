"""Database guard - a lazily connected client with named query parameters.

Connecting happens on first use. Concurrent first callers share one
connection attempt; a failed attempt is forgotten so the next call retries.
The driver itself is pluggable through a connector coroutine:

    async def connect(config: DbConfig) -> Connection: ...

    db = Database(config.db, connect)
    rows = await db.fetch_all_rows("SELECT * FROM users WHERE id = :id", {"id": 1})
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol, Sequence

from ore.config import DbConfig
from ore.exceptions import MissingParameterError, OreError

log = logging.getLogger(__name__)


# ":name" but not the second colon of a "::type" cast
_PLACEHOLDER = re.compile(r"(?<!:):([a-zA-Z_][a-zA-Z0-9_]*)")

Row = dict[str, Any]


@dataclass
class Query:
    """SQL with positional ``?`` markers and the values bound to them."""

    sql: str
    values: list[Any] = field(default_factory=list)


def build_query(query: str, params: dict[str, Any] | None = None) -> Query:
    """Replace ``:name`` placeholders with ``?`` and collect values in order.

    Raises:
        MissingParameterError: A placeholder has no entry in ``params``.
    """
    params = params or {}
    values: list[Any] = []

    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in params:
            raise MissingParameterError(name)
        values.append(params[name])
        return "?"

    return Query(sql=_PLACEHOLDER.sub(replace, query), values=values)


class Connection(Protocol):
    async def fetch_all(self, sql: str, values: Sequence[Any]) -> list[Row]: ...

    async def execute(self, sql: str, values: Sequence[Any]) -> Any: ...

    async def close(self) -> None: ...


Connector = Callable[[DbConfig], Awaitable[Connection]]


class MockConnection:
    """In-memory connection that records statements and replays canned rows."""

    def __init__(self, rows: list[Row] | None = None):
        self.rows = rows or []
        self.statements: list[Query] = []
        self.closed = False

    async def fetch_all(self, sql: str, values: Sequence[Any]) -> list[Row]:
        self.statements.append(Query(sql, list(values)))
        return list(self.rows)

    async def execute(self, sql: str, values: Sequence[Any]) -> int:
        self.statements.append(Query(sql, list(values)))
        return len(self.rows)

    async def close(self) -> None:
        self.closed = True


class Database:
    """Lazily connected database client."""

    def __init__(self, config: DbConfig | None = None, connector: Connector | None = None):
        self.config = config or DbConfig()
        self.connector = connector
        self._connection: Connection | None = None
        self._pending: asyncio.Future[Connection] | None = None

    @property
    def connected(self) -> bool:
        return self._connection is not None

    async def _connect(self) -> Connection:
        log.info(
            "Connecting to %s@%s:%s/%s",
            self.config.user,
            self.config.host,
            self.config.port,
            self.config.name,
        )
        try:
            connection = await self.connector(self.config)
        finally:
            self._pending = None
        self._connection = connection
        return connection

    async def connection(self) -> Connection:
        """The shared connection, connecting on first use."""
        if self._connection is not None:
            return self._connection
        if self.connector is None:
            raise OreError("No database connector configured")
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._connect())
        # shield so one cancelled caller does not abort the shared attempt
        return await asyncio.shield(self._pending)

    async def fetch_all_rows(self, query: str, params: dict[str, Any] | None = None) -> list[Row]:
        built = build_query(query, params)
        connection = await self.connection()
        log.debug("fetch_all %s %s", built.sql, built.values)
        return await connection.fetch_all(built.sql, built.values)

    async def fetch_row(self, query: str, params: dict[str, Any] | None = None) -> Row | None:
        """First row of the result, or None."""
        rows = await self.fetch_all_rows(query, params)
        return rows[0] if rows else None

    async def execute(self, query: str, params: dict[str, Any] | None = None) -> Any:
        built = build_query(query, params)
        connection = await self.connection()
        log.debug("execute %s %s", built.sql, built.values)
        return await connection.execute(built.sql, built.values)

    async def disconnect(self) -> None:
        if self._connection is None:
            return
        connection, self._connection = self._connection, None
        await connection.close()
        log.info("Disconnected from %s", self.config.host)
