"""Tests for the database guard."""

import asyncio

import pytest

from ore.config import DbConfig
from ore.db import Database, MockConnection, build_query
from ore.exceptions import MissingParameterError, OreError


def test_build_query_binds_in_order():
    query = build_query(
        "SELECT * FROM t WHERE a = :a AND b = :b OR a = :a", {"a": 1, "b": 2}
    )
    assert query.sql == "SELECT * FROM t WHERE a = ? AND b = ? OR a = ?"
    assert query.values == [1, 2, 1]


def test_build_query_ignores_casts():
    query = build_query("SELECT :v::int", {"v": "3"})
    assert query.sql == "SELECT ?::int"
    assert query.values == ["3"]


def test_build_query_missing_parameter():
    with pytest.raises(MissingParameterError) as exc_info:
        build_query("SELECT * FROM t WHERE a = :a AND b = :b", {"a": 1})
    assert exc_info.value.name == "b"
    assert str(exc_info.value) == "Missing named parameter :b"


def test_concurrent_first_calls_share_one_connection():
    """Single-flight: only one connection attempt for concurrent first callers."""
    calls = []
    connection = MockConnection(rows=[{"id": 1}])

    async def connector(config):
        calls.append(config)
        await asyncio.sleep(0)
        return connection

    db = Database(DbConfig(), connector)

    async def main():
        return await asyncio.gather(
            *(db.fetch_all_rows("SELECT * FROM users") for _ in range(5))
        )

    results = asyncio.run(main())
    assert len(calls) == 1
    assert results == [[{"id": 1}]] * 5
    assert len(connection.statements) == 5


def test_failed_connect_is_retried():
    attempts = []

    async def connector(config):
        attempts.append(1)
        if len(attempts) == 1:
            raise ConnectionError("refused")
        return MockConnection()

    db = Database(DbConfig(), connector)

    async def main():
        with pytest.raises(ConnectionError):
            await db.execute("DELETE FROM t")
        assert not db.connected
        await db.execute("DELETE FROM t")
        assert db.connected

    asyncio.run(main())
    assert len(attempts) == 2


def test_fetch_row_and_disconnect():
    connection = MockConnection(rows=[{"id": 1}, {"id": 2}])

    async def connector(config):
        return connection

    db = Database(DbConfig(), connector)

    async def main():
        row = await db.fetch_row("SELECT * FROM t WHERE id = :id", {"id": 1})
        await db.disconnect()
        return row

    assert asyncio.run(main()) == {"id": 1}
    assert connection.closed
    assert connection.statements[0].sql == "SELECT * FROM t WHERE id = ?"
    assert connection.statements[0].values == [1]
    assert not db.connected


def test_fetch_row_empty():
    async def connector(config):
        return MockConnection()

    db = Database(DbConfig(), connector)
    assert asyncio.run(db.fetch_row("SELECT 1")) is None


def test_no_connector_configured():
    db = Database()
    with pytest.raises(OreError):
        asyncio.run(db.fetch_all_rows("SELECT 1"))
