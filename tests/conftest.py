"""Shared fixtures for the SQL sandbox test suite.

The FakeConnector stands in for the MySQL server: it keeps a set of
existing databases, records every statement it is sent and can be told
to fail or stall on specific statements.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field

import pytest

from sqlsandbox.connectors.base import BaseConnector, ExecResult, QueryResult
from sqlsandbox.core.config import (
    ExecutorConfig,
    MySQLConfig,
    SandboxConfig,
    SecurityConfig,
    reset_config,
)
from sqlsandbox.core.exceptions import DatabaseConnectionError, SQLExecutionError

_ids = itertools.count(1)


@dataclass
class FakeConnection:
    ident: int = field(default_factory=lambda: next(_ids))
    database: str | None = None
    closed: bool = False
    alive: bool = True


class FakeConnector(BaseConnector[FakeConnection]):
    """In-memory stand-in for a MySQL server."""

    name = "fake"

    def __init__(self, config: MySQLConfig | None = None) -> None:
        super().__init__(config or MySQLConfig())
        self.databases: set[str] = set()
        self.created: list[str] = []
        self.dropped: list[str] = []
        self.statements: list[tuple[str | None, str]] = []
        self.connections: list[FakeConnection] = []

        # Fault injection
        self.query_results: dict[str, QueryResult] = {}
        self.exec_results: dict[str, ExecResult] = {}
        self.fail_on: dict[str, str] = {}
        self.delay_on: dict[str, float] = {}
        self.fail_connect = False
        self.fail_create = False
        self.create_delay = 0.0
        self.fail_drop = False
        self.ping_ok = True

    @property
    def open_connections(self) -> int:
        return sum(1 for c in self.connections if not c.closed)

    async def connect(self) -> FakeConnection:
        if self.fail_connect:
            raise DatabaseConnectionError("Cannot connect to fake server", host=self.address)
        conn = FakeConnection()
        self.connections.append(conn)
        return conn

    async def close_connection(self, conn: FakeConnection) -> None:
        conn.closed = True

    async def test_connection(self, conn: FakeConnection) -> bool:
        return self.ping_ok and conn.alive and not conn.closed

    async def _run(self, conn: FakeConnection, sql: str) -> None:
        self.statements.append((conn.database, sql))
        for needle, delay in self.delay_on.items():
            if needle in sql:
                await asyncio.sleep(delay)
        for needle, message in self.fail_on.items():
            if needle in sql:
                raise SQLExecutionError(message, query=sql)

    async def query(self, conn: FakeConnection, sql: str) -> QueryResult:
        await self._run(conn, sql)
        for needle, result in self.query_results.items():
            if needle in sql:
                return result
        return QueryResult(columns=["1"], rows=[(1,)])

    async def execute(self, conn: FakeConnection, sql: str) -> ExecResult:
        await self._run(conn, sql)
        for needle, result in self.exec_results.items():
            if needle in sql:
                return result
        return ExecResult(rows_affected=0)

    async def create_namespace(self, conn: FakeConnection, name: str) -> None:
        if self.fail_create:
            raise SQLExecutionError("Error 1044: Access denied for user 'sandbox'@'%'")
        if name in self.databases:
            raise SQLExecutionError(f"Error 1007: Can't create database '{name}'; database exists")
        self.databases.add(name)
        self.created.append(name)
        if self.create_delay:
            # The server has created it but the reply is slow
            await asyncio.sleep(self.create_delay)

    async def drop_namespace_if_exists(self, conn: FakeConnection, name: str) -> None:
        if self.fail_drop:
            raise SQLExecutionError("Error 2013: Lost connection to MySQL server during query")
        self.databases.discard(name)
        self.dropped.append(name)

    async def use_namespace(self, conn: FakeConnection, name: str) -> None:
        if name not in self.databases:
            raise SQLExecutionError(f"Error 1049: Unknown database '{name}'")
        conn.database = name


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    """Keep tests independent of the host environment and of each other."""
    monkeypatch.delenv("SQLSANDBOX_CONFIG_PATH", raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def config() -> SandboxConfig:
    return SandboxConfig(
        environment="test",
        executor=ExecutorConfig(query_timeout_seconds=2.0, db_prefix="test_db_"),
        security=SecurityConfig(rate_limit="1000/second"),
    )
