"""
Base Database Connector

Abstract interface to the shared database server, plus the async
connection pool every sandbox borrows its connections from.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Generic, TypeVar

from sqlsandbox.core.config import MySQLConfig
from sqlsandbox.core.exceptions import DatabaseConnectionError, SQLExecutionError
from sqlsandbox.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")  # Connection type


@dataclass
class QueryResult:
    """Row set returned by a read statement."""
    columns: list[str]
    rows: list[tuple[Any, ...]]


@dataclass
class ExecResult:
    """Outcome of a write statement."""
    rows_affected: int
    last_insert_id: int | None = None


class BaseConnector(ABC, Generic[T]):
    """
    Abstract base class for database connectors.

    Provides a unified interface for:
    - Connection management
    - Namespace (database) lifecycle
    - Statement execution

    Deadlines are not passed explicitly: every coroutine here is
    cancellable, and the caller bounds it with ``asyncio.wait_for``.
    """

    def __init__(self, config: MySQLConfig) -> None:
        self.config = config
        self._pool: ConnectionPool[T] | None = None
        self._logger = get_logger(f"connector.{self.name}")

    name = "base"

    @property
    def address(self) -> str:
        return f"{self.config.host}:{self.config.port}"

    @abstractmethod
    async def connect(self) -> T:
        """Create a new connection."""

    @abstractmethod
    async def close_connection(self, conn: T) -> None:
        """Close a connection."""

    @abstractmethod
    async def test_connection(self, conn: T) -> bool:
        """Test if connection is valid."""

    @abstractmethod
    async def query(self, conn: T, sql: str) -> QueryResult:
        """Run a statement that produces a row set."""

    @abstractmethod
    async def execute(self, conn: T, sql: str) -> ExecResult:
        """Run a statement that modifies data or schema."""

    @abstractmethod
    async def create_namespace(self, conn: T, name: str) -> None:
        """Create an empty, isolated namespace."""

    @abstractmethod
    async def drop_namespace_if_exists(self, conn: T, name: str) -> None:
        """Drop a namespace and everything in it; no error when it is absent."""

    @abstractmethod
    async def use_namespace(self, conn: T, name: str) -> None:
        """Make ``name`` the default namespace of ``conn``."""

    async def ping(self) -> None:
        """Check the server is reachable, raising DatabaseConnectionError if not."""
        async with self.get_connection() as conn:
            if not await self.test_connection(conn):
                raise DatabaseConnectionError(
                    "Database server did not answer ping",
                    host=self.address,
                )

    async def initialize_pool(
        self,
        max_size: int = 10,
        max_idle: int = 5,
        max_lifetime: float = 300.0,
        acquire_timeout: float = 30.0,
    ) -> None:
        """Initialize connection pool."""
        self._pool = ConnectionPool(
            connector=self,
            max_size=max_size,
            max_idle=max_idle,
            max_lifetime=max_lifetime,
            acquire_timeout=acquire_timeout,
        )
        self._logger.info(
            "connection_pool_initialized",
            address=self.address,
            max_size=max_size,
            max_idle=max_idle,
        )

    async def close_pool(self) -> None:
        """Close connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            self._logger.info("connection_pool_closed", address=self.address)

    @property
    def pool(self) -> ConnectionPool[T] | None:
        return self._pool

    @asynccontextmanager
    async def get_connection(self, *, reusable: bool = True) -> AsyncIterator[T]:
        """
        Get a connection from the pool.

        With ``reusable=False`` the connection is closed on release instead of
        returning to the pool; used for sessions that ran caller SQL.
        """
        if self._pool is None:
            # No pool, create single connection
            conn = await self.connect()
            try:
                yield conn
            finally:
                await self.close_connection(conn)
        else:
            async with self._pool.acquire(reusable=reusable) as conn:
                yield conn


@dataclass
class ConnectionPool(Generic[T]):
    """
    Async connection pool shared by all concurrent sandboxes.

    - At most ``max_size`` connections checked out at once
    - Up to ``max_idle`` connections kept for reuse
    - Idle connections validated on checkout, retired after ``max_lifetime``
    - A connection is only reused when its checkout ended normally or with an
      SQL error; cancellation, connection failures or ``reusable=False`` discard it
    """

    connector: BaseConnector[T]
    max_size: int = 10
    max_idle: int = 5
    max_lifetime: float = 300.0
    acquire_timeout: float = 30.0

    _slots: asyncio.Semaphore = field(init=False)
    _idle: list[tuple[T, float]] = field(default_factory=list, init=False)
    _in_use: dict[int, tuple[T, float]] = field(default_factory=dict, init=False)
    _closed: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self._slots = asyncio.Semaphore(self.max_size)

    @asynccontextmanager
    async def acquire(self, *, reusable: bool = True) -> AsyncIterator[T]:
        """Acquire a connection from the pool."""
        if self._closed:
            raise DatabaseConnectionError(
                "Connection pool is closed",
                host=self.connector.address,
            )

        try:
            await asyncio.wait_for(self._slots.acquire(), timeout=self.acquire_timeout)
        except asyncio.TimeoutError:
            raise DatabaseConnectionError(
                f"Timeout waiting for connection (timeout={self.acquire_timeout}s)",
                host=self.connector.address,
            )

        try:
            conn, created_at = await self._checkout()
            self._in_use[id(conn)] = (conn, created_at)
            try:
                yield conn
            except SQLExecutionError:
                raise
            except (Exception, asyncio.CancelledError):
                reusable = False
                raise
            finally:
                self._in_use.pop(id(conn), None)
                await self._checkin(conn, created_at, reusable)
        finally:
            self._slots.release()

    async def _checkout(self) -> tuple[T, float]:
        while self._idle:
            conn, created_at = self._idle.pop()
            if self._expired(created_at):
                await self._discard_connection(conn)
                continue
            if await self._validate_connection(conn):
                return conn, created_at
            await self._discard_connection(conn)

        conn = await self.connector.connect()
        return conn, time.monotonic()

    async def _checkin(self, conn: T, created_at: float, reusable: bool) -> None:
        if (
            reusable
            and not self._closed
            and not self._expired(created_at)
            and len(self._idle) < self.max_idle
        ):
            self._idle.append((conn, created_at))
        else:
            await self._discard_connection(conn)

    def _expired(self, created_at: float) -> bool:
        return time.monotonic() - created_at >= self.max_lifetime

    async def _validate_connection(self, conn: T) -> bool:
        """Validate a connection is still usable."""
        try:
            return await asyncio.wait_for(
                self.connector.test_connection(conn),
                timeout=5.0,
            )
        except (asyncio.TimeoutError, DatabaseConnectionError):
            return False

    async def _discard_connection(self, conn: T) -> None:
        """Discard a connection."""
        try:
            await self.connector.close_connection(conn)
        except Exception as e:
            logger.warning("connection_discard_error", error=str(e))

    async def close(self) -> None:
        """Close all connections in the pool."""
        self._closed = True

        while self._idle:
            conn, _ = self._idle.pop()
            await self._discard_connection(conn)

        for conn, _ in list(self._in_use.values()):
            await self._discard_connection(conn)
        self._in_use.clear()

    @property
    def idle_count(self) -> int:
        """Number of idle connections."""
        return len(self._idle)

    @property
    def in_use_count(self) -> int:
        """Number of connections in use."""
        return len(self._in_use)
