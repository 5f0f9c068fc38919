"""
MySQL Database Connector

Provides async MySQL connectivity using aiomysql. Connections are opened
at server level (no default database); each sandbox selects its own
database with ``USE``.
"""

from __future__ import annotations

import aiomysql
from aiomysql import Connection

from sqlsandbox.connectors.base import BaseConnector, ExecResult, QueryResult
from sqlsandbox.core.exceptions import DatabaseConnectionError, SQLExecutionError
from sqlsandbox.core.logging import get_logger

logger = get_logger(__name__)


def quote_identifier(name: str) -> str:
    """Backtick-quote a MySQL identifier."""
    return "`" + name.replace("`", "``") + "`"


def describe_error(error: Exception) -> str:
    """Render a driver error the way the MySQL client prints it."""
    args = getattr(error, "args", ())
    if len(args) == 2 and isinstance(args[0], int):
        return f"Error {args[0]}: {args[1]}"
    return str(error)


class MySQLConnector(BaseConnector[Connection]):
    """
    MySQL connector using aiomysql.

    Statements are sent one at a time: multi-statement packets are never
    enabled, so a single ``execute`` can only ever run one statement.
    """

    name = "mysql"

    async def connect(self) -> Connection:
        """Create a new MySQL connection."""
        cfg = self.config

        try:
            conn = await aiomysql.connect(
                host=cfg.host,
                port=cfg.port,
                user=cfg.user,
                password=cfg.password.get_secret_value(),
                connect_timeout=cfg.connect_timeout_seconds,
                autocommit=True,
                charset="utf8mb4",
            )
        except aiomysql.OperationalError as e:
            error_code = e.args[0] if e.args else 0

            if error_code == 1045:  # Access denied
                raise DatabaseConnectionError(
                    "Invalid database credentials",
                    host=self.address,
                )
            elif error_code == 1040:  # Too many connections
                raise DatabaseConnectionError(
                    "MySQL server has too many connections",
                    host=self.address,
                    cause=e,
                )
            elif error_code == 2003:  # Can't connect
                raise DatabaseConnectionError(
                    f"Cannot connect to MySQL server at {self.address}",
                    host=self.address,
                    cause=e,
                )
            raise DatabaseConnectionError(
                f"Failed to connect to MySQL: {describe_error(e)}",
                host=self.address,
                cause=e,
            )
        except OSError as e:
            raise DatabaseConnectionError(
                f"Failed to connect to MySQL: {e}",
                host=self.address,
                cause=e,
            )

        self._logger.debug("connection_created", address=self.address)
        return conn

    async def close_connection(self, conn: Connection) -> None:
        """Close a MySQL connection."""
        conn.close()

    async def test_connection(self, conn: Connection) -> bool:
        """Test if connection is valid."""
        try:
            await conn.ping(reconnect=False)
            return True
        except (aiomysql.Error, OSError):
            return False

    async def query(self, conn: Connection, sql: str) -> QueryResult:
        """Run a statement that produces a row set."""
        try:
            async with conn.cursor() as cursor:
                await cursor.execute(sql)
                rows = await cursor.fetchall()
                columns = [desc[0] for desc in cursor.description or ()]
                return QueryResult(columns=columns, rows=list(rows or ()))
        except aiomysql.Error as e:
            raise SQLExecutionError(describe_error(e), query=sql, cause=e)

    async def execute(self, conn: Connection, sql: str) -> ExecResult:
        """Run a statement that modifies data or schema."""
        try:
            async with conn.cursor() as cursor:
                await cursor.execute(sql)
                rows_affected = max(cursor.rowcount, 0)
                return ExecResult(
                    rows_affected=rows_affected,
                    last_insert_id=cursor.lastrowid or None,
                )
        except aiomysql.Error as e:
            raise SQLExecutionError(describe_error(e), query=sql, cause=e)

    async def create_namespace(self, conn: Connection, name: str) -> None:
        await self.execute(conn, f"CREATE DATABASE {quote_identifier(name)}")

    async def drop_namespace_if_exists(self, conn: Connection, name: str) -> None:
        await self.execute(conn, f"DROP DATABASE IF EXISTS {quote_identifier(name)}")

    async def use_namespace(self, conn: Connection, name: str) -> None:
        try:
            await conn.select_db(name)
        except aiomysql.Error as e:
            raise SQLExecutionError(
                f"failed to switch to database {name}: {describe_error(e)}",
                cause=e,
            )
