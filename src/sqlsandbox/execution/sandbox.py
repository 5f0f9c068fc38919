"""
Per-request sandbox databases.

Each submission runs inside its own freshly created database with a
random name. The database is dropped when the request finishes, whatever
the outcome.
"""

from __future__ import annotations

import asyncio
import uuid
from enum import Enum
from typing import Any

from sqlsandbox.connectors.base import BaseConnector
from sqlsandbox.core.exceptions import (
    CleanupError,
    DatabaseConnectionError,
    SandboxCreationError,
    SandboxError,
    SQLExecutionError,
    StatementExecutionError,
)
from sqlsandbox.core.logging import get_logger
from sqlsandbox.execution.formatter import format_mutation, format_result_set
from sqlsandbox.execution.splitter import leading_keyword, split_statements

logger = get_logger(__name__)

# Statements routed to the row-set path
READ_KEYWORDS = frozenset({"SELECT", "SHOW", "DESCRIBE", "DESC", "EXPLAIN"})

OUTPUT_SEPARATOR = "\n\n"


class SandboxState(str, Enum):
    """Lifecycle of a sandbox database."""
    PENDING = "pending"
    CREATING = "creating"
    READY = "ready"
    FAILED = "failed"
    RELEASED = "released"


def generate_sandbox_name(prefix: str) -> str:
    """Unique database name; never derived from request content."""
    return f"{prefix}{uuid.uuid4().hex}"


def is_read_statement(statement: str) -> bool:
    return leading_keyword(statement) in READ_KEYWORDS


class Sandbox:
    """
    One ephemeral database owned by a single request.

    Usage (the coordinator wraps this in try/finally)::

        sandbox = Sandbox(connector, prefix="student_db_")
        try:
            await sandbox.create()
            output = await sandbox.execute_query(query)
        finally:
            await sandbox.release()
    """

    def __init__(
        self,
        connector: BaseConnector[Any],
        prefix: str = "",
        *,
        request_id: str | None = None,
    ) -> None:
        self.name = generate_sandbox_name(prefix)
        self.state = SandboxState.PENDING
        self.request_id = request_id
        self.statements_executed = 0
        self._connector = connector

    def __repr__(self) -> str:
        return f"Sandbox(name={self.name!r}, state={self.state.value})"

    async def create(self) -> None:
        """Create the sandbox database."""
        if self.state is not SandboxState.PENDING:
            raise SandboxError(f"Sandbox {self.name} was already created")

        self.state = SandboxState.CREATING
        try:
            async with self._connector.get_connection() as conn:
                await self._connector.create_namespace(conn, self.name)
        except (SQLExecutionError, DatabaseConnectionError) as e:
            self.state = SandboxState.FAILED
            raise SandboxCreationError(
                f"failed to create database {self.name}: {e.message}",
                sandbox_name=self.name,
                cause=e,
            )

        self.state = SandboxState.READY
        logger.debug("sandbox_created", sandbox=self.name, request_id=self.request_id)

    async def execute_query(self, query: str) -> str:
        """
        Run every statement of ``query`` in order and return the joined output.

        Stops at the first failing statement. Output of statements that ran
        before it is discarded: the submission either fully succeeds or
        reports the one error.
        """
        if self.state is not SandboxState.READY:
            raise SandboxError(f"Sandbox {self.name} is not ready ({self.state.value})")

        statements = split_statements(query)
        if not statements:
            raise SQLExecutionError("no valid SQL statements found")

        outputs: list[str] = []
        # USE is connection-scoped, so one connection serves the whole submission.
        # Session state set by the caller must not reach the next request.
        async with self._connector.get_connection(reusable=False) as conn:
            await self._connector.use_namespace(conn, self.name)

            for position, statement in enumerate(statements, start=1):
                try:
                    outputs.append(await self._execute_statement(conn, statement))
                except SQLExecutionError as e:
                    raise StatementExecutionError(position, statement=statement, cause=e)
                self.statements_executed += 1

        return OUTPUT_SEPARATOR.join(outputs)

    async def _execute_statement(self, conn: Any, statement: str) -> str:
        if is_read_statement(statement):
            result = await self._connector.query(conn, statement)
            return format_result_set(result.columns, result.rows)

        result = await self._connector.execute(conn, statement)
        return format_mutation(result.rows_affected, result.last_insert_id)

    async def cleanup(self) -> None:
        """Drop the sandbox database if it exists. Safe to repeat."""
        try:
            async with self._connector.get_connection() as conn:
                await self._connector.drop_namespace_if_exists(conn, self.name)
        except (SQLExecutionError, DatabaseConnectionError) as e:
            raise CleanupError(
                f"failed to drop database {self.name}: {e.message}",
                sandbox_name=self.name,
                cause=e,
            )
        logger.debug("sandbox_dropped", sandbox=self.name, request_id=self.request_id)

    async def release(self) -> None:
        """
        Tear the sandbox down exactly once.

        Runs ``cleanup`` when creation was started (an interrupted CREATE may
        still have taken effect) and does nothing for a sandbox that was never
        created or was refused by the server. The drop is shielded from
        cancellation so an expired or cancelled request still frees its
        database. Failures are logged, never raised.
        """
        state = self.state
        self.state = SandboxState.RELEASED
        if state not in (SandboxState.CREATING, SandboxState.READY):
            return

        try:
            await asyncio.shield(self.cleanup())
        except CleanupError as e:
            logger.error(
                "sandbox_cleanup_failed",
                sandbox=self.name,
                request_id=self.request_id,
                error=str(e),
            )
        except Exception as e:
            logger.error(
                "sandbox_cleanup_failed",
                sandbox=self.name,
                request_id=self.request_id,
                error=str(e),
                exc_info=True,
            )
