"""
SQL Execution Coordinator

Runs one submission end to end:
- Request checks (non-empty, length cap)
- Security validation, before any database access
- Sandbox creation and sequential statement execution under one deadline
- Unconditional sandbox teardown
- Translation of every failure into a uniform response
"""

from __future__ import annotations

import asyncio
from typing import Any

from sqlsandbox.connectors.base import BaseConnector
from sqlsandbox.core.config import ExecutorConfig, SandboxConfig, get_config
from sqlsandbox.core.exceptions import (
    ExecutionTimeoutError,
    QueryRejectedError,
    SandboxCreationError,
    SandboxError,
    ValidationError,
)
from sqlsandbox.core.logging import (
    get_logger,
    log_execution_complete,
    log_execution_start,
    log_security_event,
)
from sqlsandbox.execution.base import (
    ExecuteResponse,
    ExecutionContext,
    ExecutionMetrics,
    ExecutionStatus,
)
from sqlsandbox.execution.sandbox import Sandbox
from sqlsandbox.security.validator import QueryValidator, SQLSecurityValidator

logger = get_logger(__name__)


def _format_seconds(seconds: float) -> str:
    return f"{seconds:g}s"


class SQLExecutor:
    """
    SQL execution coordinator.

    ``execute`` never raises: validation, creation, execution and timeout
    failures all come back as an ``ExecuteResponse``. Cleanup failures are
    only logged and never change the response.
    """

    def __init__(
        self,
        connector: BaseConnector[Any],
        config: SandboxConfig | None = None,
        validator: QueryValidator | None = None,
    ) -> None:
        self.config = config or get_config()
        self.connector = connector
        self.validator = validator or SQLSecurityValidator(
            self.config.security.extra_blocked_patterns
        )
        self._active: dict[str, Sandbox] = {}
        self._logger = get_logger(self.__class__.__name__)

    @property
    def executor_config(self) -> ExecutorConfig:
        return self.config.executor

    @property
    def active_sandboxes(self) -> list[str]:
        """Names of sandboxes owned by in-flight requests."""
        return list(self._active)

    async def execute(self, context: ExecutionContext, *, query: str) -> ExecuteResponse:
        """
        Execute a submission in a fresh sandbox.

        Args:
            context: Execution context (request id, deadline override)
            query: SQL text, possibly several ``;``-separated statements

        Returns:
            ExecuteResponse describing the outcome
        """
        metrics = ExecutionMetrics()
        log_execution_start(context.request_id, query, client_id=context.client_id)

        try:
            self._check_request(query)
            self._check_security(context, query)
            output = await self._execute_in_sandbox(context, query, metrics)
            metrics.complete()
            response = ExecuteResponse.succeeded(output, int(metrics.duration_ms))
        except SandboxError as e:
            metrics.complete()
            response = self._failure_response(e, metrics)
        except Exception as e:
            metrics.complete()
            self._logger.error(
                "execution_error",
                request_id=context.request_id,
                error_type=type(e).__name__,
                error_message=str(e),
                exc_info=True,
            )
            response = ExecuteResponse.failed(
                ExecutionStatus.INTERNAL,
                "Internal server error",
                int(metrics.duration_ms),
            )

        log_execution_complete(
            context.request_id,
            query,
            metrics.duration_ms,
            response.success,
            status=response.status.value,
            statements_executed=metrics.statements_executed,
        )
        return response

    def _check_request(self, query: str) -> None:
        if not query:
            raise ValidationError("query cannot be empty", field="query")
        if len(query.encode("utf-8")) > self.executor_config.max_query_length:
            raise ValidationError("query exceeds maximum allowed length", field="query")

    def _check_security(self, context: ExecutionContext, query: str) -> None:
        verdict = self.validator.validate(query)
        if not verdict.admissible:
            log_security_event(
                "query_rejected",
                request_id=context.request_id,
                reason=verdict.reason.value if verdict.reason else None,
                pattern=verdict.pattern,
                client_id=context.client_id,
            )
        verdict.raise_for_rejection()

    async def _execute_in_sandbox(
        self,
        context: ExecutionContext,
        query: str,
        metrics: ExecutionMetrics,
    ) -> str:
        timeout = context.get_timeout(self.executor_config)
        sandbox = Sandbox(
            self.connector,
            self.executor_config.db_prefix,
            request_id=context.request_id,
        )
        self._active[sandbox.name] = sandbox

        try:
            try:
                output = await asyncio.wait_for(
                    self._create_and_run(sandbox, query),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                raise ExecutionTimeoutError(
                    f"Query execution timeout exceeded ({_format_seconds(timeout)})",
                    timeout_seconds=timeout,
                )
            return output
        finally:
            metrics.statements_executed = sandbox.statements_executed
            # Outside the deadline: teardown is attempted even after expiry
            await sandbox.release()
            self._active.pop(sandbox.name, None)

    async def _create_and_run(self, sandbox: Sandbox, query: str) -> str:
        await sandbox.create()
        return await sandbox.execute_query(query)

    def _failure_response(self, error: SandboxError, metrics: ExecutionMetrics) -> ExecuteResponse:
        elapsed = int(metrics.duration_ms)

        if isinstance(error, ValidationError):
            return ExecuteResponse.failed(ExecutionStatus.INVALID_REQUEST, error.message)
        if isinstance(error, QueryRejectedError):
            return ExecuteResponse.failed(
                ExecutionStatus.REJECTED,
                f"Security validation failed: {error.message}",
            )
        if isinstance(error, SandboxCreationError):
            return ExecuteResponse.failed(
                ExecutionStatus.CREATE_FAILED,
                f"Failed to create sandbox: {error.message}",
                elapsed,
            )
        if isinstance(error, ExecutionTimeoutError):
            return ExecuteResponse.failed(ExecutionStatus.TIMEOUT, error.message, elapsed)
        return ExecuteResponse.failed(
            ExecutionStatus.ERROR,
            f"Query execution failed: {error.message}",
            elapsed,
        )

    async def close(self) -> None:
        """Release sandboxes still held by in-flight requests, then close the pool."""
        for sandbox in list(self._active.values()):
            self._logger.warning("releasing_orphaned_sandbox", sandbox=sandbox.name)
            await sandbox.release()
        self._active.clear()
        await self.connector.close_pool()
