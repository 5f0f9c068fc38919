"""
SQL Sandbox Exception Hierarchy

All custom exceptions for the query execution service. Every failure the
coordinator can report maps onto exactly one class here.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class SandboxError(Exception):
    """Base exception for all service errors."""

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


class ValidationError(SandboxError):
    """Malformed request (empty query, query too long)."""

    def __init__(self, message: str, *, field: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, error_code="VALIDATION_ERROR", **kwargs)
        if field:
            self.details["field"] = field
        # Never include actual value in details for security


class RejectionReason(str, Enum):
    """Why the security validator refused a query."""
    SCHEMA_DESTRUCTION = "schema_destruction"
    DANGEROUS_COMMAND = "dangerous_command"


class SecurityError(SandboxError):
    """Security violation detected."""

    def __init__(
        self,
        message: str,
        *,
        violation_type: str = "unknown",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.violation_type = violation_type
        self.details["violation_type"] = violation_type


class QueryRejectedError(SecurityError):
    """The query matched the blocklist and was never sent to the database."""

    def __init__(self, message: str, *, reason: RejectionReason, **kwargs: Any) -> None:
        super().__init__(
            message,
            violation_type=reason.value,
            error_code="QUERY_REJECTED",
            **kwargs,
        )
        self.reason = reason


class ExecutionError(SandboxError):
    """Error while running a submission."""


class SQLExecutionError(ExecutionError):
    """The database server refused a statement."""

    def __init__(self, message: str, *, query: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.query = query
        if query:
            # Truncate query for safety
            self.details["query_preview"] = query[:200] + "..." if len(query) > 200 else query


class StatementExecutionError(SQLExecutionError):
    """A specific statement of a submission failed."""

    def __init__(
        self,
        position: int,
        *,
        statement: str,
        cause: SQLExecutionError,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            f"error in statement {position}: {cause.message}",
            query=statement,
            cause=cause,
            **kwargs,
        )
        self.position = position
        self.details["position"] = position

    def __str__(self) -> str:
        return self.message


class SandboxCreationError(ExecutionError):
    """The per-request database could not be created."""

    def __init__(self, message: str, *, sandbox_name: str, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.sandbox_name = sandbox_name
        self.details["sandbox_name"] = sandbox_name


class CleanupError(ExecutionError):
    """Dropping a sandbox database failed. Logged, never reported to the caller."""

    def __init__(self, message: str, *, sandbox_name: str, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.sandbox_name = sandbox_name
        self.details["sandbox_name"] = sandbox_name


class ExecutionTimeoutError(ExecutionError):
    """The request deadline elapsed before execution finished."""

    def __init__(self, message: str, *, timeout_seconds: float, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.timeout_seconds = timeout_seconds
        self.details["timeout_seconds"] = timeout_seconds


class DatabaseConnectionError(SandboxError):
    """Database connection error."""

    def __init__(
        self,
        message: str,
        *,
        host: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.host = host
        if host:
            self.details["host"] = host


class ConfigurationError(SandboxError):
    """Configuration error."""

    def __init__(self, message: str, *, config_key: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        if config_key:
            self.details["config_key"] = config_key
