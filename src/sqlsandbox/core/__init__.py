"""Core service components."""

from sqlsandbox.core.config import SandboxConfig, get_config
from sqlsandbox.core.exceptions import (
    SandboxError,
    ValidationError,
    SecurityError,
    QueryRejectedError,
    ExecutionError,
    SQLExecutionError,
    StatementExecutionError,
    SandboxCreationError,
    CleanupError,
    ExecutionTimeoutError,
    DatabaseConnectionError,
)
from sqlsandbox.core.logging import get_logger, setup_logging

__all__ = [
    "SandboxConfig",
    "get_config",
    "SandboxError",
    "ValidationError",
    "SecurityError",
    "QueryRejectedError",
    "ExecutionError",
    "SQLExecutionError",
    "StatementExecutionError",
    "SandboxCreationError",
    "CleanupError",
    "ExecutionTimeoutError",
    "DatabaseConnectionError",
    "get_logger",
    "setup_logging",
]
