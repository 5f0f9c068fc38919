"""Statement pipeline: splitting, sandboxed execution and formatting."""

from sqlsandbox.execution.base import (
    ExecuteResponse,
    ExecutionContext,
    ExecutionMetrics,
    ExecutionStatus,
)
from sqlsandbox.execution.formatter import format_mutation, format_result_set
from sqlsandbox.execution.sandbox import Sandbox, SandboxState
from sqlsandbox.execution.splitter import split_statements
from sqlsandbox.execution.sql_executor import SQLExecutor

__all__ = [
    "ExecuteResponse",
    "ExecutionContext",
    "ExecutionMetrics",
    "ExecutionStatus",
    "format_mutation",
    "format_result_set",
    "Sandbox",
    "SandboxState",
    "split_statements",
    "SQLExecutor",
]
