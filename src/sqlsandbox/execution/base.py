"""
Base data structures for query execution.

Defines the per-request context, timing metrics and the uniform
response every submission ends in.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlsandbox.core.config import ExecutorConfig


class ExecutionStatus(str, Enum):
    """Terminal status of a submission."""
    SUCCESS = "success"
    INVALID_REQUEST = "invalid_request"
    REJECTED = "rejected"
    CREATE_FAILED = "create_failed"
    ERROR = "error"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


@dataclass
class ExecutionContext:
    """
    Context for an execution request.

    ``timeout_seconds`` is the caller-supplied deadline; when unset the
    configured query timeout applies.
    """
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    client_id: str | None = None
    timeout_seconds: float | None = None

    def get_timeout(self, config: ExecutorConfig) -> float:
        """Get timeout, preferring context value over config."""
        if self.timeout_seconds is not None:
            return self.timeout_seconds
        return config.query_timeout_seconds


@dataclass
class ExecutionMetrics:
    """Metrics captured during execution."""
    start_time: float = field(default_factory=time.perf_counter)
    end_time: float | None = None
    duration_ms: float = 0.0
    statements_executed: int = 0

    def complete(self) -> None:
        """Mark execution as complete and calculate duration."""
        self.end_time = time.perf_counter()
        self.duration_ms = (self.end_time - self.start_time) * 1000


@dataclass
class ExecuteResponse:
    """
    Uniform result of one submission.

    Exactly one of ``output`` / ``error`` is meaningful; the other is an
    empty string so the JSON shape never changes. ``status`` is not
    serialised: the transport uses it to choose a status code.
    """
    success: bool
    output: str = ""
    execution_time_ms: int = 0
    error: str = ""
    status: ExecutionStatus = ExecutionStatus.SUCCESS

    @classmethod
    def succeeded(cls, output: str, execution_time_ms: int) -> "ExecuteResponse":
        return cls(success=True, output=output, execution_time_ms=execution_time_ms)

    @classmethod
    def failed(
        cls,
        status: ExecutionStatus,
        error: str,
        execution_time_ms: int = 0,
    ) -> "ExecuteResponse":
        return cls(
            success=False,
            error=error,
            execution_time_ms=execution_time_ms,
            status=status,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "success": self.success,
            "output": self.output,
            "execution_time_ms": self.execution_time_ms,
            "error": self.error,
        }
