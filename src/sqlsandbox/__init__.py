"""
SQL Sandbox Execution Server

Runs untrusted SQL submissions against MySQL, each inside its own
short-lived database that is dropped once the request completes.
"""

__version__ = "1.0.0"

from sqlsandbox.core.config import SandboxConfig, get_config
from sqlsandbox.core.exceptions import (
    SandboxError,
    ExecutionError,
    SecurityError,
    DatabaseConnectionError,
    ExecutionTimeoutError,
)

__all__ = [
    "__version__",
    "SandboxConfig",
    "get_config",
    "SandboxError",
    "ExecutionError",
    "SecurityError",
    "DatabaseConnectionError",
    "ExecutionTimeoutError",
]
