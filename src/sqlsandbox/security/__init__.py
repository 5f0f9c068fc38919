"""Pre-execution security checks."""

from sqlsandbox.security.validator import (
    QueryValidator,
    SQLSecurityValidator,
    ValidationVerdict,
    normalize_query,
    strip_comments,
)

__all__ = [
    "QueryValidator",
    "SQLSecurityValidator",
    "ValidationVerdict",
    "normalize_query",
    "strip_comments",
]
