"""
SQL Security Validator

Blocklist check run over the whole submission before any sandbox exists.
This is not a parser: it catches the catastrophic cases (dropping a
database, privilege changes, file access, server control) and lets
ordinary DDL/DML through, since everything else is confined to the
caller's own sandbox database.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Protocol

from sqlsandbox.core.exceptions import QueryRejectedError, RejectionReason

SCHEMA_DESTRUCTION_MESSAGE = "DROP DATABASE command is not allowed"
DANGEROUS_COMMAND_MESSAGE = "query contains dangerous commands that are not allowed"

_WHITESPACE_RE = re.compile(r"\s+")

# Quoted runs are matched first so comment markers inside them are kept
_COMMENT_RE = re.compile(
    r"('(?:[^'\\]|\\.|'')*'"
    r"|\"(?:[^\"\\]|\\.|\"\")*\""
    r"|`(?:[^`]|``)*`)"
    r"|--(?:\s[^\n]*|$)|#[^\n]*|/\*.*?(?:\*/|\Z)",
    re.DOTALL,
)

SCHEMA_DESTRUCTION_PATTERNS = (
    r"\bdrop\s+database\b",
    r"\bdrop\s+schema\b",
)

DANGEROUS_PATTERNS = (
    # Server control
    r"\bshutdown\b",
    r"\brestart\b",
    # File access
    r"\bload_file\s*\(",
    r"\binto\s+outfile\b",
    r"\binto\s+dumpfile\b",
    r"\bload\s+data\s+infile\b",
    # Accounts and privileges
    r"\bcreate\s+user\b",
    r"\bdrop\s+user\b",
    r"\balter\s+user\b",
    r"\brename\s+user\b",
    r"\bgrant\b",
    r"\brevoke\b",
    r"\bset\s+password\b",
    # Server-wide variables
    r"\bset\s+global\b",
    r"\bset\s+@@global\b",
    # Other sessions
    r"\bkill\b",
    # Plugins
    r"\binstall\s+plugin\b",
    r"\buninstall\s+plugin\b",
)


@dataclass(frozen=True)
class ValidationVerdict:
    """Outcome of validating one submission."""
    admissible: bool
    reason: RejectionReason | None = None
    message: str = ""
    pattern: str | None = None

    @classmethod
    def admit(cls) -> "ValidationVerdict":
        return cls(admissible=True)

    @classmethod
    def reject(cls, reason: RejectionReason, message: str, pattern: str) -> "ValidationVerdict":
        return cls(admissible=False, reason=reason, message=message, pattern=pattern)

    def raise_for_rejection(self) -> None:
        """Raise QueryRejectedError if the query was not admitted."""
        if not self.admissible:
            raise QueryRejectedError(self.message, reason=self.reason)


class QueryValidator(Protocol):
    """Anything that can judge a submission before it is executed."""

    def validate(self, query: str) -> ValidationVerdict:
        ...


def normalize_query(query: str) -> str:
    """Lower-case, collapse whitespace runs and trim. Used for matching only."""
    return _WHITESPACE_RE.sub(" ", query.lower()).strip()


def strip_comments(query: str) -> str:
    """Replace each comment outside quoted text with a space."""
    return _COMMENT_RE.sub(lambda m: m.group(1) or " ", query)


class SQLSecurityValidator:
    """
    Case-, whitespace- and comment-insensitive blocklist validator.

    Schema-destruction patterns are checked first and reported with their
    own reason; the generic dangerous group follows. First match wins.
    """

    def __init__(self, extra_patterns: Iterable[str] = ()) -> None:
        self._schema_patterns = [
            re.compile(p, re.IGNORECASE) for p in SCHEMA_DESTRUCTION_PATTERNS
        ]
        self._dangerous_patterns = [
            re.compile(p, re.IGNORECASE)
            for p in (*DANGEROUS_PATTERNS, *extra_patterns)
        ]

    def validate(self, query: str) -> ValidationVerdict:
        # MySQL executes /*! ... */ comments, so the raw text is checked too
        texts = (normalize_query(query), normalize_query(strip_comments(query)))

        for pattern in self._schema_patterns:
            if any(pattern.search(text) for text in texts):
                return ValidationVerdict.reject(
                    RejectionReason.SCHEMA_DESTRUCTION,
                    SCHEMA_DESTRUCTION_MESSAGE,
                    pattern.pattern,
                )

        for pattern in self._dangerous_patterns:
            if any(pattern.search(text) for text in texts):
                return ValidationVerdict.reject(
                    RejectionReason.DANGEROUS_COMMAND,
                    DANGEROUS_COMMAND_MESSAGE,
                    pattern.pattern,
                )

        return ValidationVerdict.admit()

    def is_safe_query(self, query: str) -> bool:
        return self.validate(query).admissible
