"""
Statement splitting.

Breaks a submission into statements on ``;``. The scanner is aware of
quoted strings, quoted identifiers and comments, so a semicolon inside
any of them does not end a statement.
"""

from __future__ import annotations

import re

_LEADING_NOISE_RE = re.compile(r"(?:\s+|--[^\n]*(?:\n|$)|#[^\n]*(?:\n|$)|/\*.*?\*/|\()*", re.DOTALL)
_KEYWORD_RE = re.compile(r"[A-Za-z]+")

_QUOTES = ("'", '"', "`")


def split_statements(query: str) -> list[str]:
    """
    Split ``query`` into trimmed, non-empty statements in submission order.

    Fragments made only of whitespace and comments are dropped.
    """
    statements: list[str] = []
    start = 0
    has_code = False
    i = 0
    n = len(query)

    while i < n:
        ch = query[i]

        if ch in _QUOTES:
            i = _skip_quoted(query, i)
            has_code = True
            continue

        if ch == "-" and query.startswith("--", i) and (i + 2 == n or query[i + 2].isspace()):
            i = _skip_line(query, i)
            continue

        if ch == "#":
            i = _skip_line(query, i)
            continue

        if ch == "/" and query.startswith("/*", i):
            end = query.find("*/", i + 2)
            i = n if end == -1 else end + 2
            continue

        if ch == ";":
            if has_code:
                statements.append(query[start:i].strip())
            start = i + 1
            has_code = False
        elif not ch.isspace():
            has_code = True
        i += 1

    if has_code:
        statements.append(query[start:].strip())

    return statements


def leading_keyword(statement: str) -> str:
    """Upper-cased first keyword, ignoring leading comments and parentheses."""
    match = _LEADING_NOISE_RE.match(statement)
    rest = statement[match.end():] if match else statement
    keyword = _KEYWORD_RE.match(rest)
    return keyword.group(0).upper() if keyword else ""


def _skip_quoted(query: str, i: int) -> int:
    """Return the index just past the quoted run starting at ``i``."""
    quote = query[i]
    i += 1
    n = len(query)
    while i < n:
        ch = query[i]
        if ch == "\\" and quote != "`":
            i += 2
            continue
        if ch == quote:
            # A doubled quote is an escaped quote
            if i + 1 < n and query[i + 1] == quote:
                i += 2
                continue
            return i + 1
        i += 1
    return n


def _skip_line(query: str, i: int) -> int:
    end = query.find("\n", i)
    return len(query) if end == -1 else end + 1
