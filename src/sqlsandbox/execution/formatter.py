"""
Result formatting in the style of the MySQL command-line client.
"""

from __future__ import annotations

from typing import Any, Sequence

NULL = "NULL"


def render_cell(value: Any) -> str:
    """Render one driver value as text."""
    if value is None:
        return NULL
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def format_result_set(columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> str:
    """
    Render a row set as a bordered text table.

    Example::

        +----+------+
        | id | name |
        +----+------+
        | 1  | Ann  |
        +----+------+
        1 row in set
    """
    if not columns:
        return "Empty result set"
    if not rows:
        return "Empty set"

    header = [str(c) for c in columns]
    cells = [[render_cell(v) for v in row] for row in rows]

    widths = [len(h) for h in header]
    for row in cells:
        for i, value in enumerate(row):
            widths[i] = max(widths[i], len(value))

    border = _border(widths)
    lines = [border, _row(header, widths), border]
    lines.extend(_row(row, widths) for row in cells)
    lines.append(border)

    count = len(cells)
    lines.append("1 row in set" if count == 1 else f"{count} rows in set")
    return "\n".join(lines)


def format_mutation(rows_affected: int, last_insert_id: int | None = None) -> str:
    """Summary line for a statement that does not return rows."""
    output = f"Query OK, {rows_affected} row(s) affected"
    if last_insert_id is not None and last_insert_id > 0:
        output += f" (last insert ID: {last_insert_id})"
    return output


def _border(widths: Sequence[int]) -> str:
    return "+" + "+".join("-" * (w + 2) for w in widths) + "+"


def _row(values: Sequence[str], widths: Sequence[int]) -> str:
    return "|" + "|".join(f" {v.ljust(w)} " for v, w in zip(values, widths)) + "|"
