"""Rich table rendering helpers."""

from __future__ import annotations

from typing import Any, Sequence

from rich.table import Table

CHECK_MARK = "✓"


def cell(value: Any, *, empty: str = "") -> str:
    """Render one table cell: booleans as check marks, None/"" as *empty*."""
    if value is None or value == "":
        return empty
    if isinstance(value, bool):
        return CHECK_MARK if value else ""
    return str(value)


def make_table(
    title: str | None,
    columns: Sequence[str],
    rows: Sequence[Sequence[Any]],
) -> Table:
    table = Table(title=title)
    for col in columns:
        table.add_column(col, no_wrap=False)
    for row in rows:
        table.add_row(*(cell(value, empty="-") for value in row))
    return table


def kv_table(data: dict[str, Any], *, title: str | None = None) -> Table:
    """Render a key-value dict as a Property/Value table."""
    table = Table(title=title, show_header=True)
    table.add_column("Property", style="bold cyan", no_wrap=True)
    table.add_column("Value")
    for key, value in data.items():
        label = key.replace("_", " ").title()
        text = str(value) if isinstance(value, bool) else cell(value)
        table.add_row(label, text)
    return table
