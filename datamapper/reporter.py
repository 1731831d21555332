from __future__ import annotations

from typing import List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from datamapper.domain.entity import Entity, Row


def entity_table(entity: Entity, title: Optional[str] = None) -> Table:
    """
    Build a two-column label/value table for one entity.
    """
    table = Table(
        title=title or f"{type(entity).__name__} information",
        box=box.ROUNDED,
        show_header=False,
    )
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="magenta")
    for label, value in entity.describe().items():
        table.add_row(label, value)
    return table


def print_entity(entity: Entity, console: Optional[Console] = None, title: Optional[str] = None) -> None:
    """Render one entity."""
    (console or Console()).print(entity_table(entity, title=title))


def print_rows(
    rows: List[Row],
    columns: Optional[Sequence[str]] = None,
    console: Optional[Console] = None,
    title: str = "Query results",
) -> None:
    """
    Render raw query rows as a rich table.

    Columns are labelled with `columns` when given, otherwise by position.
    """
    console = console or Console()

    if not rows:
        console.print("[yellow]No rows returned.[/yellow]")
        return

    width = max(len(row) for row in rows)
    labels = list(columns) if columns else [f"#{i}" for i in range(1, width + 1)]
    # Pad labels so ragged rows still render.
    labels += [f"#{i}" for i in range(len(labels) + 1, width + 1)]

    table = Table(title=title, box=box.ROUNDED, caption=f"{len(rows):,} row(s)")
    for label in labels:
        table.add_column(label, overflow="fold")
    for row in rows:
        table.add_row(*row)

    console.print(table)


__all__ = ["entity_table", "print_entity", "print_rows"]
