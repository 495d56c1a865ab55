from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from pr_heatmap.domain.entities import BatchSummary


@dataclass(frozen=True)
class Ui:
    console: Console
    progress: Progress

    def log(self, message: str) -> None:
        self.console.print(message)

    def add_task(self, description: str, total: int) -> TaskID:
        return self.progress.add_task(description, total=total)

    def advance(self, task: TaskID) -> None:
        self.progress.advance(task)


@contextmanager
def progress_ui(console: Console | None = None) -> Iterator[Ui]:
    console = console or Console(stderr=True)
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=False,
    )
    with progress:
        yield Ui(console=console, progress=progress)


def summary_table(summary: BatchSummary) -> Table:
    table = Table(title="Pull request analysis")
    table.add_column("Result")
    table.add_column("Count", justify="right")
    table.add_row("[green]analyzed[/green]", str(summary.analyzed))
    table.add_row("[yellow]skipped[/yellow]", str(len(summary.skipped)))
    table.add_row("[red]malformed records[/red]", str(len(summary.load_warnings)))
    table.add_row("files rendered", str(summary.files_rendered))
    return table


def skipped_table(summary: BatchSummary) -> Table:
    table = Table(title="Skipped pull requests")
    table.add_column("PR", justify="right")
    table.add_column("Reason")
    for outcome in summary.skipped:
        table.add_row(f"#{outcome.pr_id}", outcome.reason or "")
    return table
