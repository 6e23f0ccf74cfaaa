"""
Rich Live display for a patch session.

Draws the byte positions reported by the fetcher as one bar per file in
flight, under a one-line session summary and an overall bar.
"""

import asyncio
import time
from dataclasses import asdict, dataclass

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.text import Text

from patch_cli.utils.formatting import format_duration, shorten_path


@dataclass
class TransferCounters:
    total_files: int = 0
    completed: int = 0
    failed_attempts: int = 0
    active_transfers: int = 0
    peak_concurrent: int = 0


class ProgressManager:
    """
    A `ProgressListener` rendering into a Rich `Live` region.

    Bars are keyed by manifest path: a retried file replaces its previous bar
    instead of adding a second one.
    """

    MAX_DESCRIPTION = 50

    def __init__(self, console: Console, enabled: bool = True):
        self.console = console
        self.enabled = enabled
        self.counters = TransferCounters()
        self._started_at: float | None = None
        self._live: Live | None = None

        self.transfers = Progress(
            SpinnerColumn("dots"),
            TextColumn("{task.description}", justify="left"),
            BarColumn(bar_width=24),
            DownloadColumn(binary_units=True),
            TransferSpeedColumn(),
            TimeRemainingColumn(compact=True),
            console=console,
        )
        self.overall = Progress(
            TextColumn("[bold blue]Patching"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            console=console,
        )
        self._overall_task: TaskID | None = None
        self._bars: dict[str, TaskID] = {}

    def _summary_line(self) -> Text:
        elapsed = time.monotonic() - self._started_at if self._started_at else 0
        c = self.counters
        line = Text()
        line.append("📦 ", style="bold cyan")
        line.append(f"{format_duration(elapsed)}  ", style="yellow")
        line.append(f"installed {c.completed}", style="green")
        line.append(f"  remaining {max(c.total_files - c.completed, 0)}", style="cyan")
        line.append(f"  active {c.active_transfers}", style="cyan")
        if c.failed_attempts:
            line.append(f"  failed attempts {c.failed_attempts}", style="red")
        return line

    def __rich__(self) -> Panel:
        parts = [self._summary_line()]
        if self._overall_task is not None:
            parts.append(self.overall)
        if self._bars:
            parts.append(self.transfers)
        else:
            parts.append(Text("Checking files...", style="dim italic"))
        return Panel(Group(*parts), title="[bold]Update[/bold]", border_style="blue")

    def _drop_bar(self, path: str) -> None:
        if (task_id := self._bars.pop(path, None)) is not None:
            self.transfers.remove_task(task_id)
        self.counters.active_transfers = len(self._bars)

    # ProgressListener interface

    def files_queued(self, count: int) -> None:
        self.counters.total_files = count
        if self.enabled:
            self._overall_task = self.overall.add_task("overall", total=count)

    def transfer_started(self, path: str, offset: int, total: int | None) -> None:
        if not self.enabled:
            return
        self._drop_bar(path)
        self._bars[path] = self.transfers.add_task(
            shorten_path(path, self.MAX_DESCRIPTION), total=total, completed=offset
        )
        self.counters.active_transfers = len(self._bars)
        self.counters.peak_concurrent = max(
            self.counters.peak_concurrent, self.counters.active_transfers
        )

    def transfer_advanced(self, path: str, position: int) -> None:
        if self.enabled and (task_id := self._bars.get(path)) is not None:
            self.transfers.update(task_id, completed=position)

    def transfer_finished(self, path: str, success: bool) -> None:
        if not self.enabled:
            return
        self._drop_bar(path)
        if success:
            self.counters.completed += 1
            if self._overall_task is not None:
                self.overall.advance(self._overall_task)
        else:
            self.counters.failed_attempts += 1

    def get_statistics(self) -> dict:
        return asdict(self.counters)

    async def __aenter__(self):
        self._started_at = time.monotonic()
        if self.enabled:
            self._live = Live(
                self,
                console=self.console,
                refresh_per_second=8,
                transient=True,
            )
            self._live.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._live:
            # Let the last refresh show the final positions
            await asyncio.sleep(0.1)
            self._live.stop()
            self._live = None
