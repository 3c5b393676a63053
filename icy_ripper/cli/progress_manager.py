"""
Shows a Rich live line with the track being recorded, bytes written and speed.
"""

import asyncio
import logging

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TransferSpeedColumn,
)

from icy_ripper.models.stats import RipStats

log = logging.getLogger("icy_ripper")


class ProgressManager:
    """A live display for one rip session."""

    def __init__(self, console: Console, enabled: bool = True):
        self.console = console
        self.enabled = enabled
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            "•",
            DownloadColumn(),
            "•",
            TransferSpeedColumn(),
            "•",
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )
        self._session_task: TaskID | None = None
        self._track_task: TaskID | None = None
        self._track_start_bytes = 0
        self._bytes_written = 0

    @staticmethod
    def _shorten(text: str, limit: int = 55) -> str:
        return text if len(text) <= limit else text[: limit - 1] + "…"

    def start_session(self, station: str) -> None:
        if not self.enabled:
            return
        description = f"[bold cyan]{escape(self._shorten(station or 'Stream'))}[/]"
        self._session_task = self.progress.add_task(description, total=None)

    def start_track(self, track_number: int, title: str) -> None:
        """Adds a row for a new track and freezes the row of the previous one."""
        if not self.enabled:
            return
        if self._track_task is not None:
            self.progress.stop_task(self._track_task)
        self._track_start_bytes = self._bytes_written
        description = f"{track_number:03} {escape(self._shorten(title))}"
        self._track_task = self.progress.add_task(description, total=None)

    def update(self, stats: RipStats) -> None:
        self._bytes_written = stats.bytes_written
        if not self.enabled:
            return
        if self._session_task is None:
            self.start_session(stats.station)
        self.progress.update(self._session_task, completed=stats.bytes_written)
        if self._track_task is not None:
            self.progress.update(
                self._track_task,
                completed=stats.bytes_written - self._track_start_bytes,
            )

    async def __aenter__(self):
        if self.enabled:
            self.progress.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.enabled:
            await asyncio.sleep(0.1)
            self.progress.stop()
