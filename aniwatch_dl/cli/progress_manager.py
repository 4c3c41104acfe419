"""
Manages a Rich progress display for segment downloads, one bar per episode.
"""

import asyncio
import logging

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

log = logging.getLogger("aniwatch_dl")


class ProgressManager:
    """
    Wraps a rich Progress instance. When disabled (list-only mode) every
    method is a no-op so callers never need to check.
    """

    def __init__(self, console: Console, disabled: bool = False):
        self.console = console
        self.disabled = disabled
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            MofNCompleteColumn(),
            "•",
            TimeElapsedColumn(),
            "•",
            TimeRemainingColumn(),
            console=console,
            transient=True,
        )
        self._failed: dict[TaskID, int] = {}

    def add_episode_task(self, description: str, total_segments: int) -> TaskID | None:
        if self.disabled:
            return None
        if len(description) > 45:
            description = description[:42] + "..."
        task_id = self.progress.add_task(description, total=total_segments, start=True)
        self._failed[task_id] = 0
        return task_id

    def advance(self, task_id: TaskID | None, success: bool = True) -> None:
        if task_id is None or self.disabled:
            return
        if not success:
            self._failed[task_id] = self._failed.get(task_id, 0) + 1
        self.progress.advance(task_id)

    def failed_count(self, task_id: TaskID | None) -> int:
        if task_id is None:
            return 0
        return self._failed.get(task_id, 0)

    def remove_task(self, task_id: TaskID | None) -> None:
        if task_id is None or self.disabled:
            return
        try:
            self.progress.remove_task(task_id)
        except KeyError:
            pass
        self._failed.pop(task_id, None)

    async def __aenter__(self):
        if not self.disabled:
            self.progress.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if not self.disabled:
            await asyncio.sleep(0.1)
            self.progress.stop()
