"""Periodic folder scanning."""

import asyncio
from typing import Optional

from noteflow import NoteFlow

from .pipeline import Pipeline, Trigger


class FolderMonitor:
    """Runs a periodic scan of every watched folder until stopped.

    Scans go through Pipeline.run(), so they share the guard with webhook
    runs and never double-process a file that a webhook run is handling.
    """

    def __init__(self, pipeline: Pipeline, interval: float = 300) -> None:
        self.pipeline = pipeline
        self.interval = interval
        self.scans = 0
        self._stop: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    async def run_forever(self, max_scans: Optional[int] = None) -> None:
        """Scan now, then every ``interval`` seconds.

        Args:
            max_scans: Stop after this many scans (None = until stop())
        """
        self._loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        NoteFlow.print_right(f"Watching folders every {self.interval:g}s")

        while not self._stop.is_set():
            try:
                await self.pipeline.run(Trigger.PERIODIC_SCAN)
            except Exception as e:
                NoteFlow.print_right(f"[red]Scan failed: {e}[/red]")
            self.scans += 1
            if max_scans is not None and self.scans >= max_scans:
                break
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    def stop(self) -> None:
        """Stop after the current scan. Safe to call from any thread."""
        if self._loop is None or self._stop is None:
            return
        self._loop.call_soon_threadsafe(self._stop.set)
