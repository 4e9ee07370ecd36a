"""Outcome log recording what happened to every file the pipeline touched."""

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Dict, List, Optional

from noteflow import NoteFlow


PROCESSED = "processed"
SKIPPED = "skipped"
FAILED = "failed"

STATUSES = (PROCESSED, SKIPPED, FAILED)


@dataclass
class FileOutcome:
    """Result of one file in one pipeline run."""
    name: str
    identity: Optional[str]
    status: str                             # processed | skipped | failed
    reason: Optional[str] = None
    page_url: Optional[str] = None
    trigger: Optional[str] = None
    finished_at: datetime = field(default_factory=datetime.now)

    def as_dict(self) -> Dict[str, Optional[str]]:
        return {
            "name": self.name,
            "identity": self.identity,
            "status": self.status,
            "reason": self.reason,
            "page_url": self.page_url,
            "trigger": self.trigger,
            "finished_at": self.finished_at.strftime("%Y-%m-%d %H:%M:%S"),
        }


def _format(outcome: FileOutcome) -> str:
    ts = outcome.finished_at.strftime("%H:%M:%S")
    if outcome.status == PROCESSED:
        return f"[green]✓[/green] {ts} {outcome.name}: {outcome.page_url or 'published'}"
    if outcome.status == SKIPPED:
        return f"[yellow]-[/yellow] {ts} {outcome.name}: skipped ({outcome.reason})"
    return f"[red]✗[/red] {ts} {outcome.name}: failed ({outcome.reason})"


class OutcomeLog:
    """Bounded in-memory log of file outcomes.

    Keeps the most recent ``capacity`` entries for the status view, plus
    running counts per status since the process started.
    """

    def __init__(self, capacity: int = 50) -> None:
        self._entries: Deque[FileOutcome] = deque(maxlen=capacity)
        self._counts: Dict[str, int] = {status: 0 for status in STATUSES}
        self._lock = threading.Lock()

    def record(self, outcome: FileOutcome) -> FileOutcome:
        if outcome.status not in STATUSES:
            raise ValueError(f"Unknown outcome status: {outcome.status}")
        with self._lock:
            self._entries.append(outcome)
            self._counts[outcome.status] += 1

        if outcome.status == SKIPPED:
            NoteFlow.print_debug(_format(outcome))
        else:
            NoteFlow.print_right(_format(outcome))
        return outcome

    def recent(self, limit: int = 10) -> List[FileOutcome]:
        """Most recent outcomes, newest first."""
        with self._lock:
            entries = list(self._entries)
        return list(reversed(entries))[:limit]

    def counts(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
