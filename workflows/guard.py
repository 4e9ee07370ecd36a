"""In-memory deduplication and concurrency guards.

ProcessingGuard enforces at most one concurrent pipeline per file identity and
suppresses reprocessing of a file that finished within the retention window.
WebhookDigestGuard collapses repeated deliveries of the same notification
before any file-level work starts.

Both keep bounded state: entries expire after a retention window, and a
capacity bound evicts the oldest completed entries first. Nothing is
persisted; after a restart the sinks' find_existing() lookup is what prevents
duplicate pages.
"""

import hashlib
import json
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Hashable, Optional, TYPE_CHECKING, Union

if TYPE_CHECKING:
    from sinks import Sink, PageRef


DEFAULT_RETENTION_SECONDS = 120.0
DEFAULT_CAPACITY = 100


class ProcessingState(Enum):
    IDLE = "idle"
    LOCKED = "locked"
    RECENTLY_DONE = "recently_done"


class Outcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class ProcessingRecord:
    state: ProcessingState
    locked_at: Optional[float] = None
    done_at: Optional[float] = None
    outcome: Optional[Outcome] = None


class ProcessingGuard:
    """Tracks Locked / RecentlyDone state per file identity.

    All operations take one internal lock, so try_acquire, release and
    eviction are atomic with respect to each other. Pipeline stages run in
    worker threads, which is why this is a threading lock rather than an
    asyncio one.
    """

    def __init__(self, retention_seconds: float = DEFAULT_RETENTION_SECONDS,
                 capacity: int = DEFAULT_CAPACITY,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.retention_seconds = retention_seconds
        self.capacity = capacity
        self._clock = clock
        self._lock = threading.Lock()
        # Insertion order == order in which records entered their current state
        self._records: "OrderedDict[Hashable, ProcessingRecord]" = OrderedDict()

    def _evict(self, now: float) -> None:
        """Drop expired RecentlyDone records, then enforce the capacity bound."""
        expired = [
            key for key, record in self._records.items()
            if record.state == ProcessingState.RECENTLY_DONE
            and now - record.done_at >= self.retention_seconds
        ]
        for key in expired:
            del self._records[key]

        done = sum(1 for r in self._records.values() if r.state == ProcessingState.RECENTLY_DONE)
        if done <= self.capacity:
            return
        for key in list(self._records.keys()):
            if done <= self.capacity:
                break
            if self._records[key].state == ProcessingState.RECENTLY_DONE:
                del self._records[key]
                done -= 1

    def try_acquire(self, identity: Hashable) -> bool:
        """Lock ``identity`` for processing.

        Returns:
            False if the identity is already locked, or finished within the
            retention window. True if the caller now owns the lock.
        """
        with self._lock:
            now = self._clock()
            self._evict(now)

            record = self._records.get(identity)
            if record is not None and record.state != ProcessingState.IDLE:
                return False

            self._records[identity] = ProcessingRecord(ProcessingState.LOCKED, locked_at=now)
            self._records.move_to_end(identity)
            return True

    def release(self, identity: Hashable, outcome: Outcome = Outcome.SUCCESS) -> None:
        """Mark a locked identity as done, whatever the outcome.

        Failed files are not retried within the window; they become eligible
        again once evicted.
        """
        with self._lock:
            now = self._clock()
            record = self._records.get(identity)
            if record is None or record.state != ProcessingState.LOCKED:
                return
            record.state = ProcessingState.RECENTLY_DONE
            record.done_at = now
            record.outcome = outcome
            self._records.move_to_end(identity)
            self._evict(now)

    def state_of(self, identity: Hashable) -> ProcessingState:
        with self._lock:
            self._evict(self._clock())
            record = self._records.get(identity)
            return record.state if record else ProcessingState.IDLE

    def in_flight(self) -> int:
        with self._lock:
            return sum(1 for r in self._records.values() if r.state == ProcessingState.LOCKED)

    def recently_done(self) -> int:
        with self._lock:
            self._evict(self._clock())
            return sum(
                1 for r in self._records.values()
                if r.state == ProcessingState.RECENTLY_DONE
            )

    @staticmethod
    def is_known_to_sink(sink: "Sink", link: Optional[str],
                         display_name: Optional[str]) -> Optional["PageRef"]:
        """Ask the system-of-record whether the file was already published.

        Lookup is by shareable link; the sink falls back to the display name
        when there is no link or it cannot match links.
        """
        return sink.find_existing(link=link, display_name=display_name)


def payload_digest(payload: Union[bytes, str, Any]) -> str:
    """SHA-256 of a notification payload.

    Raw bytes and strings are hashed as-is; anything else is serialized as
    canonical JSON (sorted keys, compact separators) first.
    """
    if isinstance(payload, bytes):
        data = payload
    elif isinstance(payload, str):
        data = payload.encode("utf-8")
    else:
        data = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str).encode("utf-8")
    return hashlib.sha256(data).hexdigest()


class WebhookDigestGuard:
    """Bounded set of recently seen notification digests."""

    def __init__(self, retention_seconds: float = DEFAULT_RETENTION_SECONDS,
                 capacity: int = DEFAULT_CAPACITY,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.retention_seconds = retention_seconds
        self.capacity = capacity
        self._clock = clock
        self._lock = threading.Lock()
        self._seen: "OrderedDict[str, float]" = OrderedDict()

    def _evict(self, now: float) -> None:
        while self._seen:
            digest, seen_at = next(iter(self._seen.items()))
            if now - seen_at < self.retention_seconds and len(self._seen) <= self.capacity:
                break
            self._seen.popitem(last=False)

    def check_and_remember(self, payload: Union[bytes, str, Any]) -> bool:
        """Record a notification.

        Returns:
            True if this payload is new, False if an identical one was seen
            within the retention window.
        """
        digest = payload_digest(payload)
        with self._lock:
            now = self._clock()
            self._evict(now)
            if digest in self._seen:
                return False
            self._seen[digest] = now
            self._evict(now)
            return True

    def __len__(self) -> int:
        with self._lock:
            self._evict(self._clock())
            return len(self._seen)
