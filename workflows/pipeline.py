"""Pipeline orchestration: list, filter, dedup, extract, analyze, validate, publish.

One run walks every configured source folder. Each candidate file is locked in
the ProcessingGuard, then handled in a worker thread:

    budget check -> shareable link -> sink lookup -> download
    -> extract -> analyze -> validate -> publish

The temporary download is removed and the guard released on every exit path.
A failing file is recorded and never stops its siblings.
"""

import asyncio
import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from extraction import ContentExtractor, FileFamily, classify
from noteflow import NoteFlow
from sinks import Sink, SinkError
from storage import RawFileEntry, SourceDriver, StorageError

from .budget import BudgetExceededError, CallBudget
from .file_metadata import DownloadedFile, PublishRecord
from .filtering import FilterPolicy, sanitize_filename
from .guard import Outcome, ProcessingGuard
from .insights import InsightGenerator
from .outcome_log import FAILED, PROCESSED, SKIPPED, FileOutcome, OutcomeLog
from .validation import ValidationGate


class Trigger(Enum):
    WEBHOOK = "webhook"
    MANUAL = "manual"
    FORCE_RESCAN = "force_rescan"
    PERIODIC_SCAN = "periodic_scan"


@dataclass
class SourceFolder:
    """A folder to watch on one source, with the policy for its files."""
    source: SourceDriver
    path: str
    policy: FilterPolicy = field(default_factory=FilterPolicy)

    @property
    def label(self) -> str:
        return f"{self.source.backend}:{self.path}"


@contextmanager
def downloaded_file(source: SourceDriver, entry: RawFileEntry, family: FileFamily,
                    temp_dir: Optional[str] = None) -> Iterator[DownloadedFile]:
    """Download ``entry`` to a temporary file that is deleted when the block exits."""
    local_path = source.download_to_temp(entry, temp_dir)
    try:
        yield DownloadedFile(
            identity=entry.identity,
            local_path=local_path,
            sanitized_name=sanitize_filename(entry.name),
            size_bytes=os.path.getsize(local_path),
            source_path=entry.path,
            family=family,
        )
    finally:
        try:
            os.unlink(local_path)
        except FileNotFoundError:
            pass


class Pipeline:
    """Runs files from the configured sources through to their sinks."""

    def __init__(self, folders: List[SourceFolder], extractor: ContentExtractor,
                 insights: InsightGenerator, sinks: Dict[FileFamily, Sink],
                 budget: CallBudget,
                 guard: Optional[ProcessingGuard] = None,
                 validator: Optional[ValidationGate] = None,
                 outcome_log: Optional[OutcomeLog] = None,
                 sources: Optional[Dict[str, SourceDriver]] = None,
                 default_policy: Optional[FilterPolicy] = None,
                 temp_dir: Optional[str] = None,
                 max_concurrent: int = 3) -> None:
        """Initialize the pipeline.

        Args:
            folders: Source folders scanned by run()
            extractor: Content extractor (routes by family)
            insights: Insight generator
            sinks: Destination per content family
            budget: Daily model-call budget
            guard: Per-identity dedup guard (a fresh one if None)
            validator: Validation gate (default thresholds if None)
            outcome_log: Outcome log (a fresh one if None)
            sources: Drivers available to process_path(), by backend name.
                     Defaults to the drivers of ``folders``.
            default_policy: Policy for files outside a watched folder
            temp_dir: Directory for temporary downloads
            max_concurrent: Maximum files processed at the same time
        """
        self.folders = folders
        self.extractor = extractor
        self.insights = insights
        self.sinks = sinks
        self.budget = budget
        self.guard = guard or ProcessingGuard()
        self.validator = validator or ValidationGate()
        self.outcome_log = outcome_log or OutcomeLog()
        self.sources = sources if sources is not None else {
            folder.source.backend: folder.source for folder in folders
        }
        self.default_policy = default_policy or FilterPolicy()
        self.temp_dir = temp_dir
        self.max_concurrent = max(1, max_concurrent)

        self._semaphore: Optional[asyncio.Semaphore] = None
        self._semaphore_loop: Optional[asyncio.AbstractEventLoop] = None

    def _limiter(self) -> asyncio.Semaphore:
        # One semaphore per event loop; tests and the CLI may run several loops
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._semaphore_loop is not loop:
            self._semaphore = asyncio.Semaphore(self.max_concurrent)
            self._semaphore_loop = loop
        return self._semaphore

    # =========================================================================
    # Outcomes and status
    # =========================================================================

    def _record(self, entry: RawFileEntry, status: str, trigger: Trigger,
                reason: Optional[str] = None, page_url: Optional[str] = None) -> FileOutcome:
        return self.outcome_log.record(FileOutcome(
            name=entry.name,
            identity=str(entry.identity),
            status=status,
            reason=reason,
            page_url=page_url,
            trigger=trigger.value,
        ))

    def _publish_status(self) -> None:
        NoteFlow.update_status(
            self.guard.in_flight(),
            self.guard.recently_done(),
            self.budget.remaining,
            self.budget.limit,
        )

    def status(self) -> Dict[str, Any]:
        """Snapshot of guard, budget, backend and outcome state."""
        status: Dict[str, Any] = {
            "in_flight": self.guard.in_flight(),
            "recently_completed": self.guard.recently_done(),
            "budget_remaining": self.budget.remaining,
            "budget_limit": self.budget.limit,
            "sources": {folder.label: folder.source.is_available for folder in self.folders},
            "sinks": {family.value: sink.is_available for family, sink in self.sinks.items()},
            "recent": [outcome.as_dict() for outcome in self.outcome_log.recent()],
        }
        status.update(self.outcome_log.counts())
        return status

    # =========================================================================
    # Scanning
    # =========================================================================

    async def _list_folder(self, folder: SourceFolder,
                           trigger: Trigger) -> List[Tuple[SourceDriver, RawFileEntry, FileFamily]]:
        if not folder.source.is_available:
            NoteFlow.print_right(f"[yellow]⚠ Skipping {folder.label}: {folder.source.display_name}[/yellow]")
            return []

        try:
            entries = await asyncio.to_thread(folder.source.list_files, folder.path, True)
        except Exception as e:
            NoteFlow.print_right(f"[red]Error listing {folder.label}: {e}[/red]")
            return []

        candidates = []
        for entry in entries:
            if entry.is_folder:
                continue
            family = classify(entry.name)
            if family is None:
                NoteFlow.print_debug(f"Ignoring unsupported file: {entry.path}")
                continue
            reason = folder.policy.rejection_reason(entry, family)
            if reason:
                self._record(entry, SKIPPED, trigger, reason)
                continue
            candidates.append((folder.source, entry, family))

        NoteFlow.print_debug(f"{folder.label}: {len(candidates)} of {len(entries)} files eligible")
        return candidates

    async def run(self, trigger: Trigger = Trigger.PERIODIC_SCAN,
                  force_update: bool = False) -> List[FileOutcome]:
        """Scan every folder and process the eligible files.

        Args:
            trigger: What caused this run (recorded with each outcome)
            force_update: Overwrite pages that already exist in the sinks

        Returns:
            Outcomes of the files processed in this run. Files dropped by the
            guard (in flight or recently done) produce no outcome.
        """
        NoteFlow.print_right(f"Scanning {len(self.folders)} folders ({trigger.value})")

        candidates = []
        for folder in self.folders:
            candidates.extend(await self._list_folder(folder, trigger))

        results = await asyncio.gather(*(
            self.process_entry(source, entry, family, trigger, force_update)
            for source, entry, family in candidates
        ))
        self._publish_status()
        return [result for result in results if result is not None]

    async def process_path(self, backend: str, path: str,
                           force_update: bool = True) -> Optional[FileOutcome]:
        """Reprocess one file given by backend and path (or Drive file id).

        Raises:
            ValueError: If no driver is configured for ``backend``
            StorageError: If the file cannot be looked up
        """
        source = self.sources.get(backend)
        if source is None:
            raise ValueError(f"No source configured for backend '{backend}'")
        if not source.is_available:
            raise StorageError(f"{source.display_name} cannot be used")

        entry = await asyncio.to_thread(source.get_file, path)
        family = classify(entry.name)
        reason = self.default_policy.rejection_reason(entry, family)
        if reason:
            return self._record(entry, SKIPPED, Trigger.MANUAL, reason)

        result = await self.process_entry(source, entry, family, Trigger.MANUAL, force_update)
        self._publish_status()
        return result

    # =========================================================================
    # Per-file processing
    # =========================================================================

    async def process_entry(self, source: SourceDriver, entry: RawFileEntry,
                            family: Optional[FileFamily] = None,
                            trigger: Trigger = Trigger.MANUAL,
                            force_update: bool = False) -> Optional[FileOutcome]:
        """Process one listed file under the guard.

        Returns:
            The recorded outcome, or None if the guard dropped the file
        """
        family = family or classify(entry.name)
        if family is None:
            return self._record(entry, SKIPPED, trigger, f"unsupported file type: {entry.name}")

        identity = entry.identity
        if not self.guard.try_acquire(identity):
            NoteFlow.print_debug(f"Already in progress or recently done: {entry.path}")
            return None

        outcome = Outcome.FAILURE
        try:
            async with self._limiter():
                result = await asyncio.to_thread(
                    self._process_locked, source, entry, family, trigger, force_update
                )
            outcome = Outcome.SUCCESS
            return result
        except BudgetExceededError as e:
            return self._record(entry, FAILED, trigger, f"budget exceeded: {e}")
        except Exception as e:
            return self._record(entry, FAILED, trigger, str(e) or type(e).__name__)
        finally:
            self.guard.release(identity, outcome)
            self._publish_status()

    def _shareable_link(self, source: SourceDriver, entry: RawFileEntry) -> Optional[str]:
        try:
            return source.create_shareable_link(entry)
        except StorageError as e:
            NoteFlow.print_right(f"[yellow]⚠ Failed to get shareable URL for {entry.name}: {e}[/yellow]")
            return None

    def _process_locked(self, source: SourceDriver, entry: RawFileEntry, family: FileFamily,
                        trigger: Trigger, force_update: bool) -> FileOutcome:
        """Blocking part of per-file processing. Runs in a worker thread."""
        # No network traffic for this file once the day's budget is gone
        self.budget.ensure_available()

        sink = self.sinks.get(family)
        if sink is None or not sink.is_available:
            name = sink.display_name if sink else f"{family.value} destination"
            raise SinkError(f"No destination available: {name}")

        if entry.size == 0:
            return self._record(entry, SKIPPED, trigger, "empty file")

        display_name = sanitize_filename(entry.name)
        shareable_url = self._shareable_link(source, entry)
        existing = self.guard.is_known_to_sink(sink, shareable_url, display_name)
        if existing and not force_update:
            return self._record(entry, SKIPPED, trigger, "already published",
                                page_url=existing.url)

        with downloaded_file(source, entry, family, self.temp_dir) as downloaded:
            if downloaded.size_bytes == 0:
                return self._record(entry, SKIPPED, trigger, "empty file")
            downloaded.shareable_url = shareable_url

            NoteFlow.print_right(f"[red]Processing: {downloaded.sanitized_name}[/red]")
            extraction = self.extractor.extract(downloaded.local_path, downloaded.sanitized_name, family)
            insight = self.insights.analyze(extraction.text, downloaded.sanitized_name, family)

            verdict = self.validator.check(downloaded.sanitized_name, extraction.text, insight)
            if not verdict.accepted:
                return self._record(entry, SKIPPED, trigger, verdict.reason)

            record = PublishRecord.build(downloaded, extraction, insight)
            ref = sink.create_or_update(record, force_update=force_update)

        if ref.updated:
            action = "updated"
        elif ref.created:
            action = "published"
        else:
            action = "already published"
        line1 = f"{record.processed_at.strftime('%H:%M')} {insight.title}"
        line2 = f"  {source.backend}:{entry.path} → {ref.url or ref.page_id}"
        NoteFlow.print_left(line1, line2)
        return self._record(entry, PROCESSED, trigger, action, page_url=ref.url)
