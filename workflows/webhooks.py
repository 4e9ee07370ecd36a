"""Webhook intake: verify, dedup, acknowledge, then process in the background."""

import asyncio
import hashlib
import hmac
from dataclasses import dataclass
from typing import Any, Optional, Set

from noteflow import NoteFlow

from .guard import WebhookDigestGuard
from .pipeline import Pipeline, Trigger


@dataclass
class Acknowledgement:
    """What to answer the webhook sender. Processing has not happened yet."""
    status_code: int
    message: str
    scheduled: bool = False


class WebhookReceiver:
    """Turns change notifications into background pipeline runs.

    Notification payloads only say "something changed"; the pipeline re-lists
    the watched folders and the guards sort out what is actually new.
    """

    def __init__(self, pipeline: Pipeline, digest_guard: Optional[WebhookDigestGuard] = None,
                 app_secret: Optional[str] = None) -> None:
        self.pipeline = pipeline
        self.digest_guard = digest_guard or WebhookDigestGuard()
        self.app_secret = app_secret
        self._tasks: Set[asyncio.Task] = set()

    def verify_signature(self, raw_body: Optional[bytes], signature: Optional[str]) -> bool:
        """Check an X-Dropbox-Signature style HMAC-SHA256 hex digest.

        Always True when no app secret is configured.
        """
        if not self.app_secret:
            return True
        if raw_body is None or not signature:
            return False
        expected = hmac.new(self.app_secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, signature.strip().lower())

    @staticmethod
    def challenge(value: str) -> str:
        """Echo a verification challenge."""
        return value

    def receive(self, payload: Any, raw_body: Optional[bytes] = None,
                signature: Optional[str] = None) -> Acknowledgement:
        """Accept a notification and schedule a pipeline run.

        Must be called from the event loop thread. Returns before any file is
        touched.
        """
        if not self.verify_signature(raw_body, signature):
            NoteFlow.print_right("[red]Rejected webhook with invalid signature[/red]")
            return Acknowledgement(403, "invalid signature")

        if not self.digest_guard.check_and_remember(payload if payload is not None else raw_body):
            NoteFlow.print_debug("Duplicate webhook delivery ignored")
            return Acknowledgement(200, "duplicate")

        task = asyncio.get_running_loop().create_task(self.pipeline.run(Trigger.WEBHOOK))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return Acknowledgement(200, "accepted", scheduled=True)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            NoteFlow.print_right(f"[red]Webhook run failed: {task.exception()}[/red]")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled run to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
