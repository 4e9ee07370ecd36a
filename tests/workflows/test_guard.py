"""Tests for ProcessingGuard, payload digests and CallBudget."""

import threading
from datetime import date, timedelta

import pytest

from conftest import FakeSink
from sinks import PageRef
from storage import FileIdentity
from workflows import (
    BudgetExceededError,
    CallBudget,
    Outcome,
    ProcessingGuard,
    ProcessingState,
    payload_digest,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def guard(clock):
    return ProcessingGuard(retention_seconds=120, capacity=3, clock=clock)


def ident(n, revision="r1"):
    return FileIdentity("dropbox", f"id:{n}", revision)


class TestProcessingGuard:

    def test_acquire_then_locked(self, guard):
        assert guard.try_acquire(ident(1))
        assert not guard.try_acquire(ident(1))
        assert guard.state_of(ident(1)) == ProcessingState.LOCKED
        assert guard.in_flight() == 1

    def test_different_identities_do_not_block(self, guard):
        assert guard.try_acquire(ident(1))
        assert guard.try_acquire(ident(2))
        assert guard.in_flight() == 2

    def test_new_revision_is_a_new_identity(self, guard):
        assert guard.try_acquire(ident(1, "r1"))
        assert guard.try_acquire(ident(1, "r2"))

    def test_release_blocks_until_window_passes(self, guard, clock):
        guard.try_acquire(ident(1))
        guard.release(ident(1), Outcome.SUCCESS)

        clock.now += 60
        assert not guard.try_acquire(ident(1))
        assert guard.state_of(ident(1)) == ProcessingState.RECENTLY_DONE

        clock.now += 61
        assert guard.try_acquire(ident(1))

    def test_failure_is_also_recently_done(self, guard):
        guard.try_acquire(ident(1))
        guard.release(ident(1), Outcome.FAILURE)
        assert guard.state_of(ident(1)) == ProcessingState.RECENTLY_DONE
        assert not guard.try_acquire(ident(1))

    def test_release_without_lock_is_ignored(self, guard):
        guard.release(ident(9))
        assert guard.state_of(ident(9)) == ProcessingState.IDLE

    def test_locked_records_never_expire(self, guard, clock):
        guard.try_acquire(ident(1))
        clock.now += 10000
        assert guard.state_of(ident(1)) == ProcessingState.LOCKED
        assert not guard.try_acquire(ident(1))

    def test_capacity_evicts_oldest_done(self, guard):
        for n in range(1, 5):
            guard.try_acquire(ident(n))
            guard.release(ident(n))

        assert guard.recently_done() == 3
        assert guard.state_of(ident(1)) == ProcessingState.IDLE
        assert guard.state_of(ident(4)) == ProcessingState.RECENTLY_DONE

    def test_capacity_never_evicts_locked(self, guard):
        for n in range(1, 6):
            guard.try_acquire(ident(n))
        assert guard.in_flight() == 5

    def test_parallel_acquire_has_one_winner(self):
        guard = ProcessingGuard()
        barrier = threading.Barrier(8)
        wins = []

        def attempt():
            barrier.wait()
            if guard.try_acquire(ident(1)):
                wins.append(1)

        threads = [threading.Thread(target=attempt) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert wins == [1]

    def test_is_known_to_sink_delegates(self):
        sink = FakeSink()
        sink.pages["https://share/x"] = PageRef("p1", "https://notion.so/p1")

        assert ProcessingGuard.is_known_to_sink(sink, "https://share/x", None).page_id == "p1"
        assert ProcessingGuard.is_known_to_sink(sink, None, "call.m4a") is None
        assert sink.lookups == [("https://share/x", None), (None, "call.m4a")]


class TestPayloadDigest:

    def test_key_order_does_not_matter(self):
        assert payload_digest({"a": 1, "b": [1, 2]}) == payload_digest({"b": [1, 2], "a": 1})

    def test_bytes_and_str(self):
        assert payload_digest(b"abc") == payload_digest("abc")
        assert payload_digest(b"abc") != payload_digest(b"abd")


class TestCallBudget:

    def test_consume_until_limit(self):
        budget = CallBudget(2)
        budget.consume()
        budget.consume()

        assert budget.remaining == 0
        with pytest.raises(BudgetExceededError):
            budget.consume()
        with pytest.raises(BudgetExceededError):
            budget.ensure_available()
        assert budget.used == 2

    def test_resets_on_new_day(self):
        today = [date(2024, 5, 1)]
        budget = CallBudget(1, today=lambda: today[0])
        budget.consume()
        with pytest.raises(BudgetExceededError):
            budget.ensure_available()

        today[0] += timedelta(days=1)
        budget.ensure_available()
        assert budget.remaining == 1

    def test_zero_limit_rejects_everything(self):
        with pytest.raises(BudgetExceededError):
            CallBudget(0).ensure_available()
