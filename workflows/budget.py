"""Process-wide daily call budget."""

import threading
from datetime import date
from typing import Callable


class BudgetExceededError(Exception):
    """The daily model-call ceiling has been reached."""
    pass


class CallBudget:
    """Counts model calls per local day and rejects work above a ceiling.

    The counter resets the first time it is touched on a new local date.
    Rejection is immediate; nothing is queued.
    """

    def __init__(self, limit: int, today: Callable[[], date] = date.today) -> None:
        """Initialize the budget.

        Args:
            limit: Maximum number of calls per day (0 or less disables work)
            today: Clock returning the current local date (injectable for tests)
        """
        self.limit = limit
        self._today = today
        self._day = today()
        self._used = 0
        self._lock = threading.Lock()

    def _roll_over(self) -> None:
        current = self._today()
        if current != self._day:
            self._day = current
            self._used = 0

    @property
    def used(self) -> int:
        with self._lock:
            self._roll_over()
            return self._used

    @property
    def remaining(self) -> int:
        with self._lock:
            self._roll_over()
            return max(0, self.limit - self._used)

    def ensure_available(self) -> None:
        """Raise BudgetExceededError if no calls are left today."""
        with self._lock:
            self._roll_over()
            if self._used >= self.limit:
                raise BudgetExceededError(
                    f"Daily API limit reached ({self._used}/{self.limit}); "
                    "new work is rejected until tomorrow"
                )

    def consume(self, units: int = 1) -> None:
        """Charge ``units`` calls, or raise without charging if that would exceed the limit."""
        with self._lock:
            self._roll_over()
            if self._used + units > self.limit:
                raise BudgetExceededError(
                    f"Daily API limit reached ({self._used}/{self.limit})"
                )
            self._used += units
