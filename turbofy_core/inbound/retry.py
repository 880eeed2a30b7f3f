import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger("turbofy.inbound")


@dataclass
class RetryOutcome:
    succeeded: bool
    attempts: int
    result: Any = None
    last_error: Exception | None = None


class RetryManager:
    """Runs an operation on a fixed delay schedule.

    The schedule lists the delay before each attempt, so its length is the
    total number of attempts. ``sleep`` is injectable for tests.
    """

    DEFAULT_SCHEDULE = [0, 1, 5, 30, 300]

    def __init__(self, schedule: list[float] | None = None, sleep: Callable[[float], None] = time.sleep):
        self.schedule = list(schedule) if schedule is not None else list(self.DEFAULT_SCHEDULE)
        if not self.schedule:
            raise ValueError("Retry schedule needs at least one entry")
        self.sleep = sleep

    @property
    def max_attempts(self) -> int:
        return len(self.schedule)

    def next_delay(self, attempt: int) -> float:
        """Delay in seconds before ``attempt`` (0-indexed)."""
        if attempt >= len(self.schedule):
            return float(self.schedule[-1])
        return float(self.schedule[attempt])

    def has_attempts_remaining(self, attempt: int) -> bool:
        return attempt < self.max_attempts

    def run(
        self,
        operation: Callable[[int], Any],
        on_failure: Callable[[int, Exception], None] | None = None,
    ) -> RetryOutcome:
        """Call ``operation(attempt_number)`` until it returns without raising.

        ``attempt_number`` starts at 1. ``on_failure`` sees every failed
        attempt before the next delay.
        """
        attempt = 0
        last_error = None
        while self.has_attempts_remaining(attempt):
            delay = self.next_delay(attempt)
            if delay > 0:
                self.sleep(delay)
            attempt += 1
            try:
                return RetryOutcome(succeeded=True, attempts=attempt, result=operation(attempt))
            except Exception as e:
                last_error = e
                logger.warning(f"Attempt {attempt}/{self.max_attempts} failed: {type(e).__name__}: {e}")
                if on_failure:
                    on_failure(attempt, e)
        return RetryOutcome(succeeded=False, attempts=attempt, last_error=last_error)
