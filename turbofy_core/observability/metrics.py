import threading
import time


class MetricsCollector:
    """Collects webhook delivery outcomes in a rolling time window."""

    def __init__(self, window_seconds: float = 300, clock=time.monotonic):
        self._window_seconds = window_seconds
        self._clock = clock
        self._successes: list[tuple[float, str | None]] = []  # (timestamp, event_type)
        self._failures: list[tuple[float, str | None]] = []
        self._lock = threading.Lock()

    def record_success(self, event_type: str | None = None) -> None:
        with self._lock:
            self._successes.append((self._clock(), event_type))

    def record_failure(self, event_type: str | None = None) -> None:
        with self._lock:
            self._failures.append((self._clock(), event_type))

    def _prune(self, data: list[tuple[float, str | None]], now: float) -> list:
        cutoff = now - self._window_seconds
        return [entry for entry in data if entry[0] >= cutoff]

    def _counts(self, event_type: str | None) -> tuple[int, int]:
        # drop expired entries
        now = self._clock()
        self._successes = self._prune(self._successes, now)
        self._failures = self._prune(self._failures, now)
        if event_type is None:
            return len(self._successes), len(self._failures)
        return (
            sum(1 for _, t in self._successes if t == event_type),
            sum(1 for _, t in self._failures if t == event_type),
        )

    def failure_rate(self, event_type: str | None = None) -> float:
        """Failure rate in the current rolling window (0.0 to 1.0)."""
        with self._lock:
            successes, failures = self._counts(event_type)
        total = successes + failures
        if total == 0:
            return 0.0
        return failures / total

    def total_in_window(self, event_type: str | None = None) -> int:
        with self._lock:
            return sum(self._counts(event_type))

    def failure_count_in_window(self, event_type: str | None = None) -> int:
        with self._lock:
            return self._counts(event_type)[1]

    def success_count_in_window(self, event_type: str | None = None) -> int:
        with self._lock:
            return self._counts(event_type)[0]

    def reset(self) -> None:
        with self._lock:
            self._successes.clear()
            self._failures.clear()
