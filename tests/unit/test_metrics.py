import pytest

from turbofy_core.observability.metrics import MetricsCollector


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRecordAndCounts:
    """Tests for recording successes/failures and counting them."""

    @pytest.mark.unit
    def test_counts(self, metrics):
        metrics.record_success()
        metrics.record_success()
        metrics.record_failure()
        assert metrics.success_count_in_window() == 2
        assert metrics.failure_count_in_window() == 1
        assert metrics.total_in_window() == 3

    @pytest.mark.unit
    def test_counts_by_event_type(self, metrics):
        metrics.record_success("charge.paid")
        metrics.record_failure("charge.paid")
        metrics.record_failure("charge.created")
        assert metrics.failure_count_in_window("charge.paid") == 1
        assert metrics.total_in_window("charge.created") == 1
        assert metrics.failure_rate("charge.paid") == pytest.approx(0.5)


class TestFailureRate:
    """Tests for failure_rate computation."""

    @pytest.mark.unit
    def test_failure_rate_returns_correct_ratio(self, metrics):
        metrics.record_success()
        metrics.record_failure()
        assert metrics.failure_rate() == pytest.approx(0.5)

    @pytest.mark.unit
    def test_failure_rate_returns_zero_when_empty(self, metrics):
        assert metrics.failure_rate() == 0.0


class TestRollingWindow:
    """Tests for rolling window expiry."""

    @pytest.mark.unit
    def test_rolling_window_excludes_old_entries(self):
        clock = FakeClock()
        mc = MetricsCollector(window_seconds=300, clock=clock)
        mc.record_success()
        mc.record_failure()
        assert mc.total_in_window() == 2

        clock.now += 301
        assert mc.total_in_window() == 0
        assert mc.failure_rate() == 0.0

    @pytest.mark.unit
    def test_expired_entries_are_discarded(self):
        clock = FakeClock()
        mc = MetricsCollector(window_seconds=300, clock=clock)
        for _ in range(50):
            mc.record_success("charge.paid")
            mc.record_failure("charge.paid")

        clock.now += 301
        mc.record_failure("charge.created")
        assert mc.failure_count_in_window("charge.paid") == 0

        assert len(mc._successes) == 0
        assert len(mc._failures) == 1
        assert mc.failure_rate() == 1.0
        assert mc.total_in_window("charge.created") == 1


class TestReset:
    """Tests for reset()."""

    @pytest.mark.unit
    def test_reset_clears_all_data(self, metrics):
        metrics.record_success()
        metrics.record_failure()
        metrics.reset()
        assert metrics.total_in_window() == 0
        assert metrics.failure_rate() == 0.0
