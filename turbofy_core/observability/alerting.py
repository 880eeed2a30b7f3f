import logging
import threading

from turbofy_core.observability.metrics import MetricsCollector

logger = logging.getLogger("turbofy.alerts")


class AlertManager:
    """Raises operator alerts.

    Two kinds: the outbound delivery failure rate crossing a threshold
    (fired once until the rate recovers), and an inbound event whose
    processing exhausted every retry.
    """

    def __init__(
        self,
        metrics: MetricsCollector,
        threshold: float = 0.10,
        callback=None,
    ):
        self.metrics = metrics
        self.threshold = threshold
        self.callback = callback
        self._fired = False
        self._alerts: list[dict] = []
        self._lock = threading.Lock()

    def check(self) -> dict | None:
        """Check if failure rate exceeds threshold. Returns alert dict or None."""
        rate = self.metrics.failure_rate()
        total = self.metrics.total_in_window()
        failures = self.metrics.failure_count_in_window()

        if total == 0:
            return None

        with self._lock:
            if rate <= self.threshold:
                # back below threshold, allow firing again
                self._fired = False
                return None
            if self._fired:
                return None
            self._fired = True

        alert = {
            "type": "webhook_failure_rate",
            "failure_rate": rate,
            "threshold": self.threshold,
            "total_deliveries": total,
            "failed_deliveries": failures,
            "message": (
                f"Webhook failure rate {rate:.1%} exceeds "
                f"threshold {self.threshold:.1%} "
                f"({failures}/{total} deliveries failed)"
            ),
        }
        self._emit(alert)
        return alert

    def alert_processing_exhausted(
        self,
        provider: str,
        event_type: str,
        event_id: str,
        attempts: int,
        last_error: str | None = None,
    ) -> dict:
        alert = {
            "type": "inbound_processing_exhausted",
            "subject": f"Persistent failure processing {provider} webhook",
            "provider": provider,
            "event_type": event_type,
            "event_id": event_id,
            "attempts": attempts,
            "last_error": last_error,
            "message": (
                f"Event {event_type} {event_id} from {provider} failed "
                f"after {attempts} attempts: {last_error}"
            ),
        }
        self._emit(alert)
        return alert

    def _emit(self, alert: dict) -> None:
        with self._lock:
            self._alerts.append(alert)
        logger.error(alert["message"])
        if self.callback:
            try:
                self.callback(alert)
            except Exception as e:
                logger.error(f"Alert callback failed for {alert['type']}: {e}")

    def get_alerts(self) -> list[dict]:
        with self._lock:
            return list(self._alerts)

    def reset(self) -> None:
        with self._lock:
            self._fired = False
            self._alerts.clear()
