import threading

from turbofy_core.models.delivery import DeliveryAttempt
from turbofy_core.repositories.base import WebhookLogRepository


class DeliveryLogger(WebhookLogRepository):
    """Thread-safe, append-only store of outbound delivery attempts."""

    def __init__(self):
        self._attempts: list[DeliveryAttempt] = []
        self._lock = threading.Lock()

    def log(self, attempt: DeliveryAttempt) -> None:
        with self._lock:
            self._attempts.append(attempt)

    def get_attempts(self, event_id: str | None = None, webhook_id: str | None = None) -> list[DeliveryAttempt]:
        with self._lock:
            return [
                a for a in self._attempts
                if (event_id is None or a.event_id == event_id)
                and (webhook_id is None or a.webhook_id == webhook_id)
            ]

    def get_failed_attempts(self) -> list[DeliveryAttempt]:
        with self._lock:
            return [a for a in self._attempts if not a.success]
