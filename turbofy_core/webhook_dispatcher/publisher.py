import logging
import threading
import uuid
from concurrent.futures import Executor
from dataclasses import dataclass, field
from datetime import datetime, timezone

from turbofy_core.webhook_dispatcher.dispatcher import OutboundWebhookDispatcher

logger = logging.getLogger("turbofy.webhooks")


@dataclass(frozen=True)
class PublishedEvent:
    id: str
    merchant_id: str
    type: str
    payload: dict
    idempotency_key: str | None = None
    published_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class EventPublisher:
    """Publishes platform events to merchants through the outbound dispatcher.

    With an ``executor`` the fan-out runs off the caller's thread; without
    one it runs inline. Either way the event is journaled before returning.
    """

    def __init__(self, dispatcher: OutboundWebhookDispatcher, executor: Executor | None = None):
        self.dispatcher = dispatcher
        self.executor = executor
        self._published: list[PublishedEvent] = []
        self._lock = threading.Lock()

    def publish(
        self,
        merchant_id: str,
        event_name: str,
        payload: dict,
        idempotency_key: str | None = None,
    ) -> PublishedEvent:
        event = PublishedEvent(
            id=str(uuid.uuid4()),
            merchant_id=merchant_id,
            type=event_name,
            payload=payload,
            idempotency_key=idempotency_key,
        )
        with self._lock:
            self._published.append(event)

        if self.executor is not None:
            self.executor.submit(self._dispatch, event)
        else:
            self._dispatch(event)
        return event

    def _dispatch(self, event: PublishedEvent) -> None:
        try:
            self.dispatcher.dispatch(event.merchant_id, event.type, event.payload, event_id=event.id)
        except Exception as e:
            # outbound delivery is not control-plane critical; the journal keeps the event
            logger.error(f"Dispatch of {event.type} {event.id} failed: {e}")

    def get_published(self, event_type: str | None = None) -> list[PublishedEvent]:
        with self._lock:
            if event_type is None:
                return list(self._published)
            return [e for e in self._published if e.type == event_type]
