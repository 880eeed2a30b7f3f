import json
import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone

from turbofy_core.models.delivery import DeliveryAttempt
from turbofy_core.models.webhook import WebhookEnvelope, WebhookStatus, WebhookSubscription
from turbofy_core.observability.alerting import AlertManager
from turbofy_core.observability.metrics import MetricsCollector
from turbofy_core.repositories.base import WebhookRepository
from turbofy_core.webhook_dispatcher.engine import WebhookDeliveryEngine

logger = logging.getLogger("turbofy.webhooks")

ROUTING_KEY_PREFIX = "turbofy.payments"


@dataclass
class DispatchResult:
    event_id: str | None
    attempted: int = 0
    delivered: int = 0
    attempts: list[DeliveryAttempt] = field(default_factory=list)


def serialize_envelope(envelope: WebhookEnvelope) -> str:
    return json.dumps(envelope.to_dict(), separators=(",", ":"), default=str)


class OutboundWebhookDispatcher:
    """Fans a platform event out to every matching merchant subscription.

    Each endpoint gets its own signed, time-bounded delivery on a worker
    thread, so one slow or failing endpoint never holds up the others.
    Every attempt is written to the delivery log together with the
    subscription's failure counter; crossing ``suspend_after`` consecutive
    failures suspends the subscription.
    """

    def __init__(
        self,
        webhooks: WebhookRepository,
        engine: WebhookDeliveryEngine,
        suspend_after: int = 10,
        max_workers: int = 8,
        metrics: MetricsCollector | None = None,
        alert_manager: AlertManager | None = None,
    ):
        self.webhooks = webhooks
        self.engine = engine
        self.suspend_after = suspend_after
        self.max_workers = max_workers
        self.metrics = metrics
        self.alert_manager = alert_manager

    @staticmethod
    def build_envelope(event_name: str, payload: dict, event_id: str | None = None) -> WebhookEnvelope:
        return WebhookEnvelope(
            id=event_id or str(uuid.uuid4()),
            type=event_name,
            timestamp=datetime.now(timezone.utc).isoformat(),
            routing_key=f"{ROUTING_KEY_PREFIX}.{event_name}",
            payload=payload,
        )

    def dispatch(self, merchant_id: str, event_name: str, payload: dict, event_id: str | None = None) -> DispatchResult:
        subscriptions = self.webhooks.find_active_by_event(merchant_id, event_name)
        if not subscriptions:
            logger.debug(f"No active webhooks for {event_name} (merchant {merchant_id})")
            return DispatchResult(event_id=None)

        envelope = self.build_envelope(event_name, payload, event_id)
        body = serialize_envelope(envelope)
        result = DispatchResult(event_id=envelope.id, attempted=len(subscriptions))

        workers = min(len(subscriptions), self.max_workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="webhook-delivery") as pool:
            futures = {
                pool.submit(self.deliver, sub, envelope, body): sub
                for sub in subscriptions
            }
            for future, sub in futures.items():
                try:
                    attempt = future.result()
                except Exception as e:
                    logger.error(f"Delivery bookkeeping failed for webhook {sub.id}: {e}")
                    continue
                result.attempts.append(attempt)
                if attempt.success:
                    result.delivered += 1

        logger.info(
            f"Dispatched {event_name} {envelope.id} to merchant {merchant_id}: "
            f"{result.delivered}/{result.attempted} delivered"
        )
        if self.alert_manager:
            self.alert_manager.check()
        return result

    def deliver(
        self,
        subscription: WebhookSubscription,
        envelope: WebhookEnvelope,
        body: str | None = None,
        attempt_number: int = 1,
    ) -> DeliveryAttempt:
        """Deliver to one endpoint and record the outcome."""
        if body is None:
            body = serialize_envelope(envelope)
        attempt = self.engine.deliver(subscription, envelope, body, attempt_number)
        updated = self.webhooks.record_delivery(attempt, self.suspend_after)

        if self.metrics:
            if attempt.success:
                self.metrics.record_success(envelope.type)
            else:
                self.metrics.record_failure(envelope.type)

        if not attempt.success:
            logger.warning(
                f"Webhook {subscription.public_id} delivery of {envelope.type} failed: "
                f"{attempt.error} (failures={updated.failure_count})"
            )
            if updated.status is WebhookStatus.SUSPENDED and subscription.status is not WebhookStatus.SUSPENDED:
                logger.warning(
                    f"Webhook {subscription.public_id} suspended after {updated.failure_count} consecutive failures"
                )
        return attempt
