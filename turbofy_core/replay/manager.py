import logging

from turbofy_core.errors import NotFoundError
from turbofy_core.models.delivery import DeliveryAttempt
from turbofy_core.models.webhook import WebhookEnvelope
from turbofy_core.repositories.base import WebhookLogRepository, WebhookRepository
from turbofy_core.webhook_dispatcher.dispatcher import OutboundWebhookDispatcher

logger = logging.getLogger("turbofy.webhooks")


def envelope_from_log(attempt: DeliveryAttempt) -> WebhookEnvelope:
    """Rebuild the envelope recorded with a delivery attempt."""
    payload = attempt.payload
    return WebhookEnvelope(
        id=payload["id"],
        type=payload["type"],
        timestamp=payload["timestamp"],
        routing_key=payload["routingKey"],
        payload=payload["payload"],
        version=payload.get("version", "v1"),
    )


class OutboundRedeliveryManager:
    """Re-sends logged outbound events whose last delivery failed.

    The envelope is replayed as logged (same id, same timestamp) so merchants
    can deduplicate on the event id. Only ACTIVE subscriptions are retried;
    a suspended one must be re-activated first.
    """

    def __init__(
        self,
        dispatcher: OutboundWebhookDispatcher,
        webhooks: WebhookRepository,
        delivery_log: WebhookLogRepository,
        max_attempts: int | None = None,
    ):
        self.dispatcher = dispatcher
        self.webhooks = webhooks
        self.delivery_log = delivery_log
        self.max_attempts = max_attempts

    def redeliver(self, event_id: str, webhook_id: str) -> DeliveryAttempt | None:
        """Redeliver one event to one subscription.

        Returns None when there is nothing to do: the event was delivered,
        the subscription is suspended, or the attempt cap is reached.
        """
        attempts = self.delivery_log.get_attempts(event_id=event_id, webhook_id=webhook_id)
        if not attempts:
            raise NotFoundError(f"No delivery of {event_id} to webhook {webhook_id} was logged")
        if any(a.success for a in attempts):
            return None

        subscription = self.webhooks.get(webhook_id)
        if subscription is None:
            raise NotFoundError(f"Webhook {webhook_id} not found")
        if not subscription.is_active:
            logger.info(f"Skipping redelivery of {event_id}: webhook {subscription.public_id} is suspended")
            return None

        last = max(attempts, key=lambda a: a.attempt_number)
        if self.max_attempts is not None and last.attempt_number >= self.max_attempts:
            logger.info(f"Redelivery cap reached for {event_id} to webhook {subscription.public_id}")
            return None

        envelope = envelope_from_log(last)
        attempt = self.dispatcher.deliver(subscription, envelope, attempt_number=last.attempt_number + 1)
        logger.info(
            f"Redelivered {envelope.type} {event_id} to webhook {subscription.public_id} "
            f"(attempt {attempt.attempt_number}): {'ok' if attempt.success else attempt.error}"
        )
        return attempt

    def redeliver_failed(self) -> dict[tuple[str, str], DeliveryAttempt]:
        """Redeliver every (event, subscription) pair whose deliveries all failed."""
        pairs = {(a.event_id, a.webhook_id) for a in self.delivery_log.get_failed_attempts()}
        results = {}
        for event_id, webhook_id in sorted(pairs):
            try:
                attempt = self.redeliver(event_id, webhook_id)
            except NotFoundError as e:
                logger.warning(f"Cannot redeliver {event_id}: {e}")
                continue
            if attempt is not None:
                results[(event_id, webhook_id)] = attempt
        return results
