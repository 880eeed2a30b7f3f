import time
import uuid
from datetime import datetime, timezone

import requests

from turbofy_core.models.delivery import DeliveryAttempt
from turbofy_core.models.webhook import WebhookEnvelope, WebhookSubscription
from turbofy_core.webhook_dispatcher.signer import WebhookSigner


SIGNATURE_HEADER = "turbofy-signature"


class WebhookDeliveryEngine:
    """Performs a single signed, time-bounded POST to one merchant endpoint.

    There is no retry here: a failed delivery is reported back and retried
    by the caller (see the redelivery manager).
    """

    def __init__(
        self,
        timeout_seconds: float = 10,
        response_body_limit: int = 1000,
        user_agent: str = "Turbofy Webhooks/1.0",
    ):
        self.timeout_seconds = timeout_seconds
        self.response_body_limit = response_body_limit
        self.user_agent = user_agent

    def deliver(
        self,
        subscription: WebhookSubscription,
        envelope: WebhookEnvelope,
        body: str,
        attempt_number: int = 1,
    ) -> DeliveryAttempt:
        signature = WebhookSigner(subscription.secret).sign(body)
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            "turbofy-event-id": envelope.id,
            "turbofy-event-type": envelope.type,
            SIGNATURE_HEADER: signature,
        }

        start = time.monotonic()
        status_code = None
        response_body = None
        error = None

        try:
            resp = requests.post(
                subscription.url,
                data=body.encode("utf-8"),
                headers=headers,
                timeout=self.timeout_seconds,
            )
            status_code = resp.status_code
            response_body = resp.text[: self.response_body_limit]
        except requests.exceptions.Timeout:
            error = "timeout"
        except requests.exceptions.ConnectionError:
            error = "connection_error"
        except requests.exceptions.RequestException as e:
            error = str(e)

        elapsed_ms = (time.monotonic() - start) * 1000
        success = status_code is not None and 200 <= status_code < 300
        if error is None and not success:
            error = f"HTTP_{status_code}"

        return DeliveryAttempt(
            attempt_id=f"att_{uuid.uuid4().hex[:16]}",
            webhook_id=subscription.id,
            event_id=envelope.id,
            event_type=envelope.type,
            url=subscription.url,
            status_code=status_code,
            timestamp=datetime.now(timezone.utc),
            response_time_ms=elapsed_ms,
            success=success,
            attempt_number=attempt_number,
            response_body=response_body,
            error=error,
            payload=envelope.to_dict(),
        )
