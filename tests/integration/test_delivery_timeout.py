"""Integration tests for bounded delivery time and endpoint independence."""

import time

import pytest

from turbofy_core.merchant_receiver.server import MerchantWebhookServer
from turbofy_core.webhook_dispatcher.engine import WebhookDeliveryEngine


pytestmark = pytest.mark.integration


@pytest.fixture
def slow_server():
    server = MerchantWebhookServer()
    server.set_response_delay(3)
    server.start()
    yield server
    server.stop()


class TestDeliveryTimeout:
    """A slow endpoint times out and never holds up the others."""

    def test_slow_endpoint_times_out(self, engine, slow_server, subscribe):
        engine.dispatcher.engine = WebhookDeliveryEngine(timeout_seconds=0.5)
        subscribe(slow_server.url)

        result = engine.dispatcher.dispatch("merch_producer", "charge.paid", {"chargeId": "ch_1"})

        attempt = result.attempts[0]
        assert attempt.success is False
        assert attempt.error == "timeout"
        assert attempt.status_code is None

    def test_slow_endpoint_does_not_block_others(self, engine, slow_server, merchant_server, subscribe):
        engine.dispatcher.engine = WebhookDeliveryEngine(timeout_seconds=1)
        subscribe(slow_server.url)
        fast = subscribe(merchant_server.url)

        start = time.monotonic()
        result = engine.dispatcher.dispatch("merch_producer", "charge.paid", {"chargeId": "ch_1"})
        elapsed = time.monotonic() - start

        assert result.attempted == 2
        assert result.delivered == 1
        delivered = [a for a in result.attempts if a.success]
        assert delivered[0].webhook_id == fast.id
        assert delivered[0].response_time_ms < 1000
        # deliveries run side by side, not one after the other
        assert elapsed < 2.5
