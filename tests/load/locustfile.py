# Locust load test for the provider callback receiver.
#
# How to run:
#   locust -f tests/load/locustfile.py --headless -u 50 -r 10 --run-time 30s --host http://127.0.0.1:8090
#
# on_test_start builds an engine, issues a pool of PIX charges and starts a
# ProviderWebhookServer on port 8090, so no external server is needed.
# Users replay signed CashIn callbacks for those charges, including
# deliberate duplicates, plus unsigned probes.
#
# Assertions at the end: >99% of callbacks answered 200, every charge that
# was called back is PAID, and exactly one charge.paid per such charge.

import json
import logging
import random
import threading

from locust import HttpUser, between, events, task

from turbofy_core.app import TurbofyEngine, build_engine
from turbofy_core.config import Settings
from turbofy_core.models.charge import ChargeMethod, ChargeStatus
from turbofy_core.models.webhook import ProviderWebhookConfig
from turbofy_core.provider_receiver.server import ProviderWebhookServer
from turbofy_core.providers.stub import StubPaymentProvider
from turbofy_core.utils.factories import ProviderEventFactory, signed_request

logger = logging.getLogger(__name__)

PROVIDER_SECRET = "load-test-provider-secret"
ACCOUNT_ID = "acct_load"
MERCHANT_ID = "merch_load"
CHARGE_POOL_SIZE = 500

_stats_lock = threading.Lock()
_sent_count: int = 0
_success_count: int = 0
_called_back: set[str] = set()

_engine: TurbofyEngine | None = None
_server: ProviderWebhookServer | None = None
_charges: list = []


def _record(charge_id: str | None, ok: bool) -> None:
    global _sent_count, _success_count
    with _stats_lock:
        _sent_count += 1
        if ok:
            _success_count += 1
            if charge_id:
                _called_back.add(charge_id)


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    global _engine, _server, _charges, _sent_count, _success_count

    with _stats_lock:
        _sent_count = 0
        _success_count = 0
        _called_back.clear()

    settings = Settings(_env_file=None, DEV_MODE=True)
    _engine = build_engine(settings, provider=StubPaymentProvider())
    _engine.provider_configs.add(ProviderWebhookConfig(
        webhook_id="tf_load",
        merchant_id=MERCHANT_ID,
        account_id=ACCOUNT_ID,
        url="http://127.0.0.1:8090/webhooks/transfeera",
        signature_secret=PROVIDER_SECRET,
        object_types=["CashIn"],
    ))
    _charges = [
        _engine.issuance.issue(
            idempotency_key=f"load-{n}",
            merchant_id=MERCHANT_ID,
            amount_cents=1000 + n,
            currency="BRL",
            method=ChargeMethod.PIX,
        )
        for n in range(CHARGE_POOL_SIZE)
    ]

    _server = ProviderWebhookServer(_engine.processor, host="127.0.0.1", port=8090)
    _server.start()
    logger.info("ProviderWebhookServer started on port 8090 with %d pending charges", len(_charges))


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    global _server

    if _server is not None:
        _server.stop()
        _server = None

    with _stats_lock:
        total_sent = _sent_count
        total_ok = _success_count
        called_back = set(_called_back)

    paid_events = _engine.publisher.get_published("charge.paid") if _engine else []
    logger.info(
        "Load test summary: sent=%d, http_ok=%d, charges_called_back=%d, charge.paid=%d",
        total_sent,
        total_ok,
        len(called_back),
        len(paid_events),
    )

    if total_sent > 0 and total_ok / total_sent < 0.99:
        environment.process_exit_code = 1
        logger.error("ASSERTION FAILED: success rate %.2f%% is below 99%%", total_ok / total_sent * 100)

    if _engine is not None:
        not_paid = [cid for cid in called_back if _engine.charges.get(cid).status is not ChargeStatus.PAID]
        if not_paid:
            environment.process_exit_code = 1
            logger.error("ASSERTION FAILED: %d called-back charges are not PAID", len(not_paid))

        paid_ids = [e.payload["chargeId"] for e in paid_events]
        if len(paid_ids) != len(set(paid_ids)):
            environment.process_exit_code = 1
            logger.error("ASSERTION FAILED: duplicate charge.paid events were published")

    for stat in environment.runner.stats.entries.values():
        p95 = stat.get_response_time_percentile(0.95)
        if p95 and p95 > 5000:
            environment.process_exit_code = 1
            logger.error("ASSERTION FAILED: p95 latency %dms exceeds 5000ms for '%s'", p95, stat.name)


class ProviderCallbackUser(HttpUser):
    """Plays the banking provider calling back about PIX payments."""

    wait_time = between(0.01, 0.05)

    def _post_callback(self, charge, name: str) -> None:
        body = ProviderEventFactory.cash_in(charge.provider_transaction_id, value=charge.amount_cents / 100, account_id=ACCOUNT_ID)
        raw, headers = signed_request(body, PROVIDER_SECRET)
        with self.client.post("/webhooks/transfeera", data=raw, headers=headers, catch_response=True, name=name) as response:
            ok = response.status_code == 200
            _record(charge.id, ok)
            if ok:
                response.success()
            else:
                response.failure(f"HTTP {response.status_code}: {response.text[:200]}")

    @task(5)
    def cash_in(self) -> None:
        self._post_callback(random.choice(_charges), "/webhooks/transfeera [CashIn]")

    @task(2)
    def duplicate_cash_in(self) -> None:
        # the provider retries aggressively; the second call must be a no-op
        charge = random.choice(_charges)
        self._post_callback(charge, "/webhooks/transfeera [CashIn dup]")
        self._post_callback(charge, "/webhooks/transfeera [CashIn dup]")

    @task(1)
    def connectivity_probe(self) -> None:
        with self.client.post(
            "/webhooks/transfeera",
            data=json.dumps({}),
            headers={"User-Agent": "Transfeera-Webhook-Probe"},
            catch_response=True,
            name="/webhooks/transfeera [probe]",
        ) as response:
            ok = response.status_code == 200
            _record(None, ok)
            if ok:
                response.success()
            else:
                response.failure(f"HTTP {response.status_code}")
