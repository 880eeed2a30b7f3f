import pytest

from turbofy_core.app import build_engine
from turbofy_core.config import Settings
from turbofy_core.merchant_receiver.server import MerchantWebhookServer
from turbofy_core.models.webhook import ProviderWebhookConfig, WEBHOOK_EVENTS, WebhookSubscription
from turbofy_core.observability.alerting import AlertManager
from turbofy_core.observability.metrics import MetricsCollector
from turbofy_core.provider_receiver.server import ProviderWebhookServer
from turbofy_core.providers.stub import StubPaymentProvider
from turbofy_core.utils.factories import ChargeFactory, ProviderEventFactory
from turbofy_core.webhook_dispatcher.engine import WebhookDeliveryEngine
from turbofy_core.webhook_dispatcher.signer import WebhookSigner


WEBHOOK_SECRET = "test-secret-key-for-hmac"
PROVIDER_SECRET = "provider-signature-secret"
ACCOUNT_ID = "acct_test"
MERCHANT_ID = "merch_producer"


@pytest.fixture
def webhook_secret():
    return WEBHOOK_SECRET


@pytest.fixture
def provider_secret():
    return PROVIDER_SECRET


@pytest.fixture
def signer():
    return WebhookSigner(WEBHOOK_SECRET)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        DEV_MODE=True,
        WEBHOOK_TIMEOUT_SECONDS=2,
        WEBHOOK_SUSPEND_AFTER_FAILURES=3,
        INBOUND_RETRY_SCHEDULE=[0, 1, 5, 30, 300],
    )


@pytest.fixture
def sleeps():
    """Delays requested by the inbound retry loop, recorded instead of slept."""
    return []


@pytest.fixture
def alerts():
    return []


@pytest.fixture
def provider():
    return StubPaymentProvider()


@pytest.fixture
def engine(settings, provider, sleeps, alerts):
    return build_engine(settings, provider=provider, sleep=sleeps.append, alert_callback=alerts.append)


@pytest.fixture
def provider_config(engine):
    config = ProviderWebhookConfig(
        webhook_id="tf_webhook_1",
        merchant_id=MERCHANT_ID,
        account_id=ACCOUNT_ID,
        url="https://api.turbofy.test/webhooks/transfeera",
        signature_secret=PROVIDER_SECRET,
        object_types=["CashIn", "ChargeReceivable", "Transfer"],
    )
    return engine.provider_configs.add(config)


@pytest.fixture
def delivery_engine():
    return WebhookDeliveryEngine(timeout_seconds=2)


@pytest.fixture
def merchant_server():
    server = MerchantWebhookServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def subscribe(engine):
    """Register a merchant subscription pointing at a local server."""

    def _subscribe(url: str, events: list[str] | None = None, merchant_id: str = MERCHANT_ID) -> WebhookSubscription:
        return engine.subscribe_webhook(merchant_id, url, list(events or WEBHOOK_EVENTS))

    return _subscribe


@pytest.fixture
def provider_server(engine):
    server = ProviderWebhookServer(engine.processor)
    server.start()
    yield server
    server.stop()


@pytest.fixture
def metrics():
    return MetricsCollector(window_seconds=300)


@pytest.fixture
def alert_manager(metrics):
    return AlertManager(metrics=metrics, threshold=0.10)


@pytest.fixture
def charge_factory():
    return ChargeFactory


@pytest.fixture
def event_factory():
    return ProviderEventFactory
