"""Wires the engine together from ``Settings``."""

import logging
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass

from turbofy_core.charges.service import ChargeIssuanceService
from turbofy_core.config import Settings, settings as default_settings
from turbofy_core.inbound.auth import SignatureAuthenticator
from turbofy_core.inbound.handlers import ProviderEventApplier
from turbofy_core.inbound.matching import ChargeMatcher
from turbofy_core.inbound.processor import InboundWebhookProcessor
from turbofy_core.inbound.retry import RetryManager
from turbofy_core.logging_config import configure_logging
from turbofy_core.models.webhook import WebhookSubscription
from turbofy_core.observability.alerting import AlertManager
from turbofy_core.observability.metrics import MetricsCollector
from turbofy_core.observability.notifier import EmailAlertNotifier, LoggingAlertNotifier
from turbofy_core.provider_receiver.server import ProviderWebhookServer
from turbofy_core.providers.base import PaymentProviderPort
from turbofy_core.providers.http_client import HttpPaymentProvider
from turbofy_core.providers.stub import StubPaymentProvider
from turbofy_core.replay.manager import OutboundRedeliveryManager
from turbofy_core.repositories.memory import (
    InMemoryChargeRepository,
    InMemoryCommissionRuleRepository,
    InMemoryInboundAttemptRepository,
    InMemoryMerchantProfileRepository,
    InMemoryPaymentInteractionRepository,
    InMemoryProviderWebhookConfigRepository,
    InMemorySettlementRepository,
    InMemoryWebhookRepository,
)
from turbofy_core.webhook_dispatcher.dispatcher import OutboundWebhookDispatcher
from turbofy_core.webhook_dispatcher.engine import WebhookDeliveryEngine
from turbofy_core.webhook_dispatcher.logger import DeliveryLogger
from turbofy_core.webhook_dispatcher.publisher import EventPublisher

logger = logging.getLogger("turbofy")


@dataclass
class TurbofyEngine:
    charges: InMemoryChargeRepository
    settlements: InMemorySettlementRepository
    profiles: InMemoryMerchantProfileRepository
    rules: InMemoryCommissionRuleRepository
    interactions: InMemoryPaymentInteractionRepository
    provider_configs: InMemoryProviderWebhookConfigRepository
    inbound_attempts: InMemoryInboundAttemptRepository
    delivery_log: DeliveryLogger
    webhooks: InMemoryWebhookRepository
    provider: PaymentProviderPort
    metrics: MetricsCollector
    alert_manager: AlertManager
    dispatcher: OutboundWebhookDispatcher
    publisher: EventPublisher
    issuance: ChargeIssuanceService
    processor: InboundWebhookProcessor
    redelivery: OutboundRedeliveryManager
    dev_mode: bool = False

    def subscribe_webhook(self, merchant_id: str, url: str, events: list[str], name: str = "") -> WebhookSubscription:
        """Register a merchant endpoint; plain http URLs are only accepted in dev mode."""
        subscription = WebhookSubscription.create(merchant_id, url, events, name=name, dev_mode=self.dev_mode)
        return self.webhooks.add(subscription)


def build_alert_notifier(config: Settings):
    if config.EMAIL_API_URL and config.EMAIL_API_KEY and config.ALERT_EMAIL_TO:
        return EmailAlertNotifier(
            api_url=config.EMAIL_API_URL,
            api_key=config.EMAIL_API_KEY,
            to=config.ALERT_EMAIL_TO,
            from_email=config.ALERT_EMAIL_FROM,
        )
    logger.warning("Alert email not configured; operator alerts go to the log only")
    return LoggingAlertNotifier()


def build_provider(config: Settings) -> PaymentProviderPort:
    if config.PROVIDER_BASE_URL:
        return HttpPaymentProvider(
            base_url=config.PROVIDER_BASE_URL,
            api_key=config.PROVIDER_API_KEY,
            timeout_seconds=config.PROVIDER_TIMEOUT_SECONDS,
            name=config.PROVIDER_NAME,
        )
    logger.warning("PROVIDER_BASE_URL not set; using the stub payment provider")
    return StubPaymentProvider()


def build_engine(
    config: Settings | None = None,
    provider: PaymentProviderPort | None = None,
    sleep=time.sleep,
    inbound_executor: Executor | None = None,
    alert_callback=None,
) -> TurbofyEngine:
    """Assemble every component over in-memory repositories.

    Without ``inbound_executor`` verified callbacks are applied inline,
    before ``receive`` returns.
    """
    config = config or default_settings

    delivery_log = DeliveryLogger()
    webhooks = InMemoryWebhookRepository(delivery_log)
    charges = InMemoryChargeRepository()
    settlements = InMemorySettlementRepository()
    profiles = InMemoryMerchantProfileRepository()
    rules = InMemoryCommissionRuleRepository()
    interactions = InMemoryPaymentInteractionRepository()
    provider_configs = InMemoryProviderWebhookConfigRepository()
    inbound_attempts = InMemoryInboundAttemptRepository()
    provider = provider or build_provider(config)

    metrics = MetricsCollector(window_seconds=config.METRICS_WINDOW_SECONDS)
    alert_manager = AlertManager(
        metrics=metrics,
        threshold=config.DELIVERY_FAILURE_RATE_THRESHOLD,
        callback=alert_callback or build_alert_notifier(config),
    )

    dispatcher = OutboundWebhookDispatcher(
        webhooks=webhooks,
        engine=WebhookDeliveryEngine(
            timeout_seconds=config.WEBHOOK_TIMEOUT_SECONDS,
            response_body_limit=config.WEBHOOK_RESPONSE_BODY_LIMIT,
            user_agent=config.WEBHOOK_USER_AGENT,
        ),
        suspend_after=config.WEBHOOK_SUSPEND_AFTER_FAILURES,
        max_workers=config.WEBHOOK_MAX_WORKERS,
        metrics=metrics,
        alert_manager=alert_manager,
    )
    publisher = EventPublisher(dispatcher)

    issuance = ChargeIssuanceService(
        charges=charges,
        interactions=interactions,
        provider=provider,
        publisher=publisher,
        profiles=profiles,
        rules=rules,
        min_amount_cents=config.MIN_CHARGE_AMOUNT_CENTS,
        default_currency=config.DEFAULT_CURRENCY,
    )

    processor = InboundWebhookProcessor(
        authenticator=SignatureAuthenticator(
            provider_configs,
            user_agent_marker=config.PROVIDER_USER_AGENT_MARKER,
            tolerance_seconds=config.INBOUND_SIGNATURE_TOLERANCE_SECONDS,
        ),
        applier=ProviderEventApplier(
            charges=charges,
            settlements=settlements,
            interactions=interactions,
            matcher=ChargeMatcher(charges, window_days=config.INBOUND_MATCH_WINDOW_DAYS),
            publisher=publisher,
            provider_name=config.PROVIDER_NAME,
        ),
        attempts=inbound_attempts,
        retry_manager=RetryManager(config.INBOUND_RETRY_SCHEDULE, sleep=sleep),
        alert_manager=alert_manager,
        executor=inbound_executor,
    )

    return TurbofyEngine(
        charges=charges,
        settlements=settlements,
        profiles=profiles,
        rules=rules,
        interactions=interactions,
        provider_configs=provider_configs,
        inbound_attempts=inbound_attempts,
        delivery_log=delivery_log,
        webhooks=webhooks,
        provider=provider,
        metrics=metrics,
        alert_manager=alert_manager,
        dispatcher=dispatcher,
        publisher=publisher,
        issuance=issuance,
        processor=processor,
        redelivery=OutboundRedeliveryManager(dispatcher, webhooks, delivery_log),
        dev_mode=config.DEV_MODE,
    )


def main() -> None:
    config = default_settings
    configure_logging(config.LOG_LEVEL)
    logger.info(f"Starting {config.PROJECT_NAME} provider webhook receiver on {config.RECEIVER_HOST}:{config.RECEIVER_PORT}")

    with ThreadPoolExecutor(max_workers=config.INBOUND_WORKERS, thread_name_prefix="inbound") as pool:
        engine = build_engine(config, inbound_executor=pool)
        server = ProviderWebhookServer(engine.processor, host=config.RECEIVER_HOST, port=config.RECEIVER_PORT)
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            logger.info("Shutting down provider webhook receiver")


if __name__ == "__main__":
    main()
