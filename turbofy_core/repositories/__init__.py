from .base import (
    ChargeRepository,
    CommissionRuleRepository,
    InboundAttemptRepository,
    MerchantProfileRepository,
    PaymentInteractionRepository,
    ProviderWebhookConfigRepository,
    SettlementRepository,
    TransitionResult,
    WebhookLogRepository,
    WebhookRepository,
)
from .memory import (
    InMemoryChargeRepository,
    InMemoryCommissionRuleRepository,
    InMemoryInboundAttemptRepository,
    InMemoryMerchantProfileRepository,
    InMemoryPaymentInteractionRepository,
    InMemoryProviderWebhookConfigRepository,
    InMemorySettlementRepository,
    InMemoryWebhookRepository,
)

__all__ = [
    "ChargeRepository", "CommissionRuleRepository", "InboundAttemptRepository",
    "MerchantProfileRepository", "PaymentInteractionRepository",
    "ProviderWebhookConfigRepository", "SettlementRepository", "TransitionResult",
    "WebhookLogRepository", "WebhookRepository",
    "InMemoryChargeRepository", "InMemoryCommissionRuleRepository",
    "InMemoryInboundAttemptRepository", "InMemoryMerchantProfileRepository",
    "InMemoryPaymentInteractionRepository", "InMemoryProviderWebhookConfigRepository",
    "InMemorySettlementRepository", "InMemoryWebhookRepository",
]
