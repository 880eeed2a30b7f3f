from .charge import Charge, ChargeMethod, ChargeSplit, ChargeStatus, Fee
from .commission import CommissionRule, CommissionType, MerchantProfile, MerchantType, SplitLine
from .delivery import DeliveryAttempt, InboundAttempt, InboundAttemptStatus
from .interaction import PaymentInteraction, PaymentInteractionType
from .settlement import Settlement, SettlementStatus
from .webhook import (
    ProviderEvent,
    ProviderWebhookConfig,
    WebhookEnvelope,
    WebhookStatus,
    WebhookSubscription,
)

__all__ = [
    "Charge", "ChargeMethod", "ChargeSplit", "ChargeStatus", "Fee",
    "CommissionRule", "CommissionType", "MerchantProfile", "MerchantType", "SplitLine",
    "DeliveryAttempt", "InboundAttempt", "InboundAttemptStatus",
    "PaymentInteraction", "PaymentInteractionType",
    "Settlement", "SettlementStatus",
    "ProviderEvent", "ProviderWebhookConfig", "WebhookEnvelope",
    "WebhookStatus", "WebhookSubscription",
]
