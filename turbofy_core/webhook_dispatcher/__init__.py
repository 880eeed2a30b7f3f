from .dispatcher import DispatchResult, OutboundWebhookDispatcher
from .engine import WebhookDeliveryEngine
from .logger import DeliveryLogger
from .publisher import EventPublisher, PublishedEvent
from .signer import WebhookSigner

__all__ = [
    "DispatchResult",
    "OutboundWebhookDispatcher",
    "WebhookDeliveryEngine",
    "DeliveryLogger",
    "EventPublisher",
    "PublishedEvent",
    "WebhookSigner",
]
