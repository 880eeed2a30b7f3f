import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from turbofy_core.models.charge import ChargeMethod


class PaymentInteractionType(Enum):
    CHARGE_CREATED = "CHARGE_CREATED"
    PIX_ISSUED = "PIX_ISSUED"
    BOLETO_ISSUED = "BOLETO_ISSUED"
    CHARGE_PAID = "CHARGE_PAID"
    CHARGE_EXPIRED = "CHARGE_EXPIRED"


@dataclass(frozen=True)
class PaymentInteraction:
    """Append-only timeline entry. Written, never read for decisions."""

    merchant_id: str
    type: PaymentInteractionType
    charge_id: str | None = None
    session_id: str | None = None
    user_id: str | None = None
    method: ChargeMethod | None = None
    provider: str | None = None
    amount_cents: int | None = None
    metadata: dict = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
