import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_FLOOR, Decimal
from enum import Enum

from turbofy_core.errors import InvalidTransitionError, ValidationError


class ChargeStatus(Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    EXPIRED = "EXPIRED"
    CANCELED = "CANCELED"


class ChargeMethod(Enum):
    PIX = "PIX"
    BOLETO = "BOLETO"
    CARD = "CARD"


# Only PENDING may move; every other status is terminal.
ALLOWED_TRANSITIONS: dict[ChargeStatus, set[ChargeStatus]] = {
    ChargeStatus.PENDING: {ChargeStatus.PAID, ChargeStatus.EXPIRED, ChargeStatus.CANCELED},
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def floor_percentage(amount_cents: int, percentage) -> int:
    """Floor of ``amount_cents * percentage / 100`` without float drift."""
    value = Decimal(amount_cents) * Decimal(str(percentage)) / Decimal(100)
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


@dataclass
class Charge:
    id: str
    merchant_id: str
    amount_cents: int
    currency: str
    idempotency_key: str
    status: ChargeStatus = ChargeStatus.PENDING
    method: ChargeMethod | None = None
    description: str | None = None
    external_ref: str | None = None
    expires_at: datetime | None = None
    metadata: dict = field(default_factory=dict)
    provider_transaction_id: str | None = None
    pix_qr_code: str | None = None
    pix_copy_paste: str | None = None
    boleto_url: str | None = None
    paid_at: datetime | None = None
    expired_at: datetime | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def new(cls, **kwargs) -> "Charge":
        return cls(id=str(uuid.uuid4()), **kwargs)

    @property
    def is_terminal(self) -> bool:
        return self.status is not ChargeStatus.PENDING

    @property
    def has_payment_payload(self) -> bool:
        return bool(self.pix_qr_code or self.pix_copy_paste or self.boleto_url)

    def transition_to(self, target: ChargeStatus, when: datetime | None = None) -> bool:
        """Move to ``target``. Returns False when already there.

        Raises InvalidTransitionError when the current status does not allow
        the move (e.g. EXPIRED -> PAID).
        """
        if self.status is target:
            return False
        if target not in ALLOWED_TRANSITIONS.get(self.status, set()):
            raise InvalidTransitionError(
                f"Charge {self.id} cannot move from {self.status.value} to {target.value}"
            )
        when = when or _utcnow()
        self.status = target
        if target is ChargeStatus.PAID:
            self.paid_at = when
        elif target is ChargeStatus.EXPIRED:
            self.expired_at = when
        self.updated_at = when
        return True

    def with_pix_data(self, qr_code: str, copy_paste: str, txid: str | None) -> None:
        self.method = ChargeMethod.PIX
        self.pix_qr_code = qr_code
        self.pix_copy_paste = copy_paste
        if txid:
            self.provider_transaction_id = txid
        self.updated_at = _utcnow()

    def with_boleto_data(self, boleto_url: str, txid: str | None) -> None:
        self.method = ChargeMethod.BOLETO
        self.boleto_url = boleto_url
        if txid:
            self.provider_transaction_id = txid
        self.updated_at = _utcnow()


@dataclass
class ChargeSplit:
    """Portion of a charge routed to another merchant.

    An absolute ``amount_cents`` wins over ``percentage`` when both are set
    (automatic splits keep the rule percentage for reference);
    ``computed_amount_cents`` is filled in against the charge total.
    """

    charge_id: str
    merchant_id: str
    amount_cents: int | None = None
    percentage: Decimal | None = None
    computed_amount_cents: int = 0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        if self.amount_cents is None and self.percentage is None:
            raise ValidationError(
                f"Split for merchant {self.merchant_id} needs an amount or a percentage",
                code="INVALID_SPLIT",
            )
        if self.amount_cents is not None:
            if not isinstance(self.amount_cents, int) or self.amount_cents < 0:
                raise ValidationError("Split amount must be a non-negative integer", code="INVALID_SPLIT")
        if self.percentage is not None:
            self.percentage = Decimal(str(self.percentage))
            if self.percentage <= 0 or self.percentage > 100:
                raise ValidationError("Split percentage must be in (0, 100]", code="INVALID_SPLIT")

    def compute_amount_for_total(self, total_cents: int) -> int:
        if self.amount_cents is not None:
            return self.amount_cents
        return floor_percentage(total_cents, self.percentage)


@dataclass
class Fee:
    charge_id: str
    type: str
    amount_cents: int
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        if not isinstance(self.amount_cents, int) or self.amount_cents < 0:
            raise ValidationError(f"Fee {self.type} must be a non-negative integer", code="INVALID_FEE")
