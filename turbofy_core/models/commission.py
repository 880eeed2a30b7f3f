import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class CommissionType(Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class MerchantType(Enum):
    PRODUCER = "PRODUCER"
    RIFEIRO = "RIFEIRO"


@dataclass
class CommissionRule:
    """A merchant's standing split configuration.

    ``value`` is a percentage (0-100) for PERCENTAGE rules and an amount in
    cents for FIXED rules. ``max_amount_cents`` caps the computed line.
    """

    merchant_id: str
    recipient_merchant_id: str
    type: CommissionType
    value: Decimal
    priority: int = 0
    active: bool = True
    max_amount_cents: int | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class MerchantProfile:
    merchant_id: str
    merchant_type: MerchantType = MerchantType.PRODUCER
    auto_split: bool = False
    fee_percentage: Decimal | None = None


@dataclass
class SplitLine:
    rule_id: str
    recipient_merchant_id: str
    amount_cents: int
    percentage: Decimal | None = None
