from decimal import Decimal

from turbofy_core.errors import ValidationError
from turbofy_core.models.charge import floor_percentage
from turbofy_core.models.commission import MerchantType


class FeeCalculator:
    """Platform fee schedule, in integer cents, always floored."""

    DEFAULT_FEE_PERCENTAGE = {
        MerchantType.PRODUCER: Decimal("3.5"),
        MerchantType.RIFEIRO: Decimal("1"),
    }

    # Charged per configured split, on top of the percentage fee.
    RIFEIRO_PER_SPLIT_FEE_CENTS = 3

    SERVICE_FEE_TYPE = "TURBOFY_SERVICE_FEE"

    @classmethod
    def default_fee_percentage(cls, merchant_type: MerchantType) -> Decimal:
        return cls.DEFAULT_FEE_PERCENTAGE.get(merchant_type, cls.DEFAULT_FEE_PERCENTAGE[MerchantType.PRODUCER])

    @staticmethod
    def is_valid_fee_percentage(fee_percentage) -> bool:
        try:
            value = Decimal(str(fee_percentage))
        except ArithmeticError:
            return False
        return value.is_finite() and 0 <= value <= 100

    @classmethod
    def calculate_fee(
        cls,
        amount_cents: int,
        merchant_type: MerchantType,
        custom_fee_percentage=None,
        splits_count: int = 0,
    ) -> int:
        if not isinstance(amount_cents, int) or amount_cents < 0:
            raise ValidationError("amount_cents must be an integer >= 0", code="INVALID_AMOUNT")
        if not isinstance(splits_count, int) or splits_count < 0:
            raise ValidationError("splits_count must be an integer >= 0", code="INVALID_SPLIT")

        fee_percentage = (
            custom_fee_percentage
            if custom_fee_percentage is not None
            else cls.default_fee_percentage(merchant_type)
        )
        if not cls.is_valid_fee_percentage(fee_percentage):
            raise ValidationError("fee percentage must be between 0 and 100", code="INVALID_FEE")

        fee = floor_percentage(amount_cents, fee_percentage)
        if merchant_type is MerchantType.RIFEIRO:
            fee += splits_count * cls.RIFEIRO_PER_SPLIT_FEE_CENTS
        return fee

    @classmethod
    def net_amount(cls, amount_cents: int, merchant_type: MerchantType, custom_fee_percentage=None) -> int:
        return amount_cents - cls.calculate_fee(amount_cents, merchant_type, custom_fee_percentage)
