from .service import MIN_CHARGE_AMOUNT_CENTS, ChargeIssuanceService, FeeInput, SplitInput

__all__ = ["MIN_CHARGE_AMOUNT_CENTS", "ChargeIssuanceService", "FeeInput", "SplitInput"]
