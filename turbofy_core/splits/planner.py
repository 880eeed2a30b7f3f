from dataclasses import dataclass, field

from turbofy_core.models.charge import ChargeSplit, Fee
from turbofy_core.models.commission import CommissionRule, MerchantProfile, MerchantType
from turbofy_core.splits.calculator import calculate_commission_split
from turbofy_core.splits.fees import FeeCalculator


@dataclass
class SplitPlan:
    splits: list[ChargeSplit] = field(default_factory=list)
    fees: list[Fee] = field(default_factory=list)

    @property
    def total_split_cents(self) -> int:
        return sum(s.computed_amount_cents for s in self.splits)

    @property
    def total_fee_cents(self) -> int:
        return sum(f.amount_cents for f in self.fees)

    @property
    def total_deductions_cents(self) -> int:
        return self.total_split_cents + self.total_fee_cents


class AutoSplitPlanner:
    """Builds splits and the platform fee from a merchant's standing rules."""

    def plan(
        self,
        charge_id: str,
        amount_cents: int,
        profile: MerchantProfile,
        rules: list[CommissionRule],
    ) -> SplitPlan:
        per_split_fee = (
            FeeCalculator.RIFEIRO_PER_SPLIT_FEE_CENTS
            if profile.merchant_type is MerchantType.RIFEIRO
            else 0
        )

        plan = SplitPlan()
        for line in calculate_commission_split(amount_cents, rules):
            # the per-split fee comes out of the recipient's commission
            final_amount = max(0, line.amount_cents - per_split_fee)
            if final_amount <= 0:
                continue
            split = ChargeSplit(
                charge_id=charge_id,
                merchant_id=line.recipient_merchant_id,
                amount_cents=final_amount,
                percentage=line.percentage,
            )
            split.computed_amount_cents = final_amount
            plan.splits.append(split)

        fee_cents = FeeCalculator.calculate_fee(
            amount_cents,
            profile.merchant_type,
            custom_fee_percentage=profile.fee_percentage,
            splits_count=len(plan.splits),
        )
        plan.fees.append(Fee(charge_id=charge_id, type=FeeCalculator.SERVICE_FEE_TYPE, amount_cents=fee_cents))
        return plan
