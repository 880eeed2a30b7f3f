from decimal import Decimal

import pytest

from turbofy_core.errors import ValidationError
from turbofy_core.models.commission import CommissionRule, CommissionType, MerchantProfile, MerchantType
from turbofy_core.splits.fees import FeeCalculator
from turbofy_core.splits.planner import AutoSplitPlanner


class TestFeeCalculator:
    """Tests for the platform fee schedule."""

    @pytest.mark.unit
    def test_producer_default_is_three_and_a_half_percent(self):
        assert FeeCalculator.calculate_fee(1000, MerchantType.PRODUCER) == 35

    @pytest.mark.unit
    def test_fee_is_floored(self):
        # 3.5% of 999 = 34.965
        assert FeeCalculator.calculate_fee(999, MerchantType.PRODUCER) == 34

    @pytest.mark.unit
    def test_rifeiro_adds_per_split_fee(self):
        # 1% of 1000 + 2 splits * 3 cents
        assert FeeCalculator.calculate_fee(1000, MerchantType.RIFEIRO, splits_count=2) == 16

    @pytest.mark.unit
    def test_producer_ignores_split_count(self):
        assert FeeCalculator.calculate_fee(1000, MerchantType.PRODUCER, splits_count=4) == 35

    @pytest.mark.unit
    def test_custom_percentage_overrides_default(self):
        assert FeeCalculator.calculate_fee(1000, MerchantType.PRODUCER, custom_fee_percentage=Decimal("2")) == 20

    @pytest.mark.unit
    @pytest.mark.parametrize("percentage", ["-1", "100.01", "nan"])
    def test_invalid_percentage_rejected(self, percentage):
        with pytest.raises(ValidationError) as exc:
            FeeCalculator.calculate_fee(1000, MerchantType.PRODUCER, custom_fee_percentage=percentage)
        assert exc.value.code == "INVALID_FEE"

    @pytest.mark.unit
    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            FeeCalculator.calculate_fee(-1, MerchantType.PRODUCER)

    @pytest.mark.unit
    def test_net_amount(self):
        assert FeeCalculator.net_amount(10000, MerchantType.PRODUCER) == 9650


class TestAutoSplitPlanner:
    """Tests for automatic splits built from standing commission rules."""

    def _rules(self):
        return [
            CommissionRule("owner", "aff_a", CommissionType.PERCENTAGE, Decimal("10"), priority=2),
            CommissionRule("owner", "aff_b", CommissionType.FIXED, Decimal("50"), priority=1),
        ]

    @pytest.mark.unit
    def test_producer_plan_keeps_rule_amounts(self):
        profile = MerchantProfile("owner", MerchantType.PRODUCER, auto_split=True)
        plan = AutoSplitPlanner().plan("ch_1", 1000, profile, self._rules())

        assert [(s.merchant_id, s.computed_amount_cents) for s in plan.splits] == [("aff_a", 100), ("aff_b", 50)]
        assert len(plan.fees) == 1
        assert plan.fees[0].type == FeeCalculator.SERVICE_FEE_TYPE
        assert plan.fees[0].amount_cents == 35
        assert plan.total_deductions_cents == 185

    @pytest.mark.unit
    def test_rifeiro_plan_deducts_per_split_fee_from_recipients(self):
        profile = MerchantProfile("owner", MerchantType.RIFEIRO, auto_split=True)
        plan = AutoSplitPlanner().plan("ch_1", 1000, profile, self._rules())

        assert [s.computed_amount_cents for s in plan.splits] == [97, 47]
        # 1% of 1000 + 2 splits * 3 cents
        assert plan.fees[0].amount_cents == 16

    @pytest.mark.unit
    def test_rifeiro_lines_consumed_by_fee_are_dropped(self):
        profile = MerchantProfile("owner", MerchantType.RIFEIRO, auto_split=True)
        rules = [CommissionRule("owner", "aff_tiny", CommissionType.FIXED, Decimal("3"))]
        plan = AutoSplitPlanner().plan("ch_1", 1000, profile, rules)

        assert plan.splits == []
        assert plan.fees[0].amount_cents == 10

    @pytest.mark.unit
    def test_profile_fee_percentage_is_used(self):
        profile = MerchantProfile("owner", MerchantType.PRODUCER, auto_split=True, fee_percentage=Decimal("5"))
        plan = AutoSplitPlanner().plan("ch_1", 1000, profile, [])
        assert plan.fees[0].amount_cents == 50
