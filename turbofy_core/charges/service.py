import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from turbofy_core.errors import DuplicateKeyError, InvalidTransitionError, NotFoundError, ProviderError, ValidationError
from turbofy_core.models.charge import Charge, ChargeMethod, ChargeSplit, ChargeStatus, Fee
from turbofy_core.models.interaction import PaymentInteraction, PaymentInteractionType
from turbofy_core.providers.base import PaymentProviderPort
from turbofy_core.providers.issuers import PaymentInstrumentIssuer, get_issuer
from turbofy_core.repositories.base import (
    ChargeRepository,
    CommissionRuleRepository,
    MerchantProfileRepository,
    PaymentInteractionRepository,
)
from turbofy_core.splits.planner import AutoSplitPlanner, SplitPlan
from turbofy_core.webhook_dispatcher.publisher import EventPublisher

logger = logging.getLogger("turbofy.charges")

MIN_CHARGE_AMOUNT_CENTS = 500


@dataclass
class SplitInput:
    merchant_id: str
    amount_cents: int | None = None
    percentage: Decimal | None = None


@dataclass
class FeeInput:
    type: str
    amount_cents: int


def _coerce(items, cls):
    return [item if isinstance(item, cls) else cls(**item) for item in items or []]


class ChargeIssuanceService:
    """Creates charges exactly once per idempotency key.

    Order of effects: idempotency lookup, validation and split planning (no
    writes), charge insert (PENDING), splits and fees, audit interaction,
    provider issuance, then event publication. A crash or provider failure
    part-way leaves a PENDING charge that can be re-issued with
    ``issue_payment``.
    """

    def __init__(
        self,
        charges: ChargeRepository,
        interactions: PaymentInteractionRepository,
        provider: PaymentProviderPort,
        publisher: EventPublisher,
        profiles: MerchantProfileRepository | None = None,
        rules: CommissionRuleRepository | None = None,
        planner: AutoSplitPlanner | None = None,
        min_amount_cents: int = MIN_CHARGE_AMOUNT_CENTS,
        default_currency: str | None = None,
    ):
        self.charges = charges
        self.interactions = interactions
        self.provider = provider
        self.publisher = publisher
        self.profiles = profiles
        self.rules = rules
        self.planner = planner or AutoSplitPlanner()
        self.min_amount_cents = min_amount_cents
        self.default_currency = default_currency

    def issue(
        self,
        idempotency_key: str,
        merchant_id: str,
        amount_cents: int,
        currency: str | None = None,
        method: ChargeMethod | None = None,
        splits: list[SplitInput] | None = None,
        fees: list[FeeInput] | None = None,
        external_ref: str | None = None,
        metadata: dict | None = None,
        description: str | None = None,
        expires_at: datetime | None = None,
        initiator_user_id: str | None = None,
    ) -> Charge:
        if not idempotency_key or not idempotency_key.strip():
            raise ValidationError("An idempotency key is required", code="IDEMPOTENCY_KEY_REQUIRED")

        existing = self.charges.find_by_idempotency_key(idempotency_key)
        if existing:
            logger.info(f"Idempotent hit for key {idempotency_key}: returning charge {existing.id}")
            return existing

        self._validate_amount(amount_cents)
        currency = currency or self.default_currency
        if not currency:
            raise ValidationError("Currency is required", code="CURRENCY_REQUIRED")

        charge = Charge.new(
            merchant_id=merchant_id,
            amount_cents=amount_cents,
            currency=currency,
            idempotency_key=idempotency_key,
            method=method,
            description=description,
            external_ref=external_ref,
            expires_at=expires_at,
            metadata=dict(metadata or {}),
        )

        plan = self._plan_splits(charge, _coerce(splits, SplitInput), _coerce(fees, FeeInput))

        try:
            charge = self.charges.create(charge)
        except DuplicateKeyError:
            # lost a race with a concurrent request carrying the same key
            winner = self.charges.find_by_idempotency_key(idempotency_key)
            if winner is None:
                raise
            logger.info(f"Concurrent create for key {idempotency_key}: returning charge {winner.id}")
            return winner

        persisted_splits = [self.charges.add_split(charge.id, s) for s in plan.splits]
        persisted_fees = [self.charges.add_fee(charge.id, f) for f in plan.fees]

        self.interactions.create(PaymentInteraction(
            merchant_id=charge.merchant_id,
            user_id=initiator_user_id,
            charge_id=charge.id,
            type=PaymentInteractionType.CHARGE_CREATED,
            method=charge.method,
            amount_cents=charge.amount_cents,
            metadata={
                "idempotencyKey": idempotency_key,
                "splits": len(persisted_splits),
                "fees": len(persisted_fees),
            },
        ))

        issuance_error = None
        issuer = get_issuer(charge.method)
        if issuer is not None:
            try:
                charge = self._issue_instrument(charge, issuer, initiator_user_id, source="charge_created")
            except ProviderError as e:
                e.charge_id = charge.id
                issuance_error = e

        self._publish_created(charge, persisted_splits, persisted_fees, idempotency_key)

        if issuance_error is not None:
            raise issuance_error

        logger.info(
            f"Charge {charge.id} created for merchant {merchant_id}: {amount_cents} {currency}, "
            f"{len(persisted_splits)} splits, {len(persisted_fees)} fees"
        )
        return charge

    def issue_payment(
        self,
        charge_id: str,
        method: ChargeMethod,
        initiator_user_id: str | None = None,
    ) -> Charge:
        """Request (or re-request) the payment instrument for a PENDING charge."""
        charge = self.charges.get(charge_id)
        if charge is None:
            raise NotFoundError(f"Charge {charge_id} not found")
        if charge.status is not ChargeStatus.PENDING:
            raise InvalidTransitionError(f"Charge {charge_id} is {charge.status.value}; payment can't be issued")

        issuer = get_issuer(method)
        if issuer is None:
            raise ValidationError(f"Method {method} is not issued through the provider", code="METHOD_NOT_ISSUABLE")

        charge.method = method
        try:
            charge = self._issue_instrument(charge, issuer, initiator_user_id, source="manual_issue")
        except ProviderError as e:
            e.charge_id = charge.id
            raise
        logger.info(f"Payment issued for charge {charge.id} via {method.value}")
        return charge

    def _validate_amount(self, amount_cents: int) -> None:
        if not isinstance(amount_cents, int) or isinstance(amount_cents, bool):
            raise ValidationError("Amount must be an integer number of cents", code="INVALID_AMOUNT")
        if amount_cents < self.min_amount_cents:
            raise ValidationError(
                f"Minimum charge amount is {self.min_amount_cents} cents; got {amount_cents}",
                code="AMOUNT_BELOW_MINIMUM",
            )

    def _plan_splits(self, charge: Charge, splits: list[SplitInput], fees: list[FeeInput]) -> SplitPlan:
        profile = self.profiles.get(charge.merchant_id) if self.profiles else None

        if profile and profile.auto_split and not splits:
            rules = self.rules.find_by_merchant(charge.merchant_id) if self.rules else []
            plan = self.planner.plan(charge.id, charge.amount_cents, profile, rules)
            plan.fees.extend(Fee(charge_id=charge.id, type=f.type, amount_cents=f.amount_cents) for f in fees)
        else:
            plan = SplitPlan()
            for split_input in splits:
                if (split_input.amount_cents is None) == (split_input.percentage is None):
                    raise ValidationError(
                        f"Split for {split_input.merchant_id} needs exactly one of amount or percentage",
                        code="INVALID_SPLIT",
                    )
                split = ChargeSplit(
                    charge_id=charge.id,
                    merchant_id=split_input.merchant_id,
                    amount_cents=split_input.amount_cents,
                    percentage=split_input.percentage,
                )
                split.computed_amount_cents = split.compute_amount_for_total(charge.amount_cents)
                plan.splits.append(split)
            for fee_input in fees:
                plan.fees.append(Fee(charge_id=charge.id, type=fee_input.type, amount_cents=fee_input.amount_cents))

        if plan.total_deductions_cents > charge.amount_cents:
            logger.warning(
                f"Rejected charge for merchant {charge.merchant_id}: deductions "
                f"{plan.total_deductions_cents} exceed amount {charge.amount_cents}"
            )
            raise ValidationError(
                f"Splits ({plan.total_split_cents}) plus fees ({plan.total_fee_cents}) "
                f"exceed charge amount ({charge.amount_cents})",
                code="SPLITS_EXCEED_AMOUNT",
            )
        return plan

    def _issue_instrument(
        self,
        charge: Charge,
        issuer: PaymentInstrumentIssuer,
        initiator_user_id: str | None,
        source: str,
    ) -> Charge:
        try:
            issuer.issue(self.provider, charge)
        except ProviderError as e:
            logger.error(f"Provider failed to issue {issuer.method.value} for charge {charge.id}: {e.code} {e}")
            raise

        charge = self.charges.update_payment_data(charge)
        self.interactions.create(PaymentInteraction(
            merchant_id=charge.merchant_id,
            user_id=initiator_user_id,
            charge_id=charge.id,
            type=issuer.interaction_type,
            method=issuer.method,
            provider=self.provider.name,
            amount_cents=charge.amount_cents,
            metadata={
                "source": source,
                "expiresAt": charge.expires_at.isoformat() if charge.expires_at else None,
            },
        ))
        return charge

    def _publish_created(
        self,
        charge: Charge,
        splits: list[ChargeSplit],
        fees: list[Fee],
        idempotency_key: str,
    ) -> None:
        self.publisher.publish(
            charge.merchant_id,
            "charge.created",
            {
                "id": charge.id,
                "merchantId": charge.merchant_id,
                "amountCents": charge.amount_cents,
                "currency": charge.currency,
                "status": charge.status.value,
                "method": charge.method.value if charge.method else None,
                "externalRef": charge.external_ref,
                "splitsCount": len(splits),
                "feesCount": len(fees),
                "createdAt": charge.created_at.isoformat(),
            },
            idempotency_key=idempotency_key,
        )
        for split in splits:
            self.publisher.publish(
                charge.merchant_id,
                "charge.split.created",
                {
                    "id": split.id,
                    "chargeId": charge.id,
                    "merchantId": split.merchant_id,
                    "amountCents": split.computed_amount_cents,
                    "percentage": str(split.percentage) if split.percentage is not None else None,
                },
                idempotency_key=idempotency_key,
            )
