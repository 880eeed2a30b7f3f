import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum

from turbofy_core.errors import InvalidTransitionError
from turbofy_core.inbound.matching import ChargeMatcher, MatchCriteria, MatchStatus
from turbofy_core.models.charge import Charge, ChargeMethod, ChargeStatus
from turbofy_core.models.interaction import PaymentInteraction, PaymentInteractionType
from turbofy_core.models.settlement import Settlement
from turbofy_core.models.webhook import ProviderEvent, ProviderWebhookConfig
from turbofy_core.repositories.base import ChargeRepository, PaymentInteractionRepository, SettlementRepository
from turbofy_core.webhook_dispatcher.publisher import EventPublisher

logger = logging.getLogger("turbofy.inbound")

RECEIVABLE_STATUS = {
    "paid": ChargeStatus.PAID,
    "expired": ChargeStatus.EXPIRED,
    "cancelled": ChargeStatus.EXPIRED,
    "canceled": ChargeStatus.EXPIRED,
}

TRANSFER_COMPLETED = {"FINALIZADO", "TRANSFERIDO"}
TRANSFER_FAILED = {"DEVOLVIDO", "FALHA", "FALHOU"}
TRANSFER_IN_FLIGHT = {"CRIADA", "RECEBIDO"}

ACKNOWLEDGED_ONLY = {"CashInRefund", "PixKey", "Payin", "PaymentLink"}

# steps of one event, remembered across its retry attempts
TRANSITIONED = "transitioned"
AUDITED = "audited"
PUBLISHED = "published"


class Outcome(Enum):
    APPLIED = "APPLIED"
    ALREADY_APPLIED = "ALREADY_APPLIED"
    UNRESOLVED = "UNRESOLVED"
    IGNORED = "IGNORED"
    CONFLICT = "CONFLICT"


@dataclass
class ApplyResult:
    outcome: Outcome
    entity_id: str | None = None
    detail: str | None = None


@dataclass
class ApplyProgress:
    """What earlier attempts at the same event already did."""

    entity_id: str | None = None
    steps: set[str] = field(default_factory=set)

    def transitioned(self, entity_id: str) -> None:
        self.entity_id = entity_id
        self.steps.add(TRANSITIONED)


def reais_to_cents(value) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int((Decimal(str(value)) * 100).to_integral_value(rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return None


class ProviderEventApplier:
    """Applies an authenticated provider event to charges and settlements.

    Every transition is check-then-apply inside the repository, so applying
    the same terminal status twice is a no-op and publishes nothing. Storage
    errors propagate to the caller's retry loop; the audit row and the
    outbound event that follow a status change run once per event, on
    whichever attempt first gets past them.
    """

    def __init__(
        self,
        charges: ChargeRepository,
        settlements: SettlementRepository,
        interactions: PaymentInteractionRepository,
        matcher: ChargeMatcher,
        publisher: EventPublisher,
        provider_name: str = "transfeera",
    ):
        self.charges = charges
        self.settlements = settlements
        self.interactions = interactions
        self.matcher = matcher
        self.publisher = publisher
        self.provider_name = provider_name
        self._handlers = {
            "CashIn": self._apply_cash_in,
            "ChargeReceivable": self._apply_charge_receivable,
            "Transfer": self._apply_transfer,
        }

    def apply(
        self,
        event: ProviderEvent,
        config: ProviderWebhookConfig,
        progress: ApplyProgress | None = None,
    ) -> ApplyResult:
        """Apply ``event``.

        ``progress`` is shared by every attempt at the same event. It records
        which steps already happened, so an attempt that fails after the
        status change still gets its audit row and outbound event on retry.
        """
        progress = ApplyProgress() if progress is None else progress
        handler = self._handlers.get(event.object)
        if handler is not None:
            return handler(event, config, progress)
        if event.object in ACKNOWLEDGED_ONLY:
            logger.info(f"{event.object} {event.id} acknowledged, nothing to apply")
            return ApplyResult(Outcome.IGNORED, detail=event.object)
        logger.warning(f"Unknown provider event kind {event.object!r} ({event.id})")
        return ApplyResult(Outcome.IGNORED, detail=f"unknown kind {event.object}")

    def _apply_cash_in(
        self,
        event: ProviderEvent,
        config: ProviderWebhookConfig,
        progress: ApplyProgress,
    ) -> ApplyResult:
        data = event.data
        criteria = MatchCriteria(
            merchant_id=config.merchant_id,
            transaction_id=data.get("txid"),
            external_ref=data.get("integration_id"),
            amount_cents=reais_to_cents(data.get("value")),
            method=ChargeMethod.PIX,
        )
        charge = self._resumed_charge(progress)
        if charge is None:
            match = self.matcher.match(criteria)
            if not match.matched:
                return self._unresolved(event, match.status)
            charge = match.charge
        return self._transition_charge(
            event,
            charge,
            ChargeStatus.PAID,
            progress,
            txid=data.get("txid"),
            extra={"txid": data.get("txid"), "end2endId": data.get("end2end_id")},
        )

    def _apply_charge_receivable(
        self,
        event: ProviderEvent,
        config: ProviderWebhookConfig,
        progress: ApplyProgress,
    ) -> ApplyResult:
        data = event.data
        status = str(data.get("status") or "").lower()
        target = RECEIVABLE_STATUS.get(status)
        if target is None:
            logger.info(f"ChargeReceivable {event.id} with status {status!r} needs no transition")
            return ApplyResult(Outcome.IGNORED, detail=status)

        charge_id = data.get("charge_id")
        charge = self._resumed_charge(progress)
        if charge is None and charge_id:
            charge = self.charges.get(charge_id)
        if charge is None:
            match = self.matcher.match(MatchCriteria(
                merchant_id=config.merchant_id,
                transaction_id=charge_id,
                external_ref=data.get("integration_id"),
                amount_cents=reais_to_cents(data.get("value")),
                method=ChargeMethod.BOLETO,
            ))
            if not match.matched:
                return self._unresolved(event, match.status)
            charge = match.charge
        return self._transition_charge(event, charge, target, progress)

    def _apply_transfer(
        self,
        event: ProviderEvent,
        config: ProviderWebhookConfig,
        progress: ApplyProgress,
    ) -> ApplyResult:
        data = event.data
        status = str(data.get("status") or "").upper()
        if status in TRANSFER_IN_FLIGHT:
            logger.info(f"Transfer {event.id} is {status}, waiting for a final status")
            return ApplyResult(Outcome.IGNORED, detail=status)
        if status not in TRANSFER_COMPLETED | TRANSFER_FAILED:
            logger.warning(f"Transfer {event.id} has unknown status {status!r}")
            return ApplyResult(Outcome.IGNORED, detail=status)

        settlement_id = data.get("integration_id")
        settlement = self.settlements.get(settlement_id) if settlement_id else None
        if settlement is None:
            logger.warning(f"Transfer {event.id}: no settlement for integration id {settlement_id!r}")
            return ApplyResult(Outcome.UNRESOLVED, detail="settlement not found")

        if status in TRANSFER_COMPLETED:
            transaction_id = str(data["id"]) if data.get("id") is not None else None
            change = lambda s: s.complete(transaction_id)
            event_name = "settlement.completed"
        else:
            reason = (data.get("error") or {}).get("message") or status
            change = lambda s: s.fail(reason)
            event_name = "settlement.failed"

        try:
            result = self.settlements.transition(settlement.id, change)
        except InvalidTransitionError as e:
            logger.warning(f"Transfer {event.id} conflicts with settlement {settlement.id}: {e}")
            return ApplyResult(Outcome.CONFLICT, entity_id=settlement.id, detail=str(e))

        if result.changed:
            progress.transitioned(settlement.id)
        elif TRANSITIONED not in progress.steps:
            logger.info(f"Settlement {settlement.id} already {result.entity.status.value}")
            return ApplyResult(Outcome.ALREADY_APPLIED, entity_id=settlement.id)

        self._once(progress, PUBLISHED, lambda: self._publish_settlement(event_name, result.entity))
        logger.info(f"Settlement {settlement.id} -> {result.entity.status.value} from transfer {event.id}")
        return ApplyResult(Outcome.APPLIED, entity_id=settlement.id)

    def _transition_charge(
        self,
        event: ProviderEvent,
        charge: Charge,
        target: ChargeStatus,
        progress: ApplyProgress,
        txid: str | None = None,
        extra: dict | None = None,
    ) -> ApplyResult:
        def change(c: Charge) -> bool:
            changed = c.transition_to(target)
            # later deliveries of this callback then resolve by transaction id
            if changed and txid and not c.provider_transaction_id:
                c.provider_transaction_id = txid
            return changed

        try:
            result = self.charges.transition(charge.id, change)
        except InvalidTransitionError as e:
            logger.warning(f"{event.object} {event.id} conflicts with charge {charge.id}: {e}")
            return ApplyResult(Outcome.CONFLICT, entity_id=charge.id, detail=str(e))

        if result.changed:
            progress.transitioned(charge.id)
        elif TRANSITIONED not in progress.steps:
            logger.info(f"Charge {charge.id} already {target.value}; {event.object} {event.id} is a duplicate")
            return ApplyResult(Outcome.ALREADY_APPLIED, entity_id=charge.id)
        else:
            logger.info(f"Resuming follow-up of {event.object} {event.id} for charge {charge.id}")

        updated = result.entity
        paid = target is ChargeStatus.PAID
        self._once(progress, AUDITED, lambda: self.interactions.create(PaymentInteraction(
            merchant_id=updated.merchant_id,
            charge_id=updated.id,
            type=PaymentInteractionType.CHARGE_PAID if paid else PaymentInteractionType.CHARGE_EXPIRED,
            method=updated.method,
            provider=self.provider_name,
            amount_cents=updated.amount_cents,
            metadata={"providerEventId": event.id, "providerEventType": event.object},
        )))

        payload = {
            "chargeId": updated.id,
            "merchantId": updated.merchant_id,
            "amountCents": updated.amount_cents,
            "status": updated.status.value,
        }
        if paid:
            payload["paidAt"] = updated.paid_at.isoformat() if updated.paid_at else None
            payload.update(extra or {})
        else:
            payload["expiredAt"] = updated.expired_at.isoformat() if updated.expired_at else None
        event_name = "charge.paid" if paid else "charge.expired"
        self._once(progress, PUBLISHED, lambda: self.publisher.publish(updated.merchant_id, event_name, payload))

        logger.info(f"Charge {updated.id} -> {target.value} from {event.object} {event.id}")
        return ApplyResult(Outcome.APPLIED, entity_id=updated.id)

    def _resumed_charge(self, progress: ApplyProgress) -> Charge | None:
        # an earlier attempt already moved this charge; matching again could miss it
        return self.charges.get(progress.entity_id) if progress.entity_id else None

    @staticmethod
    def _once(progress: ApplyProgress, step: str, action) -> None:
        if step in progress.steps:
            return
        action()
        progress.steps.add(step)

    def _publish_settlement(self, event_name: str, settlement: Settlement) -> None:
        self.publisher.publish(settlement.merchant_id, event_name, {
            "id": settlement.id,
            "merchantId": settlement.merchant_id,
            "amountCents": settlement.amount_cents,
            "status": settlement.status.value,
            "transactionId": settlement.transaction_id,
            "failureReason": settlement.failure_reason,
        })

    @staticmethod
    def _unresolved(event: ProviderEvent, status: MatchStatus) -> ApplyResult:
        detail = "ambiguous match" if status is MatchStatus.AMBIGUOUS else "no matching charge"
        logger.warning(f"{event.object} {event.id} left unresolved: {detail}")
        return ApplyResult(Outcome.UNRESOLVED, detail=detail)
