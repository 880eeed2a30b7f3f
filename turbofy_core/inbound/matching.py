import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from turbofy_core.models.charge import Charge, ChargeMethod
from turbofy_core.repositories.base import ChargeRepository

logger = logging.getLogger("turbofy.inbound")


class MatchStatus(Enum):
    MATCHED = "MATCHED"
    NOT_FOUND = "NOT_FOUND"
    AMBIGUOUS = "AMBIGUOUS"


@dataclass
class MatchCriteria:
    merchant_id: str | None = None
    transaction_id: str | None = None
    external_ref: str | None = None
    amount_cents: int | None = None
    method: ChargeMethod | None = None


@dataclass
class MatchResult:
    status: MatchStatus
    charge: Charge | None = None
    step: str | None = None
    candidates: int = 0

    @property
    def matched(self) -> bool:
        return self.status is MatchStatus.MATCHED


class ChargeMatcher:
    """Resolves a provider event to a local charge.

    Tries the provider transaction id, then the external reference, then a
    search for PENDING charges of the same merchant, method and amount
    created inside the window. The last step only accepts a single
    candidate; two or more leave the event unresolved.
    """

    def __init__(self, charges: ChargeRepository, window_days: int = 7, clock=None):
        self.charges = charges
        self.window = timedelta(days=window_days)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def match(self, criteria: MatchCriteria) -> MatchResult:
        if criteria.transaction_id:
            charge = self.charges.find_by_provider_transaction_id(criteria.transaction_id)
            if charge:
                logger.info(f"Matched charge {charge.id} by transaction id {criteria.transaction_id}")
                return MatchResult(MatchStatus.MATCHED, charge, step="transaction_id", candidates=1)

        if criteria.external_ref:
            charge = self.charges.find_by_external_ref(criteria.external_ref)
            if charge:
                logger.info(f"Matched charge {charge.id} by external reference {criteria.external_ref}")
                return MatchResult(MatchStatus.MATCHED, charge, step="external_ref", candidates=1)

        if not (criteria.merchant_id and criteria.amount_cents and criteria.method):
            return MatchResult(MatchStatus.NOT_FOUND)

        candidates = self.charges.find_pending_candidates(
            merchant_id=criteria.merchant_id,
            amount_cents=criteria.amount_cents,
            method=criteria.method,
            created_after=self.clock() - self.window,
        )
        if len(candidates) == 1:
            charge = candidates[0]
            logger.info(
                f"Matched charge {charge.id} by amount {criteria.amount_cents} "
                f"({criteria.method.value}, merchant {criteria.merchant_id})"
            )
            return MatchResult(MatchStatus.MATCHED, charge, step="pending_amount", candidates=1)
        if len(candidates) > 1:
            logger.warning(
                f"Ambiguous match: {len(candidates)} pending {criteria.method.value} charges of "
                f"{criteria.amount_cents} for merchant {criteria.merchant_id}; leaving for manual review"
            )
            return MatchResult(MatchStatus.AMBIGUOUS, candidates=len(candidates))
        return MatchResult(MatchStatus.NOT_FOUND)
