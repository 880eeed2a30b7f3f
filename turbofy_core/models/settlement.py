import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from turbofy_core.errors import InvalidTransitionError


class SettlementStatus(Enum):
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass
class Settlement:
    """Outbound transfer of a merchant balance to their bank account."""

    merchant_id: str
    amount_cents: int
    status: SettlementStatus = SettlementStatus.PROCESSING
    transaction_id: str | None = None
    failure_reason: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not SettlementStatus.PROCESSING

    def complete(self, transaction_id: str | None = None) -> bool:
        if self.status is SettlementStatus.COMPLETED:
            return False
        self._require_processing(SettlementStatus.COMPLETED)
        self.status = SettlementStatus.COMPLETED
        if transaction_id:
            self.transaction_id = transaction_id
        self.processed_at = datetime.now(timezone.utc)
        return True

    def fail(self, reason: str) -> bool:
        if self.status is SettlementStatus.FAILED:
            return False
        self._require_processing(SettlementStatus.FAILED)
        self.status = SettlementStatus.FAILED
        self.failure_reason = reason
        self.processed_at = datetime.now(timezone.utc)
        return True

    def _require_processing(self, target: SettlementStatus) -> None:
        if self.status is not SettlementStatus.PROCESSING:
            raise InvalidTransitionError(
                f"Settlement {self.id} cannot move from {self.status.value} to {target.value}"
            )
