from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


@dataclass(frozen=True)
class DeliveryAttempt:
    """One outbound delivery to one merchant endpoint. Never mutated."""

    attempt_id: str
    webhook_id: str
    event_id: str
    event_type: str
    url: str
    status_code: int | None
    timestamp: datetime
    response_time_ms: float
    success: bool
    attempt_number: int = 1
    response_body: str | None = None
    error: str | None = None
    payload: dict = field(default_factory=dict)


class InboundAttemptStatus(Enum):
    REJECTED = "rejected"
    PROCESSED = "processed"
    FAILED = "failed"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class InboundAttempt:
    """Journal row for one handling attempt of a provider callback."""

    provider: str
    event_id: str
    event_type: str
    status: InboundAttemptStatus
    attempt: int
    signature_valid: bool
    error_message: str | None = None
    payload: dict = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
