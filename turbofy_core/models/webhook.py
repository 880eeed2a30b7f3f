import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from turbofy_core.errors import ValidationError


WEBHOOK_EVENTS = (
    "charge.created",
    "charge.split.created",
    "charge.paid",
    "charge.expired",
    "settlement.completed",
    "settlement.failed",
    "webhook.test",
)

WEBHOOK_ID_PREFIX = "wh_"
SECRET_BYTES = 32


class WebhookStatus(Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validate(url: str, events: list[str], dev_mode: bool) -> None:
    if not dev_mode and not url.startswith("https://"):
        raise ValidationError("Webhook URL must use https", code="WEBHOOK_URL_HTTPS_REQUIRED")
    invalid = [e for e in events if e not in WEBHOOK_EVENTS]
    if invalid or not events:
        raise ValidationError(f"Invalid webhook events: {invalid or events}", code="INVALID_WEBHOOK_EVENTS")


@dataclass
class WebhookSubscription:
    """A merchant-registered endpoint receiving signed platform events."""

    id: str
    public_id: str
    merchant_id: str
    url: str
    secret: str
    events: list[str]
    name: str = ""
    status: WebhookStatus = WebhookStatus.ACTIVE
    failure_count: int = 0
    dev_mode: bool = False
    last_called_at: datetime | None = None
    last_success_at: datetime | None = None
    last_failure_at: datetime | None = None
    last_error: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def create(
        cls,
        merchant_id: str,
        url: str,
        events: list[str],
        name: str = "",
        dev_mode: bool = False,
    ) -> "WebhookSubscription":
        _validate(url, events, dev_mode)
        return cls(
            id=str(uuid.uuid4()),
            public_id=f"{WEBHOOK_ID_PREFIX}{secrets.token_hex(12)}",
            merchant_id=merchant_id,
            url=url,
            secret=secrets.token_hex(SECRET_BYTES),
            events=list(events),
            name=name,
            dev_mode=dev_mode,
        )

    @property
    def is_active(self) -> bool:
        return self.status is WebhookStatus.ACTIVE

    def has_event(self, event_name: str) -> bool:
        return event_name in self.events

    def mark_success(self) -> None:
        now = _utcnow()
        self.failure_count = 0
        self.last_called_at = now
        self.last_success_at = now
        self.last_error = None
        self.updated_at = now

    def mark_failure(self, error: str, suspend_after: int) -> None:
        now = _utcnow()
        self.failure_count += 1
        self.last_called_at = now
        self.last_failure_at = now
        self.last_error = error
        if self.failure_count >= suspend_after:
            self.status = WebhookStatus.SUSPENDED
        self.updated_at = now

    def reactivate(self) -> None:
        self.status = WebhookStatus.ACTIVE
        self.failure_count = 0
        self.updated_at = _utcnow()

    def rotate_secret(self) -> str:
        self.secret = secrets.token_hex(SECRET_BYTES)
        self.updated_at = _utcnow()
        return self.secret


@dataclass
class WebhookEnvelope:
    """Wire body of an outbound platform event."""

    id: str
    type: str
    timestamp: str  # ISO 8601
    routing_key: str
    payload: dict
    version: str = "v1"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "timestamp": self.timestamp,
            "version": self.version,
            "routingKey": self.routing_key,
            "payload": self.payload,
        }


@dataclass
class ProviderEvent:
    """A callback received from the banking provider."""

    id: str
    account_id: str
    object: str
    data: dict
    date: str | None = None
    version: str | None = None

    @classmethod
    def from_dict(cls, body: dict) -> "ProviderEvent":
        return cls(
            id=str(body["id"]),
            account_id=str(body["account_id"]),
            object=str(body.get("object") or "unknown"),
            data=body.get("data") or {},
            date=body.get("date"),
            version=body.get("version"),
        )


@dataclass
class ProviderWebhookConfig:
    """Webhook registered at the provider for one of its accounts."""

    webhook_id: str
    merchant_id: str
    account_id: str
    url: str
    signature_secret: str
    object_types: list[str] = field(default_factory=list)
    schema_version: str = "v1"
    active: bool = True
