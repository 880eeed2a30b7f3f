import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Mapping

from turbofy_core.models.webhook import ProviderEvent, ProviderWebhookConfig
from turbofy_core.repositories.base import ProviderWebhookConfigRepository
from turbofy_core.utils.crypto import parse_signature_header, timestamp_age_seconds, verify_signature

logger = logging.getLogger("turbofy.inbound")

SIGNATURE_HEADERS = (
    "transfeera-signature",
    "x-transfeera-signature",
    "x-signature",
    "x-hub-signature-256",
)


class AuthState(Enum):
    UNVERIFIED = "UNVERIFIED"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"
    PROBE = "PROBE"


@dataclass
class AuthResult:
    state: AuthState
    event: ProviderEvent | None = None
    config: ProviderWebhookConfig | None = None
    code: str | None = None
    reason: str | None = None

    @property
    def is_verified(self) -> bool:
        return self.state is AuthState.VERIFIED


class SignatureAuthenticator:
    """Authenticates provider callbacks against the account's registered secret.

    A request with no signature header is only ever a connectivity probe
    (answered 200, never processed) or an attack (rejected). It counts as a
    probe when its body is empty or is not a provider event, or when the
    user-agent identifies the provider. A request that carries a signature
    header is always verified, whatever its body or user-agent.
    """

    def __init__(
        self,
        configs: ProviderWebhookConfigRepository,
        user_agent_marker: str = "transfeera",
        tolerance_seconds: float = 0,
        clock=time.time,
    ):
        self.configs = configs
        self.user_agent_marker = user_agent_marker.lower()
        self.tolerance_seconds = tolerance_seconds
        self.clock = clock

    def authenticate(self, headers: Mapping[str, str], raw_body: bytes) -> AuthResult:
        normalized = {k.lower(): v for k, v in headers.items()}
        signature_header = next(
            (normalized[name] for name in SIGNATURE_HEADERS if normalized.get(name)),
            None,
        )
        event = _parse_event(raw_body)

        if signature_header is None:
            user_agent = normalized.get("user-agent", "").lower()
            if event is None or (self.user_agent_marker and self.user_agent_marker in user_agent):
                logger.info(f"Connectivity probe acknowledged (user-agent={user_agent or '-'})")
                return AuthResult(state=AuthState.PROBE, event=event)
            return self._reject(event, "INVALID_SIGNATURE", "Missing signature header")

        if event is None:
            return self._reject(None, "INVALID_PAYLOAD", "Signed request without a valid provider event")

        config = self.configs.find_by_account_id(event.account_id)
        if config is None:
            return self._reject(event, "WEBHOOK_NOT_CONFIGURED", f"No webhook configured for account {event.account_id}")

        parsed = parse_signature_header(signature_header)
        if parsed is None:
            return self._reject(event, "INVALID_SIGNATURE", "Malformed signature header")

        if self.tolerance_seconds > 0 and not parsed.is_legacy:
            age = timestamp_age_seconds(parsed.timestamp, self.clock())
            if age is None or age > self.tolerance_seconds:
                return self._reject(event, "STALE_SIGNATURE", f"Signature timestamp outside {self.tolerance_seconds}s tolerance")

        if not verify_signature(raw_body, config.signature_secret, parsed.signature, parsed.timestamp):
            return self._reject(event, "INVALID_SIGNATURE", "Signature mismatch")

        logger.info(
            f"Verified {event.object} {event.id} for account {event.account_id}"
            f"{' (legacy signature)' if parsed.is_legacy else ''}"
        )
        return AuthResult(state=AuthState.VERIFIED, event=event, config=config)

    def _reject(self, event: ProviderEvent | None, code: str, reason: str) -> AuthResult:
        event_ref = f"{event.object} {event.id}" if event else "unparseable event"
        logger.warning(f"Rejected {event_ref}: {code} ({reason})")
        return AuthResult(state=AuthState.REJECTED, event=event, code=code, reason=reason)


def _parse_event(raw_body: bytes) -> ProviderEvent | None:
    if not raw_body or not raw_body.strip():
        return None
    try:
        body = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        return None
    if not isinstance(body, dict):
        return None
    if not body.get("id") or not body.get("account_id"):
        return None
    try:
        return ProviderEvent.from_dict(body)
    except (KeyError, TypeError, ValueError):
        return None
