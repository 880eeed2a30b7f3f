"""Persistence contract consumed by the engine.

Implementations must give every method the semantics of a single database
transaction: uniqueness of idempotency keys and ids is enforced at insert,
and ``transition`` reads the current row and applies ``change`` atomically.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from turbofy_core.models.charge import Charge, ChargeMethod, ChargeSplit, Fee
from turbofy_core.models.commission import CommissionRule, MerchantProfile
from turbofy_core.models.delivery import DeliveryAttempt, InboundAttempt
from turbofy_core.models.interaction import PaymentInteraction
from turbofy_core.models.settlement import Settlement
from turbofy_core.models.webhook import ProviderWebhookConfig, WebhookSubscription


@dataclass
class TransitionResult:
    entity: Any
    changed: bool


class ChargeRepository(ABC):
    @abstractmethod
    def find_by_idempotency_key(self, key: str) -> Charge | None: ...

    @abstractmethod
    def get(self, charge_id: str) -> Charge | None: ...

    @abstractmethod
    def create(self, charge: Charge) -> Charge:
        """Insert a charge. Raises DuplicateKeyError on a reused idempotency key."""

    @abstractmethod
    def update_payment_data(self, charge: Charge) -> Charge:
        """Persist method, provider payload fields and expiry only, never the status."""

    @abstractmethod
    def add_split(self, charge_id: str, split: ChargeSplit) -> ChargeSplit: ...

    @abstractmethod
    def add_fee(self, charge_id: str, fee: Fee) -> Fee: ...

    @abstractmethod
    def list_splits(self, charge_id: str) -> list[ChargeSplit]: ...

    @abstractmethod
    def list_fees(self, charge_id: str) -> list[Fee]: ...

    @abstractmethod
    def find_by_provider_transaction_id(self, transaction_id: str) -> Charge | None: ...

    @abstractmethod
    def find_by_external_ref(self, external_ref: str) -> Charge | None: ...

    @abstractmethod
    def find_pending_candidates(
        self,
        merchant_id: str,
        amount_cents: int,
        method: ChargeMethod,
        created_after: datetime,
        limit: int = 10,
    ) -> list[Charge]: ...

    @abstractmethod
    def transition(self, charge_id: str, change: Callable[[Charge], bool]) -> TransitionResult:
        """Apply ``change`` to the current row inside one transaction."""


class SettlementRepository(ABC):
    @abstractmethod
    def create(self, settlement: Settlement) -> Settlement: ...

    @abstractmethod
    def get(self, settlement_id: str) -> Settlement | None: ...

    @abstractmethod
    def transition(self, settlement_id: str, change: Callable[[Settlement], bool]) -> TransitionResult: ...


class MerchantProfileRepository(ABC):
    @abstractmethod
    def get(self, merchant_id: str) -> MerchantProfile | None: ...


class CommissionRuleRepository(ABC):
    @abstractmethod
    def find_by_merchant(self, merchant_id: str) -> list[CommissionRule]: ...


class WebhookRepository(ABC):
    @abstractmethod
    def add(self, subscription: WebhookSubscription) -> WebhookSubscription: ...

    @abstractmethod
    def get(self, webhook_id: str) -> WebhookSubscription | None: ...

    @abstractmethod
    def find_active_by_event(self, merchant_id: str, event_name: str) -> list[WebhookSubscription]: ...

    @abstractmethod
    def record_delivery(self, attempt: DeliveryAttempt, suspend_after: int) -> WebhookSubscription:
        """Append the delivery log row and update the failure counter together."""

    @abstractmethod
    def reactivate(self, webhook_id: str) -> WebhookSubscription: ...

    @abstractmethod
    def rotate_secret(self, webhook_id: str) -> str: ...


class WebhookLogRepository(ABC):
    @abstractmethod
    def log(self, attempt: DeliveryAttempt) -> None: ...

    @abstractmethod
    def get_attempts(self, event_id: str | None = None, webhook_id: str | None = None) -> list[DeliveryAttempt]: ...

    @abstractmethod
    def get_failed_attempts(self) -> list[DeliveryAttempt]: ...


class PaymentInteractionRepository(ABC):
    @abstractmethod
    def create(self, interaction: PaymentInteraction) -> PaymentInteraction: ...

    @abstractmethod
    def list_for_charge(self, charge_id: str) -> list[PaymentInteraction]: ...


class ProviderWebhookConfigRepository(ABC):
    @abstractmethod
    def add(self, config: ProviderWebhookConfig) -> ProviderWebhookConfig: ...

    @abstractmethod
    def find_by_account_id(self, account_id: str) -> ProviderWebhookConfig | None: ...


class InboundAttemptRepository(ABC):
    @abstractmethod
    def record(self, attempt: InboundAttempt) -> None: ...

    @abstractmethod
    def get_attempts(self, event_id: str | None = None) -> list[InboundAttempt]: ...

    @abstractmethod
    def get_unresolved(self) -> list[InboundAttempt]: ...
