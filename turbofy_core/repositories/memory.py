"""Thread-safe in-memory adapters for the persistence contract.

Each repository guards its rows with a lock and hands out copies, so callers
never share mutable state with the store.
"""

import copy
import threading
from datetime import datetime
from typing import Callable

from turbofy_core.errors import DuplicateKeyError, NotFoundError
from turbofy_core.models.charge import Charge, ChargeMethod, ChargeSplit, ChargeStatus, Fee
from turbofy_core.models.commission import CommissionRule, MerchantProfile
from turbofy_core.models.delivery import DeliveryAttempt, InboundAttempt, InboundAttemptStatus
from turbofy_core.models.interaction import PaymentInteraction
from turbofy_core.models.settlement import Settlement
from turbofy_core.models.webhook import ProviderWebhookConfig, WebhookSubscription
from turbofy_core.repositories.base import (
    ChargeRepository,
    CommissionRuleRepository,
    InboundAttemptRepository,
    MerchantProfileRepository,
    PaymentInteractionRepository,
    ProviderWebhookConfigRepository,
    SettlementRepository,
    TransitionResult,
    WebhookLogRepository,
    WebhookRepository,
)


class InMemoryChargeRepository(ChargeRepository):
    def __init__(self):
        self._charges: dict[str, Charge] = {}
        self._by_key: dict[str, str] = {}
        self._splits: dict[str, list[ChargeSplit]] = {}
        self._fees: dict[str, list[Fee]] = {}
        self._lock = threading.RLock()

    def find_by_idempotency_key(self, key: str) -> Charge | None:
        with self._lock:
            charge_id = self._by_key.get(key)
            return copy.deepcopy(self._charges[charge_id]) if charge_id else None

    def get(self, charge_id: str) -> Charge | None:
        with self._lock:
            charge = self._charges.get(charge_id)
            return copy.deepcopy(charge) if charge else None

    def create(self, charge: Charge) -> Charge:
        with self._lock:
            if charge.idempotency_key in self._by_key:
                raise DuplicateKeyError(f"Idempotency key already used: {charge.idempotency_key}")
            if charge.id in self._charges:
                raise DuplicateKeyError(f"Charge id already exists: {charge.id}")
            self._charges[charge.id] = copy.deepcopy(charge)
            self._by_key[charge.idempotency_key] = charge.id
            return copy.deepcopy(charge)

    def update_payment_data(self, charge: Charge) -> Charge:
        with self._lock:
            stored = self._require(charge.id)
            stored.method = charge.method
            stored.provider_transaction_id = charge.provider_transaction_id
            stored.pix_qr_code = charge.pix_qr_code
            stored.pix_copy_paste = charge.pix_copy_paste
            stored.boleto_url = charge.boleto_url
            stored.expires_at = charge.expires_at
            stored.updated_at = charge.updated_at
            return copy.deepcopy(stored)

    def add_split(self, charge_id: str, split: ChargeSplit) -> ChargeSplit:
        with self._lock:
            self._require(charge_id)
            self._splits.setdefault(charge_id, []).append(copy.deepcopy(split))
            return copy.deepcopy(split)

    def add_fee(self, charge_id: str, fee: Fee) -> Fee:
        with self._lock:
            self._require(charge_id)
            self._fees.setdefault(charge_id, []).append(copy.deepcopy(fee))
            return copy.deepcopy(fee)

    def list_splits(self, charge_id: str) -> list[ChargeSplit]:
        with self._lock:
            return copy.deepcopy(self._splits.get(charge_id, []))

    def list_fees(self, charge_id: str) -> list[Fee]:
        with self._lock:
            return copy.deepcopy(self._fees.get(charge_id, []))

    def find_by_provider_transaction_id(self, transaction_id: str) -> Charge | None:
        return self._find_one(lambda c: c.provider_transaction_id == transaction_id)

    def find_by_external_ref(self, external_ref: str) -> Charge | None:
        return self._find_one(lambda c: c.external_ref == external_ref)

    def find_pending_candidates(
        self,
        merchant_id: str,
        amount_cents: int,
        method: ChargeMethod,
        created_after: datetime,
        limit: int = 10,
    ) -> list[Charge]:
        with self._lock:
            found = [
                c for c in self._charges.values()
                if c.merchant_id == merchant_id
                and c.amount_cents == amount_cents
                and c.method is method
                and c.status is ChargeStatus.PENDING
                and c.created_at >= created_after
            ]
            found.sort(key=lambda c: c.created_at, reverse=True)
            return copy.deepcopy(found[:limit])

    def transition(self, charge_id: str, change: Callable[[Charge], bool]) -> TransitionResult:
        with self._lock:
            stored = self._require(charge_id)
            working = copy.deepcopy(stored)
            changed = change(working)
            if changed:
                self._charges[charge_id] = working
            return TransitionResult(entity=copy.deepcopy(working), changed=changed)

    def _find_one(self, predicate) -> Charge | None:
        with self._lock:
            for charge in self._charges.values():
                if predicate(charge):
                    return copy.deepcopy(charge)
            return None

    def _require(self, charge_id: str) -> Charge:
        charge = self._charges.get(charge_id)
        if charge is None:
            raise NotFoundError(f"Charge {charge_id} not found")
        return charge


class InMemorySettlementRepository(SettlementRepository):
    def __init__(self):
        self._settlements: dict[str, Settlement] = {}
        self._lock = threading.Lock()

    def create(self, settlement: Settlement) -> Settlement:
        with self._lock:
            if settlement.id in self._settlements:
                raise DuplicateKeyError(f"Settlement id already exists: {settlement.id}")
            self._settlements[settlement.id] = copy.deepcopy(settlement)
            return copy.deepcopy(settlement)

    def get(self, settlement_id: str) -> Settlement | None:
        with self._lock:
            settlement = self._settlements.get(settlement_id)
            return copy.deepcopy(settlement) if settlement else None

    def transition(self, settlement_id: str, change: Callable[[Settlement], bool]) -> TransitionResult:
        with self._lock:
            stored = self._settlements.get(settlement_id)
            if stored is None:
                raise NotFoundError(f"Settlement {settlement_id} not found")
            working = copy.deepcopy(stored)
            changed = change(working)
            if changed:
                self._settlements[settlement_id] = working
            return TransitionResult(entity=copy.deepcopy(working), changed=changed)


class InMemoryMerchantProfileRepository(MerchantProfileRepository):
    def __init__(self, profiles: list[MerchantProfile] | None = None):
        self._profiles = {p.merchant_id: p for p in profiles or []}
        self._lock = threading.Lock()

    def add(self, profile: MerchantProfile) -> None:
        with self._lock:
            self._profiles[profile.merchant_id] = copy.deepcopy(profile)

    def get(self, merchant_id: str) -> MerchantProfile | None:
        with self._lock:
            profile = self._profiles.get(merchant_id)
            return copy.deepcopy(profile) if profile else None


class InMemoryCommissionRuleRepository(CommissionRuleRepository):
    def __init__(self, rules: list[CommissionRule] | None = None):
        self._rules: list[CommissionRule] = list(rules or [])
        self._lock = threading.Lock()

    def add(self, rule: CommissionRule) -> None:
        with self._lock:
            self._rules.append(copy.deepcopy(rule))

    def find_by_merchant(self, merchant_id: str) -> list[CommissionRule]:
        # insertion order is kept; the calculator relies on it for ties
        with self._lock:
            return copy.deepcopy([r for r in self._rules if r.merchant_id == merchant_id])


class InMemoryWebhookRepository(WebhookRepository):
    def __init__(self, log_store: WebhookLogRepository):
        self._subscriptions: dict[str, WebhookSubscription] = {}
        self._log_store = log_store
        self._lock = threading.Lock()

    def add(self, subscription: WebhookSubscription) -> WebhookSubscription:
        with self._lock:
            self._subscriptions[subscription.id] = copy.deepcopy(subscription)
            return copy.deepcopy(subscription)

    def get(self, webhook_id: str) -> WebhookSubscription | None:
        with self._lock:
            sub = self._subscriptions.get(webhook_id)
            return copy.deepcopy(sub) if sub else None

    def find_active_by_event(self, merchant_id: str, event_name: str) -> list[WebhookSubscription]:
        with self._lock:
            return copy.deepcopy([
                s for s in self._subscriptions.values()
                if s.merchant_id == merchant_id and s.is_active and s.has_event(event_name)
            ])

    def record_delivery(self, attempt: DeliveryAttempt, suspend_after: int) -> WebhookSubscription:
        with self._lock:
            sub = self._require(attempt.webhook_id)
            self._log_store.log(attempt)
            if attempt.success:
                sub.mark_success()
            else:
                sub.mark_failure(attempt.error or f"HTTP_{attempt.status_code}", suspend_after)
            return copy.deepcopy(sub)

    def reactivate(self, webhook_id: str) -> WebhookSubscription:
        with self._lock:
            sub = self._require(webhook_id)
            sub.reactivate()
            return copy.deepcopy(sub)

    def rotate_secret(self, webhook_id: str) -> str:
        with self._lock:
            return self._require(webhook_id).rotate_secret()

    def _require(self, webhook_id: str) -> WebhookSubscription:
        sub = self._subscriptions.get(webhook_id)
        if sub is None:
            raise NotFoundError(f"Webhook {webhook_id} not found")
        return sub


class InMemoryPaymentInteractionRepository(PaymentInteractionRepository):
    def __init__(self):
        self._interactions: list[PaymentInteraction] = []
        self._lock = threading.Lock()

    def create(self, interaction: PaymentInteraction) -> PaymentInteraction:
        with self._lock:
            self._interactions.append(interaction)
            return interaction

    def list_for_charge(self, charge_id: str) -> list[PaymentInteraction]:
        with self._lock:
            return [i for i in self._interactions if i.charge_id == charge_id]


class InMemoryProviderWebhookConfigRepository(ProviderWebhookConfigRepository):
    def __init__(self):
        self._configs: list[ProviderWebhookConfig] = []
        self._lock = threading.Lock()

    def add(self, config: ProviderWebhookConfig) -> ProviderWebhookConfig:
        with self._lock:
            self._configs.append(copy.deepcopy(config))
            return config

    def find_by_account_id(self, account_id: str) -> ProviderWebhookConfig | None:
        with self._lock:
            for config in self._configs:
                if config.account_id == account_id and config.active:
                    return copy.deepcopy(config)
            return None


class InMemoryInboundAttemptRepository(InboundAttemptRepository):
    def __init__(self):
        self._attempts: list[InboundAttempt] = []
        self._lock = threading.Lock()

    def record(self, attempt: InboundAttempt) -> None:
        with self._lock:
            self._attempts.append(attempt)

    def get_attempts(self, event_id: str | None = None) -> list[InboundAttempt]:
        with self._lock:
            if event_id is None:
                return list(self._attempts)
            return [a for a in self._attempts if a.event_id == event_id]

    def get_unresolved(self) -> list[InboundAttempt]:
        with self._lock:
            return [a for a in self._attempts if a.status is InboundAttemptStatus.UNRESOLVED]
