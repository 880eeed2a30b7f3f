import json
import uuid
from datetime import datetime, timezone

from turbofy_core.models.charge import Charge, ChargeMethod
from turbofy_core.models.settlement import Settlement
from turbofy_core.utils.crypto import build_signature_header


class ChargeFactory:
    """Factory for creating Charge instances with sensible defaults."""

    @staticmethod
    def create(**overrides) -> Charge:
        defaults = {
            "id": str(uuid.uuid4()),
            "merchant_id": f"merch_{uuid.uuid4().hex[:8]}",
            "amount_cents": 1000,
            "currency": "BRL",
            "idempotency_key": f"idem_{uuid.uuid4().hex[:16]}",
            "method": ChargeMethod.PIX,
            "created_at": datetime.now(timezone.utc),
        }
        defaults.update(overrides)
        return Charge(**defaults)


class SettlementFactory:
    @staticmethod
    def create(**overrides) -> Settlement:
        defaults = {
            "merchant_id": f"merch_{uuid.uuid4().hex[:8]}",
            "amount_cents": 10000,
        }
        defaults.update(overrides)
        return Settlement(**defaults)


class ProviderEventFactory:
    """Builds provider callback bodies the way the banking provider sends them."""

    @staticmethod
    def create(object_type: str = "CashIn", account_id: str = "acct_test", **overrides) -> dict:
        data = ProviderEventFactory._build_data(object_type, **overrides.pop("data_overrides", {}))
        body = {
            "id": overrides.pop("id", f"evt_{uuid.uuid4().hex[:16]}"),
            "version": "v1",
            "account_id": account_id,
            "object": object_type,
            "date": datetime.now(timezone.utc).isoformat(),
            "data": data,
        }
        body.update(overrides)
        return body

    @staticmethod
    def cash_in(txid: str | None = None, value: float = 10.0, account_id: str = "acct_test", **data) -> dict:
        data.setdefault("txid", txid)
        data.setdefault("value", value)
        return ProviderEventFactory.create("CashIn", account_id, data_overrides=data)

    @staticmethod
    def charge_receivable(charge_id: str, status: str = "paid", account_id: str = "acct_test", **data) -> dict:
        data.update(charge_id=charge_id, status=status)
        return ProviderEventFactory.create("ChargeReceivable", account_id, data_overrides=data)

    @staticmethod
    def transfer(settlement_id: str, status: str = "FINALIZADO", account_id: str = "acct_test", **data) -> dict:
        data.update(integration_id=settlement_id, status=status)
        return ProviderEventFactory.create("Transfer", account_id, data_overrides=data)

    @staticmethod
    def _build_data(object_type: str, **kwargs) -> dict:
        if object_type == "CashIn":
            base = {
                "txid": f"tx_{uuid.uuid4().hex[:20]}",
                "integration_id": None,
                "value": 10.0,
                "end2end_id": f"E{uuid.uuid4().hex[:31].upper()}",
            }
        elif object_type == "ChargeReceivable":
            base = {"charge_id": None, "status": "paid"}
        elif object_type == "Transfer":
            base = {"id": uuid.uuid4().int % 10**8, "integration_id": None, "status": "FINALIZADO"}
        else:
            base = {}
        base.update(kwargs)
        return base


def signed_request(body: dict, secret: str, timestamp_ms: int | None = None) -> tuple[bytes, dict]:
    """Serialize ``body`` and sign it as the provider would."""
    raw = json.dumps(body).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "Transfeera-Signature": build_signature_header(raw, secret, timestamp_ms),
    }
    return raw, headers
