import logging

import requests

from turbofy_core.errors import ProviderError
from turbofy_core.providers.base import BoletoPayload, IssueRequest, PaymentProviderPort, PixPayload

logger = logging.getLogger("turbofy.providers")


class HttpPaymentProvider(PaymentProviderPort):
    """Issues PIX and boleto instruments over the provider's HTTP API."""

    def __init__(self, base_url: str, api_key: str | None = None, timeout_seconds: float = 15, name: str = "transfeera"):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.name = name

    def issue_pix_charge(self, request: IssueRequest) -> PixPayload:
        data = self._post("/pix/charges", request)
        try:
            return PixPayload(
                qr_code=data["qr_code"],
                copy_paste=data.get("copy_paste") or data["emv"],
                txid=data.get("txid"),
            )
        except KeyError as e:
            raise ProviderError(f"PIX response missing field {e}", code="PROVIDER_BAD_RESPONSE") from e

    def issue_boleto_charge(self, request: IssueRequest) -> BoletoPayload:
        data = self._post("/boletos", request)
        try:
            return BoletoPayload(boleto_url=data.get("boleto_url") or data["url"], txid=data.get("id"))
        except KeyError as e:
            raise ProviderError(f"Boleto response missing field {e}", code="PROVIDER_BAD_RESPONSE") from e

    def _post(self, path: str, request: IssueRequest) -> dict:
        body = {
            "integration_id": request.charge_id,
            "merchant_id": request.merchant_id,
            "value": request.amount_cents / 100,
            "description": request.description,
            "expires_at": request.expires_at.isoformat() if request.expires_at else None,
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            resp = requests.post(
                f"{self.base_url}{path}",
                json=body,
                headers=headers,
                timeout=self.timeout_seconds,
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"Provider timeout on {path} for charge {request.charge_id}")
            raise ProviderError("Provider request timed out", code="PROVIDER_TIMEOUT") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Provider unreachable on {path}: {e}")
            raise ProviderError(str(e), code="PROVIDER_UNAVAILABLE") from e

        if not 200 <= resp.status_code < 300:
            logger.error(f"Provider rejected {path} for charge {request.charge_id}: HTTP {resp.status_code}")
            raise ProviderError(
                f"Provider returned HTTP {resp.status_code}",
                code="PROVIDER_REJECTED",
                status_code=resp.status_code,
            )

        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError("Provider returned invalid JSON", code="PROVIDER_BAD_RESPONSE") from e
