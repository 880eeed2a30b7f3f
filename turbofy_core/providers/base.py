from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass
class IssueRequest:
    charge_id: str
    merchant_id: str
    amount_cents: int
    description: str | None = None
    expires_at: datetime | None = None


@dataclass
class PixPayload:
    qr_code: str
    copy_paste: str
    txid: str | None = None
    expires_at: datetime | None = None


@dataclass
class BoletoPayload:
    boleto_url: str
    txid: str | None = None


class PaymentProviderPort(ABC):
    """Narrow port onto the banking provider.

    Implementations raise ProviderError on any failure, including timeouts.
    """

    name = "provider"

    @abstractmethod
    def issue_pix_charge(self, request: IssueRequest) -> PixPayload: ...

    @abstractmethod
    def issue_boleto_charge(self, request: IssueRequest) -> BoletoPayload: ...
