from .base import BoletoPayload, IssueRequest, PaymentProviderPort, PixPayload
from .http_client import HttpPaymentProvider
from .issuers import BoletoIssuer, PaymentInstrumentIssuer, PixIssuer, get_issuer
from .stub import StubPaymentProvider

__all__ = [
    "BoletoPayload", "IssueRequest", "PaymentProviderPort", "PixPayload",
    "HttpPaymentProvider", "StubPaymentProvider",
    "PaymentInstrumentIssuer", "PixIssuer", "BoletoIssuer", "get_issuer",
]
