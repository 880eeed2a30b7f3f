from abc import ABC, abstractmethod

from turbofy_core.models.charge import Charge, ChargeMethod
from turbofy_core.models.interaction import PaymentInteractionType
from turbofy_core.providers.base import IssueRequest, PaymentProviderPort


class PaymentInstrumentIssuer(ABC):
    """Obtains the payment payload for one charge method."""

    method: ChargeMethod
    interaction_type: PaymentInteractionType

    @abstractmethod
    def issue(self, provider: PaymentProviderPort, charge: Charge) -> None:
        """Request the instrument and attach it to ``charge``."""

    @staticmethod
    def _request(charge: Charge) -> IssueRequest:
        return IssueRequest(
            charge_id=charge.id,
            merchant_id=charge.merchant_id,
            amount_cents=charge.amount_cents,
            description=charge.description,
            expires_at=charge.expires_at,
        )


class PixIssuer(PaymentInstrumentIssuer):
    method = ChargeMethod.PIX
    interaction_type = PaymentInteractionType.PIX_ISSUED

    def issue(self, provider: PaymentProviderPort, charge: Charge) -> None:
        pix = provider.issue_pix_charge(self._request(charge))
        charge.with_pix_data(pix.qr_code, pix.copy_paste, pix.txid)
        if pix.expires_at and charge.expires_at is None:
            charge.expires_at = pix.expires_at


class BoletoIssuer(PaymentInstrumentIssuer):
    method = ChargeMethod.BOLETO
    interaction_type = PaymentInteractionType.BOLETO_ISSUED

    def issue(self, provider: PaymentProviderPort, charge: Charge) -> None:
        boleto = provider.issue_boleto_charge(self._request(charge))
        charge.with_boleto_data(boleto.boleto_url, boleto.txid)


ISSUERS: dict[ChargeMethod, PaymentInstrumentIssuer] = {
    ChargeMethod.PIX: PixIssuer(),
    ChargeMethod.BOLETO: BoletoIssuer(),
}


def get_issuer(method: ChargeMethod | None) -> PaymentInstrumentIssuer | None:
    """Issuer for ``method``, or None for methods the provider does not issue (CARD)."""
    if method is None:
        return None
    return ISSUERS.get(method)
