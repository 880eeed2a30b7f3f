import threading
import uuid

from turbofy_core.errors import ProviderError
from turbofy_core.providers.base import BoletoPayload, IssueRequest, PaymentProviderPort, PixPayload


class StubPaymentProvider(PaymentProviderPort):
    """Deterministic provider for development and tests."""

    name = "stub"

    def __init__(self):
        self.calls: list[tuple[str, IssueRequest]] = []
        self._fail_with: ProviderError | None = None
        self._lock = threading.Lock()

    def fail_next(self, error: ProviderError | None = None) -> "StubPaymentProvider":
        self._fail_with = error or ProviderError("Provider unavailable", code="PROVIDER_UNAVAILABLE")
        return self

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.calls)

    def issue_pix_charge(self, request: IssueRequest) -> PixPayload:
        self._record("pix", request)
        txid = uuid.uuid4().hex[:26]
        copy_paste = f"00020126580014br.gov.bcb.pix0136{txid}5204000053039865802BR6304ABCD"
        return PixPayload(qr_code=f"data:image/png;base64,{txid}", copy_paste=copy_paste, txid=txid)

    def issue_boleto_charge(self, request: IssueRequest) -> BoletoPayload:
        self._record("boleto", request)
        txid = uuid.uuid4().hex[:16]
        return BoletoPayload(boleto_url=f"https://boletos.example.com/{txid}.pdf", txid=txid)

    def _record(self, kind: str, request: IssueRequest) -> None:
        with self._lock:
            self.calls.append((kind, request))
            error, self._fail_with = self._fail_with, None
        if error is not None:
            raise error
