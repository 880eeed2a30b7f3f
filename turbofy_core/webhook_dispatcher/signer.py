from turbofy_core.utils.crypto import build_signature_header, verify_turbofy_signature


class WebhookSigner:
    """Signs outbound bodies as ``t={unixMillis},v1={hex HMAC-SHA256}``."""

    def __init__(self, secret: str):
        self.secret = secret

    def sign(self, body: str, timestamp_ms: int | None = None) -> str:
        return build_signature_header(body, self.secret, timestamp_ms)

    def verify(self, body: str, header: str, tolerance_seconds: float = 0) -> bool:
        return verify_turbofy_signature(self.secret, header, body, tolerance_seconds)
