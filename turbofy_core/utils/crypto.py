import hashlib
import hmac
import time
from dataclasses import dataclass


@dataclass
class ParsedSignature:
    signature: str
    timestamp: str | None = None

    @property
    def is_legacy(self) -> bool:
        return self.timestamp is None


def generate_signature(message: str | bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of ``message`` keyed with ``secret``."""
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def signed_message(body: str | bytes, timestamp: str | int | None) -> bytes:
    """The byte string that gets signed: ``"{timestamp}.{body}"``, or the bare body."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    if timestamp is None or timestamp == "":
        return body
    return f"{timestamp}.".encode("utf-8") + body


def build_signature_header(body: str | bytes, secret: str, timestamp_ms: int | None = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    signature = generate_signature(signed_message(body, timestamp_ms), secret)
    return f"t={timestamp_ms},v1={signature}"


def parse_signature_header(header: str | None) -> ParsedSignature | None:
    """Parse ``t=...,v1=...``; anything else is taken as a legacy bare hex digest."""
    if not header or not header.strip():
        return None
    header = header.strip()

    if "t=" in header and "v1=" in header:
        timestamp = ""
        signature = ""
        for part in header.split(","):
            key, _, value = part.strip().partition("=")
            if key == "t":
                timestamp = value
            elif key == "v1":
                signature = value
        if not signature:
            return None
        return ParsedSignature(signature=signature, timestamp=timestamp or None)

    if header.startswith("sha256="):
        header = header[len("sha256="):]
    return ParsedSignature(signature=header)


def verify_signature(body: str | bytes, secret: str, signature: str, timestamp: str | None = None) -> bool:
    expected = generate_signature(signed_message(body, timestamp), secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.strip().lower().encode("utf-8"))


def timestamp_age_seconds(timestamp: str, now: float | None = None) -> float | None:
    """Age of a signature timestamp given in seconds or milliseconds."""
    try:
        value = float(timestamp)
    except (TypeError, ValueError):
        return None
    if value > 1e12:
        value /= 1000
    now = time.time() if now is None else now
    return abs(now - value)


def verify_turbofy_signature(
    secret: str,
    header: str | None,
    body: str | bytes,
    tolerance_seconds: float = 0,
    now: float | None = None,
) -> bool:
    """Merchant-side check of a ``turbofy-signature`` header.

    With a positive ``tolerance_seconds`` a timestamp older (or further in the
    future) than the tolerance is rejected even when the digest matches.
    """
    parsed = parse_signature_header(header)
    if parsed is None or parsed.is_legacy:
        return False
    if tolerance_seconds > 0:
        age = timestamp_age_seconds(parsed.timestamp, now)
        if age is None or age > tolerance_seconds:
            return False
    return verify_signature(body, secret, parsed.signature, parsed.timestamp)
