from .crypto import build_signature_header, generate_signature, verify_signature, verify_turbofy_signature
from .factories import ChargeFactory, ProviderEventFactory, SettlementFactory, signed_request

__all__ = [
    "build_signature_header", "generate_signature", "verify_signature", "verify_turbofy_signature",
    "ChargeFactory", "ProviderEventFactory", "SettlementFactory", "signed_request",
]
