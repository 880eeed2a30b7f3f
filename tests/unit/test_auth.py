import json
import time

import pytest

from turbofy_core.inbound.auth import AuthState, SignatureAuthenticator
from turbofy_core.models.webhook import ProviderWebhookConfig
from turbofy_core.repositories.memory import InMemoryProviderWebhookConfigRepository
from turbofy_core.utils.crypto import generate_signature
from turbofy_core.utils.factories import ProviderEventFactory, signed_request

SECRET = "provider-signature-secret"


@pytest.fixture
def configs():
    repo = InMemoryProviderWebhookConfigRepository()
    repo.add(ProviderWebhookConfig(
        webhook_id="tf_1",
        merchant_id="merch_producer",
        account_id="acct_test",
        url="https://api.turbofy.test/webhooks/transfeera",
        signature_secret=SECRET,
    ))
    return repo


@pytest.fixture
def authenticator(configs):
    return SignatureAuthenticator(configs)


class TestVerification:
    """Signed requests are always verified against the account secret."""

    @pytest.mark.unit
    def test_valid_signature_verified(self, authenticator):
        raw, headers = signed_request(ProviderEventFactory.cash_in("tx_1"), SECRET)
        result = authenticator.authenticate(headers, raw)
        assert result.state is AuthState.VERIFIED
        assert result.config.merchant_id == "merch_producer"
        assert result.event.object == "CashIn"

    @pytest.mark.unit
    def test_header_lookup_is_case_insensitive(self, authenticator):
        raw, headers = signed_request(ProviderEventFactory.cash_in("tx_1"), SECRET)
        headers = {"x-transfeera-signature": headers["Transfeera-Signature"]}
        assert authenticator.authenticate(headers, raw).is_verified

    @pytest.mark.unit
    def test_tampered_body_rejected(self, authenticator):
        body = ProviderEventFactory.cash_in("tx_1", value=10.0)
        raw, headers = signed_request(body, SECRET)
        tampered = raw.replace(b"10.0", b"99.0")
        result = authenticator.authenticate(headers, tampered)
        assert result.state is AuthState.REJECTED
        assert result.code == "INVALID_SIGNATURE"

    @pytest.mark.unit
    def test_unknown_account_not_configured(self, authenticator):
        raw, headers = signed_request(ProviderEventFactory.cash_in("tx_1", account_id="acct_other"), SECRET)
        result = authenticator.authenticate(headers, raw)
        assert result.state is AuthState.REJECTED
        assert result.code == "WEBHOOK_NOT_CONFIGURED"

    @pytest.mark.unit
    def test_legacy_bare_hex_signature(self, authenticator):
        raw = json.dumps(ProviderEventFactory.cash_in("tx_1")).encode()
        headers = {"X-Hub-Signature-256": "sha256=" + generate_signature(raw, SECRET)}
        assert authenticator.authenticate(headers, raw).is_verified

    @pytest.mark.unit
    def test_signed_request_with_provider_user_agent_is_still_verified(self, authenticator):
        raw, headers = signed_request(ProviderEventFactory.cash_in("tx_1"), "wrong-secret")
        headers["User-Agent"] = "Transfeera-Webhooks/2.0"
        result = authenticator.authenticate(headers, raw)
        assert result.state is AuthState.REJECTED

    @pytest.mark.unit
    def test_signed_request_with_invalid_body_rejected(self, authenticator):
        result = authenticator.authenticate({"Transfeera-Signature": "t=1,v1=abc"}, b"not json")
        assert result.state is AuthState.REJECTED
        assert result.code == "INVALID_PAYLOAD"

    @pytest.mark.unit
    def test_stale_timestamp_rejected_when_tolerance_set(self, configs):
        authenticator = SignatureAuthenticator(configs, tolerance_seconds=300)
        old_ms = int((time.time() - 3600) * 1000)
        raw, headers = signed_request(ProviderEventFactory.cash_in("tx_1"), SECRET, timestamp_ms=old_ms)
        result = authenticator.authenticate(headers, raw)
        assert result.code == "STALE_SIGNATURE"

    @pytest.mark.unit
    def test_old_timestamp_accepted_without_tolerance(self, authenticator):
        old_ms = int((time.time() - 3600) * 1000)
        raw, headers = signed_request(ProviderEventFactory.cash_in("tx_1"), SECRET, timestamp_ms=old_ms)
        assert authenticator.authenticate(headers, raw).is_verified


class TestProbeDetection:
    """Unsigned requests are either connectivity probes or rejected."""

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", [b"", b"   ", b"not json", b"[]", b'{"ping": true}', b'{"id": "evt_1"}'])
    def test_unsigned_non_event_is_probe(self, authenticator, raw):
        assert authenticator.authenticate({}, raw).state is AuthState.PROBE

    @pytest.mark.unit
    def test_unsigned_event_from_provider_user_agent_is_probe(self, authenticator):
        raw = json.dumps(ProviderEventFactory.cash_in("tx_1")).encode()
        result = authenticator.authenticate({"User-Agent": "Transfeera/1.0"}, raw)
        assert result.state is AuthState.PROBE

    @pytest.mark.unit
    def test_unsigned_event_is_rejected(self, authenticator):
        raw = json.dumps(ProviderEventFactory.cash_in("tx_1")).encode()
        result = authenticator.authenticate({"User-Agent": "curl/8.0"}, raw)
        assert result.state is AuthState.REJECTED
        assert result.code == "INVALID_SIGNATURE"
