import pytest
import requests

from turbofy_core.observability.alerting import AlertManager
from turbofy_core.observability.metrics import MetricsCollector
from turbofy_core.observability.notifier import EmailAlertNotifier, LoggingAlertNotifier, render_alert_html


class TestAlertCheck:
    """Tests for AlertManager.check()."""

    @pytest.mark.unit
    def test_check_returns_alert_when_rate_exceeds_threshold(self, metrics, alert_manager):
        # 2 failures out of 3 total => 66.7%
        metrics.record_success()
        metrics.record_failure()
        metrics.record_failure()
        alert = alert_manager.check()
        assert alert is not None
        assert alert["type"] == "webhook_failure_rate"
        assert alert["total_deliveries"] == 3
        assert alert["failed_deliveries"] == 2

    @pytest.mark.unit
    def test_check_returns_none_when_rate_below_threshold(self, metrics, alert_manager):
        for _ in range(10):
            metrics.record_success()
        assert alert_manager.check() is None

    @pytest.mark.unit
    def test_fires_once_per_excursion(self, metrics, alert_manager):
        metrics.record_failure()
        assert alert_manager.check() is not None
        assert alert_manager.check() is None

        # recover below threshold, then cross again
        for _ in range(20):
            metrics.record_success()
        assert alert_manager.check() is None
        for _ in range(10):
            metrics.record_failure()
        assert alert_manager.check() is not None

    @pytest.mark.unit
    def test_callback_is_invoked_on_alert(self):
        received = []
        mc = MetricsCollector(window_seconds=300)
        am = AlertManager(metrics=mc, threshold=0.10, callback=received.append)
        mc.record_failure()
        am.check()
        assert [a["type"] for a in received] == ["webhook_failure_rate"]

    @pytest.mark.unit
    def test_callback_failure_does_not_propagate(self, metrics):
        def broken(alert):
            raise RuntimeError("smtp down")

        am = AlertManager(metrics=metrics, callback=broken)
        metrics.record_failure()
        assert am.check() is not None
        assert len(am.get_alerts()) == 1


class TestProcessingExhausted:
    """Tests for the inbound retry exhaustion alert."""

    @pytest.mark.unit
    def test_alert_carries_event_details(self, alert_manager):
        alert = alert_manager.alert_processing_exhausted(
            provider="transfeera",
            event_type="CashIn",
            event_id="evt_1",
            attempts=5,
            last_error="database busy",
        )
        assert alert["type"] == "inbound_processing_exhausted"
        assert alert["event_type"] == "CashIn"
        assert alert["event_id"] == "evt_1"
        assert alert["attempts"] == 5
        assert "evt_1" in alert["message"]
        assert alert_manager.get_alerts() == [alert]


class _FakeResponse:
    def __init__(self, status_code: int):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"HTTP {self.status_code}")


class TestNotifiers:
    """Tests for the alert delivery channels."""

    @pytest.mark.unit
    def test_email_notifier_posts_to_api(self, monkeypatch):
        sent = []

        def fake_post(url, json=None, headers=None, timeout=None):
            sent.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
            return _FakeResponse(200)

        monkeypatch.setattr(requests, "post", fake_post)
        notifier = EmailAlertNotifier(
            api_url="https://email.test/emails",
            api_key="re_key",
            to="ops@turbofy.test",
            from_email="alerts@turbofy.test",
        )
        notifier({"type": "inbound_processing_exhausted", "subject": "Persistent failure", "message": "boom",
                  "event_id": "evt_1", "attempts": 5})

        assert len(sent) == 1
        assert sent[0]["headers"]["Authorization"] == "Bearer re_key"
        assert sent[0]["json"]["to"] == ["ops@turbofy.test"]
        assert sent[0]["json"]["subject"] == "Persistent failure"
        assert "evt_1" in sent[0]["json"]["html"]

    @pytest.mark.unit
    def test_email_notifier_raises_on_api_error(self, monkeypatch):
        monkeypatch.setattr(requests, "post", lambda *a, **kw: _FakeResponse(500))
        notifier = EmailAlertNotifier("https://email.test/emails", "key", "ops@turbofy.test", "alerts@turbofy.test")
        with pytest.raises(requests.exceptions.HTTPError):
            notifier({"type": "webhook_failure_rate", "message": "rate"})

    @pytest.mark.unit
    def test_logging_notifier_logs(self, caplog):
        with caplog.at_level("ERROR", logger="turbofy.alerts"):
            LoggingAlertNotifier()({"type": "webhook_failure_rate", "message": "rate too high"})
        assert "rate too high" in caplog.text

    @pytest.mark.unit
    def test_render_alert_html_skips_subject(self):
        html = render_alert_html({"subject": "S", "message": "M", "attempts": 5})
        assert "<p>M</p>" in html
        assert "attempts: 5" in html
        assert "subject" not in html
