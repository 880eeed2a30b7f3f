import logging

import requests

logger = logging.getLogger("turbofy.alerts")


class LoggingAlertNotifier:
    """Writes operator alerts to the log when no email channel is configured."""

    def __call__(self, alert: dict) -> None:
        logger.error(f"ALERT {alert.get('type')}: {alert.get('message')}")


class EmailAlertNotifier:
    """Sends operator alerts through an HTTP email API."""

    def __init__(self, api_url: str, api_key: str, to: str, from_email: str, timeout_seconds: float = 10):
        self.api_url = api_url
        self.api_key = api_key
        self.to = to
        self.from_email = from_email
        self.timeout_seconds = timeout_seconds

    def __call__(self, alert: dict) -> None:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "from": self.from_email,
            "to": [self.to],
            "subject": alert.get("subject") or f"[Turbofy] {alert.get('type')}",
            "html": render_alert_html(alert),
        }
        try:
            resp = requests.post(self.api_url, json=payload, headers=headers, timeout=self.timeout_seconds)
            resp.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"Alert email failed: {e}")
            raise


def render_alert_html(alert: dict) -> str:
    rows = "".join(
        f"<p>{key}: {value}</p>"
        for key, value in alert.items()
        if key not in ("subject", "message")
    )
    return f"<p>{alert.get('message', '')}</p>{rows}"
