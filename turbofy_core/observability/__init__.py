from .alerting import AlertManager
from .metrics import MetricsCollector
from .notifier import EmailAlertNotifier, LoggingAlertNotifier

__all__ = ["AlertManager", "MetricsCollector", "EmailAlertNotifier", "LoggingAlertNotifier"]
