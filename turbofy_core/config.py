# turbofy_core/config.py
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ────────────────────────────────
    # 1. APP & ENVIRONMENT
    # ────────────────────────────────
    PROJECT_NAME: str = "Turbofy"
    DEV_MODE: bool = False
    LOG_LEVEL: str = "INFO"

    # ────────────────────────────────
    # 2. CHARGES
    # ────────────────────────────────
    MIN_CHARGE_AMOUNT_CENTS: int = Field(default=500, ge=1)
    DEFAULT_CURRENCY: str = "BRL"

    # ────────────────────────────────
    # 3. PAYMENT PROVIDER
    # ────────────────────────────────
    PROVIDER_NAME: str = "transfeera"
    PROVIDER_BASE_URL: Optional[str] = Field(
        default=None,
        description="Base URL of the banking provider API; the stub adapter is used when unset",
    )
    PROVIDER_API_KEY: Optional[str] = None
    PROVIDER_TIMEOUT_SECONDS: float = Field(default=15, gt=0)
    PROVIDER_USER_AGENT_MARKER: str = "transfeera"

    # ────────────────────────────────
    # 4. OUTBOUND WEBHOOKS
    # ────────────────────────────────
    WEBHOOK_TIMEOUT_SECONDS: float = Field(default=10, gt=0)
    WEBHOOK_SUSPEND_AFTER_FAILURES: int = Field(default=10, ge=1)
    WEBHOOK_RESPONSE_BODY_LIMIT: int = 1000
    WEBHOOK_MAX_WORKERS: int = Field(default=8, ge=1)
    WEBHOOK_USER_AGENT: str = "Turbofy Webhooks/1.0"

    # ────────────────────────────────
    # 5. INBOUND WEBHOOKS
    # ────────────────────────────────
    INBOUND_RETRY_SCHEDULE: list[float] = Field(default_factory=lambda: [0, 1, 5, 30, 300])
    INBOUND_MATCH_WINDOW_DAYS: int = Field(default=7, ge=1)
    # 0 disables rejection of stale signature timestamps
    INBOUND_SIGNATURE_TOLERANCE_SECONDS: int = Field(default=0, ge=0)
    INBOUND_WORKERS: int = Field(default=4, ge=1)

    # ────────────────────────────────
    # 6. ALERTING (email API)
    # ────────────────────────────────
    ALERT_EMAIL_TO: Optional[str] = None
    ALERT_EMAIL_FROM: str = "Turbofy Alerts <alerts@turbofy.com.br>"
    EMAIL_API_URL: Optional[str] = None
    EMAIL_API_KEY: Optional[str] = None
    DELIVERY_FAILURE_RATE_THRESHOLD: float = Field(default=0.10, ge=0, le=1)
    METRICS_WINDOW_SECONDS: float = 300

    # ────────────────────────────────
    # 7. RECEIVER (HTTP)
    # ────────────────────────────────
    RECEIVER_HOST: str = "0.0.0.0"
    RECEIVER_PORT: int = 8080

    model_config = SettingsConfigDict(
        env_prefix="TURBOFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Create singleton
settings = Settings()
