"""Application settings loaded from environment variables.

Uses pydantic-settings for validation and type coercion. Every key uses
the ``SHIKAYAT_`` prefix; SMTP keys additionally accept their
conventional names (``SMTP_HOST`` etc.) via ``validation_alias``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Central configuration for the Shikayat complaint engine.

    Environment variables are loaded from a ``.env`` file when present.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHIKAYAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ── App ────────────────────────────────────────────────────────────
    env: Literal["development", "production"] = "development"
    portal_base_url: str = "http://localhost:3000"

    # ── API ────────────────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = ""  # comma-separated; production only

    # ── Identity gateway ───────────────────────────────────────────────
    # Shared secret the upstream auth gateway sends with actor headers.
    gateway_api_key: str = ""

    # ── Logging ────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "json"

    # ── Tracking IDs ───────────────────────────────────────────────────
    tracking_id_prefix: str = "GRS"
    tracking_id_suffix_length: int = Field(default=8, ge=6, le=16)  # 5 bits per char
    tracking_id_max_attempts: int = Field(default=5, ge=1)
    tracking_id_retry_backoff: float = Field(default=0.05, ge=0.0)

    # ── Collaborator timeouts (seconds) ────────────────────────────────
    storage_timeout_seconds: float = Field(default=5.0, gt=0)
    notification_timeout_seconds: float = Field(default=10.0, gt=0)

    # ── Email notifications ────────────────────────────────────────────
    notifications_enabled: bool = True
    smtp_host: str = Field(default="", validation_alias=AliasChoices("SHIKAYAT_SMTP_HOST", "SMTP_HOST"))
    smtp_port: int = Field(default=587, validation_alias=AliasChoices("SHIKAYAT_SMTP_PORT", "SMTP_PORT"))
    smtp_user: str = Field(default="", validation_alias=AliasChoices("SHIKAYAT_SMTP_USER", "SMTP_USER"))
    smtp_password: str = Field(default="", validation_alias=AliasChoices("SHIKAYAT_SMTP_PASSWORD", "SMTP_PASS"))
    smtp_from: str = Field(
        default="Grievance Portal <noreply@grievance-portal.in>",
        validation_alias=AliasChoices("SHIKAYAT_SMTP_FROM", "SMTP_FROM"),
    )
    smtp_use_tls: bool = True

    # ── Analytics ──────────────────────────────────────────────────────
    analytics_default_period_days: int = Field(default=30, ge=1, le=366)

    # ── Derived Properties ─────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.env == Environment.PRODUCTION

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host)


# Module-level singleton; import ``settings`` everywhere.
settings = Settings()
