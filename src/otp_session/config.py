"""OTP Session Engine — configuration loaded from environment."""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine-wide settings, loaded from .env or environment variables."""

    # ── OTP policy ────────────────────────────────────────
    otp_length: int = Field(6, ge=1)
    otp_expiry_seconds: int = Field(60, ge=1)
    max_otp_attempts: int = Field(3, ge=1)
    resend_cooldown_seconds: int = Field(30, ge=0)

    # ── Timers ────────────────────────────────────────────
    timer_interval_seconds: float = Field(1.0, gt=0)

    # ── Analytics sink ────────────────────────────────────
    event_sink_url: str = ""
    event_sink_timeout_seconds: float = 5.0

    # ── App ───────────────────────────────────────────────
    app_name: str = "OTP Session Engine"
    debug: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton settings instance
settings = Settings()
