"""OTP record and validation result value objects."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from otp_session.config import Settings

# ── Policy defaults ──────────────────────────────────────
OTP_LENGTH = 6
OTP_EXPIRY_SECONDS = 60
MAX_ATTEMPTS = 3
RESEND_COOLDOWN_SECONDS = 30


@dataclass(frozen=True)
class OtpPolicy:
    """Limits applied to every OTP challenge issued by the engine."""

    length: int = OTP_LENGTH
    expiry_seconds: int = OTP_EXPIRY_SECONDS
    max_attempts: int = MAX_ATTEMPTS
    resend_cooldown_seconds: int = RESEND_COOLDOWN_SECONDS

    def __post_init__(self) -> None:
        if self.length < 1:
            raise ValueError(f"OTP length must be at least 1, got {self.length}")

    @classmethod
    def from_settings(cls, settings: Settings) -> OtpPolicy:
        return cls(
            length=settings.otp_length,
            expiry_seconds=settings.otp_expiry_seconds,
            max_attempts=settings.max_otp_attempts,
            resend_cooldown_seconds=settings.resend_cooldown_seconds,
        )


@dataclass(frozen=True)
class OtpRecord:
    """A pending OTP challenge for one identifier.

    ``issued_at`` is a monotonic timestamp in seconds.  The expiry and
    attempt limits are snapshotted from the policy at issuance, so every
    derived value below depends only on the record and the supplied ``now``.
    """

    code: str
    issued_at: float
    attempt_count: int = 0
    expiry_seconds: int = OTP_EXPIRY_SECONDS
    max_attempts: int = MAX_ATTEMPTS

    def elapsed_seconds(self, now: float) -> int:
        return int(now - self.issued_at)

    def is_expired(self, now: float) -> bool:
        return self.elapsed_seconds(now) >= self.expiry_seconds

    def remaining_seconds(self, now: float) -> int:
        return max(0, self.expiry_seconds - self.elapsed_seconds(now))

    @property
    def attempts_remaining(self) -> int:
        return max(0, self.max_attempts - self.attempt_count)

    @property
    def attempts_exhausted(self) -> bool:
        return self.attempt_count >= self.max_attempts

    def with_failed_attempt(self) -> OtpRecord:
        """Return a copy with one more failed attempt, capped at the limit."""
        return replace(
            self, attempt_count=min(self.attempt_count + 1, self.max_attempts)
        )


class ValidationStatus(str, Enum):
    """Outcome of an OTP validation.

    The values double as the failure reason codes reported to the
    analytics sink.
    """

    SUCCESS = "success"
    EXPIRED = "expired"
    ATTEMPTS_EXHAUSTED = "max_attempts"
    INVALID_CODE = "invalid_otp"
    NOT_FOUND = "no_otp_found"


@dataclass(frozen=True)
class ValidationResult:
    """Value object returned by :meth:`OtpIssuer.validate`."""

    status: ValidationStatus
    attempts_remaining: int | None = None

    @property
    def is_success(self) -> bool:
        return self.status is ValidationStatus.SUCCESS
