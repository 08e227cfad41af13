"""Authentication state variants.

Exactly one variant is live at a time.  All variants are frozen: a
transition always produces a whole new value, either a fresh instance of
another variant or a ``dataclasses.replace`` copy of the same one.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Union

from otp_session.models.otp import MAX_ATTEMPTS, OTP_EXPIRY_SECONDS


@dataclass(frozen=True)
class Login:
    """Email entry screen."""

    kind: ClassVar[str] = "login"

    email: str = ""
    is_submitting: bool = False
    error_message: str | None = None


@dataclass(frozen=True)
class OtpPending:
    """Waiting for the user to enter the code issued for ``email``."""

    kind: ClassVar[str] = "otp_pending"

    email: str
    entered_digits: str = ""
    generated_otp: str = ""
    is_submitting: bool = False
    error_message: str | None = None
    attempts_remaining: int = MAX_ATTEMPTS
    remaining_seconds: int = OTP_EXPIRY_SECONDS
    resend_cooldown_remaining: int = 0


@dataclass(frozen=True)
class Session:
    """Authenticated session; ``session_start`` is a monotonic timestamp."""

    kind: ClassVar[str] = "session"

    email: str
    session_start: float
    elapsed_seconds: int = 0


AuthState = Union[Login, OtpPending, Session]


def state_to_dict(state: AuthState) -> dict[str, Any]:
    """Flatten a state into ``{"kind": ..., "state": {...}}``."""
    return {"kind": state.kind, "state": asdict(state)}
