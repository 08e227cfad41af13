"""Events accepted by the auth state machine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


# ── User commands ────────────────────────────────────────

@dataclass(frozen=True)
class EmailChanged:
    value: str


@dataclass(frozen=True)
class SendOtpClicked:
    pass


@dataclass(frozen=True)
class OtpChanged:
    value: str


@dataclass(frozen=True)
class VerifyOtpClicked:
    pass


@dataclass(frozen=True)
class ResendOtpClicked:
    pass


@dataclass(frozen=True)
class BackToLoginClicked:
    pass


@dataclass(frozen=True)
class LogoutClicked:
    pass


# ── Timer ticks ──────────────────────────────────────────
# Each tick carries the epoch that was live when its timer started.

@dataclass(frozen=True)
class ExpiryTick:
    epoch: int
    remaining_seconds: int


@dataclass(frozen=True)
class CooldownTick:
    epoch: int
    remaining_seconds: int


@dataclass(frozen=True)
class SessionTick:
    epoch: int


UserEvent = Union[
    EmailChanged,
    SendOtpClicked,
    OtpChanged,
    VerifyOtpClicked,
    ResendOtpClicked,
    BackToLoginClicked,
    LogoutClicked,
]
TickEvent = Union[ExpiryTick, CooldownTick, SessionTick]
AuthEvent = Union[UserEvent, TickEvent]
