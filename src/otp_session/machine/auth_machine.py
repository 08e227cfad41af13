"""Auth state machine — email → OTP → timed session flow."""

from __future__ import annotations

import logging
import random
import re
import string
import time
from collections.abc import Callable
from dataclasses import replace

from otp_session.config import Settings, settings as default_settings
from otp_session.models.events import (
    AuthEvent,
    BackToLoginClicked,
    CooldownTick,
    EmailChanged,
    ExpiryTick,
    LogoutClicked,
    OtpChanged,
    ResendOtpClicked,
    SendOtpClicked,
    SessionTick,
    VerifyOtpClicked,
)
from otp_session.models.otp import OtpPolicy, ValidationResult, ValidationStatus
from otp_session.models.state import AuthState, Login, OtpPending, Session
from otp_session.otp.issuer import OtpIssuer
from otp_session.otp.store import OTPStore
from otp_session.services.event_sink import (
    EventSink,
    SinkNotifier,
    build_event_sink,
    mask_email,
)
from otp_session.services.scheduler import TimerRole, TimerScheduler
from otp_session.services.state_stream import StateStream

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9+_.-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")

# ── User-facing messages ─────────────────────────────────
MSG_INVALID_EMAIL = "Please enter a valid email"
MSG_OTP_LENGTH = "Please enter {length}-digit OTP"
MSG_OTP_EXPIRED = "OTP has expired. Please request a new one."
MSG_ATTEMPTS_EXHAUSTED = "Maximum attempts reached. Please request a new OTP."
MSG_INVALID_OTP = "Incorrect OTP. {remaining} attempts remaining."
MSG_OTP_NOT_FOUND = "No OTP found. Please request a new one."


def is_valid_email(email: str) -> bool:
    return EMAIL_PATTERN.fullmatch(email) is not None


class AuthStateMachine:
    """Owns the single live :data:`AuthState` and applies events to it.

    Flow
    ----
    1. ``Login``: the user types an email and asks for a code.  A valid
       email issues an OTP and moves to ``OtpPending``; the expiry
       countdown starts.
    2. ``OtpPending``: the user enters digits and verifies.  Failures keep
       the state with an error message; success moves to ``Session`` and
       starts the session ticker.  Resend issues a new code and starts the
       resend cooldown.  Back returns to a fresh ``Login``.
    3. ``Session``: elapsed time ticks up until logout returns to ``Login``.

    Concurrency
    -----------
    The machine lives on one event loop.  :meth:`dispatch` never awaits,
    so each event is applied atomically.  Timers re-enter through
    :meth:`dispatch` with tick events stamped with the epoch that was live
    when they started.  The epoch moves on whenever a new challenge or
    session begins or the machine returns to ``Login``, and ticks from an
    older epoch are dropped.
    """

    def __init__(
        self,
        issuer: OtpIssuer,
        scheduler: TimerScheduler,
        notifier: SinkNotifier,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._issuer = issuer
        self._scheduler = scheduler
        self._notifier = notifier
        self._clock = clock
        self._policy: OtpPolicy = issuer.policy
        self._epoch = 0
        self._stream: StateStream[AuthState] = StateStream(Login())
        self._handlers: dict[type, Callable[..., None]] = {
            EmailChanged: self._on_email_changed,
            SendOtpClicked: self._on_send_otp,
            OtpChanged: self._on_otp_changed,
            VerifyOtpClicked: self._on_verify_otp,
            ResendOtpClicked: self._on_resend_otp,
            BackToLoginClicked: self._on_back_to_login,
            LogoutClicked: self._on_logout,
            ExpiryTick: self._on_expiry_tick,
            CooldownTick: self._on_cooldown_tick,
            SessionTick: self._on_session_tick,
        }

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        sink: EventSink | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
        scheduler: TimerScheduler | None = None,
    ) -> AuthStateMachine:
        """Wire a complete engine from *settings*.

        Without an explicit *sink* the one configured in *settings* is used.
        """
        settings = settings or default_settings
        notifier = SinkNotifier(sink or build_event_sink(settings))
        issuer = OtpIssuer(
            OTPStore(),
            notifier,
            policy=OtpPolicy.from_settings(settings),
            rng=rng,
            clock=clock,
        )
        return cls(
            issuer,
            scheduler or TimerScheduler(interval=settings.timer_interval_seconds),
            notifier,
            clock=clock,
        )

    # ── Public API ───────────────────────────────────────

    @property
    def state(self) -> AuthState:
        return self._stream.value

    @property
    def states(self) -> StateStream[AuthState]:
        return self._stream

    @property
    def epoch(self) -> int:
        return self._epoch

    def dispatch(self, event: AuthEvent) -> AuthState:
        """Apply *event* to the live state and return the resulting state.

        Events that do not apply to the current variant are ignored.
        """
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unsupported auth event: {event!r}")
        if self._stream.closed:
            logger.warning("Ignoring %s after shutdown", type(event).__name__)
            return self._stream.value
        handler(event)
        return self._stream.value

    def close(self) -> None:
        """Stop all timers and end state subscriptions."""
        self._scheduler.cancel_all()
        self._epoch += 1
        self._stream.close()

    async def aclose(self) -> None:
        """Like :meth:`close`, then wait for timers and analytics to settle."""
        self.close()
        await self._scheduler.aclose()
        await self._notifier.drain()

    # ── Login ────────────────────────────────────────────

    def _on_email_changed(self, event: EmailChanged) -> None:
        state = self.state
        if isinstance(state, Login):
            self._set(replace(state, email=event.value, error_message=None))

    def _on_send_otp(self, event: SendOtpClicked) -> None:
        state = self.state
        if not isinstance(state, Login):
            return

        email = state.email.strip()
        if not is_valid_email(email):
            logger.info("Rejected OTP request for malformed email")
            self._set(replace(state, error_message=MSG_INVALID_EMAIL))
            return

        code = self._issuer.issue(email)
        epoch = self._next_epoch()
        self._set(
            OtpPending(
                email=email,
                generated_otp=code,
                attempts_remaining=self._policy.max_attempts,
                remaining_seconds=self._policy.expiry_seconds,
            )
        )
        self._start_expiry_timer(epoch)
        logger.info("OTP issued for %s", mask_email(email))

    # ── OTP entry ────────────────────────────────────────

    def _on_otp_changed(self, event: OtpChanged) -> None:
        state = self.state
        if isinstance(state, OtpPending):
            digits = "".join(ch for ch in event.value if ch in string.digits)
            self._set(
                replace(
                    state,
                    entered_digits=digits[: self._policy.length],
                    error_message=None,
                )
            )

    def _on_verify_otp(self, event: VerifyOtpClicked) -> None:
        state = self.state
        if not isinstance(state, OtpPending):
            return

        if len(state.entered_digits) != self._policy.length:
            self._set(
                replace(
                    state, error_message=MSG_OTP_LENGTH.format(length=self._policy.length)
                )
            )
            return

        result = self._issuer.validate(state.email, state.entered_digits)
        if result.is_success:
            self._start_session(state.email)
        else:
            self._set(self._rejected(state, result))

    def _on_resend_otp(self, event: ResendOtpClicked) -> None:
        state = self.state
        if not isinstance(state, OtpPending) or state.resend_cooldown_remaining > 0:
            return

        code = self._issuer.issue(state.email)
        epoch = self._next_epoch()
        self._set(
            replace(
                state,
                entered_digits="",
                generated_otp=code,
                error_message=None,
                attempts_remaining=self._policy.max_attempts,
                remaining_seconds=self._policy.expiry_seconds,
                resend_cooldown_remaining=self._policy.resend_cooldown_seconds,
            )
        )
        self._start_expiry_timer(epoch)
        self._start_cooldown_timer(epoch)
        logger.info("OTP re-issued for %s", mask_email(state.email))

    def _on_back_to_login(self, event: BackToLoginClicked) -> None:
        state = self.state
        if not isinstance(state, OtpPending):
            return
        self._scheduler.cancel(TimerRole.OTP_EXPIRY)
        self._scheduler.cancel(TimerRole.RESEND_COOLDOWN)
        self._issuer.discard(state.email)
        self._next_epoch()
        self._set(Login())

    # ── Session ──────────────────────────────────────────

    def _on_logout(self, event: LogoutClicked) -> None:
        state = self.state
        if not isinstance(state, Session):
            return
        duration = int(self._clock() - state.session_start)
        self._notifier.logout(duration)
        self._scheduler.cancel(TimerRole.SESSION_TICK)
        self._next_epoch()
        self._set(Login())
        logger.info("Session for %s ended after %ds", mask_email(state.email), duration)

    def _start_session(self, email: str) -> None:
        self._scheduler.cancel(TimerRole.OTP_EXPIRY)
        self._scheduler.cancel(TimerRole.RESEND_COOLDOWN)
        epoch = self._next_epoch()
        self._set(Session(email=email, session_start=self._clock()))
        self._scheduler.start(
            TimerRole.SESSION_TICK,
            lambda: self._is_live(epoch, Session),
            lambda _: self.dispatch(SessionTick(epoch)),
        )
        logger.info("Session started for %s", mask_email(email))

    # ── Timer ticks ──────────────────────────────────────

    def _on_expiry_tick(self, event: ExpiryTick) -> None:
        state = self.state
        if self._is_live(event.epoch, OtpPending):
            self._set(replace(state, remaining_seconds=event.remaining_seconds))

    def _on_cooldown_tick(self, event: CooldownTick) -> None:
        state = self.state
        if self._is_live(event.epoch, OtpPending):
            self._set(replace(state, resend_cooldown_remaining=event.remaining_seconds))

    def _on_session_tick(self, event: SessionTick) -> None:
        state = self.state
        if self._is_live(event.epoch, Session):
            elapsed = int(self._clock() - state.session_start)
            self._set(replace(state, elapsed_seconds=elapsed))

    def _start_expiry_timer(self, epoch: int) -> None:
        self._scheduler.start(
            TimerRole.OTP_EXPIRY,
            lambda: self._is_live(epoch, OtpPending),
            lambda value: self.dispatch(ExpiryTick(epoch, value)),
            countdown_from=self._policy.expiry_seconds,
        )

    def _start_cooldown_timer(self, epoch: int) -> None:
        self._scheduler.start(
            TimerRole.RESEND_COOLDOWN,
            lambda: self._is_live(epoch, OtpPending),
            lambda value: self.dispatch(CooldownTick(epoch, value)),
            countdown_from=self._policy.resend_cooldown_seconds,
        )

    # ── Private helpers ──────────────────────────────────

    def _is_live(self, epoch: int, variant: type) -> bool:
        return epoch == self._epoch and isinstance(self.state, variant)

    def _next_epoch(self) -> int:
        self._epoch += 1
        return self._epoch

    def _set(self, state: AuthState) -> None:
        self._stream.publish(state)

    @staticmethod
    def _rejected(state: OtpPending, result: ValidationResult) -> OtpPending:
        """Map a failed validation onto the pending state."""
        status = result.status
        if status is ValidationStatus.EXPIRED:
            return replace(state, entered_digits="", error_message=MSG_OTP_EXPIRED)
        if status is ValidationStatus.ATTEMPTS_EXHAUSTED:
            return replace(
                state,
                entered_digits="",
                attempts_remaining=0,
                error_message=MSG_ATTEMPTS_EXHAUSTED,
            )
        if status is ValidationStatus.INVALID_CODE:
            return replace(
                state,
                entered_digits="",
                attempts_remaining=result.attempts_remaining,
                error_message=MSG_INVALID_OTP.format(remaining=result.attempts_remaining),
            )
        return replace(state, error_message=MSG_OTP_NOT_FOUND)
