"""OTP issuer/validator — generates codes and enforces expiry and attempt limits."""

from __future__ import annotations

import logging
import random
import secrets
import time
from collections.abc import Callable

from otp_session.models.otp import (
    OtpPolicy,
    OtpRecord,
    ValidationResult,
    ValidationStatus,
)
from otp_session.otp.store import OTPStore
from otp_session.services.event_sink import SinkNotifier, mask_email

logger = logging.getLogger(__name__)


class OtpIssuer:
    """Issues OTP challenges and classifies submitted codes.

    Parameters
    ----------
    store:
        Where pending challenges live.
    notifier:
        Best-effort analytics front end; told about every issuance and
        every validation outcome.
    policy:
        Code length, expiry and attempt limits.
    rng:
        Random source for code generation.  Defaults to the OS CSPRNG;
        tests pass a seeded :class:`random.Random`.
    clock:
        Monotonic clock in seconds.
    """

    def __init__(
        self,
        store: OTPStore,
        notifier: SinkNotifier,
        policy: OtpPolicy | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._policy = policy or OtpPolicy()
        self._rng = rng or secrets.SystemRandom()
        self._clock = clock

    @property
    def policy(self) -> OtpPolicy:
        return self._policy

    def issue(self, identifier: str) -> str:
        """Generate, store and return a fresh code for *identifier*.

        Any earlier challenge for the identifier is replaced, attempts
        included.
        """
        low = 10 ** (self._policy.length - 1)
        code = str(self._rng.randint(low, 10 * low - 1))
        self._store.put(
            identifier,
            OtpRecord(
                code=code,
                issued_at=self._clock(),
                expiry_seconds=self._policy.expiry_seconds,
                max_attempts=self._policy.max_attempts,
            ),
        )
        # Stands in for delivery: the code only ever leaves via local logs
        logger.debug("OTP for %s: %s", mask_email(identifier), code)
        self._notifier.otp_issued(identifier)
        return code

    def validate(self, identifier: str, submitted: str) -> ValidationResult:
        """Check *submitted* against the pending challenge for *identifier*."""
        result = self._classify(identifier, submitted)
        if result.is_success:
            self._notifier.validation_success(identifier)
        else:
            self._notifier.validation_failure(identifier, result.status.value)
        logger.info(
            "OTP validation for %s: %s", mask_email(identifier), result.status.value
        )
        return result

    def discard(self, identifier: str) -> None:
        """Forget any pending challenge for *identifier*."""
        self._store.remove(identifier)

    # ── Private helpers ──────────────────────────────────

    def _classify(self, identifier: str, submitted: str) -> ValidationResult:
        record = self._store.get(identifier)
        if record is None:
            return ValidationResult(ValidationStatus.NOT_FOUND)

        # Expired records stay put; the next issue() overwrites them
        if record.is_expired(self._clock()):
            return ValidationResult(ValidationStatus.EXPIRED)

        if record.attempts_exhausted:
            return ValidationResult(ValidationStatus.ATTEMPTS_EXHAUSTED, 0)

        if submitted == record.code:
            self._store.remove(identifier)
            return ValidationResult(ValidationStatus.SUCCESS)

        updated = record.with_failed_attempt()
        self._store.put(identifier, updated)
        if updated.attempts_exhausted:
            return ValidationResult(ValidationStatus.ATTEMPTS_EXHAUSTED, 0)
        return ValidationResult(
            ValidationStatus.INVALID_CODE, updated.attempts_remaining
        )
