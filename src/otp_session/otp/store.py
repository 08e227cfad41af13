"""In-memory OTP record store — one pending challenge per identifier."""

from __future__ import annotations

import logging

from otp_session.models.otp import OtpRecord

logger = logging.getLogger(__name__)


class OTPStore:
    """Plain keyed storage for :class:`OtpRecord` values.

    Identifiers are case-sensitive.  ``put`` overwrites any existing record
    wholesale.  The store applies no policy and does no locking of its own;
    the state machine serializes all access.
    """

    def __init__(self) -> None:
        self._store: dict[str, OtpRecord] = {}

    def put(self, identifier: str, record: OtpRecord) -> None:
        self._store[identifier] = record

    def get(self, identifier: str) -> OtpRecord | None:
        return self._store.get(identifier)

    def remove(self, identifier: str) -> None:
        """Drop the record for *identifier*; missing entries are ignored."""
        if self._store.pop(identifier, None) is not None:
            logger.debug("OTP record removed (%d pending)", len(self._store))

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._store

    def __len__(self) -> int:
        return len(self._store)
