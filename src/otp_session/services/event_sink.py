"""Analytics event sink — best-effort reporting of auth outcomes.

The engine never waits on the sink.  :class:`SinkNotifier` masks
identifiers, schedules each sink call as a background task, and swallows
whatever the sink raises, so analytics can never change an authentication
outcome.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Coroutine
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from otp_session.config import Settings

logger = logging.getLogger(__name__)

MASKED_FALLBACK = "***@***"

# Event names reported to remote collectors
EVENT_OTP_GENERATED = "otp_generated"
EVENT_VALIDATION_SUCCESS = "otp_validation_success"
EVENT_VALIDATION_FAILURE = "otp_validation_failure"
EVENT_LOGOUT = "user_logout"


def mask_email(email: str) -> str:
    """Mask an email for analytics: ``jo***@example.com``.

    Local parts of two characters or fewer, and anything that is not a
    single ``local@domain`` pair, collapse to ``***@***``.
    """
    parts = email.split("@")
    if len(parts) != 2 or len(parts[0]) <= 2:
        return MASKED_FALLBACK
    local, domain = parts
    return f"{local[:2]}***@{domain}"


class EventSink(ABC):
    """Abstract analytics sink.

    Implementations receive already-masked emails and may raise freely;
    :class:`SinkNotifier` contains the failure.
    """

    @abstractmethod
    async def log_otp_issued(self, masked_email: str) -> None:
        """An OTP was generated for *masked_email*."""

    @abstractmethod
    async def log_otp_validation_success(self, masked_email: str) -> None:
        """An OTP was accepted."""

    @abstractmethod
    async def log_otp_validation_failure(self, masked_email: str, reason: str) -> None:
        """An OTP was rejected; *reason* is a validation reason code."""

    @abstractmethod
    async def log_logout(self, session_duration_seconds: int) -> None:
        """A session ended after *session_duration_seconds*."""


class NullEventSink(EventSink):
    """Discards every event."""

    async def log_otp_issued(self, masked_email: str) -> None:
        return None

    async def log_otp_validation_success(self, masked_email: str) -> None:
        return None

    async def log_otp_validation_failure(self, masked_email: str, reason: str) -> None:
        return None

    async def log_logout(self, session_duration_seconds: int) -> None:
        return None


class LoggingEventSink(EventSink):
    """Writes analytics events to the ``otp_session.analytics`` logger."""

    def __init__(self, logger_name: str = "otp_session.analytics") -> None:
        self._log = logging.getLogger(logger_name)

    async def log_otp_issued(self, masked_email: str) -> None:
        self._log.info("%s email=%s", EVENT_OTP_GENERATED, masked_email)

    async def log_otp_validation_success(self, masked_email: str) -> None:
        self._log.info("%s email=%s", EVENT_VALIDATION_SUCCESS, masked_email)

    async def log_otp_validation_failure(self, masked_email: str, reason: str) -> None:
        self._log.info(
            "%s email=%s failure_reason=%s", EVENT_VALIDATION_FAILURE, masked_email, reason
        )

    async def log_logout(self, session_duration_seconds: int) -> None:
        self._log.info(
            "%s session_duration_seconds=%d", EVENT_LOGOUT, session_duration_seconds
        )


class HttpEventSink(EventSink):
    """Posts analytics events as JSON to a remote collector.

    Each event is sent as ``{"event": name, "params": {...}, "timestamp": t}``.
    Transport errors and non-2xx responses are logged, never raised.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._transport = transport

    async def log_otp_issued(self, masked_email: str) -> None:
        await self._post(EVENT_OTP_GENERATED, {"email": masked_email})

    async def log_otp_validation_success(self, masked_email: str) -> None:
        await self._post(EVENT_VALIDATION_SUCCESS, {"email": masked_email})

    async def log_otp_validation_failure(self, masked_email: str, reason: str) -> None:
        await self._post(
            EVENT_VALIDATION_FAILURE, {"email": masked_email, "failure_reason": reason}
        )

    async def log_logout(self, session_duration_seconds: int) -> None:
        await self._post(
            EVENT_LOGOUT, {"session_duration_seconds": session_duration_seconds}
        )

    async def _post(self, event: str, params: dict[str, Any]) -> None:
        payload = {"event": event, "params": params, "timestamp": int(time.time() * 1000)}
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post(self._url, json=payload)
            if resp.is_success:
                logger.debug("Analytics event %s delivered", event)
                return
            logger.error(
                "Analytics event %s rejected: %s %s", event, resp.status_code, resp.text
            )
        except httpx.HTTPError as exc:
            logger.exception("Analytics event %s request error: %s", event, exc)


def build_event_sink(settings: Settings) -> EventSink:
    """Pick the sink configured in *settings* (HTTP if a URL is set)."""
    if settings.event_sink_url:
        return HttpEventSink(
            settings.event_sink_url, timeout=settings.event_sink_timeout_seconds
        )
    return LoggingEventSink()


class SinkNotifier:
    """Fire-and-forget front end to an :class:`EventSink`.

    Calls return immediately.  Sink coroutines run as background tasks on
    the running loop; the notifier keeps a reference to each until it
    finishes so they are not garbage-collected mid-flight.
    """

    def __init__(self, sink: EventSink | None = None) -> None:
        self._sink = sink or NullEventSink()
        self._pending: set[asyncio.Task] = set()

    @property
    def sink(self) -> EventSink:
        return self._sink

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def otp_issued(self, email: str) -> None:
        self._spawn(self._sink.log_otp_issued(mask_email(email)))

    def validation_success(self, email: str) -> None:
        self._spawn(self._sink.log_otp_validation_success(mask_email(email)))

    def validation_failure(self, email: str, reason: str) -> None:
        self._spawn(self._sink.log_otp_validation_failure(mask_email(email), reason))

    def logout(self, session_duration_seconds: int) -> None:
        self._spawn(self._sink.log_logout(session_duration_seconds))

    async def drain(self) -> None:
        """Wait for every in-flight sink call to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # ── Private helpers ──────────────────────────────────

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop; analytics event dropped")
            return
        task = loop.create_task(self._guarded(coro))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @staticmethod
    async def _guarded(coro: Coroutine[Any, Any, None]) -> None:
        try:
            await coro
        except Exception:
            logger.warning("Analytics sink call failed; ignoring", exc_info=True)
