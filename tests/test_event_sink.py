"""Tests for email masking, the analytics sinks and the fire-and-forget notifier."""

from __future__ import annotations

import json
import logging

import httpx
import pytest
from unittest.mock import AsyncMock

from otp_session.config import Settings
from otp_session.services.event_sink import (
    EventSink,
    HttpEventSink,
    LoggingEventSink,
    NullEventSink,
    SinkNotifier,
    build_event_sink,
    mask_email,
)


# ── Masking ──────────────────────────────────────────────

@pytest.mark.parametrize(
    ("email", "masked"),
    [
        ("alice@example.com", "al***@example.com"),
        ("bob@b.com", "bo***@b.com"),
        ("ab@example.com", "***@***"),
        ("a@b.com", "***@***"),
        ("not-an-email", "***@***"),
        ("a@b@c.com", "***@***"),
    ],
)
def test_mask_email(email, masked):
    assert mask_email(email) == masked


# ── Notifier ─────────────────────────────────────────────

@pytest.fixture
def sink():
    return AsyncMock(spec=EventSink)


@pytest.mark.asyncio
async def test_notifier_masks_before_calling_sink(sink):
    notifier = SinkNotifier(sink)

    notifier.otp_issued("alice@example.com")
    notifier.validation_success("alice@example.com")
    notifier.validation_failure("alice@example.com", "expired")
    notifier.logout(42)
    await notifier.drain()

    sink.log_otp_issued.assert_awaited_once_with("al***@example.com")
    sink.log_otp_validation_success.assert_awaited_once_with("al***@example.com")
    sink.log_otp_validation_failure.assert_awaited_once_with("al***@example.com", "expired")
    sink.log_logout.assert_awaited_once_with(42)
    assert notifier.pending_count == 0


@pytest.mark.asyncio
async def test_notifier_does_not_wait_for_sink(sink):
    notifier = SinkNotifier(sink)

    notifier.otp_issued("alice@example.com")

    # Scheduled, not yet run
    sink.log_otp_issued.assert_not_awaited()
    assert notifier.pending_count == 1
    await notifier.drain()
    sink.log_otp_issued.assert_awaited_once()


@pytest.mark.asyncio
async def test_notifier_swallows_sink_failures(sink, caplog):
    sink.log_logout.side_effect = RuntimeError("collector down")
    notifier = SinkNotifier(sink)

    with caplog.at_level(logging.WARNING):
        notifier.logout(5)
        await notifier.drain()

    assert "Analytics sink call failed" in caplog.text


def test_notifier_without_loop_drops_event(sink):
    notifier = SinkNotifier(sink)
    notifier.otp_issued("alice@example.com")
    sink.log_otp_issued.assert_not_awaited()
    assert notifier.pending_count == 0


def test_notifier_defaults_to_null_sink():
    assert isinstance(SinkNotifier().sink, NullEventSink)


# ── Logging sink ─────────────────────────────────────────

@pytest.mark.asyncio
async def test_logging_sink_writes_analytics_logger(caplog):
    sink = LoggingEventSink()
    with caplog.at_level(logging.INFO, logger="otp_session.analytics"):
        await sink.log_otp_validation_failure("al***@example.com", "invalid_otp")
        await sink.log_logout(12)

    assert "otp_validation_failure" in caplog.text
    assert "failure_reason=invalid_otp" in caplog.text
    assert "session_duration_seconds=12" in caplog.text


# ── HTTP sink ────────────────────────────────────────────

@pytest.mark.asyncio
async def test_http_sink_posts_event_payload():
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(204)

    sink = HttpEventSink("http://collector.test/events", transport=httpx.MockTransport(handler))
    await sink.log_otp_validation_failure("al***@example.com", "max_attempts")

    assert len(captured) == 1
    body = json.loads(captured[0].content)
    assert body["event"] == "otp_validation_failure"
    assert body["params"] == {"email": "al***@example.com", "failure_reason": "max_attempts"}
    assert isinstance(body["timestamp"], int)


@pytest.mark.asyncio
async def test_http_sink_logs_rejected_events(caplog):
    sink = HttpEventSink(
        "http://collector.test/events",
        transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")),
    )
    with caplog.at_level(logging.ERROR):
        await sink.log_logout(3)

    assert "rejected" in caplog.text


@pytest.mark.asyncio
async def test_http_sink_swallows_transport_errors(caplog):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    sink = HttpEventSink("http://collector.test/events", transport=httpx.MockTransport(handler))
    with caplog.at_level(logging.ERROR):
        await sink.log_otp_issued("al***@example.com")

    assert "request error" in caplog.text


# ── Factory ──────────────────────────────────────────────

def test_build_event_sink_defaults_to_logging():
    assert isinstance(build_event_sink(Settings(event_sink_url="")), LoggingEventSink)


def test_build_event_sink_uses_http_when_configured():
    sink = build_event_sink(Settings(event_sink_url="http://collector.test/events"))
    assert isinstance(sink, HttpEventSink)
