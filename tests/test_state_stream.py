"""Tests for the latest-value StateStream."""

from __future__ import annotations

import asyncio

import pytest

from otp_session.services.state_stream import StateStream


def test_publish_ignores_equal_values():
    stream = StateStream(1)
    assert stream.publish(1) is False
    assert stream.publish(2) is True
    assert stream.value == 2


def test_publish_after_close_is_ignored():
    stream = StateStream("a")
    stream.close()
    assert stream.publish("b") is False
    assert stream.value == "a"


@pytest.mark.asyncio
async def test_subscriber_sees_current_then_updates():
    stream = StateStream(0)
    seen: list[int] = []

    async def consume() -> None:
        async for value in stream.subscribe():
            seen.append(value)

    consumer = asyncio.create_task(consume())
    await asyncio.sleep(0)
    stream.publish(1)
    await asyncio.sleep(0)
    stream.publish(2)
    await asyncio.sleep(0)
    stream.close()
    await asyncio.wait_for(consumer, timeout=1)

    assert seen == [0, 1, 2]


@pytest.mark.asyncio
async def test_slow_subscriber_is_conflated_to_latest():
    stream = StateStream(0)
    seen: list[int] = []

    async def consume() -> None:
        async for value in stream.subscribe():
            seen.append(value)

    consumer = asyncio.create_task(consume())
    await asyncio.sleep(0)
    for value in range(1, 6):
        stream.publish(value)
    await asyncio.sleep(0)
    stream.close()
    await asyncio.wait_for(consumer, timeout=1)

    assert seen == [0, 5]
