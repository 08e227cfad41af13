"""Tests for the terminal simulator's command loop and shutdown."""

from __future__ import annotations

import asyncio
import random
from types import SimpleNamespace

import pytest

import simulator
from otp_session.machine.auth_machine import AuthStateMachine
from otp_session.models.state import Login
from otp_session.services.event_sink import NullEventSink


def _scripted_input(monkeypatch, lines):
    replies = iter(lines)

    async def fake_to_thread(func, *args):
        reply = next(replies)
        if isinstance(reply, type):
            raise reply()
        return reply

    monkeypatch.setattr(asyncio, "to_thread", fake_to_thread)


@pytest.fixture
def machines(monkeypatch):
    created: list[AuthStateMachine] = []

    def create():
        machine = AuthStateMachine.create(sink=NullEventSink(), rng=random.Random(7))
        created.append(machine)
        return machine

    monkeypatch.setattr(simulator, "AuthStateMachine", SimpleNamespace(create=create))
    return created


@pytest.mark.asyncio
async def test_quit_closes_engine(monkeypatch, machines):
    _scripted_input(monkeypatch, ["email alice@example.com", "send", "quit"])

    await simulator.main()

    (machine,) = machines
    assert machine.states.closed


@pytest.mark.asyncio
async def test_cancelled_while_reading_still_closes_engine(monkeypatch, machines):
    _scripted_input(
        monkeypatch, ["email alice@example.com", "send", asyncio.CancelledError]
    )

    with pytest.raises(asyncio.CancelledError):
        await simulator.main()

    (machine,) = machines
    assert machine.states.closed
    timers = [task for task in asyncio.all_tasks() if task.get_name().startswith("timer:")]
    assert timers == []


@pytest.mark.asyncio
async def test_eof_ends_loop(monkeypatch, machines):
    _scripted_input(monkeypatch, [EOFError])

    await simulator.main()

    (machine,) = machines
    assert machine.state == Login()
    assert machine.states.closed
