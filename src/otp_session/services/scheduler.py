"""Timer scheduler — one cancellable ticking task per timer role."""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from functools import partial

logger = logging.getLogger(__name__)


class TimerRole(str, Enum):
    """The independent timers an auth engine runs."""

    OTP_EXPIRY = "otp_expiry"
    RESEND_COOLDOWN = "resend_cooldown"
    SESSION_TICK = "session_tick"


class TimerScheduler:
    """Runs per-role ticking tasks on the current event loop.

    Each task ticks once per ``interval``.  Before every tick it calls its
    ``epoch_check``; once that returns false the task ends, so a timer whose
    state has been superseded stops on its own even if nobody cancels it.
    Starting a role always cancels the previous task of that role first.

    ``sleep`` is injectable so tests can drive ticks against a fake clock.
    """

    def __init__(
        self,
        interval: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._interval = interval
        self._sleep = sleep
        self._tasks: dict[TimerRole, asyncio.Task] = {}
        self._cancelled: set[asyncio.Task] = set()

    def start(
        self,
        role: TimerRole,
        epoch_check: Callable[[], bool],
        on_tick: Callable[[int], None],
        countdown_from: int | None = None,
    ) -> asyncio.Task:
        """Start the *role* timer, replacing any running one.

        With ``countdown_from`` the task ticks ``countdown_from, ..., 1, 0``
        and finishes.  Without it the task ticks ``0, 1, 2, ...`` until its
        epoch check fails or it is cancelled.
        """
        self.cancel(role)
        task = asyncio.get_running_loop().create_task(
            self._run(role, epoch_check, on_tick, countdown_from),
            name=f"timer:{role.value}",
        )
        self._tasks[role] = task
        task.add_done_callback(partial(self._forget, role))
        logger.debug("Timer %s started", role.value)
        return task

    def cancel(self, role: TimerRole) -> None:
        """Cancel the *role* timer if one is running; safe to repeat."""
        task = self._tasks.pop(role, None)
        if task is not None and not task.done():
            task.cancel()
            self._cancelled.add(task)
            task.add_done_callback(self._cancelled.discard)
            logger.debug("Timer %s cancelled", role.value)

    def cancel_all(self) -> None:
        for role in list(self._tasks):
            self.cancel(role)

    def is_running(self, role: TimerRole) -> bool:
        task = self._tasks.get(role)
        return task is not None and not task.done()

    async def aclose(self) -> None:
        """Cancel every timer and wait for the tasks to unwind.

        Also waits for timers cancelled earlier that have not finished yet.
        """
        self.cancel_all()
        tasks = list(self._cancelled)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ── Private helpers ──────────────────────────────────

    async def _run(
        self,
        role: TimerRole,
        epoch_check: Callable[[], bool],
        on_tick: Callable[[int], None],
        countdown_from: int | None,
    ) -> None:
        if countdown_from is None:
            values = itertools.count()
        else:
            values = range(countdown_from, -1, -1)

        for value in values:
            if not epoch_check():
                logger.debug("Timer %s superseded, stopping", role.value)
                return
            on_tick(value)
            await self._sleep(self._interval)
        logger.debug("Timer %s finished", role.value)

    def _forget(self, role: TimerRole, task: asyncio.Task) -> None:
        if self._tasks.get(role) is task:
            del self._tasks[role]
