"""
ClientPoller drives one task to a terminal state.

Loop:
  wait `interval` → check status → merge into local state → notify listeners
  pending/processing → go again
  completed/failed   → stop, return the final state
  StatusQueryError   → wait `backoff`, go again

Cancellation is local only: the remote job keeps running at the provider.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from .errors import PollTimeout, StatusQueryError
from .models import StatusUpdate
from .store import merge_status

logger = logging.getLogger(__name__)

POLL_INTERVAL = 2.0
ERROR_BACKOFF = 5.0
MAX_TASK_LIFETIME = 600.0  # 10 minutes

StatusCheck = Callable[[str], Awaitable[StatusUpdate]]
Listener = Callable[[StatusUpdate], None]


class ClientPoller:
    def __init__(
        self,
        task_id: str,
        check_status: StatusCheck,
        interval: float = POLL_INTERVAL,
        backoff: float = ERROR_BACKOFF,
        max_lifetime: Optional[float] = MAX_TASK_LIFETIME,
        initial: Optional[StatusUpdate] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.task_id = task_id
        self._check_status = check_status
        self.interval = interval
        self.backoff = backoff
        self.max_lifetime = max_lifetime
        self._sleep = sleep
        self._clock = clock
        self._listeners: list[Listener] = []
        self._task: Optional[asyncio.Task] = None

        self.state: Optional[StatusUpdate] = initial
        self.attempts = 0
        self.failures = 0

    # ── Observable state ─────────────────────────────────────────────────

    def subscribe(self, listener: Listener):
        self._listeners.append(listener)

    def _apply(self, update: StatusUpdate) -> bool:
        merged = update if self.state is None else merge_status(self.state, update)
        if merged is self.state:
            return False
        self.state = merged
        for listener in self._listeners:
            try:
                listener(merged)
            except Exception:
                logger.exception(f"[{self.task_id}] poll listener failed")
        return True

    @property
    def done(self) -> bool:
        return self.state is not None and self.state.is_terminal

    # ── Loop ─────────────────────────────────────────────────────────────

    async def run(self) -> StatusUpdate:
        started = self._clock()
        deadline = started + self.max_lifetime if self.max_lifetime is not None else None
        delay = self.interval

        while not self.done:
            if deadline is not None:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    raise PollTimeout(self.task_id, self._clock() - started)
                await self._sleep(min(delay, remaining))
                if self._clock() >= deadline:
                    raise PollTimeout(self.task_id, self._clock() - started)
            else:
                await self._sleep(delay)

            self.attempts += 1
            try:
                update = await self._check_status(self.task_id)
            except StatusQueryError as e:
                self.failures += 1
                logger.warning(f"[{self.task_id}] could not get status ({e}), retrying in {self.backoff}s")
                delay = self.backoff
                continue

            self._apply(update)
            logger.info(f"[{self.task_id}] poll #{self.attempts}: {self.state.status.value}/{self.state.progress}")
            delay = self.interval

        return self.state

    def start(self) -> "asyncio.Task[StatusUpdate]":
        if self._task is None:
            self._task = asyncio.create_task(self.run())
        return self._task

    def cancel(self):
        if self._task is not None and not self._task.done():
            logger.info(f"[{self.task_id}] polling cancelled")
            self._task.cancel()
