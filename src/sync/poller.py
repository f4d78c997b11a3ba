# src/sync/poller.py — v1
"""Background refresh of the open manifest.

One asyncio task per poller. Each cycle sleeps, fetches, and hands the
result to ``on_update``; the next cycle is armed only after the previous
fetch settled and only while the poller is still POLLING. ``stop()`` flips
the state and cancels the task, and a generation counter makes sure a fetch
that was already in flight never delivers after a stop or restart.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import Enum
from typing import Any, Awaitable, Callable

from fieldsync.core.models import Manifest
from fieldsync.logging.context import component_context

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[Manifest | None]]
UpdateFn = Callable[[Manifest], Any]


class PollerState(str, Enum):
    IDLE = "IDLE"
    POLLING = "POLLING"


class LiveSyncPoller:
    """Cancellable fixed-interval manifest refresher."""

    def __init__(self, interval_s: float = 2.0) -> None:
        self._interval_s = interval_s
        self._state = PollerState.IDLE
        self._task: asyncio.Task[None] | None = None
        self._generation = 0
        self._stopped_task: asyncio.Task[None] | None = None
        self.polls = 0
        self.failures = 0

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def is_polling(self) -> bool:
        return self._state is PollerState.POLLING

    def start(self, fetch: FetchFn, on_update: UpdateFn) -> None:
        """Enter POLLING, replacing any previous loop."""
        self.stop()
        self._generation += 1
        self._state = PollerState.POLLING
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._generation, fetch, on_update)
        )
        logger.debug("Poller started (generation %d)", self._generation)

    def stop(self) -> None:
        """Enter IDLE immediately; an in-flight poll will not deliver."""
        if self._state is PollerState.IDLE and self._task is None:
            return
        self._state = PollerState.IDLE
        self._generation += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        self._stopped_task = task
        logger.debug("Poller stopped")

    async def wait_stopped(self) -> None:
        """Wait until the last cancelled loop has actually exited."""
        task = self._stopped_task
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
            self._stopped_task = None

    def _live(self, generation: int) -> bool:
        return self._state is PollerState.POLLING and generation == self._generation

    async def _run(self, generation: int, fetch: FetchFn, on_update: UpdateFn) -> None:
        with component_context("poller"):
            await self._poll_loop(generation, fetch, on_update)

    async def _poll_loop(self, generation: int, fetch: FetchFn, on_update: UpdateFn) -> None:
        while self._live(generation):
            await asyncio.sleep(self._interval_s)
            if not self._live(generation):
                break
            try:
                manifest = await fetch()
            except Exception as e:
                # background refreshes never surface errors
                self.failures += 1
                logger.debug("Background poll failed: %s", e)
                continue
            self.polls += 1
            if manifest is None or not self._live(generation):
                continue
            try:
                on_update(manifest)
            except Exception:
                logger.exception("Poll update handler failed")
