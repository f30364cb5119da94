"""Coalescing of tab-removal bursts into bounded cleanup passes."""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger("tc.scheduler")

CleanupPass = Callable[[frozenset[int]], Awaitable[Any]]

IDLE = 0
RUNNING = 1
RUNNING_AND_PENDING = 2


class _RecentlyRemoved:
    """Insertion-ordered, size-bounded set of tab ids; the oldest are evicted first."""

    def __init__(self, limit: int) -> None:
        self.limit = max(1, int(limit))
        self._ids: OrderedDict[int, None] = OrderedDict()

    def add(self, tab_id: int) -> None:
        self._ids.pop(tab_id, None)
        self._ids[tab_id] = None
        while len(self._ids) > self.limit:
            evicted, _ = self._ids.popitem(last=False)
            logger.debug("Evicted tab %s from recently removed", evicted)

    def frozen(self) -> frozenset[int]:
        return frozenset(self._ids)

    def clear(self) -> None:
        self._ids.clear()

    def __len__(self) -> int:
        return len(self._ids)


class CleanupScheduler:
    """Runs at most one cleanup pass at a time, with at most one queued behind it.

    Every ``notify`` bumps a depth counter that saturates at
    ``RUNNING_AND_PENDING``. The caller that moves it off ``IDLE`` becomes the
    runner and keeps running passes until the counter drops back to ``IDLE``;
    everyone else returns right away.
    """

    def __init__(self, run_pass: CleanupPass, max_recently_removed: int = 1024) -> None:
        self.run_pass = run_pass
        self.depth = IDLE
        self.recently_removed = _RecentlyRemoved(max_recently_removed)
        self.passes_run = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def busy(self) -> bool:
        return self.depth != IDLE

    async def notify(self, tab_id: int) -> None:
        self.recently_removed.add(tab_id)
        previous = self.depth
        self.depth = min(self.depth + 1, RUNNING_AND_PENDING)
        if previous != IDLE:
            return

        self._idle.clear()
        try:
            while self.depth > IDLE:
                excluded = self.recently_removed.frozen()
                try:
                    await self.run_pass(excluded)
                except Exception:
                    logger.exception("Cleanup pass failed")
                self.passes_run += 1
                self.depth -= 1
        finally:
            self.depth = IDLE
            self.recently_removed.clear()
            self._idle.set()

    async def wait_idle(self) -> None:
        await self._idle.wait()


class DebouncedCleanupScheduler:
    """Runs one cleanup pass once ``delay`` seconds pass without a removal event.

    A timer that fires while a pass is running only raises the pending flag;
    the running task then does exactly one more pass, so passes never stack.
    """

    def __init__(
        self, run_pass: CleanupPass, delay: float = 0.5, max_recently_removed: int = 1024
    ) -> None:
        self.run_pass = run_pass
        self.delay = delay
        self.recently_removed = _RecentlyRemoved(max_recently_removed)
        self.passes_run = 0
        self.pending = False
        self._timer: asyncio.Task[None] | None = None
        self._runner: asyncio.Task[None] | None = None

    @property
    def busy(self) -> bool:
        return self._timer is not None or self._runner is not None

    async def notify(self, tab_id: int) -> None:
        self.recently_removed.add(tab_id)
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.create_task(self._countdown())

    async def _countdown(self) -> None:
        await asyncio.sleep(self.delay)
        # Past this point the timer is spent and is no longer cancelled.
        self._timer = None
        if self._runner is not None:
            self.pending = True
            return

        self._runner = asyncio.current_task()
        try:
            while True:
                self.pending = False
                excluded = self.recently_removed.frozen()
                self.recently_removed.clear()
                try:
                    await self.run_pass(excluded)
                except Exception:
                    logger.exception("Debounced cleanup pass failed")
                self.passes_run += 1
                if not self.pending:
                    break
        finally:
            self._runner = None

    async def wait_idle(self) -> None:
        while self.busy:
            await asyncio.wait([task for task in (self._runner, self._timer) if task is not None])
