"""Event loop: directory events in, application handlers out.

Events published on the bus are queued and consumed by a single task. Each
event is handled in its own task so handlers overlap at their directory
calls the same way host callbacks would; a failing handler is logged and its
event abandoned, never retried.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from core.container_app import TempContainerApp
from core.event_bus import (
    CONTAINER_CREATED,
    CONTAINER_REMOVED,
    CONTAINER_UPDATED,
    LIFECYCLE_EVENTS,
    STARTUP,
    TAB_CREATED,
    TAB_REMOVED,
    Event,
    EventBus,
)
from directory.base_directory import DirectoryError
from world_model.entities import Container, Tab

logger = logging.getLogger("tc.control_loop")


@dataclass
class LoopStats:
    """Counters of processed events."""

    received: int = 0
    handled: int = 0
    failed: int = 0


def _as_tab(value: Any) -> Tab:
    return value if isinstance(value, Tab) else Tab.model_validate(value)


def _as_container(value: Any) -> Container:
    return value if isinstance(value, Container) else Container.model_validate(value)


class ControlLoop:
    """Single consumer of the lifecycle event queue."""

    def __init__(self, event_bus: EventBus, app: TempContainerApp) -> None:
        self.event_bus = event_bus
        self.app = app
        self.queue: asyncio.Queue[Event] = asyncio.Queue()
        self.stats = LoopStats()
        self._consumer: asyncio.Task[None] | None = None
        self._in_flight: set[asyncio.Task[None]] = set()

    def attach(self) -> None:
        """Subscribe to every lifecycle event on the bus."""
        for event_name in LIFECYCLE_EVENTS:
            self.event_bus.subscribe(event_name, self.enqueue)

    def enqueue(self, event: Event) -> None:
        self.stats.received += 1
        self.queue.put_nowait(event)

    @property
    def running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    def start(self) -> None:
        if not self.running:
            self._consumer = asyncio.create_task(self._consume(), name="tc-control-loop")

    async def _consume(self) -> None:
        while True:
            event = await self.queue.get()
            task = asyncio.create_task(self.dispatch(event))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
            self.queue.task_done()

    async def dispatch(self, event: Event) -> None:
        """Run the handler for one event, logging instead of raising."""
        try:
            await self._route(event)
        except DirectoryError as exc:
            self.stats.failed += 1
            logger.warning("Abandoning %s after directory error: %s", event.name, exc)
        except Exception:
            self.stats.failed += 1
            logger.exception("Handler for %s failed", event.name)
        else:
            self.stats.handled += 1

    async def _route(self, event: Event) -> None:
        payload = event.payload
        if event.name == TAB_CREATED:
            await self.app.on_tab_created(_as_tab(payload["tab"]))
        elif event.name == TAB_REMOVED:
            await self.app.on_tab_removed(int(payload["tab_id"]))
        elif event.name == CONTAINER_CREATED:
            await self.app.on_container_created(_as_container(payload["container"]))
        elif event.name == CONTAINER_UPDATED:
            await self.app.on_container_updated(_as_container(payload["container"]))
        elif event.name == CONTAINER_REMOVED:
            await self.app.on_container_removed(_as_container(payload["container"]))
        elif event.name == STARTUP:
            await self.app.on_startup()
        else:
            logger.debug("Ignoring event %s", event.name)

    async def drain(self) -> None:
        """Wait until the queue, the handlers and the cleanup scheduler are all idle."""
        if not self.running:
            raise RuntimeError("Control loop is not running")
        while True:
            await self.queue.join()
            if self._in_flight:
                await asyncio.gather(*list(self._in_flight), return_exceptions=True)
                continue
            if self.app.scheduler.busy:
                await self.app.scheduler.wait_idle()
                continue
            if self.queue.empty():
                return

    async def stop(self) -> None:
        if not self.running:
            return
        await self.drain()
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
