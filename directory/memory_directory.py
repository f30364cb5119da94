"""In-memory host directory with simulated read-after-write lag."""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any

from core.event_bus import (
    CONTAINER_CREATED,
    CONTAINER_REMOVED,
    CONTAINER_UPDATED,
    TAB_CREATED,
    TAB_REMOVED,
    EventBus,
)
from directory.base_directory import ContainerDirectory, DirectoryNotFoundError, TabDirectory
from world_model.entities import DEFAULT_CONTAINER_ID, Container, Tab

logger = logging.getLogger("tc.directory")

_UPDATABLE_FIELDS = {"name": "display_name", "display_name": "display_name", "color": "color", "icon": "icon"}


class InMemoryDirectory(ContainerDirectory, TabDirectory):
    """Both directories backed by dictionaries.

    A closed tab keeps showing up in ``list_tabs`` for the next
    ``stale_tab_reads`` queries, the way a real host may still report a tab
    shortly after announcing its removal.
    """

    def __init__(self, bus: EventBus | None = None, stale_tab_reads: int = 0) -> None:
        self.bus = bus or EventBus()
        self.stale_tab_reads = max(0, int(stale_tab_reads))
        self._containers: dict[str, Container] = {}
        self._tabs: dict[int, Tab] = {}
        self._ghosts: dict[int, tuple[Tab, int]] = {}
        self._container_ids = itertools.count(1)
        self._tab_ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    async def list_containers(self) -> list[Container]:
        await asyncio.sleep(0)
        return list(self._containers.values())

    async def get_container(self, container_id: str) -> Container:
        await asyncio.sleep(0)
        try:
            return self._containers[container_id]
        except KeyError:
            raise DirectoryNotFoundError(f"No container with id {container_id}") from None

    async def create_container(self, *, name: str, color: str, icon: str) -> Container:
        await asyncio.sleep(0)
        container = Container(
            id=f"container-{next(self._container_ids)}",
            display_name=name,
            color=color,
            icon=icon,
        )
        self._containers[container.id] = container
        self.bus.emit(CONTAINER_CREATED, container=container)
        return container

    async def update_container(self, container_id: str, **fields: Any) -> Container:
        await asyncio.sleep(0)
        current = self._containers.get(container_id)
        if current is None:
            raise DirectoryNotFoundError(f"No container with id {container_id}")
        unknown = set(fields) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unsupported container fields: {sorted(unknown)}")
        update = {_UPDATABLE_FIELDS[key]: value for key, value in fields.items()}
        container = current.model_copy(update=update)
        self._containers[container_id] = container
        self.bus.emit(CONTAINER_UPDATED, container=container)
        return container

    async def remove_container(self, container_id: str) -> None:
        await asyncio.sleep(0)
        container = self._containers.get(container_id)
        if container is None:
            raise DirectoryNotFoundError(f"No container with id {container_id}")
        for tab in [t for t in self._tabs.values() if t.container_id == container_id]:
            self._close(tab)
        del self._containers[container_id]
        self.bus.emit(CONTAINER_REMOVED, container=container)

    # ------------------------------------------------------------------
    # Tabs
    # ------------------------------------------------------------------

    async def list_tabs(self, **filters: Any) -> list[Tab]:
        await asyncio.sleep(0)
        tabs = list(self._tabs.values()) + self._read_ghosts()
        for key in ("container_id", "window_id", "index"):
            if key in filters and filters[key] is not None:
                tabs = [tab for tab in tabs if getattr(tab, key) == filters[key]]
        return sorted(tabs, key=lambda tab: (tab.window_id, tab.index))

    async def create_tab(
        self,
        *,
        container_id: str = DEFAULT_CONTAINER_ID,
        url: str | None = None,
        index: int | None = None,
        active: bool = True,
        window_id: int | None = None,
    ) -> Tab:
        await asyncio.sleep(0)
        if container_id != DEFAULT_CONTAINER_ID and container_id not in self._containers:
            raise DirectoryNotFoundError(f"No container with id {container_id}")
        window_id = 1 if window_id is None else window_id
        window_tabs = [tab for tab in self._tabs.values() if tab.window_id == window_id]
        if index is None or index > len(window_tabs):
            index = len(window_tabs)
        for tab in window_tabs:
            if tab.index >= index:
                self._tabs[tab.id] = tab.model_copy(update={"index": tab.index + 1})
            if active and tab.active:
                self._tabs[tab.id] = self._tabs[tab.id].model_copy(update={"active": False})
        tab = Tab(
            id=next(self._tab_ids),
            container_id=container_id,
            window_id=window_id,
            index=index,
            active=active,
        )
        self._tabs[tab.id] = tab
        logger.debug("Opened tab %s (%s) in %s", tab.id, url or "about:blank", container_id)
        self.bus.emit(TAB_CREATED, tab=tab)
        return tab

    async def remove_tab(self, tab_id: int) -> None:
        await asyncio.sleep(0)
        tab = self._tabs.get(tab_id)
        if tab is None:
            raise DirectoryNotFoundError(f"No tab with id {tab_id}")
        self._close(tab)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _close(self, tab: Tab) -> None:
        del self._tabs[tab.id]
        for other in list(self._tabs.values()):
            if other.window_id == tab.window_id and other.index > tab.index:
                self._tabs[other.id] = other.model_copy(update={"index": other.index - 1})
        if self.stale_tab_reads:
            self._ghosts[tab.id] = (tab, self.stale_tab_reads)
        self.bus.emit(TAB_REMOVED, tab_id=tab.id, window_id=tab.window_id)

    def _read_ghosts(self) -> list[Tab]:
        visible: list[Tab] = []
        for tab_id, (tab, remaining) in list(self._ghosts.items()):
            visible.append(tab)
            if remaining <= 1:
                del self._ghosts[tab_id]
            else:
                self._ghosts[tab_id] = (tab, remaining - 1)
        return visible
