"""In-memory record of owned containers and the tabs open in them."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

logger = logging.getLogger("tc.state")


class StateStore:
    """Forward map ``container_id -> tab ids`` with a reverse ``tab_id -> container_id`` index.

    Only containers classified as owned may be added. Nothing here touches a
    directory, so every method runs without suspending.
    """

    def __init__(self) -> None:
        self._containers: dict[str, set[int]] = {}
        self._tabs: dict[int, str] = {}

    def __contains__(self, container_id: object) -> bool:
        return container_id in self._containers

    def __len__(self) -> int:
        return len(self._containers)

    def has_container(self, container_id: str) -> bool:
        return container_id in self._containers

    def container_ids(self) -> list[str]:
        return list(self._containers)

    def container_of(self, tab_id: int) -> str | None:
        return self._tabs.get(tab_id)

    def tabs_of(self, container_id: str) -> frozenset[int]:
        return frozenset(self._containers.get(container_id, ()))

    def is_empty(self, container_id: str) -> bool:
        return not self._containers.get(container_id)

    def add_container(self, container_id: str) -> None:
        logger.debug("Recording temporary container %s", container_id)
        self._containers.setdefault(container_id, set())

    def add_tab(self, tab_id: int, container_id: str) -> None:
        """Record a tab inside an already tracked container."""
        if container_id not in self._containers:
            raise KeyError(f"Container {container_id} is not tracked")
        previous = self._tabs.get(tab_id)
        if previous is not None and previous != container_id:
            self._containers.get(previous, set()).discard(tab_id)
        logger.debug("Recording tab %s in container %s", tab_id, container_id)
        self._tabs[tab_id] = container_id
        self._containers[container_id].add(tab_id)

    def forget_tab(self, tab_id: int) -> str | None:
        """Drop a tab and return the container it was in, if it was tracked."""
        container_id = self._tabs.pop(tab_id, None)
        if container_id is not None:
            logger.debug("Forgetting tab %s in container %s", tab_id, container_id)
            self._containers.get(container_id, set()).discard(tab_id)
        return container_id

    def forget_container(self, container_id: str) -> None:
        tab_ids = self._containers.pop(container_id, None)
        if tab_ids is None:
            return
        logger.debug("Forgetting container %s", container_id)
        for tab_id in tab_ids:
            if self._tabs.get(tab_id) == container_id:
                del self._tabs[tab_id]

    def replace(self, containers: Mapping[str, Iterable[int]]) -> None:
        """Swap the whole content for a freshly computed map."""
        self._containers = {cid: set(tab_ids) for cid, tab_ids in containers.items()}
        self._tabs = {tab_id: cid for cid, tab_ids in self._containers.items() for tab_id in tab_ids}

    def clear(self) -> None:
        self._containers.clear()
        self._tabs.clear()

    def snapshot(self) -> dict[str, frozenset[int]]:
        return {cid: frozenset(tab_ids) for cid, tab_ids in self._containers.items()}
