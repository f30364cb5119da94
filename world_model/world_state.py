"""Point-in-time view of both host directories."""

from __future__ import annotations

import asyncio
from collections.abc import Collection
from dataclasses import dataclass, field

from directory.base_directory import ContainerDirectory, TabDirectory
from world_model.entities import Container, Tab


@dataclass(frozen=True)
class DirectorySnapshot:
    """Containers and tabs returned by one pair of directory queries."""

    containers: list[Container] = field(default_factory=list)
    tabs: list[Tab] = field(default_factory=list)

    def tabs_by_container(self, excluded_tab_ids: Collection[int] = ()) -> dict[str, set[int]]:
        """Group tab ids by container, leaving out ``excluded_tab_ids``."""
        grouped: dict[str, set[int]] = {}
        for tab in self.tabs:
            if tab.id in excluded_tab_ids:
                continue
            grouped.setdefault(tab.container_id, set()).add(tab.id)
        return grouped


async def take_snapshot(containers: ContainerDirectory, tabs: TabDirectory) -> DirectorySnapshot:
    """Query both directories concurrently.

    The container query is issued first. A container created between the two
    queries is then missing from the snapshot rather than present without its
    first tab, where it would look empty.
    """
    container_query = asyncio.ensure_future(containers.list_containers())
    tab_query = asyncio.ensure_future(tabs.list_tabs())
    all_containers, all_tabs = await asyncio.gather(container_query, tab_query)
    return DirectorySnapshot(containers=list(all_containers), tabs=list(all_tabs))
