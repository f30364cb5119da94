"""Neighbourhood helpers used to build color deny-lists."""

from __future__ import annotations

from directory.base_directory import ContainerDirectory, DirectoryNotFoundError, TabDirectory
from world_model.entities import DEFAULT_CONTAINER_ID, Tab


async def tab_color(containers: ContainerDirectory, tab: Tab) -> str | None:
    """Color of the tab's container, or None for the default context or a vanished container."""
    if tab.container_id == DEFAULT_CONTAINER_ID:
        return None
    try:
        container = await containers.get_container(tab.container_id)
    except DirectoryNotFoundError:
        return None
    return container.color


async def tab_colors(containers: ContainerDirectory, *tabs: Tab | None) -> list[str]:
    colors = []
    for tab in tabs:
        if tab is None:
            continue
        color = await tab_color(containers, tab)
        if color:
            colors.append(color)
    return colors


async def rightmost_tab(tabs: TabDirectory, window_id: int) -> Tab | None:
    window_tabs = await tabs.list_tabs(window_id=window_id)
    return window_tabs[-1] if window_tabs else None


async def next_tab(tabs: TabDirectory, tab: Tab) -> Tab | None:
    """The tab right after ``tab`` in its window, if any."""
    following = await tabs.list_tabs(window_id=tab.window_id, index=tab.index + 1)
    return following[0] if following else None


async def neighbour_deny_list(containers: ContainerDirectory, tabs: TabDirectory, tab: Tab) -> list[str]:
    """Colors of ``tab`` and its successor, for a new tab opened between them."""
    return await tab_colors(containers, tab, await next_tab(tabs, tab))
