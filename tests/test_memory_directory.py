"""In-memory host and tab topology tests."""

from __future__ import annotations

import pytest

from core.event_bus import CONTAINER_REMOVED, TAB_CREATED, TAB_REMOVED
from directory.base_directory import DirectoryNotFoundError
from directory.memory_directory import InMemoryDirectory
from world_model.tab_topology import neighbour_deny_list, rightmost_tab, tab_color


@pytest.mark.asyncio
async def test_events_are_published_on_the_bus() -> None:
    directory = InMemoryDirectory()
    seen: list[str] = []
    for name in (TAB_CREATED, TAB_REMOVED, CONTAINER_REMOVED):
        directory.bus.subscribe(name, lambda event: seen.append(event.name))

    container = await directory.create_container(name="Temp", color="blue", icon="circle")
    await directory.create_tab(container_id=container.id)
    await directory.remove_container(container.id)

    assert seen == [TAB_CREATED, TAB_REMOVED, CONTAINER_REMOVED]
    assert await directory.list_tabs() == []


@pytest.mark.asyncio
async def test_closed_tab_lingers_for_stale_reads() -> None:
    directory = InMemoryDirectory(stale_tab_reads=2)
    tab = await directory.create_tab()
    await directory.remove_tab(tab.id)

    assert [t.id for t in await directory.list_tabs()] == [tab.id]
    assert [t.id for t in await directory.list_tabs()] == [tab.id]
    assert await directory.list_tabs() == []


@pytest.mark.asyncio
async def test_missing_records_raise_not_found() -> None:
    directory = InMemoryDirectory()
    with pytest.raises(DirectoryNotFoundError):
        await directory.get_container("container-404")
    with pytest.raises(DirectoryNotFoundError):
        await directory.remove_container("container-404")
    with pytest.raises(DirectoryNotFoundError):
        await directory.remove_tab(404)
    with pytest.raises(DirectoryNotFoundError):
        await directory.create_tab(container_id="container-404")


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields() -> None:
    directory = InMemoryDirectory()
    container = await directory.create_container(name="Temp", color="blue", icon="circle")
    with pytest.raises(ValueError):
        await directory.update_container(container.id, cookieStoreId="other")


@pytest.mark.asyncio
async def test_tabs_are_reindexed_on_insert_and_close() -> None:
    directory = InMemoryDirectory()
    first = await directory.create_tab()
    last = await directory.create_tab()
    middle = await directory.create_tab(index=1)

    assert [t.id for t in await directory.list_tabs(window_id=1)] == [first.id, middle.id, last.id]
    await directory.remove_tab(first.id)
    assert [(t.id, t.index) for t in await directory.list_tabs(window_id=1)] == [(middle.id, 0), (last.id, 1)]


@pytest.mark.asyncio
async def test_neighbour_colors_skip_the_default_context() -> None:
    directory = InMemoryDirectory()
    red = await directory.create_container(name="Work", color="red", icon="briefcase")
    green = await directory.create_container(name="Home", color="green", icon="tree")
    left = await directory.create_tab(container_id=red.id)
    await directory.create_tab(container_id=green.id)
    plain = await directory.create_tab()

    assert await neighbour_deny_list(directory, directory, left) == ["red", "green"]
    assert await tab_color(directory, plain) is None
    assert (await rightmost_tab(directory, 1)).id == plain.id
    assert await rightmost_tab(directory, 2) is None
