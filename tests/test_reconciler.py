"""Reconciliation tests against the in-memory host."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from containers.colors import ColorSelector
from containers.fingerprint import CONTAINER_MARK, generate_fingerprint, is_owned
from core.state_manager import StateStore
from directory.base_directory import DirectoryError, DirectoryNotFoundError
from directory.memory_directory import InMemoryDirectory
from executor.reconciler import Reconciler
from governance.audit_logger import AuditLogger


@pytest.fixture
def audit(tmp_path: Path) -> AuditLogger:
    return AuditLogger(tmp_path / "audit.jsonl")


@pytest.fixture
def reconciler(directory: InMemoryDirectory, colors: ColorSelector, audit: AuditLogger) -> Reconciler:
    return Reconciler(directory, directory, StateStore(), colors=colors, audit_logger=audit)


async def container_ids(directory: InMemoryDirectory) -> set[str]:
    return {c.id for c in await directory.list_containers()}


@pytest.mark.asyncio
async def test_rebuild_tracks_owned_and_reaps_empty(directory, reconciler, make_owned) -> None:
    busy = await make_owned()
    empty = await make_owned()
    foreign_empty = await directory.create_container(name="Shopping", color="red", icon="cart")
    foreign_busy = await directory.create_container(name="Work", color="red", icon="briefcase")
    t1 = await directory.create_tab(container_id=busy.id)
    t2 = await directory.create_tab(container_id=busy.id)
    await directory.create_tab(container_id=foreign_busy.id)
    await directory.create_tab()

    result = await reconciler.rebuild()

    assert result.removed == [empty.id]
    assert result.owned == [busy.id]
    assert reconciler.store.snapshot() == {busy.id: frozenset({t1.id, t2.id})}
    assert await container_ids(directory) == {busy.id, foreign_empty.id, foreign_busy.id}


@pytest.mark.asyncio
async def test_rebuild_is_idempotent(directory, reconciler, make_owned) -> None:
    first = await make_owned()
    second = await make_owned()
    await directory.create_tab(container_id=first.id)
    await directory.create_tab(container_id=second.id)
    await directory.create_container(name="Shopping", color="red", icon="cart")

    once = await reconciler.rebuild()
    state_once = reconciler.store.snapshot()
    twice = await reconciler.rebuild()

    assert reconciler.store.snapshot() == state_once
    assert once.removed == twice.removed == []
    assert sorted(once.owned) == sorted(twice.owned) == sorted([first.id, second.id])


@pytest.mark.asyncio
async def test_rebuild_after_reaping_converges(directory, reconciler, make_owned) -> None:
    busy = await make_owned()
    await make_owned()
    await directory.create_tab(container_id=busy.id)

    await reconciler.rebuild()
    state_once = reconciler.store.snapshot()
    again = await reconciler.rebuild()

    assert again.removed == []
    assert reconciler.store.snapshot() == state_once


@pytest.mark.asyncio
async def test_rebuild_adopts_marked_containers(directory, reconciler) -> None:
    with_tab = await directory.create_container(name=CONTAINER_MARK, color="red", icon="fence")
    without_tab = await directory.create_container(name=CONTAINER_MARK, color="red", icon="fence")
    tab = await directory.create_tab(container_id=with_tab.id)

    result = await reconciler.rebuild()

    assert sorted(result.adopted) == sorted([with_tab.id, without_tab.id])
    assert result.removed == [without_tab.id]
    adopted = await directory.get_container(with_tab.id)
    assert is_owned(adopted)
    assert adopted.icon == "circle"
    assert reconciler.store.snapshot() == {with_tab.id: frozenset({tab.id})}


@pytest.mark.asyncio
async def test_rebuild_never_destroys_renamed_fingerprint(directory, reconciler, make_owned) -> None:
    renamed = await make_owned()
    await directory.update_container(renamed.id, name="A Container")

    result = await reconciler.rebuild()

    assert result.removed == []
    assert renamed.id in await container_ids(directory)


@pytest.mark.asyncio
async def test_destroy_of_absent_container_does_not_abort_batch(directory, reconciler, make_owned, audit) -> None:
    gone = await make_owned()
    other = await make_owned()
    remove = directory.remove_container

    async def flaky_remove(container_id: str) -> None:
        if container_id == gone.id:
            raise DirectoryNotFoundError(container_id)
        await remove(container_id)

    directory.remove_container = AsyncMock(side_effect=flaky_remove)

    result = await reconciler.rebuild()

    assert result.removed == [other.id]
    assert len(reconciler.store) == 0
    outcomes = {entry["container_id"]: entry["outcome"] for entry in audit.read() if entry["action"] == "destroy"}
    assert outcomes == {gone.id: "already_absent", other.id: "ok"}


@pytest.mark.asyncio
async def test_transient_removal_error_propagates_after_batch(directory, reconciler, make_owned) -> None:
    broken = await make_owned()
    other = await make_owned()
    remove = directory.remove_container

    async def flaky_remove(container_id: str) -> None:
        if container_id == broken.id:
            raise DirectoryError("host busy")
        await remove(container_id)

    directory.remove_container = AsyncMock(side_effect=flaky_remove)

    with pytest.raises(DirectoryError, match="host busy"):
        await reconciler.rebuild()

    assert other.id not in await container_ids(directory)
    assert broken.id in await container_ids(directory)


@pytest.mark.asyncio
async def test_stateless_pass_subtracts_excluded_tabs() -> None:
    lagging = InMemoryDirectory(stale_tab_reads=5)
    reconciler = Reconciler(lagging, lagging, StateStore())
    owned = await lagging.create_container(name="Temp", color="blue", icon="circle")
    owned = await lagging.update_container(owned.id, name=generate_fingerprint(owned.id))
    tab = await lagging.create_tab(container_id=owned.id)
    await lagging.remove_tab(tab.id)

    still_visible = await reconciler.remove_empty_temporary_containers()
    assert still_visible.removed == []

    result = await reconciler.remove_empty_temporary_containers({tab.id})
    assert result.removed == [owned.id]


@pytest.mark.asyncio
async def test_stateless_pass_forgets_removed_and_keeps_busy(directory, reconciler, make_owned) -> None:
    busy = await make_owned()
    empty = await make_owned()
    tab = await directory.create_tab(container_id=busy.id)
    reconciler.store.add_container(busy.id)
    reconciler.store.add_tab(tab.id, busy.id)
    reconciler.store.add_container(empty.id)

    result = await reconciler.remove_empty_temporary_containers()

    assert result.removed == [empty.id]
    assert result.owned == [busy.id]
    assert reconciler.store.container_ids() == [busy.id]


@pytest.mark.asyncio
async def test_stateless_pass_leaves_protected_containers(directory, reconciler, make_owned) -> None:
    opening = await make_owned()

    result = await reconciler.remove_empty_temporary_containers(protected_container_ids={opening.id})

    assert result.removed == []
    assert opening.id in await container_ids(directory)


@pytest.mark.asyncio
async def test_adopt_avoids_deny_list(directory, reconciler) -> None:
    marked = await directory.create_container(name=CONTAINER_MARK, color="blue", icon="fence")
    denied = ["blue", "turquoise", "green", "yellow", "orange", "red", "pink"]

    adopted = await reconciler.adopt(marked, denied)

    assert adopted.color == "purple"
    assert is_owned(adopted)
