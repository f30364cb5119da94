"""Reconciliation of owned containers against the host directories."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Collection, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from containers.colors import ColorSelector
from containers.fingerprint import generate_fingerprint, is_marked, is_owned
from core.state_manager import StateStore
from directory.base_directory import ContainerDirectory, DirectoryNotFoundError, TabDirectory
from governance.audit_logger import AuditLogger
from world_model.entities import Container
from world_model.world_state import take_snapshot

logger = logging.getLogger("tc.reconciler")


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass."""

    owned: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    adopted: list[str] = field(default_factory=list)
    elapsed: float = 0.0


class Reconciler:
    """Classifies containers, adopts marked ones and destroys owned empty ones."""

    def __init__(
        self,
        containers: ContainerDirectory,
        tabs: TabDirectory,
        store: StateStore,
        colors: ColorSelector | None = None,
        audit_logger: AuditLogger | None = None,
        icon: str = "circle",
    ) -> None:
        self.containers = containers
        self.tabs = tabs
        self.store = store
        self.colors = colors or ColorSelector()
        self.audit_logger = audit_logger or AuditLogger()
        self.icon = icon
        self._protected: set[str] = set()
        self._releasing: set[str] = set()
        self._passes_in_flight = 0

    # ------------------------------------------------------------------
    # Protection of containers whose first tab is still being opened
    # ------------------------------------------------------------------

    @property
    def protected(self) -> frozenset[str]:
        return frozenset(self._protected)

    def protect(self, container_id: str) -> None:
        """Keep passes away from ``container_id`` until it is released."""
        self._releasing.discard(container_id)
        self._protected.add(container_id)

    def release(self, container_id: str) -> None:
        """Lift protection once no pass that may have missed the first tab is running."""
        if self._passes_in_flight:
            self._releasing.add(container_id)
        else:
            self._protected.discard(container_id)

    @contextmanager
    def _pass_in_flight(self) -> Iterator[None]:
        self._passes_in_flight += 1
        try:
            yield
        finally:
            self._passes_in_flight -= 1
            if not self._passes_in_flight:
                self._protected -= self._releasing
                self._releasing.clear()

    # ------------------------------------------------------------------
    # Single-container mutations
    # ------------------------------------------------------------------

    async def adopt(self, container: Container, deny_list: Iterable[str | None] = ()) -> Container:
        """Rename, recolor and re-icon a container so it becomes temporary."""
        color = self.colors.pick(deny_list)
        name = generate_fingerprint(container.id)
        updated = await self.containers.update_container(
            container.id, name=name, color=color, icon=self.icon
        )
        self.audit_logger.log("adopt", container.id, "ok")
        logger.info("Adopted container %s as %s", container.id, name)
        return updated

    async def destroy(self, container_id: str, reason: str = "empty") -> bool:
        """Remove a container; an already absent one counts as done."""
        try:
            await self.containers.remove_container(container_id)
        except DirectoryNotFoundError:
            logger.info("Container %s already gone", container_id)
            self.audit_logger.log("destroy", container_id, "already_absent", reason)
            return False
        self.audit_logger.log("destroy", container_id, "ok", reason)
        logger.info("Removed container %s (%s)", container_id, reason)
        return True

    async def _destroy_all(self, container_ids: list[str]) -> list[str]:
        results = await asyncio.gather(
            *(self.destroy(cid) for cid in container_ids), return_exceptions=True
        )
        removed: list[str] = []
        first_error: BaseException | None = None
        for container_id, outcome in zip(container_ids, results):
            if isinstance(outcome, BaseException):
                logger.warning("Failed to remove container %s: %s", container_id, outcome)
                self.audit_logger.log("destroy", container_id, "failed", str(outcome))
                first_error = first_error or outcome
            elif outcome:
                removed.append(container_id)
        if first_error is not None:
            raise first_error
        return removed

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    async def _classify(self, containers: list[Container]) -> tuple[list[str], list[str]]:
        owned = [c.id for c in containers if is_owned(c)]
        marked = [c for c in containers if is_marked(c)]
        adopted: list[str] = []
        results = await asyncio.gather(*(self.adopt(c) for c in marked), return_exceptions=True)
        for container, outcome in zip(marked, results):
            if isinstance(outcome, DirectoryNotFoundError):
                logger.info("Marked container %s vanished before adoption", container.id)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                adopted.append(container.id)
        return owned + adopted, adopted

    async def rebuild(self) -> ReconcileResult:
        """Recompute the state store from a fresh snapshot and reap empty containers."""
        started = time.perf_counter()
        with self._pass_in_flight():
            snapshot = await take_snapshot(self.containers, self.tabs)
            classified, adopted = await self._classify(snapshot.containers)
            by_container = snapshot.tabs_by_container()

            # Read after the snapshot; a release during the pass is deferred until it ends.
            protected = frozenset(self._protected)
            forward = {cid: by_container.get(cid, set()) for cid in classified}
            empty = [cid for cid, tab_ids in forward.items() if not tab_ids and cid not in protected]
            self.store.replace(
                {cid: tab_ids for cid, tab_ids in forward.items() if tab_ids or cid in protected}
            )
            removed = await self._destroy_all(empty)

        result = ReconcileResult(
            owned=self.store.container_ids(),
            removed=removed,
            adopted=adopted,
            elapsed=time.perf_counter() - started,
        )
        logger.info(
            "Rebuilt state in %.3fs: %d owned, %d removed, %d adopted",
            result.elapsed,
            len(result.owned),
            len(result.removed),
            len(result.adopted),
        )
        logger.debug("Rebuilt state is %s", self.store.snapshot())
        return result

    async def remove_empty_temporary_containers(
        self,
        excluded_tab_ids: Collection[int] = (),
        protected_container_ids: Collection[str] = (),
    ) -> ReconcileResult:
        """Destroy every owned container with no tabs besides ``excluded_tab_ids``.

        Ownership and emptiness come from a fresh snapshot; the state store is
        only told which containers went away. Containers passed in
        ``protected_container_ids`` or protected through :meth:`protect` are
        left alone even when empty.
        """
        started = time.perf_counter()
        with self._pass_in_flight():
            snapshot = await take_snapshot(self.containers, self.tabs)
            by_container = snapshot.tabs_by_container(excluded_tab_ids)
            owned = [c.id for c in snapshot.containers if is_owned(c)]
            # Read after the snapshot; a release during the pass is deferred until it ends.
            protected = self._protected.union(protected_container_ids)
            empty = [cid for cid in owned if not by_container.get(cid) and cid not in protected]
            for container_id in empty:
                self.store.forget_container(container_id)
            removed = await self._destroy_all(empty)

        result = ReconcileResult(
            owned=[cid for cid in owned if cid not in empty],
            removed=removed,
            elapsed=time.perf_counter() - started,
        )
        if empty:
            logger.info(
                "Cleanup pass removed %s (excluded tabs: %s)", result.removed, sorted(excluded_tab_ids)
            )
        return result
