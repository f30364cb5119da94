"""Application object: tracked state plus the lifecycle event handlers."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from containers.colors import ColorSelector
from containers.fingerprint import generate_fingerprint, is_marked, is_owned
from core.state_manager import StateStore
from directory.base_directory import ContainerDirectory, DirectoryNotFoundError, TabDirectory
from executor.cleanup_scheduler import CleanupScheduler, DebouncedCleanupScheduler
from executor.reconciler import Reconciler, ReconcileResult
from governance.audit_logger import AuditLogger
from world_model.entities import DEFAULT_CONTAINER_ID, Container, Tab
from world_model.tab_topology import neighbour_deny_list, rightmost_tab, tab_color, tab_colors

logger = logging.getLogger("tc.app")


class TempContainerApp:
    """Owns the state store and cleanup scheduler of one process instance.

    Handlers may interleave at every directory call, so each one re-checks
    the store after it resumes instead of trusting what it saw before.
    """

    def __init__(
        self,
        containers: ContainerDirectory,
        tabs: TabDirectory,
        *,
        colors: ColorSelector | None = None,
        audit_logger: AuditLogger | None = None,
        icon: str = "circle",
        placeholder_name: str = "Temp",
        cleanup_strategy: str = "queue",
        debounce_seconds: float = 0.5,
        max_recently_removed: int = 1024,
    ) -> None:
        self.containers = containers
        self.tabs = tabs
        self.colors = colors or ColorSelector()
        self.audit_logger = audit_logger or AuditLogger()
        self.icon = icon
        self.placeholder_name = placeholder_name
        self.store = StateStore()
        self.reconciler = Reconciler(
            containers,
            tabs,
            self.store,
            colors=self.colors,
            audit_logger=self.audit_logger,
            icon=icon,
        )
        if cleanup_strategy == "queue":
            self.scheduler: CleanupScheduler | DebouncedCleanupScheduler = CleanupScheduler(
                self.remove_empty_temporary_containers, max_recently_removed=max_recently_removed
            )
        elif cleanup_strategy == "debounce":
            self.scheduler = DebouncedCleanupScheduler(
                self.remove_empty_temporary_containers,
                delay=debounce_seconds,
                max_recently_removed=max_recently_removed,
            )
        else:
            raise ValueError(f"Unknown cleanup strategy: {cleanup_strategy!r}")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create_container(
        self, deny_list: Iterable[str | None] = (), *, protect: bool = False
    ) -> Container:
        """Create, fingerprint and track a new temporary container.

        With ``protect`` the container is shielded from cleanup passes before
        it is renamed; the caller releases it once its first tab exists.
        """
        color = self.colors.pick(deny_list)
        container = await self.containers.create_container(
            name=self.placeholder_name, color=color, icon=self.icon
        )
        if protect:
            self.reconciler.protect(container.id)
        name = generate_fingerprint(container.id)
        try:
            container = await self.containers.update_container(container.id, name=name)
        except Exception:
            if protect:
                self.reconciler.release(container.id)
            raise
        self.store.add_container(container.id)
        self.audit_logger.log("create", container.id, "ok")
        logger.info("Created container %s", container.id)
        return container

    async def rebuild(self) -> ReconcileResult:
        return await self.reconciler.rebuild()

    async def remove_empty_temporary_containers(
        self, excluded_tab_ids: Iterable[int] = ()
    ) -> ReconcileResult:
        return await self.reconciler.remove_empty_temporary_containers(frozenset(excluded_tab_ids))

    async def open_new_tab(self, active_tab: Tab | None = None) -> Tab:
        """New container plus an empty tab at the end of the window."""
        deny_list: list[str] = []
        window_id = None
        if active_tab is not None:
            window_id = active_tab.window_id
            deny_list = await tab_colors(
                self.containers, active_tab, await rightmost_tab(self.tabs, window_id)
            )
        container = await self.create_container(deny_list, protect=True)
        try:
            return await self.tabs.create_tab(container_id=container.id, window_id=window_id)
        finally:
            self.reconciler.release(container.id)

    async def open_in_new_container(
        self, url: str, tab: Tab | None = None, active: bool = False
    ) -> Tab:
        """New container plus a tab loading ``url`` right after ``tab``."""
        deny_list: list[str] = []
        if tab is not None:
            deny_list = await neighbour_deny_list(self.containers, self.tabs, tab)
        container = await self.create_container(deny_list, protect=True)
        try:
            return await self.tabs.create_tab(
                container_id=container.id,
                url=url,
                index=tab.index + 1 if tab is not None else None,
                active=active,
                window_id=tab.window_id if tab is not None else None,
            )
        finally:
            self.reconciler.release(container.id)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def on_startup(self) -> None:
        await self.rebuild()

    async def on_tab_created(self, tab: Tab) -> None:
        """Record tabs of tracked containers; adopt marked containers on first sight."""
        if self.store.has_container(tab.container_id):
            self.store.add_tab(tab.id, tab.container_id)
            return
        if tab.container_id == DEFAULT_CONTAINER_ID:
            return

        try:
            container = await self.containers.get_container(tab.container_id)
        except DirectoryNotFoundError:
            logger.info("Tab %s opened in vanished container %s", tab.id, tab.container_id)
            return

        if is_marked(container):
            prev = await self._tab_before(tab)
            deny_list = [await tab_color(self.containers, prev)] if prev is not None else []
            try:
                container = await self.reconciler.adopt(container, deny_list)
            except DirectoryNotFoundError:
                logger.info("Marked container %s vanished before adoption", tab.container_id)
                return
        elif not is_owned(container):
            return

        # Another handler may have tracked it meanwhile; add_container keeps its tabs.
        self.store.add_container(container.id)
        self.store.add_tab(tab.id, container.id)

    async def on_tab_removed(self, tab_id: int) -> None:
        container_id = self.store.forget_tab(tab_id)
        if container_id is not None:
            logger.debug("Tab %s closed in container %s", tab_id, container_id)
        await self.scheduler.notify(tab_id)

    async def on_container_created(self, container: Container) -> None:
        if is_marked(container):
            try:
                container = await self.reconciler.adopt(container)
            except DirectoryNotFoundError:
                logger.info("Marked container %s vanished before adoption", container.id)
                return
        if is_owned(container):
            self.store.add_container(container.id)

    async def on_container_updated(self, container: Container) -> None:
        """Stop managing a container the user renamed; adopt one renamed to the mark."""
        if is_marked(container):
            await self.on_container_created(container)
        elif self.store.has_container(container.id) and not is_owned(container):
            logger.info("Container %s renamed to %r, no longer temporary", container.id, container.display_name)
            self.store.forget_container(container.id)

    async def on_container_removed(self, container: Container) -> None:
        self.store.forget_container(container.id)

    async def _tab_before(self, tab: Tab) -> Tab | None:
        if tab.index == 0:
            return None
        previous = await self.tabs.list_tabs(window_id=tab.window_id, index=tab.index - 1)
        return previous[0] if previous else None
