"""Top-level application orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from containers.colors import ColorSelector
from core.container_app import TempContainerApp
from core.control_loop import ControlLoop
from core.event_bus import STARTUP, EventBus
from core.policy_runtime import load_effective_config, resolve_audit_log_path
from directory.base_directory import ContainerDirectory, TabDirectory
from directory.memory_directory import InMemoryDirectory
from governance.audit_logger import AuditLogger


@dataclass
class RuntimeBundle:
    """Holds initialized runtime components."""

    config: dict[str, Any]
    event_bus: EventBus
    containers: ContainerDirectory
    tabs: TabDirectory
    app: TempContainerApp
    control_loop: ControlLoop
    audit_logger: AuditLogger

    async def start(self) -> None:
        """Start consuming events and announce startup, which triggers a rebuild."""
        self.control_loop.start()
        self.event_bus.emit(STARTUP)
        await self.control_loop.drain()

    async def stop(self) -> None:
        await self.control_loop.stop()


class Orchestrator:
    """Creates and wires runtime components.

    Without explicit directories, an ``InMemoryDirectory`` publishing on the
    bundle's bus stands in for the host.
    """

    def __init__(self, root: Path | None = None, config: dict[str, Any] | None = None) -> None:
        default_root = Path(__file__).resolve().parents[1]
        self.root = (root or default_root).resolve()
        self._config = config

    def build(
        self,
        containers: ContainerDirectory | None = None,
        tabs: TabDirectory | None = None,
        event_bus: EventBus | None = None,
        colors: ColorSelector | None = None,
    ) -> RuntimeBundle:
        config = self._config if self._config is not None else load_effective_config(self.root)
        event_bus = event_bus or EventBus()
        if containers is None or tabs is None:
            directory = InMemoryDirectory(
                bus=event_bus,
                stale_tab_reads=int(config.get("directory", {}).get("stale_tab_reads", 0)),
            )
            containers = containers or directory
            tabs = tabs or directory

        audit_logger = AuditLogger(resolve_audit_log_path(self.root, config))
        container_cfg = config.get("containers", {})
        cleanup_cfg = config.get("cleanup", {})
        app = TempContainerApp(
            containers,
            tabs,
            colors=colors,
            audit_logger=audit_logger,
            icon=str(container_cfg.get("icon", "circle")),
            placeholder_name=str(container_cfg.get("placeholder_name", "Temp")),
            cleanup_strategy=str(cleanup_cfg.get("strategy", "queue")),
            debounce_seconds=float(cleanup_cfg.get("debounce_seconds", 0.5)),
            max_recently_removed=int(cleanup_cfg.get("max_recently_removed", 1024)),
        )
        control_loop = ControlLoop(event_bus=event_bus, app=app)
        control_loop.attach()

        return RuntimeBundle(
            config=config,
            event_bus=event_bus,
            containers=containers,
            tabs=tabs,
            app=app,
            control_loop=control_loop,
            audit_logger=audit_logger,
        )
