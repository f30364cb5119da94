"""Interfaces of the host's container and tab directories."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from world_model.entities import Container, Tab


class DirectoryError(Exception):
    """A directory call failed; the event that issued it is abandoned."""


class DirectoryNotFoundError(DirectoryError):
    """The requested record does not exist (anymore)."""


class ContainerDirectory(ABC):
    """Authoritative store of container records."""

    @abstractmethod
    async def list_containers(self) -> list[Container]:
        """Return every container record."""

    @abstractmethod
    async def get_container(self, container_id: str) -> Container:
        """Return one container or raise ``DirectoryNotFoundError``."""

    @abstractmethod
    async def create_container(self, *, name: str, color: str, icon: str) -> Container:
        """Create a container record."""

    @abstractmethod
    async def update_container(self, container_id: str, **fields: Any) -> Container:
        """Update name/color/icon of a container record."""

    @abstractmethod
    async def remove_container(self, container_id: str) -> None:
        """Remove a container record, closing its tabs."""


class TabDirectory(ABC):
    """Eventually-consistent view of open tabs."""

    @abstractmethod
    async def list_tabs(self, **filters: Any) -> list[Tab]:
        """Return tabs, optionally filtered by ``container_id``, ``window_id`` or ``index``."""

    @abstractmethod
    async def create_tab(
        self,
        *,
        container_id: str,
        url: str | None = None,
        index: int | None = None,
        active: bool = True,
        window_id: int | None = None,
    ) -> Tab:
        """Open a tab in a container."""

    @abstractmethod
    async def remove_tab(self, tab_id: int) -> None:
        """Close a tab."""
