"""Container and tab records as delivered by the host directories."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CONTAINER_ID = "default"


class Container(BaseModel):
    """An isolated browsing context."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    id: str = Field(alias="cookieStoreId")
    display_name: str = Field(alias="name")
    color: str | None = None
    icon: str | None = None


class Tab(BaseModel):
    """An open tab, observed only."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    id: int
    container_id: str = Field(default=DEFAULT_CONTAINER_ID, alias="cookieStoreId")
    window_id: int = Field(default=0, alias="windowId")
    index: int = 0
    active: bool = False
