"""Shared fixtures: an in-memory host and a runtime wired to it."""

from __future__ import annotations

import random
from pathlib import Path
from typing import Any

import pytest

from containers.colors import ColorSelector
from containers.fingerprint import generate_fingerprint
from core.orchestrator import Orchestrator, RuntimeBundle
from core.policy_runtime import DEFAULT_CONFIG, merge_dicts
from directory.memory_directory import InMemoryDirectory
from world_model.entities import Container


def build_config(tmp_path: Path, **overrides: Any) -> dict[str, Any]:
    config = merge_dicts(DEFAULT_CONFIG, {"paths": {"audit_log_path": str(tmp_path / "audit.jsonl")}})
    return merge_dicts(config, overrides)


@pytest.fixture
def directory() -> InMemoryDirectory:
    return InMemoryDirectory()


@pytest.fixture
def colors() -> ColorSelector:
    return ColorSelector(rng=random.Random(1234))


@pytest.fixture
def make_owned(directory: InMemoryDirectory):
    """Create a container in the directory and give it a valid fingerprint."""

    async def _make(color: str = "blue") -> Container:
        container = await directory.create_container(name="Temp", color=color, icon="circle")
        return await directory.update_container(container.id, name=generate_fingerprint(container.id))

    return _make


@pytest.fixture
def runtime_factory(tmp_path: Path, colors: ColorSelector):
    """Build a runtime on a fresh in-memory host; keyword arguments override config sections."""

    def _build(**overrides: Any) -> RuntimeBundle:
        config = build_config(tmp_path, **overrides)
        return Orchestrator(root=tmp_path, config=config).build(colors=colors)

    return _build
