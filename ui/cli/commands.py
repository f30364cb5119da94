"""Typer command handlers."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

import typer

from containers.fingerprint import generate_fingerprint, matching_rule
from core.orchestrator import Orchestrator, RuntimeBundle
from core.policy_runtime import load_effective_config, merge_dicts, validate_config
from world_model.entities import Container


def configure_logging(root: Path | None = None, verbose: bool = False) -> None:
    config = load_effective_config(_root(root))
    level = "DEBUG" if verbose else str(config.get("logging", {}).get("level", "INFO")).upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _root(root: Path | None) -> Path:
    return (root or Path(__file__).resolve().parents[2]).resolve()


def config_show(root: Path | None = None) -> None:
    """Print effective configuration."""
    typer.echo(json.dumps(load_effective_config(_root(root)), indent=2))


def fingerprint_generate(container_id: str) -> None:
    typer.echo(generate_fingerprint(container_id))


def fingerprint_check(name: str, container_id: str) -> None:
    version = matching_rule(Container(id=container_id, display_name=name))
    if version is None:
        typer.echo("not owned")
        raise typer.Exit(code=1)
    typer.echo(f"owned (format {version})")


async def _simulate(bundle: RuntimeBundle, containers: int, tabs_per_container: int) -> dict[str, Any]:
    app = bundle.app
    await bundle.start()

    opened = []
    for _ in range(containers):
        first = await app.open_new_tab()
        extra = [
            await bundle.tabs.create_tab(container_id=first.container_id, url=f"https://example.org/{i}")
            for i in range(tabs_per_container - 1)
        ]
        opened.append([first, *extra])
    await bundle.control_loop.drain()
    tracked_before = sorted(app.store.container_ids())

    # Close every tab of the first half of the containers, all at once.
    doomed = [tab for group in opened[: containers // 2] for tab in group]
    await asyncio.gather(*(bundle.tabs.remove_tab(tab.id) for tab in doomed))
    await bundle.control_loop.drain()

    surviving = sorted(c.id for c in await bundle.containers.list_containers())
    summary = {
        "tracked_before": tracked_before,
        "closed_tabs": [tab.id for tab in doomed],
        "surviving_containers": surviving,
        "tracked_after": sorted(app.store.container_ids()),
        "events": asdict(bundle.control_loop.stats),
    }
    await bundle.stop()
    return summary


def simulate(
    containers: int, tabs_per_container: int, strategy: str | None = None, root: Path | None = None
) -> None:
    """Run a scripted open/close scenario against the in-memory host."""
    config = load_effective_config(_root(root))
    if strategy:
        config = validate_config(merge_dicts(config, {"cleanup": {"strategy": strategy}}))
    bundle = Orchestrator(root=_root(root), config=config).build()
    summary = asyncio.run(_simulate(bundle, containers, tabs_per_container))
    typer.echo(json.dumps(summary, indent=2))
