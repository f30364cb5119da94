"""CLI tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from containers.fingerprint import hash_concat, sha1_hex
from ui.cli import commands
from ui.cli.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setattr(commands, "_root", lambda root=None: tmp_path)
    return tmp_path


def test_fingerprint_generate_then_check() -> None:
    generated = runner.invoke(app, ["fingerprint", "generate", "firefox-container-12"])
    assert generated.exit_code == 0
    name = generated.stdout.strip()
    assert name.startswith("Temp ")

    checked = runner.invoke(app, ["fingerprint", "check", name, "firefox-container-12"])
    assert checked.exit_code == 0
    assert "owned (format 0.2.0)" in checked.stdout


def test_fingerprint_check_rejects_foreign_name() -> None:
    seed = "00"
    name = "Temp " + seed + hash_concat(seed, "firefox-container-1")[:6]
    result = runner.invoke(app, ["fingerprint", "check", name, "firefox-container-2"])
    assert result.exit_code == 1
    assert "not owned" in result.stdout


def test_fingerprint_check_accepts_legacy_name() -> None:
    name = "Temp " + sha1_hex("firefox-container-7")[:8]
    result = runner.invoke(app, ["fingerprint", "check", name, "firefox-container-7"])
    assert result.exit_code == 0
    assert "format 0.1.0" in result.stdout


def test_config_show_prints_effective_config(isolated_root: Path) -> None:
    (isolated_root / "config").mkdir()
    (isolated_root / "config" / "local.yaml").write_text("logging:\n  level: WARNING\ncleanup:\n  strategy: debounce\n", encoding="utf-8")

    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    assert json.loads(result.stdout)["cleanup"]["strategy"] == "debounce"


@pytest.mark.parametrize("strategy", ["queue", "debounce"])
def test_simulate_reaps_closed_containers(strategy: str, isolated_root: Path) -> None:
    (isolated_root / "config").mkdir()
    (isolated_root / "config" / "local.yaml").write_text("logging:\n  level: WARNING\ncleanup:\n  debounce_seconds: 0.01\n", encoding="utf-8")

    result = runner.invoke(app, ["simulate", "--containers", "4", "--tabs", "3", "--strategy", strategy])

    assert result.exit_code == 0, result.output
    summary = json.loads(result.stdout)
    assert len(summary["tracked_before"]) == 4
    assert summary["surviving_containers"] == summary["tracked_before"][2:]
    assert summary["tracked_after"] == summary["surviving_containers"]
    assert summary["events"]["failed"] == 0
    assert (isolated_root / "logs" / "audit.jsonl").exists()
