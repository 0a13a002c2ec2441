"""Unit tests for CLI bootstrap wiring."""

from __future__ import annotations

import subprocess
from collections.abc import Sequence
from pathlib import Path

import pytest
from rich.console import Console

from kioskctl.cli.bootstrap import (
    build_backend,
    build_controller,
    default_config_file,
    load_effective_config,
)
from kioskctl.config import KioskConfig
from kioskctl.gateways.shell import AdbShell
from kioskctl.models import ResultCode


@pytest.mark.unit
def test_default_config_file_prefers_yaml(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """YAML is the default; a lone JSON config is picked up instead."""
    # Arrange - cwd without config
    monkeypatch.chdir(tmp_path)
    assert default_config_file() == tmp_path / ".kioskctl" / "config.yaml"

    # Act - only JSON present
    (tmp_path / ".kioskctl").mkdir()
    (tmp_path / ".kioskctl" / "config.json").write_text("{}", encoding="utf-8")

    # Assert - JSON chosen
    assert default_config_file() == tmp_path / ".kioskctl" / "config.json"


@pytest.mark.unit
def test_invalid_config_falls_back_with_warning(tmp_path: Path) -> None:
    """A broken config file yields defaults and a printed warning."""
    # Arrange - invalid file and recording console
    path = tmp_path / "config.yaml"
    path.write_text("controller: [", encoding="utf-8")
    console = Console(record=True, width=200)

    # Act - load
    config = load_effective_config(path, console=console)

    # Assert - defaults and warning text
    assert config == KioskConfig()
    assert "falling back to defaults" in console.export_text()


@pytest.mark.unit
def test_controller_wiring_uses_namespaced_state_and_adb(tmp_path: Path) -> None:
    """Wired controller talks adb through the shell and stores state per package."""
    # Arrange - shell whose device reports a different device owner
    commands: list[str] = []

    def runner(
        argv: Sequence[str], timeout: float
    ) -> subprocess.CompletedProcess[str]:
        commands.append(argv[-1])
        return subprocess.CompletedProcess(
            list(argv), 0, stdout="Device Owner:\n  package=com.other.mdm\n", stderr=""
        )

    config = KioskConfig()
    backend = build_backend(config, shell=AdbShell(runner=runner))
    controller = build_controller(config, backend, base_dir=tmp_path)

    # Act - clear
    code = controller.clear()

    # Assert - denied after one device_policy query, no record written
    assert code == ResultCode.ERR_NOT_PRIVILEGED
    assert commands == ["dumpsys device_policy"]
    state_dir = tmp_path / ".kioskctl" / "state"
    assert state_dir.is_dir()
    assert not (state_dir / "org.kioskctl.agent.json").exists()
