"""Unit tests for kioskctl config loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from kioskctl.config import (
    ConfigError,
    EnableMode,
    KioskConfig,
    dump_default_config,
    load_config,
)
from kioskctl.models import ComponentIdentifier


@pytest.mark.unit
def test_missing_file_returns_defaults(tmp_path: Path) -> None:
    """Load should return defaults when no file exists."""
    # Arrange - absent path
    path = tmp_path / "config.yaml"

    # Act - load
    config = load_config(path)

    # Assert - defaults
    assert config == KioskConfig()
    assert config.controller.default_mode == EnableMode.PREPARE
    assert config.controller.home_component == ComponentIdentifier(
        package="org.kioskctl.agent", class_name="org.kioskctl.agent.HomeActivity"
    )


@pytest.mark.unit
def test_dump_then_load_yaml(tmp_path: Path) -> None:
    """Default YAML written by init loads back to defaults."""
    # Arrange - dump defaults
    path = tmp_path / ".kioskctl" / "config.yaml"
    dump_default_config(path)

    # Act - load
    config = load_config(path)

    # Assert - equal to defaults
    assert config == KioskConfig()


@pytest.mark.unit
def test_load_json_overrides(tmp_path: Path) -> None:
    """JSON files are decoded and partial sections merge with defaults."""
    # Arrange - JSON override
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "device": {"serial": "emulator-5554"},
                "controller": {"default_mode": "apply"},
                "target": {"package": "com.example.target", "boot_activity": None},
            }
        ),
        encoding="utf-8",
    )

    # Act - load
    config = load_config(path)

    # Assert - overrides applied
    assert config.device.serial == "emulator-5554"
    assert config.device.adb_path == "adb"
    assert config.controller.default_mode == EnableMode.APPLY
    assert config.target.package == "com.example.target"
    assert config.target.boot_component is None


@pytest.mark.unit
def test_empty_yaml_is_defaults(tmp_path: Path) -> None:
    """An empty YAML document means all defaults."""
    # Arrange - empty file
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")

    # Act / Assert - defaults
    assert load_config(path) == KioskConfig()


@pytest.mark.unit
@pytest.mark.parametrize(
    "content",
    [
        "controller: [unclosed",
        "- just\n- a list\n",
        "target:\n  package: nodots\n",
        "controller:\n  home_activity: bogus\n",
        "unknown_section: {}\n",
    ],
)
def test_invalid_config_raises(tmp_path: Path, content: str) -> None:
    """Invalid YAML or invalid values raise ConfigError."""
    # Arrange - bad file
    path = tmp_path / "config.yaml"
    path.write_text(content, encoding="utf-8")

    # Act / Assert - error
    with pytest.raises(ConfigError):
        load_config(path)


@pytest.mark.unit
def test_state_file_namespaced_by_controller_package(tmp_path: Path) -> None:
    """Relative state dirs resolve against base; file name is the package."""
    # Arrange - default config
    config = KioskConfig()

    # Act - resolve state file
    path = config.state_file(tmp_path)

    # Assert - namespaced path
    assert path == tmp_path / ".kioskctl" / "state" / "org.kioskctl.agent.json"
