"""kioskctl config models and loading helpers."""

from __future__ import annotations

import json
from enum import StrEnum
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from kioskctl.models import ComponentIdentifier, is_package_name

DEFAULT_CONTROLLER_PACKAGE = "org.kioskctl.agent"
DEFAULT_TARGET_PACKAGE = "org.thoughtcrime.securesms"


class EnableMode(StrEnum):
    """Controller operation used for `enable` requests."""

    PREPARE = "prepare"
    APPLY = "apply"


class DeviceSettings(BaseModel):
    """adb connection settings."""

    model_config = ConfigDict(extra="forbid")

    serial: str | None = None
    adb_path: str = "adb"
    command_timeout_s: float = Field(default=15.0, gt=0, le=300)


class ControllerSettings(BaseModel):
    """Identity of the on-device controller (device-owner) app."""

    model_config = ConfigDict(extra="forbid")

    package: str = DEFAULT_CONTROLLER_PACKAGE
    home_activity: str = f"{DEFAULT_CONTROLLER_PACKAGE}/.HomeActivity"
    admin_receiver: str = f"{DEFAULT_CONTROLLER_PACKAGE}/.AdminReceiver"
    lock_timeout_s: float = Field(default=30.0, gt=0)
    default_mode: EnableMode = EnableMode.PREPARE

    @field_validator("package")
    @classmethod
    def _validate_package(cls, value: str) -> str:
        """Validate controller package name.

        Args:
            value: Candidate package name.

        Returns:
            Validated package name.

        Raises:
            ValueError: If value is not a package name.
        """
        if not is_package_name(value):
            raise ValueError(f"invalid controller package: {value!r}")
        return value

    @field_validator("home_activity", "admin_receiver")
    @classmethod
    def _validate_component(cls, value: str) -> str:
        """Validate flattened component strings.

        Args:
            value: Candidate `package/class` string.

        Returns:
            Validated component string.

        Raises:
            ValueError: If value is not a component string.
        """
        if ComponentIdentifier.parse(value) is None:
            raise ValueError(f"invalid component: {value!r}")
        return value

    @property
    def home_component(self) -> ComponentIdentifier:
        """Return the controller's own home activity."""
        component = ComponentIdentifier.parse(self.home_activity)
        assert component is not None  # noqa: S101 - validated above
        return component

    @property
    def admin_component(self) -> ComponentIdentifier:
        """Return the device-owner admin receiver."""
        component = ComponentIdentifier.parse(self.admin_receiver)
        assert component is not None  # noqa: S101 - validated above
        return component


class TargetSettings(BaseModel):
    """Foreground application the kiosk is built around."""

    model_config = ConfigDict(extra="forbid")

    package: str = DEFAULT_TARGET_PACKAGE
    alternate_activities: tuple[str, ...] = (
        ".RoutingActivity",
        ".MainActivity",
        ".ConversationListActivity",
    )
    boot_activity: str | None = f"{DEFAULT_TARGET_PACKAGE}/.RoutingActivity"

    @field_validator("package")
    @classmethod
    def _validate_package(cls, value: str) -> str:
        """Validate target package name.

        Args:
            value: Candidate package name.

        Returns:
            Validated package name.

        Raises:
            ValueError: If value is not a package name.
        """
        if not is_package_name(value):
            raise ValueError(f"invalid target package: {value!r}")
        return value

    @property
    def boot_component(self) -> ComponentIdentifier | None:
        """Return the explicit boot component, if configured and well-formed."""
        return ComponentIdentifier.parse(self.boot_activity)


class StateSettings(BaseModel):
    """Where the session record lives."""

    model_config = ConfigDict(extra="forbid")

    dir: str = ".kioskctl/state"


class KioskConfig(BaseModel):
    """Root kioskctl configuration model."""

    model_config = ConfigDict(extra="forbid")

    device: DeviceSettings = DeviceSettings()
    controller: ControllerSettings = ControllerSettings()
    target: TargetSettings = TargetSettings()
    state: StateSettings = StateSettings()

    def state_file(self, base: Path) -> Path:
        """Return the session record path, namespaced by controller package.

        Args:
            base: Directory relative state dirs resolve against.

        Returns:
            Absolute-or-relative session file path.
        """
        state_dir = Path(self.state.dir)
        if not state_dir.is_absolute():
            state_dir = base / state_dir
        return state_dir / f"{self.controller.package}.json"


class ConfigError(RuntimeError):
    """Raised when config cannot be decoded or validated."""


def _decode_config_payload(path: Path) -> dict[str, object]:
    """Decode config payload from JSON or YAML.

    Args:
        path: Config file path.

    Returns:
        Parsed mapping payload.

    Raises:
        ConfigError: If decode fails or payload is not an object.
    """
    raw = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid config JSON: {exc}") from exc
    else:
        try:
            payload = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid config YAML: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigError("Invalid config payload: root must be an object")
    return payload


def load_config(path: Path) -> KioskConfig:
    """Load kioskctl config from disk, defaulting when missing.

    Args:
        path: Config file path.

    Returns:
        Parsed config payload, or defaults when file does not exist.

    Raises:
        ConfigError: If payload decode or validation fails.
    """
    if not path.exists():
        return KioskConfig()
    payload = _decode_config_payload(path)
    try:
        return KioskConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config payload: {exc}") from exc


def dump_default_config(path: Path) -> None:
    """Write default config as YAML.

    Args:
        path: Destination path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = KioskConfig().model_dump(mode="json")
    path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
