"""kioskctl configuration loading."""

from kioskctl.config.settings import (
    ConfigError,
    ControllerSettings,
    DeviceSettings,
    EnableMode,
    KioskConfig,
    StateSettings,
    TargetSettings,
    dump_default_config,
    load_config,
)

__all__ = [
    "ConfigError",
    "ControllerSettings",
    "DeviceSettings",
    "EnableMode",
    "KioskConfig",
    "StateSettings",
    "TargetSettings",
    "dump_default_config",
    "load_config",
]
