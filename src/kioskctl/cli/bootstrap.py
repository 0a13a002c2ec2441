"""CLI bootstrap helpers: logging, config and controller wiring."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from kioskctl.boot import BootRelaunchGuard, RelaunchLatch
from kioskctl.config import ConfigError, KioskConfig, load_config
from kioskctl.controller import KioskSessionController
from kioskctl.gateways.adb import (
    AdbActivityLauncher,
    AdbBroadcaster,
    AdbHomeResolver,
    AdbNotificationPolicyGateway,
    AdbPackageInspector,
    AdbPolicyGateway,
    AdbPrivilegeProbe,
)
from kioskctl.gateways.base import PrivilegeProbe
from kioskctl.gateways.shell import AdbShell
from kioskctl.launch import LaunchResolver
from kioskctl.session.store import SessionStore

_LOGGING_CONFIGURED = False


def configure_logging(*, verbose: bool = False) -> None:
    """Configure Rich-backed logging once for CLI commands.

    Args:
        verbose: Whether to log at DEBUG instead of INFO.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if _LOGGING_CONFIGURED:
        return
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(show_path=False, rich_tracebacks=True)],
    )
    _LOGGING_CONFIGURED = True


def default_config_file() -> Path:
    """Return default config path for the current working directory.

    Returns:
        `.kioskctl/config.yaml`, or its JSON sibling when only that exists.
    """
    root = Path.cwd() / ".kioskctl"
    yaml_path = root / "config.yaml"
    json_path = root / "config.json"
    if not yaml_path.exists() and json_path.exists():
        return json_path
    return yaml_path


def load_effective_config(config_file: Path | None, *, console: Console) -> KioskConfig:
    """Load config, falling back to defaults with a visible warning.

    Args:
        config_file: Optional explicit config path.
        console: Rich console for config warnings.

    Returns:
        Effective config.
    """
    path = config_file or default_config_file()
    try:
        return load_config(path)
    except ConfigError as exc:
        console.print(
            f"[yellow]Config at {path} is invalid; falling back to defaults.[/yellow]"
        )
        console.print(f"[yellow]Reason: {exc}[/yellow]")
        return KioskConfig()


@dataclass(frozen=True)
class AdbBackend:
    """adb-backed gateway set for one device."""

    privilege: AdbPrivilegeProbe
    policy: AdbPolicyGateway
    notifications: AdbNotificationPolicyGateway
    home: AdbHomeResolver
    launcher: AdbActivityLauncher
    inspector: AdbPackageInspector
    broadcaster: AdbBroadcaster


def build_backend(config: KioskConfig, *, shell: AdbShell | None = None) -> AdbBackend:
    """Build adb gateways from config.

    Args:
        config: Effective config.
        shell: Optional pre-built shell channel.

    Returns:
        Gateway set.
    """
    shell = shell or AdbShell(
        adb_path=config.device.adb_path,
        serial=config.device.serial,
        timeout_s=config.device.command_timeout_s,
    )
    package = config.controller.package
    return AdbBackend(
        privilege=AdbPrivilegeProbe(shell, package=package),
        policy=AdbPolicyGateway(
            shell,
            admin=config.controller.admin_component,
            namespace=package,
            own_package=package,
        ),
        notifications=AdbNotificationPolicyGateway(shell, package=package),
        home=AdbHomeResolver(shell),
        launcher=AdbActivityLauncher(shell),
        inspector=AdbPackageInspector(shell, caller_package=package),
        broadcaster=AdbBroadcaster(shell, namespace=package),
    )


def build_launch_resolver(config: KioskConfig, backend: AdbBackend) -> LaunchResolver:
    """Build the target launch resolver.

    Args:
        config: Effective config.
        backend: Gateway set.

    Returns:
        Launch resolver.
    """
    return LaunchResolver(
        backend.inspector, alternate_activities=config.target.alternate_activities
    )


def build_controller(
    config: KioskConfig, backend: AdbBackend, *, base_dir: Path
) -> KioskSessionController:
    """Wire the session controller.

    Args:
        config: Effective config.
        backend: Gateway set.
        base_dir: Directory relative state paths resolve against.

    Returns:
        Session controller.
    """
    return KioskSessionController(
        own_package=config.controller.package,
        own_home=config.controller.home_component,
        target_package=config.target.package,
        privilege=backend.privilege,
        policy=backend.policy,
        notifications=backend.notifications,
        home=backend.home,
        launch_resolver=build_launch_resolver(config, backend),
        launcher=backend.launcher,
        store=SessionStore(config.state_file(base_dir)),
        broadcaster=backend.broadcaster,
        lock_timeout_s=config.controller.lock_timeout_s,
    )


def build_boot_guard(
    config: KioskConfig,
    backend: AdbBackend,
    controller: KioskSessionController,
    *,
    latch: RelaunchLatch,
) -> BootRelaunchGuard:
    """Wire the boot relaunch guard.

    Args:
        config: Effective config.
        backend: Gateway set.
        controller: Session controller providing `is_prepared`.
        latch: Process-scoped relaunch latch.

    Returns:
        Boot relaunch guard.
    """
    return BootRelaunchGuard(
        latch=latch,
        privilege=backend.privilege,
        is_prepared=controller.is_prepared,
        launcher=backend.launcher,
        target_package=config.target.package,
        boot_component=config.target.boot_component,
        launch_resolver=build_launch_resolver(config, backend),
    )


@dataclass(frozen=True)
class CliRuntime:
    """Wired collaborators used by CLI commands."""

    config: KioskConfig
    controller: KioskSessionController
    privilege: PrivilegeProbe
    launch_resolver: LaunchResolver
    boot_guard: BootRelaunchGuard


def build_runtime(config_file: Path | None, *, console: Console) -> CliRuntime:
    """Load config and wire the adb-backed runtime.

    Args:
        config_file: Optional explicit config path.
        console: Rich console for config warnings.

    Returns:
        CLI runtime.
    """
    config = load_effective_config(config_file, console=console)
    backend = build_backend(config)
    controller = build_controller(config, backend, base_dir=Path.cwd())
    return CliRuntime(
        config=config,
        controller=controller,
        privilege=backend.privilege,
        launch_resolver=build_launch_resolver(config, backend),
        boot_guard=build_boot_guard(
            config, backend, controller, latch=RelaunchLatch()
        ),
    )
