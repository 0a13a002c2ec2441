"""Boot-time relaunch guard.

One physical boot can deliver up to three restart-lifecycle signals. The guard
brings the target app forward at most once per process lifetime; the latch
lives in memory and resets only when the process restarts.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import StrEnum

from kioskctl.errors import GatewayError
from kioskctl.gateways.base import ActivityLauncher, PrivilegeProbe
from kioskctl.launch import LaunchResolver, Unresolvable
from kioskctl.models import ComponentIdentifier

_LOGGER = logging.getLogger(__name__)


class BootSignal(StrEnum):
    """Restart-lifecycle signals that can trigger a relaunch."""

    LOCKED_BOOT_COMPLETED = "locked_boot_completed"
    BOOT_COMPLETED = "boot_completed"
    USER_UNLOCKED = "user_unlocked"


class BootOutcome(StrEnum):
    """Result of handling one boot signal."""

    LAUNCHED = "launched"
    ALREADY_LAUNCHED = "already_launched"
    SKIPPED = "skipped"
    FAILED = "failed"


class RelaunchLatch:
    """Process-scoped once-per-boot latch.

    Create one per process; a fresh process starts unset.
    """

    def __init__(self) -> None:
        self._fired = False

    @property
    def fired(self) -> bool:
        """Return whether a relaunch already succeeded in this process."""
        return self._fired

    def mark_fired(self) -> None:
        """Record a successful relaunch."""
        self._fired = True


class BootRelaunchGuard:
    """Bring the kiosk target forward after a restart, at most once."""

    def __init__(
        self,
        *,
        latch: RelaunchLatch,
        privilege: PrivilegeProbe,
        is_prepared: Callable[[], bool],
        launcher: ActivityLauncher,
        target_package: str,
        boot_component: ComponentIdentifier | None = None,
        launch_resolver: LaunchResolver | None = None,
    ) -> None:
        """Store collaborators.

        Args:
            latch: Process-scoped relaunch latch.
            privilege: Device-owner check, re-read on every signal.
            is_prepared: Read of the persisted kiosk flag.
            launcher: Activity start port.
            target_package: Foreground app package.
            boot_component: Explicit entry point; resolved when absent.
            launch_resolver: Resolver used when no explicit entry point is set.
        """
        self._latch = latch
        self._privilege = privilege
        self._is_prepared = is_prepared
        self._launcher = launcher
        self._target_package = target_package
        self._boot_component = boot_component
        self._launch_resolver = launch_resolver
        self._handle_lock = threading.Lock()

    def handle(self, signal: BootSignal) -> BootOutcome:
        """Handle one restart signal.

        Args:
            signal: Received lifecycle signal.

        Returns:
            What the guard did for this signal.
        """
        with self._handle_lock:
            return self._handle_locked(signal)

    def _handle_locked(self, signal: BootSignal) -> BootOutcome:
        if self._latch.fired:
            _LOGGER.info("boot.%s ignored: already launched this boot", signal.value)
            return BootOutcome.ALREADY_LAUNCHED

        privileged = self._safe_check(self._privilege.is_device_owner)
        prepared = self._safe_check(self._is_prepared)
        _LOGGER.info(
            "boot.%s device_owner=%s prepared=%s", signal.value, privileged, prepared
        )
        if not privileged or not prepared:
            return BootOutcome.SKIPPED

        component = self._target_component()
        if component is None:
            _LOGGER.warning("boot.%s target not resolvable; skipping", signal.value)
            return BootOutcome.FAILED
        try:
            # plain start; the target pins itself once running
            self._launcher.start(component, lock_task=False)
        except GatewayError as exc:
            _LOGGER.warning(
                "boot.%s failed to start %s: %s", signal.value, component.flatten(), exc
            )
            return BootOutcome.FAILED
        self._latch.mark_fired()
        _LOGGER.info("boot.%s launched %s", signal.value, component.flatten())
        return BootOutcome.LAUNCHED

    def _target_component(self) -> ComponentIdentifier | None:
        if self._boot_component is not None:
            return self._boot_component
        if self._launch_resolver is None:
            return None
        resolved = self._launch_resolver.resolve(self._target_package)
        if isinstance(resolved, Unresolvable):
            return None
        return resolved

    @staticmethod
    def _safe_check(check: Callable[[], bool]) -> bool:
        try:
            return check()
        except GatewayError as exc:
            _LOGGER.warning("boot.check failed: %s", exc)
            return False
