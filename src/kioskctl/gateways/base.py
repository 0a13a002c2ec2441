"""Platform capability contracts used by the kiosk controller.

Implementations raise `GatewayError` for platform failures; callers decide per
call site whether a failure is fatal.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from pydantic import BaseModel, ConfigDict

from kioskctl.models import ComponentIdentifier, DndMode, KioskEvent


class PrivilegeProbe(Protocol):
    """Check for the provisioned device-management role."""

    def is_device_owner(self) -> bool:
        """Return whether the controller package holds device-owner status."""


class PolicyGateway(Protocol):
    """Device-management authority operations."""

    def set_lock_task_packages(self, packages: Sequence[str]) -> None:
        """Replace the lock-task allow-list.

        Args:
            packages: Package ids allowed to enter lock-task mode.
        """

    def set_lock_task_features(self, features: int) -> None:
        """Replace the lock-task feature bitmask.

        Args:
            features: Lock-task feature flags.
        """

    def set_status_bar_disabled(self, disabled: bool) -> None:
        """Enable or disable the status bar.

        Args:
            disabled: Whether the status bar should be suppressed.
        """

    def set_persistent_home(self, component: ComponentIdentifier) -> None:
        """Register component as persistent preferred HOME handler.

        Args:
            component: Activity handling MAIN/HOME.
        """

    def clear_persistent_home(self) -> None:
        """Clear the controller's own persistent preferred HOME registration."""


class NotificationPolicyGateway(Protocol):
    """Interruption filter (do not disturb) service."""

    def is_access_granted(self) -> bool:
        """Return whether notification-policy access is granted."""

    def set_interruption_filter(self, mode: DndMode) -> None:
        """Apply interruption filter mode.

        Args:
            mode: Requested filter; `none` turns DND off.
        """


class HomeResolver(Protocol):
    """Lookup of the currently registered HOME activity."""

    def current_home(self) -> ComponentIdentifier | None:
        """Return the default HOME component, or None when unresolvable."""


class ActivityLauncher(Protocol):
    """Request the OS to start an activity."""

    def start(self, component: ComponentIdentifier, *, lock_task: bool) -> None:
        """Start component in a new task.

        Args:
            component: Activity to start.
            lock_task: Whether lock-task mode is pre-enabled on launch options.
        """


class Broadcaster(Protocol):
    """Fire-and-forget state announcements."""

    def announce(self, event: KioskEvent) -> None:
        """Send event without waiting for acknowledgment.

        Args:
            event: Event payload.
        """


class PackageState(BaseModel):
    """Installed/enabled state for one package."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    installed: bool
    enabled: bool


class ActivityRecord(BaseModel):
    """One declared activity with visibility flags.

    `exported` is None when the backend cannot read the manifest flag.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    component: ComponentIdentifier
    exported: bool | None = None
    enabled: bool


class PlatformIdentity(BaseModel):
    """Platform build and calling identity."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    release: str
    sdk_level: int | None = None
    uid: int | None = None


class PackageInspector(Protocol):
    """Package-manager queries used for launch resolution and diagnostics."""

    def launch_component(self, package: str) -> ComponentIdentifier | None:
        """Return the declared launcher entry point for package, if any.

        Args:
            package: Target package id.
        """

    def is_activity_visible(self, component: ComponentIdentifier) -> bool:
        """Return whether component exists and is visible to the caller.

        Args:
            component: Candidate activity.
        """

    def platform_identity(self) -> PlatformIdentity:
        """Return platform version and calling UID."""

    def package_state(self, package: str) -> PackageState:
        """Return installed/enabled state for package.

        Args:
            package: Target package id.
        """

    def declared_activities(self, package: str) -> list[ActivityRecord]:
        """Return every activity package declares.

        Args:
            package: Target package id.
        """

    def launcher_activities(self) -> list[ComponentIdentifier]:
        """Return all launcher activities visible to an unscoped query."""
