"""Kiosk request, component and result-code models."""

from __future__ import annotations

import re
from enum import IntFlag, StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

PACKAGE_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*(\.[A-Za-z][A-Za-z0-9_]*)+$")
_CLASS_NAME_PATTERN = re.compile(r"^[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*$")


class ResultCode(StrEnum):
    """Terminal result codes reported for one controller operation."""

    OK = "OK"
    ERR_NOT_PRIVILEGED = "ERR_NOT_PRIVILEGED"
    ERR_PERMISSION_MISSING = "ERR_PERMISSION_MISSING"
    ERR_TARGET_UNRESOLVABLE = "ERR_TARGET_UNRESOLVABLE"
    ERR_INVALID_REQUEST = "ERR_INVALID_REQUEST"
    ERR_INTERNAL = "ERR_INTERNAL"


class DndMode(StrEnum):
    """Interruption filter modes the notification gateway can apply."""

    NONE = "none"
    ALARMS = "alarms"
    TOTAL = "total"


class LockTaskFeature(IntFlag):
    """Lock-task feature flags, matching platform constant values."""

    NONE = 0
    SYSTEM_INFO = 1
    NOTIFICATIONS = 2
    HOME = 4
    OVERVIEW = 8
    GLOBAL_ACTIONS = 16
    KEYGUARD = 32
    BLOCK_ACTIVITY_START_IN_TASK = 64


ALL_LOCK_TASK_FEATURES = int(
    LockTaskFeature.SYSTEM_INFO
    | LockTaskFeature.NOTIFICATIONS
    | LockTaskFeature.HOME
    | LockTaskFeature.OVERVIEW
    | LockTaskFeature.GLOBAL_ACTIONS
    | LockTaskFeature.KEYGUARD
    | LockTaskFeature.BLOCK_ACTIVITY_START_IN_TASK
)


def is_package_name(value: str) -> bool:
    """Return whether value follows the platform package-name grammar."""
    return bool(PACKAGE_NAME_PATTERN.match(value))


class ComponentIdentifier(BaseModel):
    """Launchable entry point identified by package and activity class."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    package: str
    class_name: str

    @classmethod
    def parse(cls, raw: str | None) -> ComponentIdentifier | None:
        """Parse `package/class` text, expanding `package/.Suffix` short form.

        Args:
            raw: Flattened component string.

        Returns:
            Parsed component, or None when the text is malformed.
        """
        if not raw:
            return None
        package, sep, class_name = raw.strip().partition("/")
        if not sep or not is_package_name(package) or not class_name:
            return None
        if class_name.startswith("."):
            class_name = package + class_name
        if not _CLASS_NAME_PATTERN.match(class_name):
            return None
        return cls(package=package, class_name=class_name)

    def flatten(self) -> str:
        """Return the `package/class` string form."""
        return f"{self.package}/{self.class_name}"

    def __str__(self) -> str:
        return self.flatten()


class KioskRequest(BaseModel):
    """Immutable policy description supplied to one prepare/apply call."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    allowlist: frozenset[str] = frozenset()
    features: int = Field(default=0, ge=0, le=ALL_LOCK_TASK_FEATURES)
    suppress_status_bar: bool = True
    dnd_mode: DndMode = DndMode.NONE

    @field_validator("allowlist")
    @classmethod
    def _validate_allowlist(cls, value: frozenset[str]) -> frozenset[str]:
        """Reject entries that are not package names.

        Args:
            value: Candidate allow-list.

        Returns:
            Validated allow-list.

        Raises:
            ValueError: If any entry is not a valid package name.
        """
        invalid = sorted(item for item in value if not is_package_name(item))
        if invalid:
            raise ValueError(f"invalid package names in allowlist: {invalid}")
        return value

    @property
    def feature_flags(self) -> LockTaskFeature:
        """Return features as typed lock-task flags."""
        return LockTaskFeature(self.features)


class KioskEventKind(StrEnum):
    """Broadcast event names announced after state transitions."""

    APPLIED = "kiosk-applied"
    CLEARED = "kiosk-cleared"


class KioskEvent(BaseModel):
    """Fire-and-forget broadcast payload."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    event: KioskEventKind
    dnd_active: bool | None = None
