"""Platform gateway contracts and adb-backed implementations."""

from kioskctl.gateways.base import (
    ActivityLauncher,
    ActivityRecord,
    Broadcaster,
    HomeResolver,
    NotificationPolicyGateway,
    PackageInspector,
    PackageState,
    PlatformIdentity,
    PolicyGateway,
    PrivilegeProbe,
)

__all__ = [
    "ActivityLauncher",
    "ActivityRecord",
    "Broadcaster",
    "HomeResolver",
    "NotificationPolicyGateway",
    "PackageInspector",
    "PackageState",
    "PlatformIdentity",
    "PolicyGateway",
    "PrivilegeProbe",
]
