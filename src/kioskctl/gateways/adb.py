"""adb-backed platform gateways.

Device-management calls that need device-owner privileges are delivered to the
controller's admin receiver as explicit ordered broadcasts; the receiver
reports its outcome through the broadcast result code. Everything else uses
stock shell services (`cmd package`, `cmd notification`, `am`, `getprop`).
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from kioskctl.errors import GatewayError, GatewayErrorCode
from kioskctl.gateways.base import (
    ActivityRecord,
    PackageState,
    PlatformIdentity,
)
from kioskctl.gateways.shell import AdbShell, classify_failure
from kioskctl.models import ComponentIdentifier, DndMode, KioskEvent, KioskEventKind

ACTION_MAIN = "android.intent.action.MAIN"
CATEGORY_HOME = "android.intent.category.HOME"
CATEGORY_LAUNCHER = "android.intent.category.LAUNCHER"
FLAG_ACTIVITY_NEW_TASK = 0x10000000
FLAG_ACTIVITY_CLEAR_TOP = 0x04000000

# Ordered-broadcast result codes reported by the admin receiver.
RECEIVER_RESULT_OK = -1
RECEIVER_RESULT_UNHANDLED = 0
RECEIVER_RESULT_UNSUPPORTED = 1
RECEIVER_RESULT_PERMISSION_DENIED = 2

# `cmd notification set_dnd` vocabulary.
_DND_SHELL_MODES = {
    DndMode.NONE: "off",
    DndMode.ALARMS: "alarms",
    DndMode.TOTAL: "none",
}

_BROADCAST_RESULT = re.compile(r"Broadcast completed: result=(-?\d+)")
_DEVICE_OWNER_PACKAGE = re.compile(r"Device Owner:.*?package=(\S+)", re.DOTALL)
_PACKAGE_UID = re.compile(r"uid:(\d+)")
_RESOLVER_ENTRY = re.compile(r"^\s*[0-9a-f]+\s+(\S+/\S+)(?:\s+filter\s+\S+)?\s*$")
_RESOLVER_ACTIVITY = "android/com.android.internal.app.ResolverActivity"


def parse_components(output: str) -> list[ComponentIdentifier]:
    """Collect every line of output that is a bare `package/class` token.

    Args:
        output: Command output.

    Returns:
        Components in output order, without duplicates.
    """
    found: list[ComponentIdentifier] = []
    for line in output.splitlines():
        component = ComponentIdentifier.parse(line.strip())
        if component is not None and component not in found:
            found.append(component)
    return found


def _last_component(output: str) -> ComponentIdentifier | None:
    components = parse_components(output)
    return components[-1] if components else None


class AdbPrivilegeProbe:
    """Device-owner check via `dumpsys device_policy`."""

    def __init__(self, shell: AdbShell, *, package: str) -> None:
        self._shell = shell
        self._package = package

    def is_device_owner(self) -> bool:
        """Return whether the controller package is the device owner."""
        output = self._shell.run("dumpsys", "device_policy")
        match = _DEVICE_OWNER_PACKAGE.search(output)
        return match is not None and match.group(1) == self._package


class AdbPolicyGateway:
    """Device-management calls relayed through the controller's admin receiver."""

    def __init__(
        self,
        shell: AdbShell,
        *,
        admin: ComponentIdentifier,
        namespace: str,
        own_package: str,
    ) -> None:
        """Store receiver routing.

        Args:
            shell: Device shell channel.
            admin: Explicit admin receiver component.
            namespace: Action prefix understood by the receiver.
            own_package: Package whose preferred activities clear removes.
        """
        self._shell = shell
        self._admin = admin
        self._namespace = namespace
        self._own_package = own_package

    def set_lock_task_packages(self, packages: Sequence[str]) -> None:
        extras: list[str] = []
        if packages:
            extras = ["--esa", "packages", ",".join(packages)]
        self._send("SET_LOCK_TASK_PACKAGES", extras)

    def set_lock_task_features(self, features: int) -> None:
        self._send("SET_LOCK_TASK_FEATURES", ["--ei", "features", str(features)])

    def set_status_bar_disabled(self, disabled: bool) -> None:
        self._send(
            "SET_STATUS_BAR_DISABLED",
            ["--ez", "disabled", "true" if disabled else "false"],
        )

    def set_persistent_home(self, component: ComponentIdentifier) -> None:
        self._send("ADD_PERSISTENT_HOME", ["--es", "component", component.flatten()])

    def clear_persistent_home(self) -> None:
        self._send("CLEAR_PERSISTENT_HOME", ["--es", "package", self._own_package])

    def _send(self, action: str, extras: list[str]) -> None:
        """Deliver one policy call and translate the receiver's result code.

        Args:
            action: Action suffix under the receiver namespace.
            extras: `am broadcast` extra arguments.

        Raises:
            GatewayError: If the receiver rejects or does not handle the call.
        """
        full_action = f"{self._namespace}.{action}"
        output = self._shell.run(
            "am",
            "broadcast",
            "-n",
            self._admin.flatten(),
            "-a",
            full_action,
            *extras,
        )
        match = _BROADCAST_RESULT.search(output)
        if match is None:
            raise GatewayError(
                GatewayErrorCode.FAILED,
                f"no broadcast result for {full_action}",
                data={"output": output.strip()},
            )
        result = int(match.group(1))
        if result == RECEIVER_RESULT_OK:
            return
        code = {
            RECEIVER_RESULT_UNHANDLED: GatewayErrorCode.UNSUPPORTED,
            RECEIVER_RESULT_UNSUPPORTED: GatewayErrorCode.UNSUPPORTED,
            RECEIVER_RESULT_PERMISSION_DENIED: GatewayErrorCode.PERMISSION_DENIED,
        }.get(result, GatewayErrorCode.FAILED)
        raise GatewayError(
            code,
            f"{full_action} rejected by admin receiver (result={result})",
            data={"result": result, "output": output.strip()},
        )


class AdbNotificationPolicyGateway:
    """Interruption filter control via `cmd notification`."""

    def __init__(self, shell: AdbShell, *, package: str) -> None:
        self._shell = shell
        self._package = package

    def is_access_granted(self) -> bool:
        """Return whether package is in the notification-policy access list."""
        output = self._shell.run(
            "settings", "get", "secure", "enabled_notification_policy_access_packages"
        )
        granted = {item.strip() for item in output.strip().split(":")}
        return self._package in granted

    def set_interruption_filter(self, mode: DndMode) -> None:
        self._shell.run("cmd", "notification", "set_dnd", _DND_SHELL_MODES[mode])


class AdbHomeResolver:
    """Default HOME lookup via `cmd package resolve-activity`."""

    def __init__(self, shell: AdbShell) -> None:
        self._shell = shell

    def current_home(self) -> ComponentIdentifier | None:
        """Return default HOME, or None when only the chooser resolves."""
        output = self._shell.run(
            "cmd",
            "package",
            "resolve-activity",
            "--brief",
            "-a",
            ACTION_MAIN,
            "-c",
            CATEGORY_HOME,
        )
        if _RESOLVER_ACTIVITY in output:
            return None
        return _last_component(output)


class AdbActivityLauncher:
    """Activity start via `am start`."""

    def __init__(self, shell: AdbShell) -> None:
        self._shell = shell

    def start(self, component: ComponentIdentifier, *, lock_task: bool) -> None:
        """Start component in a new task, optionally lock-task enabled.

        Args:
            component: Activity to start.
            lock_task: Whether to pre-enable lock-task mode on launch options.

        Raises:
            GatewayError: If `am` reports a start error.
        """
        flags = FLAG_ACTIVITY_NEW_TASK | FLAG_ACTIVITY_CLEAR_TOP
        args = ["am", "start", "-n", component.flatten(), "-f", hex(flags)]
        if lock_task:
            args.append("--lock-task")
        output = self._shell.run(*args)
        # am reports start errors on stdout with a zero exit status
        if "Error:" in output or "Error type" in output:
            raise GatewayError(
                classify_failure(output),
                f"failed to start {component.flatten()}",
                data={"output": output.strip()},
            )


class AdbBroadcaster:
    """State announcements via implicit `am broadcast`."""

    def __init__(self, shell: AdbShell, *, namespace: str) -> None:
        self._shell = shell
        self._namespace = namespace

    def announce(self, event: KioskEvent) -> None:
        if event.event == KioskEventKind.APPLIED:
            self._shell.run(
                "am",
                "broadcast",
                "-a",
                f"{self._namespace}.KIOSK_APPLIED",
                "--ez",
                "extra_dnd_active",
                "true" if event.dnd_active else "false",
            )
            return
        self._shell.run("am", "broadcast", "-a", f"{self._namespace}.KIOSK_CLEARED")


class AdbPackageInspector:
    """Package-manager queries for launch resolution and diagnostics."""

    def __init__(self, shell: AdbShell, *, caller_package: str) -> None:
        """Store shell and the package whose UID is reported as caller.

        Args:
            shell: Device shell channel.
            caller_package: Controller package.
        """
        self._shell = shell
        self._caller_package = caller_package

    def launch_component(self, package: str) -> ComponentIdentifier | None:
        output = self._shell.run(
            "cmd",
            "package",
            "resolve-activity",
            "--brief",
            "-a",
            ACTION_MAIN,
            "-c",
            CATEGORY_LAUNCHER,
            package,
        )
        component = _last_component(output)
        if component is None or component.package != package:
            return None
        return component

    def is_activity_visible(self, component: ComponentIdentifier) -> bool:
        output = self._shell.run(
            "cmd",
            "package",
            "resolve-activity",
            "--brief",
            "--components",
            "-n",
            component.flatten(),
        )
        return _last_component(output) == component

    def platform_identity(self) -> PlatformIdentity:
        release = self._shell.run("getprop", "ro.build.version.release").strip()
        sdk_raw = self._shell.run("getprop", "ro.build.version.sdk").strip()
        uid_output = self._shell.run(
            "pm", "list", "packages", "-U", self._caller_package
        )
        uid: int | None = None
        for line in uid_output.splitlines():
            if line.strip().startswith(f"package:{self._caller_package} "):
                match = _PACKAGE_UID.search(line)
                if match:
                    uid = int(match.group(1))
                break
        return PlatformIdentity(
            release=release or "unknown",
            sdk_level=int(sdk_raw) if sdk_raw.isdigit() else None,
            uid=uid,
        )

    def package_state(self, package: str) -> PackageState:
        expected = f"package:{package}"
        installed = self._shell.run("pm", "list", "packages", package)
        enabled = self._shell.run("pm", "list", "packages", "-e", package)
        return PackageState(
            installed=expected in _lines(installed),
            enabled=expected in _lines(enabled),
        )

    def declared_activities(self, package: str) -> list[ActivityRecord]:
        """Return activities from the package's resolver table.

        `dumpsys package` shows neither the manifest `exported` flag nor
        activities without an intent filter, so `exported` is reported as
        unknown and only filtered activities are listed. Enabled comes from
        the package's disabled-component list.

        Args:
            package: Target package id.

        Returns:
            Declared activities in dump order.
        """
        output = self._shell.run("dumpsys", "package", package)
        disabled = _component_section(output, "disabledComponents:", package)
        records: list[ActivityRecord] = []
        seen: set[ComponentIdentifier] = set()
        in_activities = False
        for line in output.splitlines():
            stripped = line.strip()
            if stripped.startswith("Activity Resolver Table:"):
                in_activities = True
                continue
            if in_activities and stripped.endswith("Resolver Table:"):
                in_activities = False
                continue
            if not in_activities:
                continue
            match = _RESOLVER_ENTRY.match(line)
            if match is None:
                continue
            component = ComponentIdentifier.parse(match.group(1))
            if component is None or component.package != package:
                continue
            if component in seen:
                continue
            seen.add(component)
            records.append(
                ActivityRecord(
                    component=component,
                    enabled=component.class_name not in disabled,
                )
            )
        return records

    def launcher_activities(self) -> list[ComponentIdentifier]:
        output = self._shell.run(
            "cmd",
            "package",
            "query-activities",
            "--brief",
            "-a",
            ACTION_MAIN,
            "-c",
            CATEGORY_LAUNCHER,
        )
        return parse_components(output)


def _lines(output: str) -> set[str]:
    return {line.strip() for line in output.splitlines() if line.strip()}


def _component_section(output: str, header: str, package: str) -> set[str]:
    """Collect fully-qualified class names listed under a dumpsys header.

    Args:
        output: `dumpsys package` output.
        header: Section header, e.g. `disabledComponents:`.
        package: Package used to expand `.Suffix` names.

    Returns:
        Class names in the section.
    """
    names: set[str] = set()
    lines = output.splitlines()
    for index, line in enumerate(lines):
        if line.strip() != header:
            continue
        indent = len(line) - len(line.lstrip())
        for entry in lines[index + 1 :]:
            entry_indent = len(entry) - len(entry.lstrip())
            if not entry.strip() or entry_indent <= indent:
                break
            name = entry.strip()
            names.add(package + name if name.startswith(".") else name)
    return names
