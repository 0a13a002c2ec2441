"""Launch entry-point resolution with diagnosable fallback."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from pydantic import BaseModel, ConfigDict, Field

from kioskctl.errors import GatewayError
from kioskctl.gateways.base import ActivityRecord, PackageInspector, PackageState
from kioskctl.models import ComponentIdentifier

_LOGGER = logging.getLogger(__name__)

# Platform UID layout: uid = user_id * PER_USER_RANGE + app_id.
PER_USER_RANGE = 100_000

DEFAULT_ALTERNATE_ACTIVITIES: tuple[str, ...] = (
    ".RoutingActivity",
    ".MainActivity",
)


class LaunchDiagnostics(BaseModel):
    """Structured facts gathered when a target package cannot be launched."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    package: str
    platform_release: str | None = None
    sdk_level: int | None = None
    uid: int | None = None
    user_index: int | None = None
    launch_intent_resolved: bool = False
    package_state: PackageState | None = None
    declared_activities: tuple[ActivityRecord, ...] = ()
    launcher_matches: tuple[ComponentIdentifier, ...] = ()
    probed: tuple[ComponentIdentifier, ...] = ()
    probe_errors: dict[str, str] = Field(default_factory=dict)

    def as_log_fields(self) -> dict[str, object]:
        """Return JSON-friendly fields for structured logging."""
        return self.model_dump(mode="json")


class Unresolvable(BaseModel):
    """Resolution failure carrying its diagnostic bundle."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    package: str
    diagnostics: LaunchDiagnostics


def user_index_for_uid(uid: int) -> int:
    """Return the multi-user index encoded in a platform UID.

    Args:
        uid: Platform UID.

    Returns:
        User index (0 for the primary user).
    """
    return uid // PER_USER_RANGE


class LaunchResolver:
    """Resolve a launchable entry point for one target package."""

    def __init__(
        self,
        inspector: PackageInspector,
        *,
        alternate_activities: Sequence[str] = DEFAULT_ALTERNATE_ACTIVITIES,
    ) -> None:
        """Store package inspector and fallback class-name suffixes.

        Args:
            inspector: Package-manager query port.
            alternate_activities: Ordered class suffixes (`.Name`) or fully
                qualified class names probed when no launcher entry exists.
        """
        self._inspector = inspector
        self._alternates = tuple(alternate_activities)

    def resolve(self, package: str) -> ComponentIdentifier | Unresolvable:
        """Resolve launcher entry, then alternates; diagnose on failure.

        Args:
            package: Target package id.

        Returns:
            Launchable component, or `Unresolvable` with diagnostics.
        """
        errors: dict[str, str] = {}
        direct = self._attempt(
            errors, "launch_component", lambda: self._inspector.launch_component(package)
        )
        if direct is not None:
            _LOGGER.debug("launch.resolved package=%s via=launcher", package)
            return direct

        probed: list[ComponentIdentifier] = []
        for candidate in self.alternate_candidates(package):
            probed.append(candidate)
            visible = self._attempt(
                errors,
                f"probe:{candidate.flatten()}",
                lambda c=candidate: self._inspector.is_activity_visible(c),
            )
            if visible:
                _LOGGER.info(
                    "launch.resolved package=%s via=alternate component=%s",
                    package,
                    candidate.flatten(),
                )
                return candidate

        diagnostics = self.diagnose(
            package, launch_intent_resolved=False, probed=probed, errors=errors
        )
        _LOGGER.warning("launch.unresolvable", extra=diagnostics.as_log_fields())
        return Unresolvable(package=package, diagnostics=diagnostics)

    def alternate_candidates(self, package: str) -> list[ComponentIdentifier]:
        """Expand configured suffixes into candidate components.

        Args:
            package: Target package id.

        Returns:
            Candidates in priority order, malformed entries skipped.
        """
        candidates: list[ComponentIdentifier] = []
        for suffix in self._alternates:
            component = ComponentIdentifier.parse(f"{package}/{suffix}")
            if component is not None and component not in candidates:
                candidates.append(component)
        return candidates

    def diagnose(
        self,
        package: str,
        *,
        launch_intent_resolved: bool,
        probed: Sequence[ComponentIdentifier] = (),
        errors: dict[str, str] | None = None,
    ) -> LaunchDiagnostics:
        """Gather the diagnostic bundle; probe failures are recorded, not raised.

        Args:
            package: Target package id.
            launch_intent_resolved: Whether the launcher lookup succeeded.
            probed: Alternate components already probed.
            errors: Probe errors collected so far.

        Returns:
            Diagnostic bundle.
        """
        errors = dict(errors or {})
        identity = self._attempt(
            errors, "platform_identity", self._inspector.platform_identity
        )
        state = self._attempt(
            errors, "package_state", lambda: self._inspector.package_state(package)
        )
        declared = self._attempt(
            errors,
            "declared_activities",
            lambda: self._inspector.declared_activities(package),
        )
        launchers = self._attempt(
            errors, "launcher_activities", self._inspector.launcher_activities
        )
        uid = identity.uid if identity is not None else None
        return LaunchDiagnostics(
            package=package,
            platform_release=identity.release if identity is not None else None,
            sdk_level=identity.sdk_level if identity is not None else None,
            uid=uid,
            user_index=user_index_for_uid(uid) if uid is not None else None,
            launch_intent_resolved=launch_intent_resolved,
            package_state=state,
            declared_activities=tuple(declared or ()),
            launcher_matches=tuple(
                item for item in launchers or () if item.package == package
            ),
            probed=tuple(probed),
            probe_errors=errors,
        )

    @staticmethod
    def _attempt[T](
        errors: dict[str, str], name: str, fn: Callable[[], T]
    ) -> T | None:
        try:
            return fn()
        except GatewayError as exc:
            errors[name] = f"{exc.code}: {exc}"
            return None
