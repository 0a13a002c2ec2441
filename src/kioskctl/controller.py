"""Kiosk session controller: apply and revert kiosk policy.

Every operation runs under a process lock plus a file lock beside the session
record, so concurrent callers are serialized. The session record is written
only after all side effects for the call have been attempted; a crash between
the two leaves live policy ahead of the record.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from filelock import FileLock, Timeout

from kioskctl.errors import GatewayError, GatewayErrorCode
from kioskctl.gateways.base import (
    ActivityLauncher,
    Broadcaster,
    HomeResolver,
    NotificationPolicyGateway,
    PolicyGateway,
    PrivilegeProbe,
)
from kioskctl.launch import LaunchResolver, Unresolvable
from kioskctl.models import (
    ComponentIdentifier,
    DndMode,
    KioskEvent,
    KioskEventKind,
    KioskRequest,
    ResultCode,
)
from kioskctl.session.models import SessionState
from kioskctl.session.store import SessionStore

_LOGGER = logging.getLogger(__name__)


class _AbortOperation(Exception):
    """Internal signal carrying the terminal code for a failed apply/prepare."""

    def __init__(self, code: ResultCode, reason: str) -> None:
        super().__init__(reason)
        self.code = code


class KioskSessionController:
    """Idempotent state machine over the policy, notification and home gateways."""

    def __init__(
        self,
        *,
        own_package: str,
        own_home: ComponentIdentifier,
        target_package: str,
        privilege: PrivilegeProbe,
        policy: PolicyGateway,
        notifications: NotificationPolicyGateway,
        home: HomeResolver,
        launch_resolver: LaunchResolver,
        launcher: ActivityLauncher,
        store: SessionStore,
        broadcaster: Broadcaster | None = None,
        lock_timeout_s: float = 30.0,
    ) -> None:
        """Store collaborators.

        Args:
            own_package: Controller package, always allow-listed.
            own_home: Controller home activity registered by `apply`.
            target_package: Foreground app launched by `apply`.
            privilege: Device-owner check.
            policy: Device-management gateway.
            notifications: Interruption filter gateway.
            home: Current HOME lookup.
            launch_resolver: Target entry-point resolver.
            launcher: Activity start port.
            store: Session record persistence.
            broadcaster: Optional state announcement port.
            lock_timeout_s: Bound on waiting for a concurrent operation.
        """
        self._own_package = own_package
        self._own_home = own_home
        self._target_package = target_package
        self._privilege = privilege
        self._policy = policy
        self._notifications = notifications
        self._home = home
        self._launch_resolver = launch_resolver
        self._launcher = launcher
        self._store = store
        self._broadcaster = broadcaster
        self._lock_timeout_s = lock_timeout_s
        self._lock = threading.Lock()

    def is_prepared(self) -> bool:
        """Return whether kiosk policy is recorded as applied."""
        return self._store.load().applied

    def session_state(self) -> SessionState:
        """Return the persisted session record."""
        return self._store.load()

    def prepare(self, request: KioskRequest) -> ResultCode:
        """Arm kiosk policy without taking over HOME or launching anything.

        The target app is expected to pin itself once running.

        Args:
            request: Kiosk policy request.

        Returns:
            Terminal result code.
        """
        return self._guarded("prepare", lambda: self._prepare_locked(request))

    def apply(self, request: KioskRequest) -> ResultCode:
        """Arm kiosk policy, take over HOME and launch the target into lock task.

        Args:
            request: Kiosk policy request.

        Returns:
            Terminal result code.
        """
        return self._guarded("apply", lambda: self._apply_locked(request))

    def clear(self) -> ResultCode:
        """Revert kiosk policy using the persisted session record.

        Returns:
            `OK` whenever the privilege gate passes.
        """
        return self._guarded("clear", self._clear_locked)

    def _guarded(self, operation: str, body: Callable[[], ResultCode]) -> ResultCode:
        """Run body serialized and behind the privilege gate.

        Args:
            operation: Operation name for logging.
            body: Operation body executed while holding the locks.

        Returns:
            Terminal result code.
        """
        try:
            with self._serialized():
                if not self._is_privileged():
                    _LOGGER.warning("kiosk.%s denied: not device owner", operation)
                    return ResultCode.ERR_NOT_PRIVILEGED
                code = body()
        except Timeout:
            _LOGGER.error(
                "kiosk.%s lock not acquired within %ss", operation, self._lock_timeout_s
            )
            return ResultCode.ERR_INTERNAL
        except OSError as exc:
            _LOGGER.error("kiosk.%s session record not written: %s", operation, exc)
            return ResultCode.ERR_INTERNAL
        _LOGGER.info("kiosk.%s result=%s", operation, code.value)
        return code

    @contextmanager
    def _serialized(self) -> Iterator[None]:
        """Hold the process lock, then the file lock, for one operation.

        Yields:
            None; both locks are held for the context body.

        Raises:
            Timeout: If either lock is not acquired within the lock timeout.
        """
        if not self._lock.acquire(timeout=self._lock_timeout_s):
            raise Timeout(str(self._store.lock_path))
        try:
            self._store.lock_path.parent.mkdir(parents=True, exist_ok=True)
            flock = FileLock(str(self._store.lock_path), timeout=self._lock_timeout_s)
            with flock:
                yield
        finally:
            self._lock.release()

    def _is_privileged(self) -> bool:
        try:
            return self._privilege.is_device_owner()
        except GatewayError as exc:
            _LOGGER.warning("kiosk.privilege_check failed: %s", exc)
            return False

    def _prepare_locked(self, request: KioskRequest) -> ResultCode:
        if not self._dnd_precondition(request):
            return ResultCode.ERR_PERMISSION_MISSING
        progress = _Progress(self._store.load())
        try:
            self._arm_policy(request, {self._own_package}, progress)
        except _AbortOperation as abort:
            return self._rollback(abort, progress)
        self._store.save(
            SessionState(
                applied=True,
                previous_home=progress.previous_home,
                dnd_altered=progress.dnd_altered,
            )
        )
        self._announce(
            KioskEvent(
                event=KioskEventKind.APPLIED,
                dnd_active=request.dnd_mode != DndMode.NONE,
            )
        )
        return ResultCode.OK

    def _apply_locked(self, request: KioskRequest) -> ResultCode:
        if not self._dnd_precondition(request):
            return ResultCode.ERR_PERMISSION_MISSING
        progress = _Progress(self._store.load())
        try:
            self._arm_policy(
                request, {self._own_package, self._target_package}, progress
            )
            snapshot = self._snapshot_home()
            if snapshot is not None:
                progress.previous_home = snapshot
            self._call_required(
                "set_persistent_home",
                lambda: self._policy.set_persistent_home(self._own_home),
            )
            resolved = self._launch_resolver.resolve(self._target_package)
            if isinstance(resolved, Unresolvable):
                raise _AbortOperation(
                    ResultCode.ERR_TARGET_UNRESOLVABLE,
                    f"no launchable entry point for {self._target_package}",
                )
            self._launch(resolved)
        except _AbortOperation as abort:
            return self._rollback(abort, progress)
        self._store.save(
            SessionState(
                applied=True,
                previous_home=progress.previous_home,
                dnd_altered=progress.dnd_altered,
            )
        )
        self._announce(
            KioskEvent(
                event=KioskEventKind.APPLIED,
                dnd_active=request.dnd_mode != DndMode.NONE,
            )
        )
        return ResultCode.OK

    def _clear_locked(self) -> ResultCode:
        state = self._store.load()
        self._restore(state.previous_home, dnd_altered=state.dnd_altered)
        self._store.save(SessionState(applied=False))
        self._announce(KioskEvent(event=KioskEventKind.CLEARED))
        return ResultCode.OK

    def _dnd_precondition(self, request: KioskRequest) -> bool:
        if request.dnd_mode == DndMode.NONE:
            return True
        try:
            granted = self._notifications.is_access_granted()
        except GatewayError as exc:
            _LOGGER.warning("kiosk.dnd_access_check failed: %s", exc)
            granted = False
        if not granted:
            _LOGGER.warning(
                "kiosk.dnd_permission_missing mode=%s", request.dnd_mode.value
            )
        return granted

    def _arm_policy(
        self, request: KioskRequest, extra_packages: set[str], progress: _Progress
    ) -> None:
        """Apply allow-list, features, status bar and DND in that order.

        Args:
            request: Kiosk policy request.
            extra_packages: Packages always added to the allow-list.
            progress: Mutation tracker used for rollback.

        Raises:
            _AbortOperation: If a required call fails.
        """
        packages = sorted(set(request.allowlist) | extra_packages)
        self._call_required(
            "set_lock_task_packages",
            lambda: self._policy.set_lock_task_packages(packages),
        )
        self._call_required(
            "set_lock_task_features",
            lambda: self._policy.set_lock_task_features(request.features),
        )
        try:
            self._policy.set_status_bar_disabled(request.suppress_status_bar)
        except GatewayError as exc:
            _LOGGER.log(
                logging.INFO if exc.is_unsupported else logging.WARNING,
                "kiosk.status_bar not applied (%s): %s",
                exc.code,
                exc,
            )
        if request.dnd_mode == DndMode.NONE:
            return
        try:
            self._notifications.set_interruption_filter(request.dnd_mode)
            progress.dnd_altered = True
        except GatewayError as exc:
            if exc.is_permission_denied:
                raise _AbortOperation(
                    ResultCode.ERR_INTERNAL, f"DND permission revoked: {exc}"
                ) from exc
            _LOGGER.log(
                logging.INFO if exc.is_unsupported else logging.WARNING,
                "kiosk.dnd not applied (%s): %s",
                exc.code,
                exc,
            )

    def _snapshot_home(self) -> ComponentIdentifier | None:
        try:
            current = self._home.current_home()
        except GatewayError as exc:
            _LOGGER.info("kiosk.home_snapshot unavailable: %s", exc)
            return None
        if current is None or current == self._own_home:
            return None
        return current

    def _launch(self, component: ComponentIdentifier) -> None:
        try:
            self._launcher.start(component, lock_task=True)
        except GatewayError as exc:
            code = (
                ResultCode.ERR_TARGET_UNRESOLVABLE
                if exc.code == GatewayErrorCode.NOT_FOUND
                else ResultCode.ERR_INTERNAL
            )
            raise _AbortOperation(code, f"launch failed: {exc}") from exc
        _LOGGER.info("kiosk.launched component=%s", component.flatten())

    def _call_required(self, name: str, fn: Callable[[], None]) -> None:
        try:
            fn()
        except GatewayError as exc:
            raise _AbortOperation(
                ResultCode.ERR_INTERNAL, f"{name} failed ({exc.code}): {exc}"
            ) from exc

    def _rollback(self, abort: _AbortOperation, progress: _Progress) -> ResultCode:
        """Revert to idle, including anything an earlier session left in force.

        Args:
            abort: Failure that ended the operation.
            progress: Restoration facts for this call.

        Returns:
            The abort's result code.
        """
        _LOGGER.warning(
            "kiosk.rollback",
            extra={"result_code": abort.code.value, "reason": str(abort)},
        )
        # without a stored HOME the OS default takes over once ours is gone
        self._restore(progress.stored_home, dnd_altered=progress.dnd_altered)
        self._store.save(SessionState(applied=False))
        return abort.code

    def _restore(
        self, previous_home: ComponentIdentifier | None, *, dnd_altered: bool
    ) -> None:
        """Best-effort restoration shared by clear and rollback.

        Args:
            previous_home: HOME to re-register, if known.
            dnd_altered: Whether DND was changed and must be turned off.
        """
        self._best_effort(
            "set_lock_task_packages", lambda: self._policy.set_lock_task_packages([])
        )
        self._best_effort(
            "set_lock_task_features", lambda: self._policy.set_lock_task_features(0)
        )
        self._best_effort(
            "set_status_bar_disabled",
            lambda: self._policy.set_status_bar_disabled(False),
        )
        if previous_home is not None and previous_home != self._own_home:
            self._best_effort(
                "set_persistent_home",
                lambda: self._policy.set_persistent_home(previous_home),
            )
        else:
            self._best_effort("clear_persistent_home", self._policy.clear_persistent_home)
        if dnd_altered:
            self._best_effort(
                "set_interruption_filter",
                lambda: self._notifications.set_interruption_filter(DndMode.NONE),
            )

    def _best_effort(self, name: str, fn: Callable[[], None]) -> None:
        try:
            fn()
        except GatewayError as exc:
            _LOGGER.info("kiosk.restore %s skipped (%s): %s", name, exc.code, exc)

    def _announce(self, event: KioskEvent) -> None:
        if self._broadcaster is None:
            return
        try:
            self._broadcaster.announce(event)
        except GatewayError as exc:
            _LOGGER.warning("kiosk.broadcast %s failed: %s", event.event.value, exc)


class _Progress:
    """Restoration facts for one apply/prepare call.

    Seeded from the persisted record so a repeated call keeps what an earlier
    session already owns: the original HOME and any DND change.
    """

    def __init__(self, stored: SessionState) -> None:
        self.dnd_altered = stored.applied and stored.dnd_altered
        self.previous_home: ComponentIdentifier | None = (
            stored.previous_home if stored.applied else None
        )
        self.stored_home = self.previous_home
