"""Unit tests for the boot relaunch guard."""

from __future__ import annotations

import pytest

from kioskctl.boot import BootOutcome, BootRelaunchGuard, BootSignal, RelaunchLatch
from kioskctl.errors import GatewayErrorCode
from kioskctl.launch import LaunchResolver
from tests.unit.fakes import (
    TARGET_MAIN,
    TARGET_PACKAGE,
    FakeDevice,
    FakePackageInspector,
)

_ALL_SIGNALS = (
    BootSignal.LOCKED_BOOT_COMPLETED,
    BootSignal.BOOT_COMPLETED,
    BootSignal.USER_UNLOCKED,
)


def _guard(
    device: FakeDevice,
    *,
    prepared: bool = True,
    latch: RelaunchLatch | None = None,
    inspector: FakePackageInspector | None = None,
    explicit: bool = True,
) -> BootRelaunchGuard:
    """Build a guard over the fake device."""
    return BootRelaunchGuard(
        latch=latch or RelaunchLatch(),
        privilege=device,
        is_prepared=lambda: prepared,
        launcher=device,
        target_package=TARGET_PACKAGE,
        boot_component=TARGET_MAIN if explicit else None,
        launch_resolver=LaunchResolver(inspector or FakePackageInspector()),
    )


@pytest.mark.unit
def test_three_signals_launch_once() -> None:
    """All three restart signals in one boot yield exactly one start."""
    # Arrange - prepared device owner
    device = FakeDevice()
    guard = _guard(device)

    # Act - deliver every signal
    outcomes = [guard.handle(signal) for signal in _ALL_SIGNALS]

    # Assert - one launch, then already launched, plain start
    assert outcomes == [
        BootOutcome.LAUNCHED,
        BootOutcome.ALREADY_LAUNCHED,
        BootOutcome.ALREADY_LAUNCHED,
    ]
    assert device.started == [(TARGET_MAIN, False)]


@pytest.mark.unit
def test_new_process_latch_launches_again() -> None:
    """A fresh latch models a process restart and relaunches."""
    # Arrange - first process launched already
    device = FakeDevice()
    _guard(device).handle(BootSignal.BOOT_COMPLETED)

    # Act - second process with its own latch
    outcome = _guard(device, latch=RelaunchLatch()).handle(BootSignal.BOOT_COMPLETED)

    # Assert - launched again
    assert outcome == BootOutcome.LAUNCHED
    assert len(device.started) == 2


@pytest.mark.unit
@pytest.mark.parametrize(
    ("owner", "prepared"), [(False, True), (True, False), (False, False)]
)
def test_skips_when_not_owner_or_not_prepared(owner: bool, prepared: bool) -> None:
    """Nothing starts unless both device owner and prepared hold."""
    # Arrange - one precondition missing
    device = FakeDevice(device_owner=owner)
    latch = RelaunchLatch()
    guard = _guard(device, prepared=prepared, latch=latch)

    # Act - deliver signal
    outcome = guard.handle(BootSignal.BOOT_COMPLETED)

    # Assert - skipped, latch untouched
    assert outcome == BootOutcome.SKIPPED
    assert device.started == []
    assert latch.fired is False


@pytest.mark.unit
def test_failed_start_leaves_latch_unset() -> None:
    """A later signal in the same boot retries after a failed start."""
    # Arrange - first start fails
    device = FakeDevice()
    device.fail("start", GatewayErrorCode.FAILED)
    latch = RelaunchLatch()
    guard = _guard(device, latch=latch)

    # Act - first signal fails, then start recovers
    first = guard.handle(BootSignal.LOCKED_BOOT_COMPLETED)
    device.failures.clear()
    second = guard.handle(BootSignal.BOOT_COMPLETED)

    # Assert - failed then launched
    assert first == BootOutcome.FAILED
    assert second == BootOutcome.LAUNCHED
    assert latch.fired is True


@pytest.mark.unit
def test_resolves_target_when_no_explicit_component() -> None:
    """Without a configured entry point the resolver supplies one."""
    # Arrange - resolver finds launcher entry
    device = FakeDevice()
    inspector = FakePackageInspector(launchers={TARGET_PACKAGE: TARGET_MAIN})
    guard = _guard(device, inspector=inspector, explicit=False)

    # Act - deliver signal
    outcome = guard.handle(BootSignal.USER_UNLOCKED)

    # Assert - launched resolved component
    assert outcome == BootOutcome.LAUNCHED
    assert device.started == [(TARGET_MAIN, False)]


@pytest.mark.unit
def test_unresolvable_target_fails() -> None:
    """An unresolvable target reports failure without starting."""
    # Arrange - nothing resolvable
    device = FakeDevice()
    guard = _guard(device, explicit=False)

    # Act - deliver signal
    outcome = guard.handle(BootSignal.BOOT_COMPLETED)

    # Assert - failed
    assert outcome == BootOutcome.FAILED
    assert device.started == []
