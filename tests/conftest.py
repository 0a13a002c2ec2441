"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from kioskctl.controller import KioskSessionController
from tests.unit.fakes import (
    TARGET_MAIN,
    TARGET_PACKAGE,
    FakeDevice,
    FakePackageInspector,
    build_controller,
)


@pytest.fixture
def device() -> FakeDevice:
    """Device-owner fake with a stock launcher as default HOME."""
    return FakeDevice()


@pytest.fixture
def inspector() -> FakePackageInspector:
    """Package inspector resolving the target's launcher activity."""
    return FakePackageInspector(launchers={TARGET_PACKAGE: TARGET_MAIN})


@pytest.fixture
def controller(
    tmp_path: Path, device: FakeDevice, inspector: FakePackageInspector
) -> KioskSessionController:
    """Controller wired to the shared fakes."""
    return build_controller(tmp_path, device, inspector)
