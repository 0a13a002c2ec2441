"""Single-application kiosk session controller."""

from kioskctl.models import (
    ComponentIdentifier,
    DndMode,
    KioskRequest,
    LockTaskFeature,
    ResultCode,
)

__all__ = [
    "ComponentIdentifier",
    "DndMode",
    "KioskRequest",
    "LockTaskFeature",
    "ResultCode",
]

__version__ = "0.1.0"
