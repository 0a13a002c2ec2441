"""Deterministic gateway error contracts."""

from __future__ import annotations

from enum import StrEnum


class GatewayErrorCode(StrEnum):
    """Stable platform failure codes raised by gateway implementations."""

    UNSUPPORTED = "platform_unsupported"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    FAILED = "failed"


class GatewayError(RuntimeError):
    """Platform call failure with stable deterministic code."""

    def __init__(
        self,
        code: GatewayErrorCode,
        message: str,
        *,
        data: dict[str, object] | None = None,
    ) -> None:
        """Create gateway failure.

        Args:
            code: Stable gateway error code.
            message: Human-readable error message.
            data: Optional structured payload for diagnostics.
        """
        super().__init__(message)
        self.code = code
        self.data = data or {}

    @property
    def is_unsupported(self) -> bool:
        """Return whether the failure means the platform lacks the call."""
        return self.code == GatewayErrorCode.UNSUPPORTED

    @property
    def is_permission_denied(self) -> bool:
        """Return whether the platform refused the call for lack of permission."""
        return self.code == GatewayErrorCode.PERMISSION_DENIED
