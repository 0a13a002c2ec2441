"""Structured enable/disable command boundary."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from kioskctl.config import EnableMode
from kioskctl.controller import KioskSessionController
from kioskctl.models import ALL_LOCK_TASK_FEATURES, DndMode, KioskRequest, ResultCode

_LOGGER = logging.getLogger(__name__)


class CommandAction(StrEnum):
    """Actions accepted from the command transport."""

    ENABLE = "enable"
    DISABLE = "disable"


class CommandRequest(BaseModel):
    """Validated request delivered by an external caller."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    action: CommandAction
    allowlist: tuple[str, ...] = ()
    features: int = Field(default=0, ge=0, le=ALL_LOCK_TASK_FEATURES)
    suppress_status_bar: bool = True
    dnd_mode: DndMode = DndMode.TOTAL
    mode: EnableMode | None = None

    def to_kiosk_request(self) -> KioskRequest:
        """Build the immutable controller request.

        Returns:
            Kiosk request.
        """
        return KioskRequest(
            allowlist=frozenset(self.allowlist),
            features=self.features,
            suppress_status_bar=self.suppress_status_bar,
            dnd_mode=self.dnd_mode,
        )


class KioskCommandHandler:
    """Route transport requests to the session controller."""

    def __init__(
        self,
        controller: KioskSessionController,
        *,
        default_mode: EnableMode = EnableMode.PREPARE,
    ) -> None:
        """Store controller and the enable variant used by default.

        Args:
            controller: Kiosk session controller.
            default_mode: Operation used when a request names no mode.
        """
        self._controller = controller
        self._default_mode = default_mode

    def handle(self, payload: Mapping[str, object]) -> ResultCode:
        """Validate payload and run the requested operation.

        Args:
            payload: Raw request mapping.

        Returns:
            Terminal result code.
        """
        try:
            command = CommandRequest.model_validate(payload)
            request = command.to_kiosk_request()
        except ValidationError as exc:
            _LOGGER.warning(
                "command.invalid errors=%d", exc.error_count(), extra={"detail": str(exc)}
            )
            return ResultCode.ERR_INVALID_REQUEST
        if command.action == CommandAction.DISABLE:
            return self._controller.clear()
        mode = command.mode or self._default_mode
        _LOGGER.info(
            "command.enable mode=%s allowlist=%s features=%d status_bar=%s dnd=%s",
            mode.value,
            sorted(request.allowlist),
            request.features,
            request.suppress_status_bar,
            request.dnd_mode.value,
        )
        if mode == EnableMode.APPLY:
            return self._controller.apply(request)
        return self._controller.prepare(request)
