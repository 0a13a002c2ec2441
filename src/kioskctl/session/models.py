"""Persisted kiosk session models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from kioskctl.models import ComponentIdentifier


class SessionState(BaseModel):
    """Durable record of whether kiosk policy is in force.

    `previous_home` is only meaningful while `applied` is true; once cleared it
    is dropped. `dnd_altered` tracks whether the interruption filter was
    changed so clear knows to restore it.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    applied: bool = False
    previous_home: ComponentIdentifier | None = None
    dnd_altered: bool = False


class PersistedSessionRecord(BaseModel):
    """Flat key-value layout written to disk."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    applied: bool = False
    previous_home: str | None = Field(default=None, alias="previous-home")
    dnd_altered: bool = Field(default=False, alias="dnd-altered")

    @classmethod
    def from_state(cls, state: SessionState) -> PersistedSessionRecord:
        """Flatten session state into the on-disk record.

        Args:
            state: Session state to persist.

        Returns:
            Flat record.
        """
        return cls(
            applied=state.applied,
            previous_home=(
                state.previous_home.flatten() if state.previous_home else None
            ),
            dnd_altered=state.dnd_altered,
        )
