"""Session persistence and reload helpers."""

from __future__ import annotations

import json
import logging
import os
import time
import uuid
from pathlib import Path

from pydantic import ValidationError

from kioskctl.models import ComponentIdentifier
from kioskctl.session.models import PersistedSessionRecord, SessionState

_LOGGER = logging.getLogger(__name__)


class SessionStoreError(RuntimeError):
    """Base persistence error for session store operations."""


class SessionDecodeError(SessionStoreError):
    """Raised when persisted payload cannot be decoded/validated."""


def recover_corrupt_session(path: Path) -> Path | None:
    """Move unreadable/invalid session aside and return backup path.

    Args:
        path: Session file path.

    Returns:
        Backup path when source exists, else None.
    """
    if not path.exists():
        return None
    timestamp = int(time.time())
    backup = path.with_name(f"{path.name}.corrupt-{timestamp}")
    path.replace(backup)
    return backup


class SessionStore:
    """Single-record JSON store for kiosk session state."""

    def __init__(self, path: Path) -> None:
        """Store target file path.

        Args:
            path: Session file path; its name carries the controller namespace.
        """
        self._path = path

    @property
    def path(self) -> Path:
        """Return session file path."""
        return self._path

    @property
    def lock_path(self) -> Path:
        """Return sibling lock file path guarding controller operations."""
        return self._path.with_name(f"{self._path.name}.lock")

    def load(self) -> SessionState:
        """Load session state, defaulting to idle when absent or corrupt.

        Returns:
            Persisted session state.
        """
        try:
            return self._decode(self._path)
        except FileNotFoundError:
            return SessionState()
        except SessionDecodeError as exc:
            backup = recover_corrupt_session(self._path)
            _LOGGER.warning(
                "session.recovered path=%s backup=%s reason=%s",
                self._path,
                backup,
                exc,
            )
            return SessionState()

    def save(self, state: SessionState) -> None:
        """Persist session state atomically: temp -> fsync -> rename.

        Args:
            state: Session state to persist.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)
        record = PersistedSessionRecord.from_state(state)
        content = record.model_dump_json(by_alias=True, indent=2).encode("utf-8")
        temp_path = self._path.with_name(
            f".{self._path.name}.{os.getpid()}.{uuid.uuid4().hex[:8]}.tmp"
        )
        try:
            fd = os.open(str(temp_path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            try:
                os.write(fd, content)
                os.fsync(fd)
            finally:
                os.close(fd)
            os.replace(temp_path, self._path)
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def _decode(self, path: Path) -> SessionState:
        """Decode the on-disk record into session state.

        Args:
            path: Session file path.

        Returns:
            Decoded session state.

        Raises:
            SessionDecodeError: If JSON decode or payload validation fails.
        """
        try:
            raw = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise SessionDecodeError(f"Invalid session encoding: {exc}") from exc
        try:
            decoded = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SessionDecodeError(f"Invalid session JSON: {exc}") from exc
        if not isinstance(decoded, dict):
            raise SessionDecodeError("Invalid session payload: expected JSON object.")
        try:
            record = PersistedSessionRecord.model_validate(decoded)
        except ValidationError as exc:
            raise SessionDecodeError(f"Invalid session payload: {exc}") from exc

        previous_home = ComponentIdentifier.parse(record.previous_home)
        if record.previous_home and previous_home is None:
            _LOGGER.warning(
                "session.previous_home_malformed value=%r", record.previous_home
            )
        return SessionState(
            applied=record.applied,
            previous_home=previous_home if record.applied else None,
            dnd_altered=record.dnd_altered,
        )
