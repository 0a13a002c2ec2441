"""Kiosk session persistence."""

from kioskctl.session.models import SessionState
from kioskctl.session.store import SessionDecodeError, SessionStore

__all__ = ["SessionDecodeError", "SessionState", "SessionStore"]
