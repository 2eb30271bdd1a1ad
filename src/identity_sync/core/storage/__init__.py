"""Session storage abstractions for the user session cache."""

from .session_storage import SessionStorage, create_session_storage

__all__ = ["SessionStorage", "create_session_storage"]
