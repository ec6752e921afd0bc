"""Storage module - session store contract, errors and the SQLite implementation."""

from .interface import SessionStore
from .sqlite_store import SQLiteSessionStore
from .errors import (
    StoreError,
    StoreBusyError,
    StoreUnavailableError,
    SessionNotFoundError,
    DuplicateParticipantError,
)

__all__ = [
    'SessionStore', 'SQLiteSessionStore',
    'StoreError', 'StoreBusyError', 'StoreUnavailableError',
    'SessionNotFoundError', 'DuplicateParticipantError',
]
