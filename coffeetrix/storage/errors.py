"""
Storage errors raised by SessionStore implementations.
"""


class StoreError(Exception):
    """Base class for all storage failures."""


class StoreBusyError(StoreError):
    """The store is locked by another writer; the operation may be retried."""


class StoreUnavailableError(StoreError):
    """The store could not be reached or failed for a non-transient reason."""


class SessionNotFoundError(StoreError):
    """No session matches the requested key."""


class DuplicateParticipantError(StoreError):
    """The member already joined this session."""
