"""
Session Store Interface - Abstract base class for all store implementations.
The lifecycle manager and scheduler only depend on this contract.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Tuple

from ..models import Participant, SessionRecord


class SessionStore(ABC):
    """
    Durable keyed storage for chats, sessions and participants.

    Implementations must enforce uniqueness of (chat_id, session_date) and of
    (session_id, user_id), and serialize their writes.
    """

    @abstractmethod
    async def init(self) -> None:
        """Open the store and create the schema if missing."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release connections."""
        pass

    # Settings

    @abstractmethod
    async def ensure_default_settings(self, default_time: str) -> None:
        """Insert the settings row with `default_time` unless it already exists."""
        pass

    @abstractmethod
    async def get_daily_time(self) -> str:
        """Return the configured daily invite time as "HH:MM"."""
        pass

    @abstractmethod
    async def set_daily_time(self, daily_time: str) -> None:
        pass

    # Chats

    @abstractmethod
    async def upsert_chat(self, chat_id: str, title: str) -> None:
        """Create a chat on first contact, refresh its title afterwards."""
        pass

    @abstractmethod
    async def list_chat_ids(self) -> List[str]:
        pass

    @abstractmethod
    async def count_chats(self) -> int:
        pass

    # Sessions

    @abstractmethod
    async def create_or_get_session(self, chat_id: str, session_date: str, deadline: datetime) -> int:
        """
        Create the session for (chat_id, session_date) or return the existing one.

        A concurrent creator losing the insert race gets the winner's id. For an
        existing open session the deadline is moved to `deadline` only if that
        is later than the stored one.

        Returns:
            int: Session id
        """
        pass

    @abstractmethod
    async def set_invite_reference(self, session_id: int, ref: str) -> None:
        pass

    @abstractmethod
    async def get_session_by_chat_date(self, chat_id: str, session_date: str) -> SessionRecord:
        """
        Raises:
            SessionNotFoundError: No session for the pair
        """
        pass

    @abstractmethod
    async def get_session(self, session_id: int) -> SessionRecord:
        """
        Raises:
            SessionNotFoundError: Unknown session id
        """
        pass

    @abstractmethod
    async def get_session_info(self, session_id: int) -> Tuple[str, str]:
        """Return (chat_id, session_date) of a session."""
        pass

    @abstractmethod
    async def get_open_sessions_past_deadline(self, now: datetime) -> List[int]:
        """Ids of sessions not yet closed whose deadline is at or before `now`."""
        pass

    @abstractmethod
    async def close_session(self, session_id: int) -> bool:
        """
        Mark a session closed.

        Returns:
            bool: True if this call closed it, False if it was already closed
        """
        pass

    @abstractmethod
    async def count_sessions_by_date(self, session_date: str) -> int:
        pass

    # Participants

    @abstractmethod
    async def add_participant(self, session_id: int, user_id: str, username: str, display_name: str) -> None:
        """
        Raises:
            DuplicateParticipantError: The member already joined this session
        """
        pass

    @abstractmethod
    async def is_participant(self, session_id: int, user_id: str) -> bool:
        pass

    @abstractmethod
    async def get_participants(self, session_id: int) -> List[Participant]:
        """Participants in join order."""
        pass
