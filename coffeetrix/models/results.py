"""
Result Models - Outcomes returned by the session lifecycle operations.
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field

from .session import Member


class JoinOutcome(str, Enum):
    """Result of a signup attempt."""
    JOINED = "joined"
    ALREADY_JOINED = "already_joined"
    WINDOW_CLOSED = "window_closed"


class FinalizationOutcome(str, Enum):
    """Result of closing a session."""
    GROUPED = "grouped"
    NO_PARTICIPANTS = "no_participants"
    ALREADY_CLOSED = "already_closed"


class FinalizationResult(BaseModel):
    """What the closer hands back for publication."""
    session_id: int
    chat_id: str
    session_date: str
    outcome: FinalizationOutcome
    members: List[Member] = Field(default_factory=list)
    groups: List[List[Member]] = Field(default_factory=list)


class InviteRunSummary(BaseModel):
    """Totals of one daily invite run."""
    chats: int = 0
    sent: int = 0
    skipped: int = 0
    elapsed_seconds: Optional[float] = None
