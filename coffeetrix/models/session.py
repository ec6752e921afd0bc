"""
Session Models - Daily signup sessions and their participants.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class SessionRecord(BaseModel):
    """One signup session: a chat on a calendar date."""
    session_id: int
    chat_id: str
    session_date: str  # YYYY-MM-DD in the day-boundary timezone
    invite_ref: Optional[str] = None  # message reference of the posted invite
    signup_deadline: datetime  # timezone-aware UTC
    closed: bool = False

    @property
    def has_invite(self) -> bool:
        return self.invite_ref is not None

    def is_open(self, now: datetime) -> bool:
        """Open means not closed and the deadline has not passed."""
        return not self.closed and now <= self.signup_deadline


class Participant(BaseModel):
    """A member who joined a session."""
    user_id: str
    username: str = ""
    display_name: str = ""
    joined_at: Optional[datetime] = None


class Member(BaseModel):
    """A participant with a resolved, presentable name."""
    model_config = ConfigDict(frozen=True)

    member_id: str
    name: str
