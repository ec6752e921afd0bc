"""
Session Lifecycle Manager - Creation, signup and closing of daily sessions.

The manager keeps no session state of its own: every decision re-reads the
store, which is the single source of truth shared by the daily loop, the
closer loop and inbound signup events.
"""

import asyncio
import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from ..models import (
    FinalizationOutcome,
    FinalizationResult,
    JoinOutcome,
    Member,
)
from ..storage import (
    DuplicateParticipantError,
    SessionNotFoundError,
    SessionStore,
    StoreBusyError,
    StoreError,
)
from .partitioner import make_groups

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def resolve_display_name(member_id: str, handle: Optional[str] = None,
                         name_parts: Optional[Sequence[str]] = None) -> str:
    """
    Build a presentable, never empty name for a member.

    Order: name parts joined with a space, then "@handle", then "id:<member_id>".
    """
    parts = [p.strip() for p in (name_parts or []) if p and p.strip()]
    if parts:
        return " ".join(parts)
    if handle and handle.strip():
        return f"@{handle.strip().lstrip('@')}"
    return f"id:{member_id}"


class SessionLifecycleManager:
    """
    Owns the state machine of one (chat, date) session:
    open -> accepting signups -> closed -> finalized.
    """

    def __init__(self, store: SessionStore, clock: Optional[Clock] = None,
                 retry_attempts: int = 5, retry_delay: float = 0.1):
        """
        Args:
            store: Session store
            clock: Returns the current timezone-aware UTC time
            retry_attempts: Attempts for writes hitting a busy store
            retry_delay: Base delay in seconds, multiplied by the attempt number
        """
        self.store = store
        self.clock = clock or utc_now
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay

    async def _retry_busy(self, description: str, operation: Callable[[], Awaitable[T]]) -> T:
        """Run a store operation, retrying with linear backoff while the store is busy."""
        attempt = 1
        while True:
            try:
                return await operation()
            except StoreBusyError as e:
                if attempt >= self.retry_attempts:
                    logger.error(f"{description}: store still busy after {attempt} attempts")
                    raise
                delay = self.retry_delay * attempt
                logger.warning(
                    f"{description}: store busy, retry {attempt}/{self.retry_attempts} in {delay:.2f}s ({e})"
                )
                await asyncio.sleep(delay)
                attempt += 1

    async def ensure_session_open(self, chat_id: str, session_date: str, window: timedelta) -> int:
        """
        Idempotently open the session for a chat and date.

        Creates it with deadline now + window, or returns the existing one,
        extending its deadline only forward. Safe under concurrent callers.

        Returns:
            int: Session id
        """
        deadline = self.clock() + window
        session_id = await self._retry_busy(
            f"ensure session chat={chat_id} date={session_date}",
            lambda: self.store.create_or_get_session(chat_id, session_date, deadline),
        )
        logger.info(
            f"Session {session_id} open for chat={chat_id} date={session_date}",
            extra={"extra_fields": {
                "session_id": session_id,
                "chat_id": chat_id,
                "session_date": session_date,
                "deadline": deadline.isoformat(),
            }}
        )
        return session_id

    async def record_invite_reference(self, session_id: int, ref: str) -> None:
        """Attach the posted invite's reference. Failures are logged, never raised."""
        try:
            await self._retry_busy(
                f"record invite session={session_id}",
                lambda: self.store.set_invite_reference(session_id, ref),
            )
        except StoreError as e:
            logger.warning(f"Failed to record invite reference session={session_id} ref={ref}: {e}")

    async def has_open_invite_today(self, chat_id: str, session_date: str) -> bool:
        """True only if the session exists and its invite has been posted."""
        try:
            record = await self._retry_busy(
                f"read session chat={chat_id} date={session_date}",
                lambda: self.store.get_session_by_chat_date(chat_id, session_date),
            )
        except SessionNotFoundError:
            return False
        return record.has_invite

    async def join(self, session_id: int, member_id: str, handle: Optional[str] = None,
                   name_parts: Optional[Sequence[str]] = None) -> JoinOutcome:
        """
        Sign a member up for a session.

        The deadline is authoritative: a signup after it is rejected even if
        the closer has not marked the session closed yet.

        Raises:
            SessionNotFoundError: Unknown session id
        """
        record = await self._retry_busy(
            f"read session={session_id}",
            lambda: self.store.get_session(session_id),
        )
        if not record.is_open(self.clock()):
            return JoinOutcome.WINDOW_CLOSED

        already = await self._retry_busy(
            f"check member session={session_id} member={member_id}",
            lambda: self.store.is_participant(session_id, member_id),
        )
        if already:
            return JoinOutcome.ALREADY_JOINED

        display_name = resolve_display_name(member_id, handle, name_parts)
        try:
            await self._retry_busy(
                f"join session={session_id} member={member_id}",
                lambda: self.store.add_participant(session_id, member_id, handle or "", display_name),
            )
        except DuplicateParticipantError:
            return JoinOutcome.ALREADY_JOINED

        logger.info(f"Member {member_id} ({display_name}) joined session {session_id}")
        return JoinOutcome.JOINED

    async def close_and_finalize(self, session_id: int,
                                 rng: Optional[random.Random] = None) -> FinalizationResult:
        """
        Close a session and compute its groups.

        Everything the result needs is read before the closed flag is set, so
        a failed read leaves the session open and due for the next closer
        tick. Only the call that actually sets the flag finalizes; later calls
        return ALREADY_CLOSED without members or groups.

        Raises:
            SessionNotFoundError: Unknown session id
        """
        record = await self._retry_busy(
            f"read session={session_id}",
            lambda: self.store.get_session(session_id),
        )
        result = FinalizationResult(
            session_id=session_id,
            chat_id=record.chat_id,
            session_date=record.session_date,
            outcome=FinalizationOutcome.ALREADY_CLOSED,
        )
        if record.closed:
            logger.debug(f"Session {session_id} already closed, nothing to finalize")
            return result

        participants = await self._retry_busy(
            f"read participants session={session_id}",
            lambda: self.store.get_participants(session_id),
        )
        members = [
            Member(
                member_id=p.user_id,
                name=p.display_name or resolve_display_name(p.user_id, p.username),
            )
            for p in participants
        ]

        closed_now = await self._retry_busy(
            f"close session={session_id}",
            lambda: self.store.close_session(session_id),
        )
        if not closed_now:
            logger.debug(f"Session {session_id} closed concurrently, nothing to finalize")
            return result

        result.members = members
        if not members:
            result.outcome = FinalizationOutcome.NO_PARTICIPANTS
            logger.info(f"Session {session_id} closed with no participants")
            return result

        groups = make_groups(members, rng)
        result.groups = [group.members for group in groups]
        result.outcome = FinalizationOutcome.GROUPED
        logger.info(
            f"Session {session_id} closed: {len(members)} members in {len(result.groups)} groups",
            extra={"extra_fields": {
                "session_id": session_id,
                "chat_id": record.chat_id,
                "members": len(members),
                "groups": [group.size for group in groups],
            }}
        )
        return result
