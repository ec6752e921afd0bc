"""
Invite Coordinator - The bot's daily flow on top of the lifecycle manager.

Posts invitations into known chats, turns button presses into signups and
publishes group results when sessions close. Errors are isolated per chat,
per event and per session so one failure never stops the others.
"""

import logging
import random
import time
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable, List, Optional, Sequence
from zoneinfo import ZoneInfo

from ..channels import Notifier
from ..channels import messages
from ..models import (
    FinalizationOutcome,
    FinalizationResult,
    InviteRunSummary,
    JoinOutcome,
    Member,
)
from ..storage import SessionNotFoundError, SessionStore, StoreError
from .lifecycle import Clock, SessionLifecycleManager, utc_now
from .logging_config import SessionLogAdapter
from .partitioner import make_groups

logger = logging.getLogger(__name__)

ACTION_PREFIX = "join:"
PLACEHOLDER_COUNT = 4

_ACK_TEXTS = {
    JoinOutcome.JOINED: messages.JOINED_ACK,
    JoinOutcome.ALREADY_JOINED: messages.ALREADY_JOINED_ACK,
    JoinOutcome.WINDOW_CLOSED: messages.SIGNUP_CLOSED_ACK,
}


def make_action_token(session_id: int) -> str:
    return f"{ACTION_PREFIX}{session_id}"


def parse_action_token(token: str) -> Optional[int]:
    """Session id of a "join:<id>" token, None for anything else."""
    if not token or not token.startswith(ACTION_PREFIX):
        return None
    try:
        return int(token[len(ACTION_PREFIX):])
    except ValueError:
        return None


def _zone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


class InviteCoordinator:
    """
    Connects the scheduler callbacks and inbound chat events to the
    session lifecycle and the notifier.
    """

    def __init__(
        self,
        store: SessionStore,
        lifecycle: SessionLifecycleManager,
        notifier: Notifier,
        signup_window: timedelta = timedelta(minutes=30),
        day_timezone: str = "UTC",
        test_mode: bool = False,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            store: Session store
            lifecycle: Session lifecycle manager over the same store
            notifier: Outbound messaging
            signup_window: How long an invitation accepts signups
            day_timezone: Zone whose calendar day defines a session date
            test_mode: Invite on chat join and pad lone signups with placeholders
            clock: Returns the current timezone-aware UTC time
            rng: Shuffle source for group partitioning
        """
        self.store = store
        self.lifecycle = lifecycle
        self.notifier = notifier
        self.signup_window = signup_window
        self.day_timezone = _zone(day_timezone)
        self.test_mode = test_mode
        self.clock = clock or utc_now
        self.rng = rng

    def session_date(self, now: Optional[datetime] = None) -> str:
        """Calendar date (YYYY-MM-DD) of `now` in the day-boundary zone."""
        now = now or self.clock()
        return now.astimezone(self.day_timezone).date().isoformat()

    # Chats

    async def on_chat_added(self, chat_id: str, title: str = "") -> None:
        """Register a chat the bot was added to and introduce the bot."""
        await self.store.upsert_chat(chat_id, title)
        logger.info(f"Bot added to chat {chat_id} ({title})")

        try:
            await self.notifier.post_text(chat_id, messages.INTRO_MESSAGE)
        except Exception as e:
            logger.warning(f"Failed to post intro to chat {chat_id}: {e}")

        if self.test_mode:
            await self.send_invite_to_chat(chat_id)

    # Invitations

    async def send_daily_invites(self) -> InviteRunSummary:
        """Post today's invitation into every known chat."""
        started = time.monotonic()
        summary = InviteRunSummary()
        logger.info("Daily invites: scanning chats")

        try:
            chat_ids = await self.store.list_chat_ids()
        except StoreError as e:
            logger.error(f"Daily invites: cannot list chats: {e}")
            return summary

        for chat_id in chat_ids:
            summary.chats += 1
            if await self.send_invite_to_chat(chat_id):
                summary.sent += 1
            else:
                summary.skipped += 1

        summary.elapsed_seconds = round(time.monotonic() - started, 3)
        logger.info(
            f"Daily invites done: chats={summary.chats} sent={summary.sent} "
            f"skipped={summary.skipped} elapsed={summary.elapsed_seconds}s",
            extra={"extra_fields": summary.model_dump()}
        )
        return summary

    async def send_invite_to_chat(self, chat_id: str) -> bool:
        """
        Open today's session for a chat and post its invitation.

        Returns:
            bool: True if a new invitation was posted
        """
        now = self.clock()
        session_date = self.session_date(now)
        log = SessionLogAdapter(logger, chat_id=chat_id, session_date=session_date)

        try:
            if await self.lifecycle.has_open_invite_today(chat_id, session_date):
                log.info(f"Invite already posted today in chat {chat_id}, skipping")
                return False
            session_id = await self.lifecycle.ensure_session_open(chat_id, session_date, self.signup_window)
            record = await self.store.get_session(session_id)
        except StoreError as e:
            log.error(f"Cannot open session for chat {chat_id} on {session_date}: {e}")
            return False

        if record.closed:
            # An earlier post failed and the closer already finished this session
            log.info(f"Session {session_id} for chat {chat_id} already closed, not inviting")
            return False

        try:
            ref = await self.notifier.post_invite(
                chat_id,
                messages.DAILY_INVITE,
                action_token=make_action_token(session_id),
                button_text=messages.JOIN_BUTTON,
            )
        except Exception as e:
            log.error(f"Failed to post invite to chat {chat_id} (session {session_id}): {e}")
            return False

        await self.lifecycle.record_invite_reference(session_id, ref)
        log.info(f"Invite posted to chat {chat_id}: session={session_id} message={ref}")
        return True

    # Signups

    async def handle_action(self, token: str, member_id: str, handle: Optional[str] = None,
                            name_parts: Optional[Sequence[str]] = None) -> str:
        """
        Process a button press.

        Returns:
            str: Acknowledgement shown to the member
        """
        session_id = parse_action_token(token)
        if session_id is None:
            logger.warning(f"Ignoring unknown action token {token!r} from {member_id}")
            return messages.SIGNUP_CLOSED_ACK

        try:
            outcome = await self.lifecycle.join(session_id, member_id, handle, name_parts)
        except SessionNotFoundError:
            logger.warning(f"Join for unknown session {session_id} by {member_id}")
            return messages.SIGNUP_CLOSED_ACK

        logger.debug(f"Join session={session_id} member={member_id}: {outcome.value}")
        return _ACK_TEXTS[outcome]

    # Closing

    async def close_sessions(self, session_ids: Iterable[int]) -> None:
        """Close callback of the scheduler."""
        for session_id in session_ids:
            await self.close_and_publish(session_id)

    def _pad_with_placeholders(self, members: List[Member]) -> List[Member]:
        placeholders = [
            Member(member_id=f"placeholder-{n}", name=messages.PLACEHOLDER_NAME.format(n=n))
            for n in range(1, PLACEHOLDER_COUNT + 1)
        ]
        return members + placeholders

    async def close_and_publish(self, session_id: int) -> Optional[FinalizationResult]:
        """
        Close a session and announce its groups in the chat.

        Returns:
            The finalization result, or None if the session could not be closed
        """
        try:
            result = await self.lifecycle.close_and_finalize(session_id, self.rng)
        except StoreError as e:
            logger.error(f"Failed to close session {session_id}: {e}")
            return None

        if result.outcome == FinalizationOutcome.ALREADY_CLOSED:
            return result

        if self.test_mode and len(result.members) == 1:
            padded = self._pad_with_placeholders(result.members)
            result.groups = [g.members for g in make_groups(padded, self.rng)]
            logger.info(f"Test mode: padded session {session_id} with {PLACEHOLDER_COUNT} placeholders")

        if result.outcome == FinalizationOutcome.NO_PARTICIPANTS:
            text = messages.NO_PARTICIPANTS
        else:
            text = messages.format_groups([[m.name for m in group] for group in result.groups])

        try:
            await self.notifier.post_text(result.chat_id, text)
        except Exception as e:
            logger.error(f"Failed to publish results of session {session_id} to chat {result.chat_id}: {e}")

        return result
