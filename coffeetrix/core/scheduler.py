"""
Recurring Scheduler - Daily invite trigger and session closer loops.

Two asyncio tasks share one stop event:

- The daily loop arms the next occurrence of the configured HH:MM (UTC),
  wakes at least every `reconfigure_interval` seconds to pick up a changed
  time, and invokes the daily callback once per occurrence. Occurrences missed
  while the process was down are not backfilled.
- The closer loop polls the store every `close_interval` seconds and hands all
  sessions past their deadline to the close callback in one batch.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional, Tuple

from ..storage import SessionStore, StoreError
from .lifecycle import Clock, utc_now

logger = logging.getLogger(__name__)

DEFAULT_FIRE_TIME: Tuple[int, int] = (9, 0)

DailyCallback = Callable[[], Awaitable[None]]
CloseCallback = Callable[[List[int]], Awaitable[None]]


def parse_daily_time(value: Optional[str]) -> Tuple[int, int]:
    """Parse "HH:MM"; anything invalid falls back to 09:00."""
    if not value:
        return DEFAULT_FIRE_TIME
    parts = value.strip().split(":")
    if len(parts) != 2:
        return DEFAULT_FIRE_TIME
    try:
        hour, minute = int(parts[0]), int(parts[1])
    except ValueError:
        return DEFAULT_FIRE_TIME
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return DEFAULT_FIRE_TIME
    return hour, minute


def next_fire_time(hour: int, minute: int, now: datetime) -> datetime:
    """Next UTC instant at hour:minute strictly after `now`."""
    now_utc = now.astimezone(timezone.utc)
    candidate = now_utc.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now_utc:
        candidate += timedelta(days=1)
    return candidate


class RecurringScheduler:
    """
    Runs the daily invite loop and the session closer loop.

    The callbacks are injected so the scheduler does not depend on how
    invites are sent or sessions are closed.
    """

    def __init__(
        self,
        store: SessionStore,
        on_daily_invite: DailyCallback,
        on_close_sessions: CloseCallback,
        close_interval: float = 30.0,
        reconfigure_interval: float = 60.0,
        disable_daily: bool = False,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.on_daily_invite = on_daily_invite
        self.on_close_sessions = on_close_sessions
        self.close_interval = close_interval
        self.reconfigure_interval = reconfigure_interval
        self.disable_daily = disable_daily
        self.clock = clock or utc_now

        # Armed occurrence of the daily loop
        self.next_fire: Optional[datetime] = None

        self._stop = asyncio.Event()
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        """Spawn the loops on the running event loop."""
        if self._tasks:
            raise RuntimeError("Scheduler already started")
        self._stop.clear()
        if not self.disable_daily:
            self._tasks.append(asyncio.create_task(self._daily_loop(), name="daily-invite-loop"))
        self._tasks.append(asyncio.create_task(self._closer_loop(), name="session-closer-loop"))
        logger.info(
            f"Scheduler started: daily={'off' if self.disable_daily else 'on'}, "
            f"close_interval={self.close_interval}s"
        )

    async def stop(self) -> None:
        """Signal both loops and wait for them; an in-flight tick finishes first."""
        self._stop.set()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Scheduler stopped")

    async def _wait(self, timeout: float) -> bool:
        """Sleep up to `timeout` seconds. Returns True when stop was requested."""
        if self._stop.is_set():
            return True
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=max(0.0, timeout))
            return True
        except asyncio.TimeoutError:
            return False

    # Daily loop

    async def compute_next_fire(self, now: datetime) -> datetime:
        """Next occurrence of the configured time, 09:00 if it cannot be read."""
        try:
            daily_time = await self.store.get_daily_time()
        except StoreError as e:
            logger.warning(f"Cannot read daily time, using default: {e}")
            daily_time = None
        hour, minute = parse_daily_time(daily_time)
        return next_fire_time(hour, minute, now)

    async def check_reconfigure(self, now: datetime) -> bool:
        """
        Re-read the configured time and re-arm if the next occurrence moved.

        Returns:
            bool: True if the armed fire time changed
        """
        try:
            daily_time = await self.store.get_daily_time()
        except StoreError as e:
            logger.debug(f"Reconfigure check skipped: {e}")
            return False

        hour, minute = parse_daily_time(daily_time)
        candidate = next_fire_time(hour, minute, now)
        if candidate == self.next_fire:
            return False

        logger.info(f"Daily time changed to {daily_time}, rescheduling {self.next_fire} -> {candidate}")
        self.next_fire = candidate
        return True

    async def fire_daily(self) -> None:
        try:
            await self.on_daily_invite()
        except Exception:
            logger.exception("Daily invite callback failed")

    async def _daily_loop(self) -> None:
        self.next_fire = await self.compute_next_fire(self.clock())
        logger.info(f"Daily invites armed for {self.next_fire.isoformat()}")

        while True:
            until_fire = (self.next_fire - self.clock()).total_seconds()
            if await self._wait(min(until_fire, self.reconfigure_interval)):
                break

            now = self.clock()
            if now >= self.next_fire:
                logger.info(f"Daily invites firing (scheduled {self.next_fire.isoformat()})")
                await self.fire_daily()
                self.next_fire = await self.compute_next_fire(self.clock())
                logger.info(f"Next daily invites at {self.next_fire.isoformat()}")
            else:
                await self.check_reconfigure(now)

        logger.info("Daily loop stopped")

    # Closer loop

    async def close_due_sessions(self) -> List[int]:
        """
        One closer tick: find open sessions past their deadline and close them.

        Returns:
            List[int]: Ids handed to the close callback (empty on a no-op tick)
        """
        try:
            session_ids = await self.store.get_open_sessions_past_deadline(self.clock())
        except StoreError as e:
            logger.error(f"Closer tick failed to read sessions: {e}")
            return []

        if not session_ids:
            return []

        logger.info(f"Closing {len(session_ids)} sessions past deadline: {session_ids}")
        try:
            await self.on_close_sessions(session_ids)
        except Exception:
            logger.exception("Close sessions callback failed")
        return session_ids

    async def _closer_loop(self) -> None:
        while not await self._wait(self.close_interval):
            await self.close_due_sessions()
        logger.info("Closer loop stopped")
