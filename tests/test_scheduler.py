"""
Tests for the recurring scheduler.
"""

import asyncio
import time
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from coffeetrix.core.scheduler import (
    DEFAULT_FIRE_TIME,
    RecurringScheduler,
    next_fire_time,
    parse_daily_time,
)
from coffeetrix.storage import SessionStore, StoreUnavailableError


def _utc(hour, minute=0, second=0, microsecond=0, day=19):
    return datetime(2026, 10, day, hour, minute, second, microsecond, tzinfo=timezone.utc)


def _store(daily_time="08:00"):
    store = AsyncMock(spec=SessionStore)
    store.get_daily_time.return_value = daily_time
    store.get_open_sessions_past_deadline.return_value = []
    return store


class TestParseDailyTime:

    @pytest.mark.parametrize("value,expected", [
        ("08:30", (8, 30)),
        ("00:00", (0, 0)),
        ("23:59", (23, 59)),
        (" 7:05 ", (7, 5)),
    ])
    def test_valid(self, value, expected):
        assert parse_daily_time(value) == expected

    @pytest.mark.parametrize("value", [None, "", "24:00", "12:60", "noon", "8", "08:00:00", "-1:30"])
    def test_invalid_falls_back(self, value):
        assert parse_daily_time(value) == DEFAULT_FIRE_TIME == (9, 0)


class TestNextFireTime:

    def test_later_today(self):
        assert next_fire_time(8, 0, _utc(7)) == _utc(8)

    def test_exactly_now_is_tomorrow(self):
        assert next_fire_time(8, 0, _utc(8)) == _utc(8, day=20)

    def test_passed_is_tomorrow(self):
        assert next_fire_time(8, 0, _utc(9, 15)) == _utc(8, day=20)

    def test_non_utc_input(self):
        plus_three = timezone(timedelta(hours=3))
        now = datetime(2026, 10, 19, 10, 0, tzinfo=plus_three)  # 07:00 UTC
        assert next_fire_time(8, 0, now) == _utc(8)


class TestDailyReconfiguration:

    @pytest.mark.asyncio
    async def test_earlier_time_reschedules(self):
        store = _store("08:00")
        scheduler = RecurringScheduler(store, AsyncMock(), AsyncMock())
        now = _utc(7)

        scheduler.next_fire = await scheduler.compute_next_fire(now)
        assert scheduler.next_fire == _utc(8)

        store.get_daily_time.return_value = "07:30"
        assert await scheduler.check_reconfigure(now) is True
        assert scheduler.next_fire == _utc(7, 30)

        assert await scheduler.check_reconfigure(now + timedelta(minutes=1)) is False

    @pytest.mark.asyncio
    async def test_time_already_passed_moves_to_tomorrow(self):
        store = _store("08:00")
        scheduler = RecurringScheduler(store, AsyncMock(), AsyncMock())
        now = _utc(7)
        scheduler.next_fire = await scheduler.compute_next_fire(now)

        store.get_daily_time.return_value = "06:00"
        assert await scheduler.check_reconfigure(now) is True
        assert scheduler.next_fire == _utc(6, day=20)

    @pytest.mark.asyncio
    async def test_unreadable_time_keeps_schedule(self):
        store = _store("08:00")
        scheduler = RecurringScheduler(store, AsyncMock(), AsyncMock())
        scheduler.next_fire = _utc(8)

        store.get_daily_time.side_effect = StoreUnavailableError("disk I/O error")
        assert await scheduler.check_reconfigure(_utc(7)) is False
        assert scheduler.next_fire == _utc(8)

    @pytest.mark.asyncio
    async def test_compute_uses_default_when_unreadable(self):
        store = _store()
        store.get_daily_time.side_effect = StoreUnavailableError("disk I/O error")
        scheduler = RecurringScheduler(store, AsyncMock(), AsyncMock())

        assert await scheduler.compute_next_fire(_utc(7)) == _utc(9)

    @pytest.mark.asyncio
    async def test_fire_daily_logs_errors(self):
        on_daily = AsyncMock(side_effect=RuntimeError("boom"))
        scheduler = RecurringScheduler(_store(), on_daily, AsyncMock())

        await scheduler.fire_daily()
        on_daily.assert_awaited_once()


class TestCloser:

    @pytest.mark.asyncio
    async def test_batch_handed_to_callback(self):
        store = _store()
        store.get_open_sessions_past_deadline.return_value = [1, 2]
        on_close = AsyncMock()
        scheduler = RecurringScheduler(store, AsyncMock(), on_close, clock=lambda: _utc(9))

        assert await scheduler.close_due_sessions() == [1, 2]
        on_close.assert_awaited_once_with([1, 2])
        store.get_open_sessions_past_deadline.assert_awaited_once_with(_utc(9))

    @pytest.mark.asyncio
    async def test_nothing_due(self):
        on_close = AsyncMock()
        scheduler = RecurringScheduler(_store(), AsyncMock(), on_close)

        assert await scheduler.close_due_sessions() == []
        on_close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_failure(self):
        store = _store()
        store.get_open_sessions_past_deadline.side_effect = StoreUnavailableError("disk I/O error")
        on_close = AsyncMock()
        scheduler = RecurringScheduler(store, AsyncMock(), on_close)

        assert await scheduler.close_due_sessions() == []
        on_close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_callback_failure_does_not_raise(self):
        store = _store()
        store.get_open_sessions_past_deadline.return_value = [3]
        scheduler = RecurringScheduler(store, AsyncMock(), AsyncMock(side_effect=RuntimeError("boom")))

        assert await scheduler.close_due_sessions() == [3]


class TestLoops:

    @pytest.mark.asyncio
    async def test_daily_loop_fires(self):
        # Wall clock starts 0.2s before 08:00 and follows real time
        start = _utc(7, 59, 59, 800000)
        t0 = time.monotonic()
        clock = lambda: start + timedelta(seconds=time.monotonic() - t0)

        fired = asyncio.Event()

        async def on_daily():
            fired.set()

        scheduler = RecurringScheduler(
            _store("08:00"), on_daily, AsyncMock(),
            close_interval=60, reconfigure_interval=60, clock=clock,
        )
        scheduler.start()
        try:
            await asyncio.wait_for(fired.wait(), timeout=3)
            await asyncio.sleep(0.05)
            assert scheduler.next_fire == _utc(8, day=20)
        finally:
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_closer_loop_ticks(self):
        store = _store()
        store.get_open_sessions_past_deadline.side_effect = lambda now: [5]
        closed = asyncio.Event()
        batches = []

        async def on_close(ids):
            batches.append(ids)
            closed.set()

        scheduler = RecurringScheduler(store, AsyncMock(), on_close, close_interval=0.05, disable_daily=True)
        scheduler.start()
        try:
            await asyncio.wait_for(closed.wait(), timeout=3)
        finally:
            await scheduler.stop()

        assert batches[0] == [5]

    @pytest.mark.asyncio
    async def test_stop_is_prompt(self):
        scheduler = RecurringScheduler(_store(), AsyncMock(), AsyncMock(),
                                       close_interval=60, reconfigure_interval=60)
        scheduler.start()
        await asyncio.sleep(0.05)
        assert scheduler.running is True

        await asyncio.wait_for(scheduler.stop(), timeout=1)
        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_start_twice(self):
        scheduler = RecurringScheduler(_store(), AsyncMock(), AsyncMock())
        scheduler.start()
        try:
            with pytest.raises(RuntimeError):
                scheduler.start()
        finally:
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_daily_disabled(self):
        on_daily = AsyncMock()
        scheduler = RecurringScheduler(_store(), on_daily, AsyncMock(),
                                       close_interval=60, disable_daily=True)
        scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()

        assert scheduler.next_fire is None
        on_daily.assert_not_awaited()
