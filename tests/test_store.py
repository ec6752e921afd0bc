"""
Tests for the SQLite session store.
"""

import pytest
from datetime import datetime, timedelta, timezone

from coffeetrix.storage import (
    DuplicateParticipantError,
    SessionNotFoundError,
    SQLiteSessionStore,
    StoreError,
)

NOW = datetime(2026, 10, 19, 8, 0, 0, tzinfo=timezone.utc)


class TestSettings:

    @pytest.mark.asyncio
    async def test_default_daily_time(self, store):
        assert await store.get_daily_time() == "08:00"

    @pytest.mark.asyncio
    async def test_defaults_do_not_overwrite(self, store):
        await store.set_daily_time("07:30")
        await store.ensure_default_settings("08:00")
        assert await store.get_daily_time() == "07:30"

    @pytest.mark.asyncio
    async def test_missing_settings_row(self, tmp_path):
        s = SQLiteSessionStore(str(tmp_path / "empty.db"))
        await s.init()
        try:
            with pytest.raises(StoreError):
                await s.get_daily_time()
        finally:
            await s.close()

    @pytest.mark.asyncio
    async def test_uninitialized_store(self, tmp_path):
        s = SQLiteSessionStore(str(tmp_path / "never.db"))
        with pytest.raises(StoreError):
            await s.count_chats()


class TestChats:

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self, store):
        await store.upsert_chat("oc_1", "Team")
        await store.upsert_chat("oc_1", "Team renamed")
        await store.upsert_chat("oc_2", "Other")

        assert sorted(await store.list_chat_ids()) == ["oc_1", "oc_2"]
        assert await store.count_chats() == 2


class TestSessions:

    @pytest.mark.asyncio
    async def test_one_session_per_chat_and_date(self, store):
        first = await store.create_or_get_session("oc_1", "2026-10-19", NOW + timedelta(minutes=30))
        again = await store.create_or_get_session("oc_1", "2026-10-19", NOW + timedelta(minutes=30))
        other_day = await store.create_or_get_session("oc_1", "2026-10-20", NOW + timedelta(days=1))
        other_chat = await store.create_or_get_session("oc_2", "2026-10-19", NOW + timedelta(minutes=30))

        assert first == again
        assert len({first, other_day, other_chat}) == 3
        assert await store.count_sessions_by_date("2026-10-19") == 2

    @pytest.mark.asyncio
    async def test_deadline_only_moves_forward(self, store):
        deadline = NOW + timedelta(minutes=30)
        session_id = await store.create_or_get_session("oc_1", "2026-10-19", deadline)

        await store.create_or_get_session("oc_1", "2026-10-19", NOW + timedelta(minutes=10))
        assert (await store.get_session(session_id)).signup_deadline == deadline

        later = NOW + timedelta(minutes=45)
        await store.create_or_get_session("oc_1", "2026-10-19", later)
        assert (await store.get_session(session_id)).signup_deadline == later

    @pytest.mark.asyncio
    async def test_closed_session_deadline_not_extended(self, store):
        deadline = NOW + timedelta(minutes=30)
        session_id = await store.create_or_get_session("oc_1", "2026-10-19", deadline)
        await store.close_session(session_id)

        assert await store.create_or_get_session("oc_1", "2026-10-19", NOW + timedelta(hours=2)) == session_id
        record = await store.get_session(session_id)
        assert record.closed is True
        assert record.signup_deadline == deadline

    @pytest.mark.asyncio
    async def test_session_record(self, store):
        session_id = await store.create_or_get_session("oc_1", "2026-10-19", NOW)
        record = await store.get_session(session_id)

        assert record.chat_id == "oc_1"
        assert record.session_date == "2026-10-19"
        assert record.signup_deadline.tzinfo is not None
        assert record.closed is False
        assert record.has_invite is False
        assert await store.get_session_info(session_id) == ("oc_1", "2026-10-19")

    @pytest.mark.asyncio
    async def test_invite_reference(self, store):
        session_id = await store.create_or_get_session("oc_1", "2026-10-19", NOW)
        await store.set_invite_reference(session_id, "om_123")

        record = await store.get_session_by_chat_date("oc_1", "2026-10-19")
        assert record.session_id == session_id
        assert record.invite_ref == "om_123"
        assert record.has_invite is True

    @pytest.mark.asyncio
    async def test_unknown_session(self, store):
        with pytest.raises(SessionNotFoundError):
            await store.get_session(999)
        with pytest.raises(SessionNotFoundError):
            await store.get_session_by_chat_date("oc_1", "2026-10-19")
        with pytest.raises(SessionNotFoundError):
            await store.set_invite_reference(999, "om_1")
        with pytest.raises(SessionNotFoundError):
            await store.close_session(999)

    @pytest.mark.asyncio
    async def test_open_sessions_past_deadline(self, store):
        overdue = await store.create_or_get_session("oc_1", "2026-10-19", NOW - timedelta(seconds=10))
        await store.create_or_get_session("oc_2", "2026-10-19", NOW + timedelta(minutes=5))
        closed = await store.create_or_get_session("oc_3", "2026-10-19", NOW - timedelta(minutes=1))
        await store.close_session(closed)

        assert await store.get_open_sessions_past_deadline(NOW) == [overdue]

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, store):
        session_id = await store.create_or_get_session("oc_1", "2026-10-19", NOW)

        assert await store.close_session(session_id) is True
        assert await store.close_session(session_id) is False
        assert (await store.get_session(session_id)).closed is True


class TestParticipants:

    @pytest.mark.asyncio
    async def test_add_and_list(self, store):
        session_id = await store.create_or_get_session("oc_1", "2026-10-19", NOW)
        await store.add_participant(session_id, "ou_a", "ada", "Ada Lovelace")
        await store.add_participant(session_id, "ou_b", "", "id:ou_b")

        participants = await store.get_participants(session_id)
        assert [p.user_id for p in participants] == ["ou_a", "ou_b"]
        assert participants[0].display_name == "Ada Lovelace"
        assert participants[0].username == "ada"
        assert await store.is_participant(session_id, "ou_a") is True
        assert await store.is_participant(session_id, "ou_c") is False

    @pytest.mark.asyncio
    async def test_duplicate_participant(self, store):
        session_id = await store.create_or_get_session("oc_1", "2026-10-19", NOW)
        await store.add_participant(session_id, "ou_a", "ada", "Ada")

        with pytest.raises(DuplicateParticipantError):
            await store.add_participant(session_id, "ou_a", "ada", "Ada")
        assert len(await store.get_participants(session_id)) == 1

    @pytest.mark.asyncio
    async def test_participant_for_unknown_session(self, store):
        with pytest.raises(SessionNotFoundError):
            await store.add_participant(999, "ou_a", "ada", "Ada")

    @pytest.mark.asyncio
    async def test_same_member_in_different_sessions(self, store):
        today = await store.create_or_get_session("oc_1", "2026-10-19", NOW)
        tomorrow = await store.create_or_get_session("oc_1", "2026-10-20", NOW + timedelta(days=1))
        await store.add_participant(today, "ou_a", "ada", "Ada")
        await store.add_participant(tomorrow, "ou_a", "ada", "Ada")

        assert await store.is_participant(tomorrow, "ou_a") is True
