"""
SQLite Session Store Implementation.
Keeps chats, sessions and participants in a single SQLite file through
SQLAlchemy's asyncio extension (aiosqlite driver).

All writes go through one asyncio.Lock so the store has a single writer at a
time; reads run concurrently.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, List, Optional, Tuple

from sqlalchemy import event, func, insert, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from ..models import Participant, SessionRecord
from .errors import (
    DuplicateParticipantError,
    SessionNotFoundError,
    StoreBusyError,
    StoreError,
    StoreUnavailableError,
)
from .interface import SessionStore
from .tables import Base, ChatRow, DailySessionRow, ParticipantRow, SettingsRow

logger = logging.getLogger(__name__)

_SESSION_COLUMNS = (
    DailySessionRow.id,
    DailySessionRow.chat_id,
    DailySessionRow.session_date,
    DailySessionRow.invite_message_id,
    DailySessionRow.signup_deadline,
    DailySessionRow.closed,
)


def _to_db(value: datetime) -> datetime:
    """SQLite has no timezone support: store naive UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _is_busy(error: OperationalError) -> bool:
    message = str(error.orig if error.orig is not None else error).lower()
    return "locked" in message or "busy" in message


def _to_record(row) -> SessionRecord:
    return SessionRecord(
        session_id=row.id,
        chat_id=row.chat_id,
        session_date=row.session_date,
        invite_ref=row.invite_message_id,
        signup_deadline=_from_db(row.signup_deadline),
        closed=bool(row.closed),
    )


def _configure_connection(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class SQLiteSessionStore(SessionStore):
    """
    SessionStore backed by a SQLite database file.
    """

    def __init__(self, database_path: str = "./data/coffeetrix.db", busy_timeout: float = 5.0):
        """
        Args:
            database_path: Path of the SQLite file (parent directories are created)
            busy_timeout: Seconds SQLite waits on a locked database before failing
        """
        self.database_path = database_path
        self.busy_timeout = busy_timeout
        self._engine: Optional[AsyncEngine] = None
        self._write_lock = asyncio.Lock()

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise StoreUnavailableError("Store not initialized. Call init() first.")
        return self._engine

    async def init(self) -> None:
        path = Path(self.database_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        self._engine = create_async_engine(
            f"sqlite+aiosqlite:///{path}",
            connect_args={"timeout": self.busy_timeout},
        )
        event.listen(self._engine.sync_engine, "connect", _configure_connection)

        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Cannot open store at {path}: {e}") from e

        logger.info(f"Session store ready at {path}")

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncConnection]:
        """Run a transaction, translating driver errors into store errors."""
        try:
            async with self.engine.begin() as conn:
                yield conn
        except IntegrityError:
            raise
        except OperationalError as e:
            if _is_busy(e):
                raise StoreBusyError(str(e)) from e
            raise StoreUnavailableError(str(e)) from e
        except SQLAlchemyError as e:
            raise StoreUnavailableError(str(e)) from e

    @asynccontextmanager
    async def _writing(self) -> AsyncIterator[AsyncConnection]:
        async with self._write_lock:
            async with self._transaction() as conn:
                yield conn

    # Settings

    async def ensure_default_settings(self, default_time: str) -> None:
        stmt = sqlite_insert(SettingsRow).values(id=1, daily_time=default_time)
        stmt = stmt.on_conflict_do_nothing(index_elements=[SettingsRow.id])
        async with self._writing() as conn:
            await conn.execute(stmt)

    async def get_daily_time(self) -> str:
        async with self._transaction() as conn:
            result = await conn.execute(select(SettingsRow.daily_time).where(SettingsRow.id == 1))
            daily_time = result.scalar_one_or_none()
        if daily_time is None:
            raise StoreError("Settings row missing. Call ensure_default_settings() first.")
        return daily_time

    async def set_daily_time(self, daily_time: str) -> None:
        stmt = sqlite_insert(SettingsRow).values(id=1, daily_time=daily_time)
        stmt = stmt.on_conflict_do_update(
            index_elements=[SettingsRow.id],
            set_={"daily_time": stmt.excluded.daily_time},
        )
        async with self._writing() as conn:
            await conn.execute(stmt)

    # Chats

    async def upsert_chat(self, chat_id: str, title: str) -> None:
        stmt = sqlite_insert(ChatRow).values(chat_id=chat_id, title=title)
        stmt = stmt.on_conflict_do_update(
            index_elements=[ChatRow.chat_id],
            set_={"title": stmt.excluded.title},
        )
        async with self._writing() as conn:
            await conn.execute(stmt)

    async def list_chat_ids(self) -> List[str]:
        async with self._transaction() as conn:
            result = await conn.execute(select(ChatRow.chat_id).order_by(ChatRow.joined_at, ChatRow.chat_id))
            return list(result.scalars().all())

    async def count_chats(self) -> int:
        async with self._transaction() as conn:
            result = await conn.execute(select(func.count()).select_from(ChatRow))
            return int(result.scalar_one())

    # Sessions

    async def create_or_get_session(self, chat_id: str, session_date: str, deadline: datetime) -> int:
        db_deadline = _to_db(deadline)
        async with self._write_lock:
            try:
                async with self._transaction() as conn:
                    result = await conn.execute(
                        insert(DailySessionRow).values(
                            chat_id=chat_id,
                            session_date=session_date,
                            signup_deadline=db_deadline,
                            closed=False,
                        )
                    )
                    session_id = result.inserted_primary_key[0]
                logger.debug(f"Created session {session_id} chat={chat_id} date={session_date}")
                return session_id
            except IntegrityError:
                # Another creator won the (chat_id, session_date) race
                logger.debug(f"Session exists chat={chat_id} date={session_date}, reusing it")

            async with self._transaction() as conn:
                result = await conn.execute(
                    select(DailySessionRow.id).where(
                        DailySessionRow.chat_id == chat_id,
                        DailySessionRow.session_date == session_date,
                    )
                )
                session_id = result.scalar_one_or_none()
                if session_id is None:
                    raise StoreError(
                        f"Unique conflict but no session row found (chat={chat_id} date={session_date})"
                    )
                # Deadlines only move forward, and never on a closed session
                await conn.execute(
                    update(DailySessionRow)
                    .where(
                        DailySessionRow.id == session_id,
                        DailySessionRow.closed.is_(False),
                        DailySessionRow.signup_deadline < db_deadline,
                    )
                    .values(signup_deadline=db_deadline)
                )
            return session_id

    async def set_invite_reference(self, session_id: int, ref: str) -> None:
        async with self._writing() as conn:
            result = await conn.execute(
                update(DailySessionRow)
                .where(DailySessionRow.id == session_id)
                .values(invite_message_id=ref)
            )
            if result.rowcount == 0:
                raise SessionNotFoundError(f"Session {session_id} not found")

    async def get_session_by_chat_date(self, chat_id: str, session_date: str) -> SessionRecord:
        async with self._transaction() as conn:
            result = await conn.execute(
                select(*_SESSION_COLUMNS).where(
                    DailySessionRow.chat_id == chat_id,
                    DailySessionRow.session_date == session_date,
                )
            )
            row = result.first()
        if row is None:
            raise SessionNotFoundError(f"No session for chat={chat_id} date={session_date}")
        return _to_record(row)

    async def get_session(self, session_id: int) -> SessionRecord:
        async with self._transaction() as conn:
            result = await conn.execute(select(*_SESSION_COLUMNS).where(DailySessionRow.id == session_id))
            row = result.first()
        if row is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return _to_record(row)

    async def get_session_info(self, session_id: int) -> Tuple[str, str]:
        record = await self.get_session(session_id)
        return record.chat_id, record.session_date

    async def get_open_sessions_past_deadline(self, now: datetime) -> List[int]:
        async with self._transaction() as conn:
            result = await conn.execute(
                select(DailySessionRow.id)
                .where(
                    DailySessionRow.closed.is_(False),
                    DailySessionRow.signup_deadline <= _to_db(now),
                )
                .order_by(DailySessionRow.id)
            )
            return list(result.scalars().all())

    async def close_session(self, session_id: int) -> bool:
        async with self._writing() as conn:
            result = await conn.execute(
                update(DailySessionRow)
                .where(DailySessionRow.id == session_id, DailySessionRow.closed.is_(False))
                .values(closed=True)
            )
            if result.rowcount:
                return True
            exists = await conn.execute(select(DailySessionRow.id).where(DailySessionRow.id == session_id))
            if exists.scalar_one_or_none() is None:
                raise SessionNotFoundError(f"Session {session_id} not found")
            return False

    async def count_sessions_by_date(self, session_date: str) -> int:
        async with self._transaction() as conn:
            result = await conn.execute(
                select(func.count()).select_from(DailySessionRow).where(DailySessionRow.session_date == session_date)
            )
            return int(result.scalar_one())

    # Participants

    async def add_participant(self, session_id: int, user_id: str, username: str, display_name: str) -> None:
        try:
            async with self._writing() as conn:
                await conn.execute(
                    insert(ParticipantRow).values(
                        session_id=session_id,
                        user_id=user_id,
                        username=username,
                        display_name=display_name,
                    )
                )
        except IntegrityError as e:
            if "unique" in str(e.orig).lower():
                raise DuplicateParticipantError(
                    f"Member {user_id} already joined session {session_id}"
                ) from e
            raise SessionNotFoundError(f"Session {session_id} not found") from e

    async def is_participant(self, session_id: int, user_id: str) -> bool:
        async with self._transaction() as conn:
            result = await conn.execute(
                select(func.count()).select_from(ParticipantRow).where(
                    ParticipantRow.session_id == session_id,
                    ParticipantRow.user_id == user_id,
                )
            )
            return int(result.scalar_one()) > 0

    async def get_participants(self, session_id: int) -> List[Participant]:
        async with self._transaction() as conn:
            result = await conn.execute(
                select(
                    ParticipantRow.user_id,
                    ParticipantRow.username,
                    ParticipantRow.display_name,
                    ParticipantRow.joined_at,
                )
                .where(ParticipantRow.session_id == session_id)
                .order_by(ParticipantRow.id)
            )
            rows = result.all()

        return [
            Participant(
                user_id=row.user_id,
                username=row.username or "",
                display_name=row.display_name or "",
                joined_at=_from_db(row.joined_at) if row.joined_at else None,
            )
            for row in rows
        ]
