"""
ORM table definitions for the SQLite session store.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class SettingsRow(Base):
    """Single-row table holding the daily invite time."""

    __tablename__ = "settings"
    __table_args__ = (CheckConstraint("id = 1", name="ck_settings_singleton"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    daily_time: Mapped[str] = mapped_column(String(5), nullable=False, default="09:00")


class ChatRow(Base):
    __tablename__ = "chats"

    chat_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.current_timestamp())


class DailySessionRow(Base):
    """One signup session per chat and calendar date."""

    __tablename__ = "daily_sessions"
    __table_args__ = (
        UniqueConstraint("chat_id", "session_date", name="uq_daily_sessions_chat_date"),
        Index("ix_daily_sessions_open_deadline", "closed", "signup_deadline"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chat_id: Mapped[str] = mapped_column(String(128), nullable=False)
    session_date: Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-MM-DD
    invite_message_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    signup_deadline: Mapped[datetime] = mapped_column(DateTime, nullable=False)  # naive UTC
    closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.current_timestamp())


class ParticipantRow(Base):
    __tablename__ = "participants"
    __table_args__ = (
        UniqueConstraint("session_id", "user_id", name="uq_participants_session_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(ForeignKey("daily_sessions.id"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    username: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.current_timestamp())
