"""
Shared test fixtures and configuration.
"""

import pytest
import pytest_asyncio
import os
from datetime import datetime, timedelta, timezone

# Set test environment variables before importing app modules
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("DATABASE_PATH", "/tmp/coffeetrix_test_data/coffeetrix.db")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from coffeetrix.channels import Notifier
from coffeetrix.storage import SQLiteSessionStore


class RecordingNotifier(Notifier):
    """Notifier that keeps everything it was asked to post."""

    def __init__(self):
        self.invites = []  # (chat_id, text, action_token, button_text)
        self.texts = []  # (chat_id, text)
        self.fail_chats = set()
        self._counter = 0

    def _next_ref(self) -> str:
        self._counter += 1
        return f"om_{self._counter}"

    async def post_invite(self, chat_id, text, action_token, button_text):
        if chat_id in self.fail_chats:
            raise ConnectionError(f"chat {chat_id} unreachable")
        self.invites.append((chat_id, text, action_token, button_text))
        return self._next_ref()

    async def post_text(self, chat_id, text):
        if chat_id in self.fail_chats:
            raise ConnectionError(f"chat {chat_id} unreachable")
        self.texts.append((chat_id, text))
        return self._next_ref()

    def texts_for(self, chat_id):
        return [text for cid, text in self.texts if cid == chat_id]


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 19, 8, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest_asyncio.fixture
async def store(tmp_path):
    """Fresh SQLite store in a temporary file."""
    s = SQLiteSessionStore(str(tmp_path / "coffeetrix.db"))
    await s.init()
    await s.ensure_default_settings("08:00")
    yield s
    await s.close()
