"""
Logging setup for the Coffeetrix service.

Console lines are colored and carry the chat/session context of the record;
the rotating log file holds one JSON object per line with the same context as
top-level keys. Context travels in the record's `extra_fields` dict, attached
either by `SessionLogAdapter` or by `extra={"extra_fields": {...}}`.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable

# Shown on console lines, in this order, when present
CONSOLE_CONTEXT_KEYS = ("chat_id", "session_id", "session_date")

# Payload keys whose values never reach the log
REDACTED_KEYS = ("token", "secret", "encrypt", "authorization")

QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite", "sqlalchemy.engine", "uvicorn.access")


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    return getattr(record, "extra_fields", None) or {}


class ColoredFormatter(logging.Formatter):
    """Console formatter: colored level name plus a [chat=... session=...] suffix."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        original = record.levelname
        color = self.COLORS.get(original, self.RESET)
        record.levelname = f"{color}{original:8s}{self.RESET}"
        try:
            line = super().format(record)
        finally:
            # The JSON file handler formats the same record afterwards
            record.levelname = original

        context = _context(record)
        shown = [f"{key.split('_')[0]}={context[key]}" for key in CONSOLE_CONTEXT_KEYS if key in context]
        if shown:
            line = f"{line} [{' '.join(shown)}]"
        return line


class JSONFormatter(logging.Formatter):
    """File formatter: one JSON object per record, context merged in."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_context(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(config: Any) -> None:
    """
    Configure the root logger from settings.

    Replaces any handlers already installed, so calling it again (CLI after
    import, app restart in tests) does not duplicate output.
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    if config.log_console_enabled:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(ColoredFormatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        root.addHandler(console)

    if config.log_file_enabled:
        path = Path(config.log_file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=path, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
        )
        file_handler.setFormatter(JSONFormatter())
        root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.info(f"Logging ready: level={logging.getLevelName(level)} file={config.log_file_enabled}")


class SessionLogAdapter(logging.LoggerAdapter):
    """
    Binds chat/session context to a logger.

        log = SessionLogAdapter(logger, chat_id="oc_1", session_date="2026-10-19")
        log.info("Invite posted", extra={"extra_fields": {"session_id": 3}})
    """

    def __init__(self, logger: logging.Logger, **context: Any):
        super().__init__(logger, context)

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.setdefault("extra", {})
        extra["extra_fields"] = {**self.extra, **extra.get("extra_fields", {})}
        return msg, kwargs


def redact(data: Any, keys: Iterable[str] = REDACTED_KEYS) -> Any:
    """Copy of `data` with values under any key containing one of `keys` masked."""
    keys = tuple(keys)
    if isinstance(data, dict):
        return {
            k: "***" if any(s in str(k).lower() for s in keys) else redact(v, keys)
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [redact(item, keys) for item in data]
    return data


def payload_for_log(body: Any, max_length: int = 5000) -> str:
    """Redacted, length-bounded JSON rendering of a webhook body."""
    text = json.dumps(redact(body), ensure_ascii=False, default=str)
    if len(text) > max_length:
        text = f"{text[:max_length]}... ({len(text)} chars)"
    return text
