"""
Runtime wiring - builds the store, lifecycle manager, coordinator and
scheduler from settings and holds them for the HTTP layer and the CLI.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

from ..channels import FeishuBot, Notifier
from ..storage import SessionStore, SQLiteSessionStore
from .coordinator import InviteCoordinator
from .lifecycle import SessionLifecycleManager
from .scheduler import RecurringScheduler

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Components of one running bot."""
    store: SessionStore
    notifier: Notifier
    lifecycle: SessionLifecycleManager
    coordinator: InviteCoordinator
    scheduler: RecurringScheduler


def create_notifier(config: Any) -> Notifier:
    """
    Build the Feishu notifier.

    Raises:
        RuntimeError: Feishu credentials are not configured
    """
    if not config.feishu_app_id or not config.feishu_app_secret:
        raise RuntimeError("FEISHU_APP_ID and FEISHU_APP_SECRET must be set")
    return FeishuBot(
        app_id=config.feishu_app_id,
        app_secret=config.feishu_app_secret,
        verification_token=config.feishu_verification_token,
        encrypt_key=config.feishu_encrypt_key,
    )


def build_context(config: Any, notifier: Optional[Notifier] = None,
                  store: Optional[SessionStore] = None) -> AppContext:
    """
    Wire all components from settings. Nothing is started here.

    Args:
        config: Settings object
        notifier: Override the Feishu notifier (tests, dry runs)
        store: Override the SQLite store
    """
    store = store or SQLiteSessionStore(config.database_path)
    notifier = notifier or create_notifier(config)

    lifecycle = SessionLifecycleManager(
        store,
        retry_attempts=config.store_retry_attempts,
        retry_delay=config.store_retry_delay_seconds,
    )
    coordinator = InviteCoordinator(
        store,
        lifecycle,
        notifier,
        signup_window=timedelta(seconds=config.signup_window_seconds),
        day_timezone=config.day_boundary_timezone,
        test_mode=config.test_mode,
    )

    async def on_daily_invite() -> None:
        await coordinator.send_daily_invites()

    scheduler = RecurringScheduler(
        store,
        on_daily_invite=on_daily_invite,
        on_close_sessions=coordinator.close_sessions,
        close_interval=config.effective_close_interval,
        reconfigure_interval=config.reconfigure_interval_seconds,
        disable_daily=config.test_mode,
    )
    return AppContext(
        store=store,
        notifier=notifier,
        lifecycle=lifecycle,
        coordinator=coordinator,
        scheduler=scheduler,
    )


async def open_store(ctx: AppContext, config: Any) -> None:
    """Open the store, seed settings and log what it holds."""
    await ctx.store.init()
    await ctx.store.ensure_default_settings(config.default_daily_time)

    daily_time = await ctx.store.get_daily_time()
    chat_count = await ctx.store.count_chats()
    today = ctx.coordinator.session_date()
    sessions_today = await ctx.store.count_sessions_by_date(today)
    logger.info(
        f"Store opened: daily_time={daily_time} chats={chat_count} sessions_today={sessions_today}"
    )


async def start_runtime(ctx: AppContext, config: Any) -> None:
    """Open the store and start the scheduler loops."""
    await open_store(ctx, config)
    if config.test_mode:
        logger.info("Test mode: sending invites immediately, daily loop disabled")
        await ctx.coordinator.send_daily_invites()
    ctx.scheduler.start()


async def stop_runtime(ctx: AppContext) -> None:
    await ctx.scheduler.stop()
    await ctx.store.close()


# Global context instance
_context: Optional[AppContext] = None


def init_context(ctx: AppContext) -> None:
    """Install the global context used by the API routes."""
    global _context
    _context = ctx


def get_context() -> AppContext:
    """
    Get the global context.

    Raises:
        RuntimeError: If the context has not been initialized
    """
    if _context is None:
        raise RuntimeError("Runtime not initialized. Call init_context() first.")
    return _context


def reset_context() -> None:
    global _context
    _context = None
