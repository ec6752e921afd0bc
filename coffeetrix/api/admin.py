"""
Admin API - Operator endpoints for the schedule and manual triggers.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status

from ..config import settings
from ..core.runtime import AppContext
from ..models import CloseRunSummary, DailyTimeUpdate, InviteRunSummary, SettingsView
from ..storage import StoreError
from .deps import get_runtime, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


async def _settings_view(ctx: AppContext) -> SettingsView:
    try:
        daily_time = await ctx.store.get_daily_time()
    except StoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return SettingsView(
        daily_time=daily_time,
        signup_window_minutes=settings.signup_window_seconds / 60,
        close_interval_seconds=settings.effective_close_interval,
        test_mode=settings.test_mode,
    )


@router.get("/settings", response_model=SettingsView)
async def get_settings(ctx: AppContext = Depends(get_runtime)):
    """Current scheduling settings."""
    return await _settings_view(ctx)


@router.put("/daily-time", response_model=SettingsView)
async def set_daily_time(update: DailyTimeUpdate, ctx: AppContext = Depends(get_runtime)):
    """
    Change the daily invite time. The running scheduler picks it up on its
    next reconfiguration check.
    """
    try:
        await ctx.store.set_daily_time(update.daily_time)
    except StoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    logger.info(f"Daily time set to {update.daily_time}")
    return await _settings_view(ctx)


@router.post("/invites", response_model=InviteRunSummary)
async def trigger_invites(ctx: AppContext = Depends(get_runtime)):
    """Send today's invitations now. Chats already invited today are skipped."""
    return await ctx.coordinator.send_daily_invites()


@router.post("/sessions/close-due", response_model=CloseRunSummary)
async def close_due_sessions(ctx: AppContext = Depends(get_runtime)):
    """Run one closer tick immediately."""
    closed = await ctx.scheduler.close_due_sessions()
    return CloseRunSummary(closed_session_ids=closed)
