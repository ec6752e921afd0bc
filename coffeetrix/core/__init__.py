"""Core module - partitioning, session lifecycle, scheduling and the invite flow."""

from .partitioner import Group, make_groups
from .lifecycle import SessionLifecycleManager, resolve_display_name
from .scheduler import RecurringScheduler, parse_daily_time, next_fire_time
from .coordinator import InviteCoordinator

__all__ = [
    'Group', 'make_groups',
    'SessionLifecycleManager', 'resolve_display_name',
    'RecurringScheduler', 'parse_daily_time', 'next_fire_time',
    'InviteCoordinator',
]
