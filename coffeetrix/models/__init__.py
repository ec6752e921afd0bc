"""Models module."""

from .session import SessionRecord, Participant, Member
from .results import JoinOutcome, FinalizationOutcome, FinalizationResult, InviteRunSummary
from .admin import DailyTimeUpdate, SettingsView, CloseRunSummary

__all__ = [
    'SessionRecord', 'Participant', 'Member',
    'JoinOutcome', 'FinalizationOutcome', 'FinalizationResult', 'InviteRunSummary',
    'DailyTimeUpdate', 'SettingsView', 'CloseRunSummary'
]
