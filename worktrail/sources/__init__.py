from __future__ import annotations

from .browser import BrowserHistorySource, auto_detect_profile
from .calendar import CalendarProvider, CalendarSource, JsonCalendarProvider
from .git import GitRepositoryReader, RepositoryReader, VersionControlSource
from .types import (
    BrowserVisit,
    CalendarRecord,
    GitActivity,
    GitRepository,
    ReflogEntry,
    SyncWindow,
)

__all__ = [
    "BrowserHistorySource",
    "BrowserVisit",
    "CalendarProvider",
    "CalendarRecord",
    "CalendarSource",
    "GitActivity",
    "GitRepository",
    "GitRepositoryReader",
    "JsonCalendarProvider",
    "ReflogEntry",
    "RepositoryReader",
    "SyncWindow",
    "VersionControlSource",
    "auto_detect_profile",
]
