from __future__ import annotations

from ._store import EventStore
from .types import (
    EVENT_TYPE_BROWSER,
    EVENT_TYPE_CALENDAR,
    EVENT_TYPE_VERSION_CONTROL,
    EVENT_TYPES,
    RULE_TYPES,
    BrowserPayload,
    CalendarPayload,
    Contact,
    Event,
    EventPayload,
    Project,
    ProjectRule,
    SyncStatus,
    VersionControlPayload,
    WorkDomain,
)

__all__ = [
    "EVENT_TYPES",
    "EVENT_TYPE_BROWSER",
    "EVENT_TYPE_CALENDAR",
    "EVENT_TYPE_VERSION_CONTROL",
    "RULE_TYPES",
    "BrowserPayload",
    "CalendarPayload",
    "Contact",
    "Event",
    "EventPayload",
    "EventStore",
    "Project",
    "ProjectRule",
    "SyncStatus",
    "VersionControlPayload",
    "WorkDomain",
]
