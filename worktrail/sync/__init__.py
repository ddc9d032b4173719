from __future__ import annotations

from .cancel import CancellationToken, SyncCancelled
from .daemon import AutoSync, run_auto_sync
from .events import (
    Cancelled,
    Completed,
    Failed,
    Progress,
    ProgressBus,
    SourceCompleted,
    Started,
    SyncEvent,
    is_terminal,
)
from .orchestrator import (
    SyncAlreadyRunning,
    SyncHandle,
    SyncOrchestrator,
    SyncOutcome,
    SyncSources,
    build_sources,
    determine_window,
)

__all__ = [
    "AutoSync",
    "CancellationToken",
    "Cancelled",
    "Completed",
    "Failed",
    "Progress",
    "ProgressBus",
    "SourceCompleted",
    "Started",
    "SyncAlreadyRunning",
    "SyncCancelled",
    "SyncEvent",
    "SyncHandle",
    "SyncOrchestrator",
    "SyncOutcome",
    "SyncSources",
    "build_sources",
    "determine_window",
    "is_terminal",
    "run_auto_sync",
]
