from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from .. import normalize
from ..errors import StoreLockTimeout, WorktrailError
from ..sources.browser import BrowserHistorySource
from ..sources.calendar import CalendarSource
from ..sources.git import VersionControlSource
from ..sources.types import SyncWindow
from ..store import Event, EventStore
from .cancel import CancellationToken
from .events import (
    SOURCE_BROWSER,
    SOURCE_CALENDAR,
    SOURCE_VERSION_CONTROL,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_STARTING,
    Progress,
    SyncEvent,
)

logger = logging.getLogger(__name__)

MAX_LOGGED_FAILURES = 3


@dataclass
class PhaseResult:
    new_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0


class ItemFailures:
    """Counts per-item failures, logging the first few in detail."""

    def __init__(self, source: str, limit: int = MAX_LOGGED_FAILURES) -> None:
        self.source = source
        self.limit = limit
        self.count = 0

    def record(self, what: str, exc: BaseException) -> None:
        self.count += 1
        if self.count <= self.limit:
            logger.warning("%s: failed to sync %s: %s", self.source, what, exc)

    def summarize(self) -> None:
        hidden = self.count - self.limit
        if hidden > 0:
            logger.warning("%s: %d more items failed to sync", self.source, hidden)


@dataclass
class PhaseContext:
    store: EventStore
    window: SyncWindow
    token: CancellationToken
    emit: Callable[[SyncEvent], None]


def _upsert(ctx: PhaseContext, event: Event, result: PhaseResult) -> None:
    _, was_new = ctx.store.upsert_event(event)
    if was_new:
        result.new_count += 1
    else:
        result.updated_count += 1


def _completed(ctx: PhaseContext, source: str, result: PhaseResult) -> PhaseResult:
    ctx.emit(
        Progress(
            source,
            STATUS_COMPLETED,
            f"{result.new_count} new, {result.updated_count} updated",
        )
    )
    return result


def sync_calendar(ctx: PhaseContext, source: CalendarSource) -> PhaseResult:
    ctx.emit(Progress(SOURCE_CALENDAR, STATUS_STARTING, "Checking calendar access"))
    records = source.fetch(ctx.window)
    ctx.emit(
        Progress(SOURCE_CALENDAR, STATUS_IN_PROGRESS, f"Syncing {len(records)} calendar events")
    )
    result = PhaseResult()
    failures = ItemFailures(SOURCE_CALENDAR)
    for record in records:
        ctx.token.raise_if_cancelled()
        organizer_id = None
        if record.organizer:
            try:
                organizer_id = ctx.store.upsert_contact(record.organizer, record.organizer_email)
            except StoreLockTimeout:
                raise
            except (WorktrailError, ValueError) as exc:
                logger.warning("failed to record organizer %r: %s", record.organizer, exc)
        try:
            _upsert(ctx, normalize.calendar_event(record, organizer_id=organizer_id), result)
        except StoreLockTimeout:
            raise
        except (WorktrailError, ValueError) as exc:
            failures.record(f"event {record.event_id}", exc)
    failures.summarize()
    return _completed(ctx, SOURCE_CALENDAR, result)


def sync_version_control(ctx: PhaseContext, source: VersionControlSource) -> PhaseResult:
    ctx.emit(Progress(SOURCE_VERSION_CONTROL, STATUS_STARTING, "Discovering repositories"))
    repositories = source.discover()
    ctx.emit(
        Progress(
            SOURCE_VERSION_CONTROL,
            STATUS_IN_PROGRESS,
            f"Found {len(repositories)} repositories",
        )
    )
    result = PhaseResult()
    failures = ItemFailures(SOURCE_VERSION_CONTROL)
    for repo in repositories:
        ctx.token.raise_if_cancelled()
        try:
            activities = source.activities(repo, ctx.window)
        except (OSError, WorktrailError) as exc:
            logger.warning("skipping repository %s: %s", repo.local_path, exc)
            continue
        for activity in activities:
            ctx.token.raise_if_cancelled()
            try:
                _upsert(ctx, normalize.version_control_event(activity), result)
            except StoreLockTimeout:
                raise
            except (WorktrailError, ValueError) as exc:
                failures.record(f"{repo.repository_name} {activity.activity_type}", exc)
    failures.summarize()
    return _completed(ctx, SOURCE_VERSION_CONTROL, result)


def sync_browser(ctx: PhaseContext, source: BrowserHistorySource) -> PhaseResult:
    ctx.emit(Progress(SOURCE_BROWSER, STATUS_STARTING, "Reading browser history"))
    discovered = set(ctx.store.discovered_repository_paths())
    orgs = ctx.store.github_orgs()
    visits = source.fetch(ctx.window)
    ctx.emit(Progress(SOURCE_BROWSER, STATUS_IN_PROGRESS, f"Syncing {len(visits)} visits"))
    result = PhaseResult()
    failures = ItemFailures(SOURCE_BROWSER)
    for visit in visits:
        ctx.token.raise_if_cancelled()
        try:
            event = normalize.browser_event(visit)
            if not normalize.should_store_visit(event.repository_path, discovered, orgs):
                result.skipped_count += 1
                continue
            _upsert(ctx, event, result)
        except StoreLockTimeout:
            raise
        except (WorktrailError, ValueError) as exc:
            failures.record(visit.url, exc)
    failures.summarize()
    if result.skipped_count:
        logger.info("skipped %d visits to untracked repositories", result.skipped_count)
    return _completed(ctx, SOURCE_BROWSER, result)
