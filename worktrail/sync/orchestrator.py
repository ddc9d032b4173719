from __future__ import annotations

import datetime as dt
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Final

from ..config import WorktrailConfig
from ..errors import StoreLockTimeout, WorktrailError
from ..sources.browser import BrowserHistorySource
from ..sources.calendar import CalendarSource, JsonCalendarProvider
from ..sources.git import VersionControlSource
from ..sources.types import SyncWindow
from ..store import EventStore
from ..store.settings import SETTING_BROWSER_PROFILE_PATH, SETTING_GIT_DEV_FOLDER
from . import phases
from .cancel import CancellationToken, SyncCancelled
from .events import (
    SOURCE_BROWSER,
    SOURCE_CALENDAR,
    SOURCE_VERSION_CONTROL,
    STATUS_FAILED,
    Cancelled,
    Completed,
    Failed,
    Progress,
    ProgressBus,
    SourceCompleted,
    Started,
    SyncEvent,
)

logger = logging.getLogger(__name__)

OUTCOME_COMPLETED: Final = "completed"
OUTCOME_CANCELLED: Final = "cancelled"
OUTCOME_FAILED: Final = "failed"

# Databases with a pass running in this process.
_active_lock = threading.Lock()
_active_paths: set[str] = set()


class SyncAlreadyRunning(WorktrailError):
    """A sync pass for this store is already running in this process."""


@dataclass
class SyncSources:
    calendar: CalendarSource
    version_control: VersionControlSource
    browser: BrowserHistorySource


@dataclass
class SyncOutcome:
    status: str
    window: SyncWindow | None = None
    total_new: int = 0
    total_updated: int = 0
    duration_ms: int = 0
    failures: dict[str, str] = field(default_factory=dict)
    error: str | None = None


def build_sources(store: EventStore, config: WorktrailConfig) -> SyncSources:
    calendar_path = config.calendar_export_path
    return SyncSources(
        calendar=CalendarSource(JsonCalendarProvider(calendar_path) if calendar_path else None),
        version_control=VersionControlSource(
            store.get_setting(SETTING_GIT_DEV_FOLDER), max_depth=config.git_max_depth
        ),
        browser=BrowserHistorySource(store.get_setting(SETTING_BROWSER_PROFILE_PATH)),
    )


def determine_window(
    store: EventStore, now: dt.datetime, *, initial_days: int = 90
) -> SyncWindow:
    """[last sync, now], or the last ``initial_days`` days before the first sync."""

    status = store.get_sync_status()
    if status.last_sync_time is None:
        return SyncWindow(start=now - dt.timedelta(days=initial_days), end=now)
    return SyncWindow(start=min(status.last_sync_time, now), end=now)


class SyncHandle:
    """A sync pass running on a background thread."""

    def __init__(self, thread: threading.Thread, token: CancellationToken) -> None:
        self.thread = thread
        self.token = token
        self._outcome: SyncOutcome | None = None

    def cancel(self) -> None:
        self.token.cancel()

    @property
    def done(self) -> bool:
        return not self.thread.is_alive()

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout)

    def wait(self, timeout: float | None = None) -> bool:
        self.thread.join(timeout)
        return self.done

    def result(self, timeout: float | None = None) -> SyncOutcome:
        if not self.wait(timeout):
            raise TimeoutError("sync still running")
        if self._outcome is None:
            raise RuntimeError("sync thread exited without a result")
        return self._outcome


class SyncOrchestrator:
    """Runs calendar, version-control and browser phases in sequence.

    Each phase is isolated: its failure is reported on the bus and the next
    phase still runs. Cancellation is checked between phases and between the
    items of a phase.
    """

    def __init__(
        self,
        store: EventStore,
        *,
        bus: ProgressBus | None = None,
        config: WorktrailConfig | None = None,
        sources: SyncSources | None = None,
        clock: Callable[[], dt.datetime] | None = None,
    ) -> None:
        self.store = store
        self.config = config or WorktrailConfig()
        self.bus = bus or ProgressBus(self.config.progress_queue_size)
        self.sources = sources
        self._clock = clock

    def _now(self) -> dt.datetime:
        if self._clock is not None:
            return self._clock()
        return self.store.current_time()

    def _emit(self, event: SyncEvent) -> None:
        self.bus.publish(event)

    def _claim(self) -> str:
        key = str(self.store.db_path.resolve())
        with _active_lock:
            if key in _active_paths:
                raise SyncAlreadyRunning("a sync is already in progress")
            _active_paths.add(key)
        return key

    @staticmethod
    def _release(key: str) -> None:
        with _active_lock:
            _active_paths.discard(key)

    def start(self, token: CancellationToken | None = None) -> SyncHandle:
        """Start a pass on a background thread and return at once."""

        key = self._claim()
        token = token or CancellationToken()
        handle: SyncHandle

        def target() -> None:
            try:
                handle._outcome = self._run(token)
            finally:
                self._release(key)

        thread = threading.Thread(target=target, name="worktrail-sync", daemon=True)
        handle = SyncHandle(thread, token)
        thread.start()
        return handle

    def run(self, token: CancellationToken | None = None) -> SyncOutcome:
        key = self._claim()
        try:
            return self._run(token or CancellationToken())
        finally:
            self._release(key)

    def _run(self, token: CancellationToken) -> SyncOutcome:
        started = time.monotonic()
        now = self._now()
        self._emit(Started(now))
        try:
            window = determine_window(self.store, now, initial_days=self.config.initial_sync_days)
            sources = self.sources or build_sources(self.store, self.config)
            self.store.update_sync_status(in_progress=True)
        except Exception as exc:
            logger.exception("sync failed before any source ran")
            return self._fail(exc)
        logger.info("syncing %s .. %s", window.start.isoformat(), window.end.isoformat())

        outcome = SyncOutcome(status=OUTCOME_COMPLETED, window=window)
        ctx = phases.PhaseContext(store=self.store, window=window, token=token, emit=self._emit)
        plan = (
            (SOURCE_CALENDAR, lambda: phases.sync_calendar(ctx, sources.calendar)),
            (
                SOURCE_VERSION_CONTROL,
                lambda: phases.sync_version_control(ctx, sources.version_control),
            ),
            (SOURCE_BROWSER, lambda: phases.sync_browser(ctx, sources.browser)),
        )
        try:
            for source, phase in plan:
                token.raise_if_cancelled()
                try:
                    result = phase()
                except (SyncCancelled, StoreLockTimeout):
                    raise
                except Exception as exc:
                    message = str(exc) or type(exc).__name__
                    logger.warning("%s sync failed: %s", source, message)
                    logger.debug("%s sync failure", source, exc_info=True)
                    outcome.failures[source] = message
                    self._emit(Progress(source, STATUS_FAILED, message))
                    self._emit(Failed(source, message))
                    self._emit(SourceCompleted(source, 0, 0))
                    continue
                outcome.total_new += result.new_count
                outcome.total_updated += result.updated_count
                self._emit(SourceCompleted(source, result.new_count, result.updated_count))
            token.raise_if_cancelled()
        except SyncCancelled:
            logger.info("sync cancelled")
            self._clear_in_progress()
            self._emit(Cancelled())
            outcome.status = OUTCOME_CANCELLED
            outcome.duration_ms = _elapsed_ms(started)
            return outcome
        except StoreLockTimeout as exc:
            logger.error("sync aborted: %s", exc)
            return self._fail(exc, outcome)
        except BaseException:
            # KeyboardInterrupt or SystemExit: leave the store idle, then propagate.
            logger.warning("sync interrupted")
            self._clear_in_progress()
            self._emit(Cancelled())
            raise

        try:
            self.store.update_sync_status(in_progress=False, last_sync_time=window.end)
        except Exception as exc:
            logger.exception("failed to record sync completion")
            return self._fail(exc, outcome)
        outcome.duration_ms = _elapsed_ms(started)
        self._emit(Completed(outcome.total_new, outcome.total_updated, outcome.duration_ms))
        logger.info(
            "sync completed: %d new, %d updated in %d ms",
            outcome.total_new,
            outcome.total_updated,
            outcome.duration_ms,
        )
        return outcome

    def _clear_in_progress(self) -> None:
        try:
            self.store.update_sync_status(in_progress=False)
        except WorktrailError as exc:
            logger.error("failed to clear sync_in_progress: %s", exc)

    def _fail(self, exc: BaseException, outcome: SyncOutcome | None = None) -> SyncOutcome:
        message = str(exc) or type(exc).__name__
        self._clear_in_progress()
        self._emit(Failed(None, message))
        outcome = outcome or SyncOutcome(status=OUTCOME_FAILED)
        outcome.status = OUTCOME_FAILED
        outcome.error = message
        return outcome


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
