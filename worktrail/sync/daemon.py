from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Final

from ..config import WorktrailConfig
from ..store import EventStore
from .events import ProgressBus
from .orchestrator import SyncAlreadyRunning, SyncOrchestrator, SyncOutcome, SyncSources

logger = logging.getLogger(__name__)

MIN_ATTEMPT_SPACING_S: Final = 10.0


class AutoSync:
    """Decides whether a periodic tick should start a sync pass."""

    def __init__(
        self,
        config: WorktrailConfig,
        *,
        bus: ProgressBus | None = None,
        sources: SyncSources | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.bus = bus
        self.sources = sources
        self._monotonic = monotonic
        self._last_attempt: float | None = None

    def should_run(self, store: EventStore) -> bool:
        if self._last_attempt is not None:
            if self._monotonic() - self._last_attempt < MIN_ATTEMPT_SPACING_S:
                logger.debug("skipping auto-sync: last attempt was too recent")
                return False
        if store.get_sync_status().sync_in_progress:
            logger.info("skipping auto-sync: a sync is already in progress")
            return False
        return True

    def tick(self, store: EventStore) -> SyncOutcome | None:
        if not self.should_run(store):
            return None
        self._last_attempt = self._monotonic()
        orchestrator = SyncOrchestrator(
            store, bus=self.bus, config=self.config, sources=self.sources
        )
        try:
            handle = orchestrator.start()
        except SyncAlreadyRunning:
            logger.info("skipping auto-sync: a sync is already running in this process")
            return None
        try:
            return handle.result()
        except KeyboardInterrupt:
            # The pass stops at its next cancellation check and clears its flag.
            handle.cancel()
            handle.join()
            raise


def run_auto_sync(
    config: WorktrailConfig,
    *,
    db_path: Path | str | None = None,
    stop_event: threading.Event | None = None,
    bus: ProgressBus | None = None,
    run_immediately: bool = True,
) -> None:
    """Sync every ``auto_sync_interval_s`` seconds until ``stop_event`` is set."""

    auto = AutoSync(config, bus=bus)
    stop = stop_event or threading.Event()
    path = db_path or config.db_path
    interval_s = max(config.auto_sync_interval_s, 1)

    def tick() -> None:
        store = EventStore(path)
        try:
            outcome = auto.tick(store)
        except Exception:
            logger.exception("auto-sync tick failed")
            return
        finally:
            store.close()
        if outcome is not None:
            logger.info("auto-sync %s", outcome.status)

    if run_immediately and not stop.is_set():
        tick()
    while not stop.wait(interval_s):
        tick()
