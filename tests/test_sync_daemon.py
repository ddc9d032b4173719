import threading
import time
from pathlib import Path

import pytest

from worktrail.config import WorktrailConfig
from worktrail.store import EventStore
from worktrail.sync import (
    AutoSync,
    Cancelled,
    ProgressBus,
    SyncHandle,
    SyncOrchestrator,
    SyncSources,
    run_auto_sync,
)
from worktrail.sync.events import drain


class FakeMonotonic:
    def __init__(self) -> None:
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value


def _config(tmp_path: Path) -> WorktrailConfig:
    return WorktrailConfig(db_path=str(tmp_path / "auto.sqlite"), auto_sync_interval_s=1)


def test_tick_runs_a_sync(store: EventStore, tmp_path: Path) -> None:
    auto = AutoSync(_config(tmp_path), monotonic=FakeMonotonic())

    outcome = auto.tick(store)

    # No sources are configured, so every phase fails but the pass completes.
    assert outcome is not None
    assert outcome.status == "completed"
    assert set(outcome.failures) == {"calendar", "version_control", "browser"}
    assert store.get_sync_status().last_sync_time is not None


def test_tick_skips_recent_attempt(store: EventStore, tmp_path: Path) -> None:
    monotonic = FakeMonotonic()
    auto = AutoSync(_config(tmp_path), monotonic=monotonic)
    assert auto.tick(store) is not None

    monotonic.value += 5
    assert auto.should_run(store) is False
    assert auto.tick(store) is None

    monotonic.value += 10
    assert auto.should_run(store) is True


def test_tick_skips_when_store_reports_sync_in_progress(store: EventStore, tmp_path: Path) -> None:
    auto = AutoSync(_config(tmp_path), monotonic=FakeMonotonic())
    store.update_sync_status(in_progress=True)

    assert auto.tick(store) is None


def test_run_auto_sync_stops_on_event(tmp_path: Path) -> None:
    config = _config(tmp_path)
    stop = threading.Event()
    thread = threading.Thread(
        target=run_auto_sync, args=(config,), kwargs={"stop_event": stop}, daemon=True
    )

    thread.start()
    stop.set()
    thread.join(10)

    assert not thread.is_alive()
    store = EventStore(config.db_path)
    try:
        # The immediate first tick either ran or was skipped by the stop check.
        status = store.get_sync_status()
        assert status.sync_in_progress is False
    finally:
        store.close()


class BlockingVersionControl:
    """Holds the pass inside discovery until its token is cancelled."""

    def __init__(self, handles: list[SyncHandle]) -> None:
        self.handles = handles
        self.entered = threading.Event()

    def discover(self) -> list:
        self.entered.set()
        deadline = time.monotonic() + 5
        while time.monotonic() < deadline:
            if self.handles and self.handles[0].token.cancelled:
                break
            time.sleep(0.01)
        return []

    def activities(self, repo, window) -> list:
        return []


class EmptyCalendar:
    def fetch(self, window) -> list:
        return []


class CountingBrowser:
    def __init__(self) -> None:
        self.calls = 0

    def fetch(self, window) -> list:
        self.calls += 1
        return []


def test_interrupted_tick_cancels_the_pass(
    store: EventStore, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    handles: list[SyncHandle] = []
    real_start = SyncOrchestrator.start

    def start(self, token=None):
        handle = real_start(self, token)
        handles.append(handle)
        return handle

    version_control = BlockingVersionControl(handles)

    def interrupted_result(self, timeout=None):
        assert version_control.entered.wait(5)
        raise KeyboardInterrupt

    monkeypatch.setattr(SyncOrchestrator, "start", start)
    monkeypatch.setattr(SyncHandle, "result", interrupted_result)
    browser = CountingBrowser()
    bus = ProgressBus()
    events = bus.subscribe()
    sources = SyncSources(
        calendar=EmptyCalendar(), version_control=version_control, browser=browser
    )
    auto = AutoSync(_config(tmp_path), bus=bus, sources=sources, monotonic=FakeMonotonic())

    with pytest.raises(KeyboardInterrupt):
        auto.tick(store)

    assert handles[0].token.cancelled
    assert handles[0].done
    assert browser.calls == 0
    assert isinstance(drain(events)[-1], Cancelled)
    assert store.get_sync_status().sync_in_progress is False
    assert AutoSync(_config(tmp_path), monotonic=FakeMonotonic()).should_run(store) is True
