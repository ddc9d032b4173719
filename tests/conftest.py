from __future__ import annotations

import datetime as dt
from pathlib import Path

import pytest

from worktrail.config import CONFIG_ENV_OVERRIDES
from worktrail.store import EventStore


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("WORKTRAIL_CONFIG", str(tmp_path / "config.json"))
    monkeypatch.delenv("WORKTRAIL_DEBUG", raising=False)
    for env_var in CONFIG_ENV_OVERRIDES.values():
        monkeypatch.delenv(env_var, raising=False)


class FakeClock:
    def __init__(self, now: dt.datetime) -> None:
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + dt.timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(dt.datetime(2026, 3, 2, 12, 0, tzinfo=dt.UTC))


@pytest.fixture
def store(tmp_path: Path, clock: FakeClock):
    store = EventStore(tmp_path / "worktrail.sqlite", clock=clock)
    try:
        yield store
    finally:
        store.close()
