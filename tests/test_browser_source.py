import datetime as dt
import sqlite3
from pathlib import Path

import pytest

from worktrail.errors import SourceUnavailable
from worktrail.sources.browser import (
    PLACES_FILENAME,
    BrowserHistorySource,
    auto_detect_profile,
    query_visits,
)
from worktrail.sources.types import SyncWindow

T0 = dt.datetime(2026, 3, 1, 9, 0, tzinfo=dt.UTC)


def _micros(value: dt.datetime) -> int:
    return int(value.timestamp()) * 1_000_000


def _write_places(profile: Path, visits: list[tuple[str, str | None, int, int]]) -> Path:
    profile.mkdir(parents=True, exist_ok=True)
    path = profile / PLACES_FILENAME
    conn = sqlite3.connect(path)
    try:
        conn.executescript(
            """
            CREATE TABLE moz_places (
                id INTEGER PRIMARY KEY,
                url TEXT,
                title TEXT,
                visit_count INTEGER DEFAULT 0
            );
            CREATE TABLE moz_historyvisits (
                id INTEGER PRIMARY KEY,
                place_id INTEGER,
                visit_date INTEGER
            );
            """
        )
        for place_id, (url, title, visit_date, visit_count) in enumerate(visits, start=1):
            conn.execute(
                "INSERT INTO moz_places(id, url, title, visit_count) VALUES (?, ?, ?, ?)",
                (place_id, url, title, visit_count),
            )
            conn.execute(
                "INSERT INTO moz_historyvisits(place_id, visit_date) VALUES (?, ?)",
                (place_id, visit_date),
            )
        conn.commit()
    finally:
        conn.close()
    return path


def test_query_visits_filters_window_and_denylist(tmp_path: Path) -> None:
    profile = tmp_path / "abc.default-release"
    _write_places(
        profile,
        [
            ("https://github.com/acme/api", "acme/api", _micros(T0), 4),
            ("https://docs.google.com/document/d/1", None, _micros(T0) + 500, 1),
            ("https://example.com/login?next=/", "Sign in", _micros(T0), 1),
            ("about:config", "Config", _micros(T0), 1),
            ("http://localhost:3000/", "Dev", _micros(T0), 1),
            ("https://example.com/?access_token=abc", "Token", _micros(T0), 1),
            ("https://old.example.com/", "Old", _micros(T0 - dt.timedelta(days=3)), 1),
        ],
    )
    window = SyncWindow(T0 - dt.timedelta(hours=1), T0)

    visits = BrowserHistorySource(profile).fetch(window)

    assert [v.url for v in visits] == [
        "https://docs.google.com/document/d/1",
        "https://github.com/acme/api",
    ]
    assert visits[0].title is None
    assert visits[1].visit_count == 4


def test_query_visits_drops_rows_without_url(tmp_path: Path) -> None:
    path = _write_places(
        tmp_path / "p",
        [(None, "Broken", _micros(T0), 1), ("https://example.com/", "Ok", _micros(T0), 1)],
    )

    visits = query_visits(path, SyncWindow(T0, T0))

    assert [v.url for v in visits] == ["https://example.com/"]


@pytest.mark.parametrize("dirname", ["weird#dir", "q?dir", "Application Support"])
def test_query_visits_handles_uri_characters_in_profile_path(tmp_path: Path, dirname: str) -> None:
    path = _write_places(
        tmp_path / dirname / "abc.default",
        [("https://example.com/", "Ok", _micros(T0), 1)],
    )

    visits = query_visits(path, SyncWindow(T0, T0))

    assert [v.url for v in visits] == ["https://example.com/"]


def test_fetch_requires_profile(tmp_path: Path) -> None:
    with pytest.raises(SourceUnavailable, match="no browser profile"):
        BrowserHistorySource(None).fetch(SyncWindow(T0, T0))
    with pytest.raises(SourceUnavailable, match="not found"):
        BrowserHistorySource(tmp_path / "missing").fetch(SyncWindow(T0, T0))


def test_non_firefox_database_is_unavailable(tmp_path: Path) -> None:
    profile = tmp_path / "profile"
    profile.mkdir()
    conn = sqlite3.connect(profile / PLACES_FILENAME)
    conn.execute("CREATE TABLE urls (id INTEGER PRIMARY KEY)")
    conn.commit()
    conn.close()

    with pytest.raises(SourceUnavailable, match="moz_places"):
        BrowserHistorySource(profile).fetch(SyncWindow(T0, T0))


def test_auto_detect_profile_prefers_release(tmp_path: Path) -> None:
    profiles = tmp_path / ".mozilla" / "firefox"
    (profiles / "aaaa.default").mkdir(parents=True)
    (profiles / "bbbb.default-release").mkdir()
    (profiles / "cccc.work").mkdir()

    assert auto_detect_profile(tmp_path) == profiles / "bbbb.default-release"


def test_auto_detect_profile_prefers_zen_over_firefox(tmp_path: Path) -> None:
    zen = tmp_path / "Library" / "Application Support" / "zen" / "Profiles" / "x.Default (release)"
    zen.mkdir(parents=True)
    (tmp_path / ".mozilla" / "firefox" / "y.default-release").mkdir(parents=True)

    assert auto_detect_profile(tmp_path) == zen


def test_auto_detect_profile_none_found(tmp_path: Path) -> None:
    assert auto_detect_profile(tmp_path) is None
