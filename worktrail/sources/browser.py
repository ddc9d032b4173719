from __future__ import annotations

import logging
import os
import sqlite3
from pathlib import Path
from typing import Final

from ..errors import SourceUnavailable
from ..utils import to_epoch_micros
from .types import BrowserVisit, SyncWindow

logger = logging.getLogger(__name__)

PLACES_FILENAME: Final = "places.sqlite"

# Relative to $HOME; searched in order.
PROFILE_ROOTS: Final[tuple[str, ...]] = (
    "Library/Application Support/zen/Profiles",
    "Library/Application Support/Firefox/Profiles",
    ".mozilla/firefox",
)

# SQL LIKE patterns for visits that are never recorded.
URL_DENYLIST: Final[tuple[str, ...]] = (
    # Browser internal pages
    "chrome://%",
    "about:%",
    "moz-extension://%",
    # Local development
    "http://localhost%",
    "https://localhost%",
    "http://127.0.0.1%",
    "https://127.0.0.1%",
    "%.local/%",
    # Authentication flows
    "%/auth/%",
    "%/oauth/%",
    "%/login%",
    "%/signin%",
    "%/sso/%",
    "%/saml/%",
    "%/authorize%",
    "%/callback%",
    # Credentials in query parameters
    "%access_token=%",
    "%id_token=%",
    "%refresh_token=%",
    "%api_key=%",
    "%apikey=%",
    "%secret=%",
    "%password=%",
    "%session_id=%",
    # Password and security pages
    "%/password/%",
    "%/security/%",
    "%/2fa/%",
    "%/mfa/%",
    # Payment
    "%/checkout%",
    "%/payment%",
    "%/billing%",
    # Admin panels
    "%/admin/%",
    "%/wp-admin/%",
    # Webmail message links
    "%mail.google.com/mail/u/%/#%",
    "%outlook.live.com/mail/%/inbox/id/%",
)


def _visits_query() -> str:
    denylist = "\n".join("  AND p.url NOT LIKE ?" for _ in URL_DENYLIST)
    return (
        "SELECT p.url, p.title, v.visit_date, p.visit_count\n"
        "FROM moz_places p\n"
        "JOIN moz_historyvisits v ON p.id = v.place_id\n"
        "WHERE v.visit_date >= ?\n"
        "  AND v.visit_date <= ?\n"
        f"{denylist}\n"
        "ORDER BY v.visit_date DESC"
    )


def open_places(places_path: Path) -> sqlite3.Connection:
    """Open a browser history file read-only, tolerating the browser's lock."""

    if not places_path.is_file():
        raise SourceUnavailable(f"browser history not found: {places_path}")
    uri = places_path.resolve().as_uri() + "?mode=ro&immutable=1"
    try:
        conn = sqlite3.connect(uri, uri=True)
    except sqlite3.Error as exc:
        raise SourceUnavailable(f"failed to open {places_path}: {exc}") from exc
    try:
        row = conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'moz_places'"
        ).fetchone()
    except sqlite3.DatabaseError as exc:
        conn.close()
        raise SourceUnavailable(f"{places_path} is not a sqlite database: {exc}") from exc
    if row is None:
        conn.close()
        raise SourceUnavailable(
            f"{places_path} has no moz_places table; not a Firefox-family history file"
        )
    return conn


def query_visits(places_path: Path, window: SyncWindow) -> list[BrowserVisit]:
    conn = open_places(places_path)
    try:
        rows = conn.execute(
            _visits_query(),
            (to_epoch_micros(window.start), to_epoch_micros(window.end) + 999_999, *URL_DENYLIST),
        ).fetchall()
    except sqlite3.Error as exc:
        raise SourceUnavailable(f"browser history query failed: {exc}") from exc
    finally:
        conn.close()
    visits: list[BrowserVisit] = []
    dropped = 0
    for url, title, visit_date, visit_count in rows:
        if not isinstance(url, str) or not url or not isinstance(visit_date, int):
            dropped += 1
            continue
        visits.append(
            BrowserVisit(
                url=url,
                title=title if isinstance(title, str) and title else None,
                visit_date=visit_date,
                visit_count=int(visit_count or 0),
            )
        )
    if dropped:
        logger.warning("dropped %d malformed browser visits", dropped)
    return visits


def auto_detect_profile(home: Path | str | None = None) -> Path | None:
    """Find a default browser profile, preferring a "release" one."""

    home_dir = home or os.environ.get("HOME") or os.environ.get("USERPROFILE")
    if not home_dir:
        return None
    for relative in PROFILE_ROOTS:
        profiles_dir = Path(home_dir) / relative
        if not profiles_dir.is_dir():
            continue
        try:
            candidates = sorted(
                entry for entry in profiles_dir.iterdir() if "default" in entry.name.lower()
            )
        except OSError as exc:
            logger.warning("failed to read profiles in %s: %s", profiles_dir, exc)
            continue
        for candidate in candidates:
            if "release" in candidate.name.lower():
                return candidate
        if candidates:
            return candidates[0]
    return None


class BrowserHistorySource:
    def __init__(self, profile_path: Path | str | None):
        self.profile_path = Path(profile_path).expanduser() if profile_path else None

    def fetch(self, window: SyncWindow) -> list[BrowserVisit]:
        if self.profile_path is None:
            raise SourceUnavailable("no browser profile configured")
        return query_visits(self.profile_path / PLACES_FILENAME, window)
