from __future__ import annotations

import datetime as dt
import json
import logging
import os
import re
from typing import TYPE_CHECKING

from ..db import DEFAULT_WORK_DOMAINS
from ..errors import ValidationError
from ..utils import from_epoch, to_epoch
from .types import SyncStatus, WorkDomain

if TYPE_CHECKING:
    from ._store import EventStore

logger = logging.getLogger(__name__)

SETTING_GIT_DEV_FOLDER = "git_dev_folder"
SETTING_BROWSER_PROFILE_PATH = "browser_profile_path"
SETTING_GITHUB_ORGS = "github_orgs"
_SETTING_DOMAINS_SEEDED = "work_domains_seeded"

GITHUB_ORG_MAX_LENGTH = 39
_GITHUB_ORG_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9-]*$")


def get_setting(store: EventStore, key: str) -> str | None:
    with store.locked() as conn:
        row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
    return str(row["value"]) if row else None


def set_setting(store: EventStore, key: str, value: str) -> None:
    key = (key or "").strip()
    if not key:
        raise ValidationError("setting key is required")
    with store.locked() as conn:
        conn.execute(
            """
            INSERT INTO settings(key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, value, store.now()),
        )
        conn.commit()


def delete_setting(store: EventStore, key: str) -> None:
    with store.locked() as conn:
        conn.execute("DELETE FROM settings WHERE key = ?", (key,))
        conn.commit()


def validate_github_org(org_name: str) -> str:
    name = (org_name or "").strip()
    if not name:
        raise ValidationError("organization name is required")
    if len(name) > GITHUB_ORG_MAX_LENGTH:
        raise ValidationError(
            f"organization name must be at most {GITHUB_ORG_MAX_LENGTH} characters"
        )
    if name.startswith("-"):
        raise ValidationError("organization name cannot start with a hyphen")
    if not _GITHUB_ORG_RE.match(name):
        raise ValidationError(
            "organization name may only contain alphanumeric characters or hyphens"
        )
    return name


def github_orgs(store: EventStore) -> list[str]:
    raw = get_setting(store, SETTING_GITHUB_ORGS)
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("ignoring malformed %s setting", SETTING_GITHUB_ORGS)
        return []
    if not isinstance(data, list):
        return []
    return [str(item) for item in data if isinstance(item, str) and item]


def add_github_org(store: EventStore, org_name: str) -> None:
    name = validate_github_org(org_name)
    orgs = github_orgs(store)
    if name in orgs:
        raise ValidationError(f"organization '{name}' already exists")
    orgs.append(name)
    set_setting(store, SETTING_GITHUB_ORGS, json.dumps(orgs))


def remove_github_org(store: EventStore, org_name: str) -> None:
    name = (org_name or "").strip()
    orgs = github_orgs(store)
    if name not in orgs:
        raise ValidationError(f"organization '{name}' is not configured")
    orgs.remove(name)
    set_setting(store, SETTING_GITHUB_ORGS, json.dumps(orgs))


def _clean_domain(domain: str) -> str:
    cleaned = (domain or "").strip().lower()
    if not cleaned:
        raise ValidationError("domain is required")
    if "/" in cleaned or " " in cleaned:
        raise ValidationError(f"'{cleaned}' is not a bare domain")
    return cleaned


def work_domains(store: EventStore) -> list[WorkDomain]:
    with store.locked() as conn:
        rows = conn.execute(
            "SELECT id, domain, created_at FROM work_domains ORDER BY domain"
        ).fetchall()
    return [
        WorkDomain(id=int(row["id"]), domain=row["domain"], created_at=from_epoch(row["created_at"]))
        for row in rows
    ]


def add_work_domain(store: EventStore, domain: str) -> int:
    """Add a domain to the allow-list, returning its id (existing or new)."""

    cleaned = _clean_domain(domain)
    with store.locked() as conn:
        conn.execute(
            "INSERT OR IGNORE INTO work_domains(domain, created_at) VALUES (?, ?)",
            (cleaned, store.now()),
        )
        row = conn.execute("SELECT id FROM work_domains WHERE domain = ?", (cleaned,)).fetchone()
        conn.commit()
    return int(row["id"])


def remove_work_domain(store: EventStore, domain: str) -> bool:
    cleaned = (domain or "").strip().lower()
    with store.locked() as conn:
        cur = conn.execute("DELETE FROM work_domains WHERE domain = ?", (cleaned,))
        conn.commit()
    return cur.rowcount > 0


def get_sync_status(store: EventStore) -> SyncStatus:
    with store.locked() as conn:
        row = conn.execute(
            "SELECT last_sync_time, sync_in_progress, updated_at FROM sync_metadata WHERE id = 1"
        ).fetchone()
    if row is None:
        return SyncStatus(
            last_sync_time=None, sync_in_progress=False, updated_at=from_epoch(store.now())
        )
    last = row["last_sync_time"]
    return SyncStatus(
        last_sync_time=from_epoch(last) if last is not None else None,
        sync_in_progress=bool(row["sync_in_progress"]),
        updated_at=from_epoch(row["updated_at"]),
    )


def update_sync_status(
    store: EventStore, *, in_progress: bool, last_sync_time: dt.datetime | None = None
) -> None:
    """Write the singleton sync row; a missing ``last_sync_time`` keeps the stored one."""

    last = to_epoch(last_sync_time) if last_sync_time is not None else None
    with store.locked() as conn:
        conn.execute(
            """
            INSERT INTO sync_metadata(id, last_sync_time, sync_in_progress, updated_at)
            VALUES (1, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                last_sync_time = COALESCE(excluded.last_sync_time, sync_metadata.last_sync_time),
                sync_in_progress = excluded.sync_in_progress,
                updated_at = excluded.updated_at
            """,
            (last, 1 if in_progress else 0, store.now()),
        )
        conn.commit()


def seed_defaults(store: EventStore) -> None:
    """Seed first-run settings and the default work domains exactly once."""

    if get_setting(store, SETTING_GIT_DEV_FOLDER) is None and os.environ.get("HOME"):
        set_setting(
            store, SETTING_GIT_DEV_FOLDER, os.path.join(os.environ["HOME"], "Development")
        )
    if get_setting(store, _SETTING_DOMAINS_SEEDED) is not None:
        return
    now = store.now()
    with store.locked() as conn:
        existing = conn.execute("SELECT COUNT(*) AS n FROM work_domains").fetchone()
        if existing and int(existing["n"]) == 0:
            conn.executemany(
                "INSERT OR IGNORE INTO work_domains(domain, created_at) VALUES (?, ?)",
                [(domain, now) for domain in DEFAULT_WORK_DOMAINS],
            )
            logger.debug("seeded %d default work domains", len(DEFAULT_WORK_DOMAINS))
        conn.commit()
    set_setting(store, _SETTING_DOMAINS_SEEDED, "1")
