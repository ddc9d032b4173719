from __future__ import annotations

import datetime as dt
import logging
import sqlite3
from typing import TYPE_CHECKING, Any

from ..errors import ParseError, ValidationError
from ..utils import from_epoch, to_epoch
from .types import (
    EVENT_TYPE_BROWSER,
    EVENT_TYPE_VERSION_CONTROL,
    Event,
    payload_from_json,
    payload_to_json,
    validate_event_type,
)

if TYPE_CHECKING:
    from ._store import EventStore

logger = logging.getLogger(__name__)

EVENT_COLUMNS = (
    "id, event_type, title, start_date, end_date, external_id, external_link, "
    "type_specific_data, project_id, organizer_id, repository_path, domain, "
    "created_at, updated_at"
)


def _row_to_event(row: sqlite3.Row) -> Event:
    try:
        payload = payload_from_json(row["event_type"], row["type_specific_data"])
    except ParseError as exc:
        logger.warning("event %s has an unreadable payload: %s", row["id"], exc)
        payload = None
    return Event(
        id=int(row["id"]),
        event_type=row["event_type"],
        title=row["title"],
        start_date=from_epoch(row["start_date"]),
        end_date=from_epoch(row["end_date"]),
        external_id=row["external_id"],
        external_link=row["external_link"],
        payload=payload,
        project_id=row["project_id"],
        organizer_id=row["organizer_id"],
        repository_path=row["repository_path"],
        domain=row["domain"],
        created_at=from_epoch(row["created_at"]),
        updated_at=from_epoch(row["updated_at"]),
    )


def upsert_event(store: EventStore, event: Event) -> tuple[int, bool]:
    """Insert or update the row keyed on (event_type, external_id).

    Returns the row id and whether the row was created by this call. On
    conflict every column except ``created_at`` takes the incoming value.
    """

    event_type = validate_event_type(event.event_type)
    external_id = (event.external_id or "").strip()
    if not external_id:
        raise ValidationError("external_id is required")
    now = store.now()
    with store.locked() as conn:
        existing = conn.execute(
            "SELECT 1 FROM events WHERE event_type = ? AND external_id = ?",
            (event_type, external_id),
        ).fetchone()
        row = conn.execute(
            """
            INSERT INTO events(
                event_type,
                title,
                start_date,
                end_date,
                external_id,
                external_link,
                type_specific_data,
                project_id,
                organizer_id,
                repository_path,
                domain,
                created_at,
                updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(event_type, external_id) DO UPDATE SET
                title = excluded.title,
                start_date = excluded.start_date,
                end_date = excluded.end_date,
                external_link = excluded.external_link,
                type_specific_data = excluded.type_specific_data,
                project_id = excluded.project_id,
                organizer_id = excluded.organizer_id,
                repository_path = excluded.repository_path,
                domain = excluded.domain,
                updated_at = excluded.updated_at
            RETURNING id
            """,
            (
                event_type,
                event.title,
                to_epoch(event.start_date),
                to_epoch(event.end_date),
                external_id,
                event.external_link,
                payload_to_json(event.payload),
                event.project_id,
                event.organizer_id,
                event.repository_path,
                event.domain,
                now,
                now,
            ),
        ).fetchone()
        conn.commit()
    if row is None:
        raise RuntimeError("Failed to upsert event")
    return int(row["id"]), existing is None


def get_event(store: EventStore, event_id: int) -> Event | None:
    with store.locked() as conn:
        row = conn.execute(
            f"SELECT {EVENT_COLUMNS} FROM events WHERE id = ?", (event_id,)
        ).fetchone()
    return _row_to_event(row) if row else None


def get_event_by_key(store: EventStore, event_type: str, external_id: str) -> Event | None:
    with store.locked() as conn:
        row = conn.execute(
            f"SELECT {EVENT_COLUMNS} FROM events WHERE event_type = ? AND external_id = ?",
            (event_type, external_id),
        ).fetchone()
    return _row_to_event(row) if row else None


def _date_clauses(
    start: dt.datetime | None, end: dt.datetime | None
) -> tuple[list[str], list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    if start is not None:
        clauses.append("start_date >= ?")
        params.append(to_epoch(start))
    if end is not None:
        clauses.append("end_date <= ?")
        params.append(to_epoch(end))
    return clauses, params


def list_events(
    store: EventStore,
    *,
    start: dt.datetime | None = None,
    end: dt.datetime | None = None,
) -> list[Event]:
    """Events in the range, oldest first.

    Browser events are only returned when their domain is on the work-domain
    allow-list; an empty allow-list hides every browser event.
    """

    clauses, params = _date_clauses(start, end)
    with store.locked() as conn:
        domains = [
            str(r["domain"]) for r in conn.execute("SELECT domain FROM work_domains").fetchall()
        ]
        if domains:
            placeholders = ",".join(["?"] * len(domains))
            clauses.append(f"(event_type != ? OR domain IN ({placeholders}))")
            params.extend([EVENT_TYPE_BROWSER, *domains])
        else:
            clauses.append("event_type != ?")
            params.append(EVENT_TYPE_BROWSER)
        where = " AND ".join(clauses)
        rows = conn.execute(
            f"SELECT {EVENT_COLUMNS} FROM events WHERE {where} ORDER BY start_date ASC, id ASC",
            params,
        ).fetchall()
    return [_row_to_event(row) for row in rows]


def events_by_project(
    store: EventStore,
    project_id: int,
    *,
    start: dt.datetime | None = None,
    end: dt.datetime | None = None,
) -> list[Event]:
    # Assigned browser events count as work regardless of the allow-list.
    clauses, params = _date_clauses(start, end)
    clauses.insert(0, "project_id = ?")
    params.insert(0, project_id)
    where = " AND ".join(clauses)
    with store.locked() as conn:
        rows = conn.execute(
            f"SELECT {EVENT_COLUMNS} FROM events WHERE {where} ORDER BY start_date DESC, id DESC",
            params,
        ).fetchall()
    return [_row_to_event(row) for row in rows]


def count_events(store: EventStore, event_type: str | None = None) -> int:
    with store.locked() as conn:
        if event_type is None:
            row = conn.execute("SELECT COUNT(*) AS n FROM events").fetchone()
        else:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM events WHERE event_type = ?",
                (validate_event_type(event_type),),
            ).fetchone()
    return int(row["n"]) if row else 0


def assign_event_to_project(store: EventStore, event_id: int, project_id: int | None) -> None:
    with store.locked() as conn:
        cur = conn.execute(
            "UPDATE events SET project_id = ?, updated_at = ? WHERE id = ?",
            (project_id, store.now(), event_id),
        )
        conn.commit()
    if cur.rowcount == 0:
        raise ValidationError(f"event {event_id} does not exist")


def discovered_repository_paths(store: EventStore) -> list[str]:
    with store.locked() as conn:
        rows = conn.execute(
            """
            SELECT DISTINCT repository_path
            FROM events
            WHERE event_type = ? AND repository_path IS NOT NULL
            ORDER BY repository_path
            """,
            (EVENT_TYPE_VERSION_CONTROL,),
        ).fetchall()
    return [str(row["repository_path"]) for row in rows]


def clear_event_data(store: EventStore) -> None:
    with store.locked() as conn:
        conn.execute("DELETE FROM events")
        conn.execute("DELETE FROM contacts")
        conn.execute("DELETE FROM sync_metadata")
        conn.commit()
