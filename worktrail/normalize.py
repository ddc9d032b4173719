"""Map raw source records onto the canonical :class:`Event` shape."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable

from .sources.types import BrowserVisit, CalendarRecord, GitActivity
from .store.types import (
    EVENT_TYPE_BROWSER,
    EVENT_TYPE_CALENDAR,
    EVENT_TYPE_VERSION_CONTROL,
    BrowserPayload,
    CalendarPayload,
    Event,
    VersionControlPayload,
)
from .urls import (
    extract_domain,
    extract_repository_path_from_url,
    parse_repository_path,
    truncate_url,
)
from .utils import from_epoch_micros, iso

__all__ = [
    "activity_external_id",
    "browser_event",
    "browser_external_id",
    "calendar_event",
    "clean_notes",
    "extract_domain",
    "extract_repository_path_from_url",
    "parse_repository_path",
    "should_store_visit",
    "truncate_url",
    "version_control_event",
]


def clean_notes(notes: str | None) -> str | None:
    if notes is None:
        return None
    cleaned: list[str] = []
    prev_blank = False
    for line in notes.splitlines():
        line = line.rstrip()
        blank = not line
        if blank and prev_blank:
            continue
        cleaned.append(line)
        prev_blank = blank
    while cleaned and not cleaned[-1]:
        cleaned.pop()
    while cleaned and not cleaned[0]:
        cleaned.pop(0)
    result = "\n".join(cleaned)
    return result or None


def browser_external_id(url: str, visit_micros: int) -> str:
    digest = hashlib.sha256(f"{url}\0{visit_micros}".encode()).hexdigest()
    return f"browser-{digest[:16]}"


def activity_external_id(activity: GitActivity) -> str:
    return f"{activity.repository.repository_id}:{iso(activity.timestamp)}"


def should_store_visit(
    repository_path: str | None,
    discovered_repositories: Iterable[str],
    github_orgs: Iterable[str],
) -> bool:
    """Code-host visits are kept only for known repositories or organizations."""

    if repository_path is None:
        return True
    if repository_path in set(discovered_repositories):
        return True
    return any(repository_path.startswith(f"{org}/") for org in github_orgs)


def calendar_event(record: CalendarRecord, *, organizer_id: int | None = None) -> Event:
    payload = CalendarPayload(
        location=record.location,
        notes=clean_notes(record.notes),
        is_all_day=record.is_all_day,
        organizer=record.organizer,
        attendees=list(record.attendees) or None,
    )
    return Event(
        event_type=EVENT_TYPE_CALENDAR,
        title=record.title,
        start_date=record.start,
        end_date=record.end,
        external_id=record.event_id,
        payload=payload,
        organizer_id=organizer_id,
    )


def version_control_event(activity: GitActivity) -> Event:
    repo = activity.repository
    payload = VersionControlPayload(
        repository_id=repo.repository_id,
        repository_name=repo.repository_name,
        activity_type=activity.activity_type,
        ref_name=activity.ref_name,
        commit_hash=activity.commit_hash,
        repository_path=repo.repository_path,
        origin_url=repo.origin_url,
    )
    return Event(
        event_type=EVENT_TYPE_VERSION_CONTROL,
        title=activity.title,
        start_date=activity.timestamp,
        end_date=activity.timestamp,
        external_id=activity_external_id(activity),
        payload=payload,
        repository_path=repo.repository_path,
    )


def browser_event(visit: BrowserVisit) -> Event:
    domain = extract_domain(visit.url)
    repository_path = extract_repository_path_from_url(visit.url)
    visited_at = from_epoch_micros(visit.visit_date)
    payload = BrowserPayload(
        url=visit.url,
        domain=domain,
        page_title=visit.title,
        visit_count=visit.visit_count,
        repository_path=repository_path,
    )
    return Event(
        event_type=EVENT_TYPE_BROWSER,
        title=visit.title or truncate_url(visit.url),
        start_date=visited_at,
        end_date=visited_at,
        external_id=browser_external_id(visit.url, visit.visit_date),
        external_link=visit.url,
        payload=payload,
        repository_path=repository_path,
        domain=domain,
    )
