from __future__ import annotations

import datetime as dt
import json
from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Final

from ..errors import ParseError, ValidationError
from ..utils import iso

EVENT_TYPE_CALENDAR: Final = "calendar"
EVENT_TYPE_VERSION_CONTROL: Final = "version_control"
EVENT_TYPE_BROWSER: Final = "browser_history"

EVENT_TYPES: Final[tuple[str, ...]] = (
    EVENT_TYPE_CALENDAR,
    EVENT_TYPE_VERSION_CONTROL,
    EVENT_TYPE_BROWSER,
)

RULE_TYPES: Final[tuple[str, ...]] = (
    "organizer",
    "title_pattern",
    "repository",
    "url_pattern",
    "domain",
)


def validate_event_type(event_type: str) -> str:
    normalized = (event_type or "").strip().lower()
    if normalized in EVENT_TYPES:
        return normalized
    raise ValidationError(
        f"Invalid event type '{normalized}'. Allowed types: {', '.join(EVENT_TYPES)}"
    )


def validate_rule_type(rule_type: str) -> str:
    normalized = (rule_type or "").strip().lower()
    if normalized in RULE_TYPES:
        return normalized
    raise ValidationError(
        f"Invalid rule type '{normalized}'. Allowed types: {', '.join(RULE_TYPES)}"
    )


@dataclass(frozen=True, slots=True)
class CalendarPayload:
    event_type: ClassVar[str] = EVENT_TYPE_CALENDAR

    location: str | None = None
    notes: str | None = None
    is_all_day: bool = False
    organizer: str | None = None
    attendees: list[str] | None = None


@dataclass(frozen=True, slots=True)
class VersionControlPayload:
    event_type: ClassVar[str] = EVENT_TYPE_VERSION_CONTROL

    repository_id: str
    repository_name: str
    activity_type: str
    ref_name: str | None = None
    commit_hash: str | None = None
    repository_path: str | None = None
    origin_url: str | None = None


@dataclass(frozen=True, slots=True)
class BrowserPayload:
    event_type: ClassVar[str] = EVENT_TYPE_BROWSER

    url: str
    domain: str
    page_title: str | None = None
    visit_count: int = 0
    repository_path: str | None = None


EventPayload = CalendarPayload | VersionControlPayload | BrowserPayload

_PAYLOAD_TYPES: dict[str, type[Any]] = {
    EVENT_TYPE_CALENDAR: CalendarPayload,
    EVENT_TYPE_VERSION_CONTROL: VersionControlPayload,
    EVENT_TYPE_BROWSER: BrowserPayload,
}


def payload_to_json(payload: EventPayload | None) -> str | None:
    if payload is None:
        return None
    return json.dumps(asdict(payload), ensure_ascii=False)


def payload_from_json(event_type: str, text: str | None) -> EventPayload | None:
    if not text:
        return None
    payload_type = _PAYLOAD_TYPES.get(event_type)
    if payload_type is None:
        raise ParseError(f"no payload schema for event type {event_type!r}")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"invalid {event_type} payload json") from exc
    if not isinstance(data, dict):
        raise ParseError(f"{event_type} payload must be an object")
    known = {name for name in payload_type.__dataclass_fields__ if name != "event_type"}
    try:
        return payload_type(**{k: v for k, v in data.items() if k in known})
    except TypeError as exc:
        raise ParseError(f"invalid {event_type} payload: {exc}") from exc


@dataclass
class Event:
    event_type: str
    title: str
    start_date: dt.datetime
    end_date: dt.datetime
    external_id: str
    payload: EventPayload | None = None
    external_link: str | None = None
    project_id: int | None = None
    organizer_id: int | None = None
    repository_path: str | None = None
    domain: str | None = None
    id: int | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    def __post_init__(self) -> None:
        self.event_type = validate_event_type(self.event_type)
        if self.payload is not None and self.payload.event_type != self.event_type:
            raise ValidationError(
                f"{type(self.payload).__name__} cannot be attached to a {self.event_type} event"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "title": self.title,
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
            "external_id": self.external_id,
            "external_link": self.external_link,
            "type_specific_data": asdict(self.payload) if self.payload else None,
            "project_id": self.project_id,
            "organizer_id": self.organizer_id,
            "repository_path": self.repository_path,
            "domain": self.domain,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


@dataclass(frozen=True)
class Project:
    id: int
    name: str
    color: str | None
    created_at: dt.datetime


@dataclass(frozen=True)
class ProjectRule:
    id: int
    project_id: int
    rule_type: str
    match_value: str
    created_at: dt.datetime


@dataclass(frozen=True)
class Contact:
    id: int
    name: str
    email: str | None
    created_at: dt.datetime
    updated_at: dt.datetime


@dataclass(frozen=True)
class WorkDomain:
    id: int
    domain: str
    created_at: dt.datetime


@dataclass(frozen=True)
class SyncStatus:
    last_sync_time: dt.datetime | None
    sync_in_progress: bool
    updated_at: dt.datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_sync_time": iso(self.last_sync_time),
            "sync_in_progress": self.sync_in_progress,
            "updated_at": iso(self.updated_at),
        }
