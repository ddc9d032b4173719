from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Final, Protocol

from ..errors import ParseError, PermissionDenied, SourceUnavailable
from ..utils import require_iso8601
from .types import CalendarRecord, SyncWindow

logger = logging.getLogger(__name__)

ACCESS_FULL: Final = "full_access"
ACCESS_DENIED: Final = "denied"
ACCESS_RESTRICTED: Final = "restricted"
ACCESS_NOT_DETERMINED: Final = "not_determined"


class CalendarProvider(Protocol):
    def authorization_status(self) -> str: ...

    def request_access(self) -> bool:
        """Ask the host for access, blocking until the user answers."""
        ...

    def events_between(self, window: SyncWindow) -> Iterable[Mapping[str, Any]]: ...


def _strip_mailto(value: str | None) -> str | None:
    if not value:
        return None
    value = value.strip()
    if value.lower().startswith("mailto:"):
        value = value[len("mailto:") :]
    return value or None


def _optional_str(raw: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def _attendee_names(raw: Any) -> tuple[str, ...]:
    if not isinstance(raw, list):
        return ()
    names: list[str] = []
    for item in raw:
        if isinstance(item, str) and item.strip():
            names.append(item.strip())
        elif isinstance(item, Mapping):
            name = item.get("name")
            if isinstance(name, str) and name.strip():
                names.append(name.strip())
    return tuple(names)


def parse_calendar_record(raw: Mapping[str, Any]) -> CalendarRecord:
    """Build a record from one provider mapping or raise ParseError."""

    event_id = _optional_str(raw, "event_id", "id", "uid")
    if event_id is None:
        raise ParseError("calendar event has no identifier")
    start = require_iso8601(raw.get("start_date", raw.get("start")), field="start_date")
    end = require_iso8601(raw.get("end_date", raw.get("end")), field="end_date")
    organizer_raw = raw.get("organizer")
    organizer_email = _optional_str(raw, "organizer_email")
    if isinstance(organizer_raw, Mapping):
        organizer = _optional_str(organizer_raw, "name")
        organizer_email = organizer_email or _optional_str(organizer_raw, "email", "url")
    else:
        organizer = organizer_raw if isinstance(organizer_raw, str) and organizer_raw else None
    return CalendarRecord(
        event_id=event_id,
        title=str(raw.get("title") or ""),
        start=start,
        end=end,
        is_all_day=bool(raw.get("is_all_day", False)),
        location=_optional_str(raw, "location"),
        notes=_optional_str(raw, "notes"),
        attendees=_attendee_names(raw.get("attendees")),
        organizer=organizer,
        organizer_email=_strip_mailto(organizer_email),
    )


class JsonCalendarProvider:
    """Calendar provider backed by an exported JSON file.

    The file holds either a list of event objects or ``{"events": [...]}``.
    Read access to the file stands in for the host's calendar grant.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()

    def authorization_status(self) -> str:
        if not self.path.exists():
            return ACCESS_NOT_DETERMINED
        if not os.access(self.path, os.R_OK):
            return ACCESS_DENIED
        return ACCESS_FULL

    def request_access(self) -> bool:
        return self.authorization_status() == ACCESS_FULL

    def events_between(self, window: SyncWindow) -> list[Mapping[str, Any]]:
        try:
            data = json.loads(self.path.read_text())
        except FileNotFoundError as exc:
            raise SourceUnavailable(f"calendar export not found: {self.path}") from exc
        except PermissionError as exc:
            raise PermissionDenied(f"cannot read calendar export {self.path}") from exc
        except json.JSONDecodeError as exc:
            raise SourceUnavailable(f"calendar export is not valid json: {self.path}") from exc
        if isinstance(data, Mapping):
            data = data.get("events", [])
        if not isinstance(data, list):
            raise SourceUnavailable(f"calendar export must hold a list of events: {self.path}")
        return [item for item in data if isinstance(item, Mapping)]


class CalendarSource:
    def __init__(self, provider: CalendarProvider | None):
        self.provider = provider

    def ensure_access(self) -> CalendarProvider:
        """Block until calendar access is granted, or raise PermissionDenied.

        A not-yet-decided status triggers a single access request, which waits
        for the provider with no timeout.
        """

        provider = self.provider
        if provider is None:
            raise SourceUnavailable("no calendar provider configured")
        status = provider.authorization_status()
        if status == ACCESS_FULL:
            return provider
        if status in (ACCESS_DENIED, ACCESS_RESTRICTED):
            raise PermissionDenied(f"calendar access {status}")
        logger.info("requesting calendar access")
        if not provider.request_access():
            raise PermissionDenied("calendar access denied")
        return provider

    def fetch(self, window: SyncWindow) -> list[CalendarRecord]:
        provider = self.ensure_access()
        records: list[CalendarRecord] = []
        dropped = 0
        for raw in provider.events_between(window):
            try:
                record = parse_calendar_record(raw)
            except ParseError as exc:
                dropped += 1
                logger.debug("dropping calendar event: %s", exc)
                continue
            if record.end < window.start or record.start > window.end:
                continue
            records.append(record)
        if dropped:
            logger.warning("dropped %d malformed calendar events", dropped)
        return records
