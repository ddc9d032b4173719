from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from ..errors import ValidationError

ACTIVITY_COMMIT: Final = "commit"
ACTIVITY_CHECKOUT: Final = "checkout"
ACTIVITY_MERGE: Final = "merge"
ACTIVITY_REBASE: Final = "rebase"
ACTIVITY_PULL: Final = "pull"
ACTIVITY_RESET: Final = "reset"
ACTIVITY_CHERRY_PICK: Final = "cherry-pick"
ACTIVITY_STASH: Final = "stash"

# Prefix checks run in this order; stash is matched by substring afterwards.
ACTIVITY_PREFIXES: Final[tuple[str, ...]] = (
    ACTIVITY_COMMIT,
    ACTIVITY_CHECKOUT,
    ACTIVITY_MERGE,
    ACTIVITY_REBASE,
    ACTIVITY_PULL,
    ACTIVITY_RESET,
    ACTIVITY_CHERRY_PICK,
)


@dataclass(frozen=True, slots=True)
class SyncWindow:
    start: dt.datetime
    end: dt.datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValidationError(f"window start {self.start} is after end {self.end}")


@dataclass(frozen=True, slots=True)
class CalendarRecord:
    event_id: str
    title: str
    start: dt.datetime
    end: dt.datetime
    is_all_day: bool = False
    location: str | None = None
    notes: str | None = None
    attendees: tuple[str, ...] = ()
    organizer: str | None = None
    organizer_email: str | None = None


@dataclass(frozen=True, slots=True)
class GitRepository:
    repository_id: str
    repository_name: str
    local_path: Path
    repository_path: str | None = None
    origin_url: str | None = None


@dataclass(frozen=True, slots=True)
class ReflogEntry:
    old_id: str
    new_id: str
    timestamp: dt.datetime
    message: str


@dataclass(frozen=True, slots=True)
class GitActivity:
    repository: GitRepository
    activity_type: str
    timestamp: dt.datetime
    title: str
    ref_name: str | None = None
    commit_hash: str | None = None


@dataclass(frozen=True, slots=True)
class BrowserVisit:
    url: str
    title: str | None
    # Microseconds since the epoch, as stored by the browser.
    visit_date: int
    visit_count: int = 0

