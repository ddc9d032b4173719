from __future__ import annotations

import datetime as dt
import logging
import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from .. import db
from ..errors import StoreError, StoreLockTimeout
from ..utils import to_epoch, utc_now
from . import events as store_events
from . import projects as store_projects
from . import settings as store_settings
from .types import Contact, Event, Project, ProjectRule, SyncStatus, WorkDomain

logger = logging.getLogger(__name__)


class EventStore:
    """SQLite-backed event store guarded by a single lock.

    Every public method takes the lock for the duration of its own SQL and
    commits before releasing it, so callers on different threads never see a
    half-written unit of work. Nothing that waits on an external source may run
    while the lock is held.
    """

    LOCK_TIMEOUT_S = 30.0

    def __init__(
        self,
        db_path: Path | str = db.DEFAULT_DB_PATH,
        *,
        clock: Callable[[], dt.datetime] | None = None,
        lock_timeout_s: float | None = None,
        seed_defaults: bool = True,
    ):
        self.db_path = Path(db_path).expanduser()
        self.conn = db.connect(self.db_path, check_same_thread=False)
        db.initialize_schema(self.conn)
        self._lock = threading.RLock()
        self._clock = clock or utc_now
        self.lock_timeout_s = self.LOCK_TIMEOUT_S if lock_timeout_s is None else lock_timeout_s
        if seed_defaults:
            store_settings.seed_defaults(self)

    @contextmanager
    def locked(self) -> Iterator[sqlite3.Connection]:
        if not self._lock.acquire(timeout=self.lock_timeout_s):
            raise StoreLockTimeout(f"store lock not acquired within {self.lock_timeout_s}s")
        try:
            yield self.conn
        except sqlite3.Error as exc:
            if self.conn.in_transaction:
                self.conn.rollback()
            raise StoreError(str(exc)) from exc
        finally:
            self._lock.release()

    def current_time(self) -> dt.datetime:
        return self._clock()

    def now(self) -> int:
        return to_epoch(self._clock())

    def close(self) -> None:
        with self.locked():
            self.conn.close()

    # Events

    def upsert_event(self, event: Event) -> tuple[int, bool]:
        return store_events.upsert_event(self, event)

    def get_event(self, event_id: int) -> Event | None:
        return store_events.get_event(self, event_id)

    def get_event_by_key(self, event_type: str, external_id: str) -> Event | None:
        return store_events.get_event_by_key(self, event_type, external_id)

    def list_events(
        self, start: dt.datetime | None = None, end: dt.datetime | None = None
    ) -> list[Event]:
        return store_events.list_events(self, start=start, end=end)

    def events_by_project(
        self,
        project_id: int,
        start: dt.datetime | None = None,
        end: dt.datetime | None = None,
    ) -> list[Event]:
        return store_events.events_by_project(self, project_id, start=start, end=end)

    def count_events(self, event_type: str | None = None) -> int:
        return store_events.count_events(self, event_type)

    def assign_event_to_project(self, event_id: int, project_id: int | None) -> None:
        store_events.assign_event_to_project(self, event_id, project_id)

    def discovered_repository_paths(self) -> list[str]:
        return store_events.discovered_repository_paths(self)

    def clear_event_data(self) -> None:
        store_events.clear_event_data(self)

    # Contacts, projects and rules

    def upsert_contact(self, name: str, email: str | None = None) -> int:
        return store_projects.upsert_contact(self, name, email)

    def get_contact(self, contact_id: int) -> Contact | None:
        return store_projects.get_contact(self, contact_id)

    def create_project(self, name: str, color: str | None = None) -> int:
        return store_projects.create_project(self, name, color)

    def update_project(self, project_id: int, name: str, color: str | None = None) -> None:
        store_projects.update_project(self, project_id, name, color)

    def delete_project(self, project_id: int) -> None:
        store_projects.delete_project(self, project_id)

    def get_project(self, project_id: int) -> Project | None:
        return store_projects.get_project(self, project_id)

    def list_projects(self) -> list[Project]:
        return store_projects.list_projects(self)

    def event_project(self, event_id: int) -> Project | None:
        return store_projects.event_project(self, event_id)

    def create_rule(self, project_id: int, rule_type: str, match_value: str) -> int:
        return store_projects.create_rule(self, project_id, rule_type, match_value)

    def update_rule(self, rule_id: int, rule_type: str, match_value: str) -> None:
        store_projects.update_rule(self, rule_id, rule_type, match_value)

    def delete_rule(self, rule_id: int) -> None:
        store_projects.delete_rule(self, rule_id)

    def list_rules(self, project_id: int | None = None) -> list[ProjectRule]:
        return store_projects.list_rules(self, project_id)

    # Settings, allow-lists and sync metadata

    def get_setting(self, key: str) -> str | None:
        return store_settings.get_setting(self, key)

    def set_setting(self, key: str, value: str) -> None:
        store_settings.set_setting(self, key, value)

    def delete_setting(self, key: str) -> None:
        store_settings.delete_setting(self, key)

    def github_orgs(self) -> list[str]:
        return store_settings.github_orgs(self)

    def add_github_org(self, org_name: str) -> None:
        store_settings.add_github_org(self, org_name)

    def remove_github_org(self, org_name: str) -> None:
        store_settings.remove_github_org(self, org_name)

    def work_domains(self) -> list[WorkDomain]:
        return store_settings.work_domains(self)

    def add_work_domain(self, domain: str) -> int:
        return store_settings.add_work_domain(self, domain)

    def remove_work_domain(self, domain: str) -> bool:
        return store_settings.remove_work_domain(self, domain)

    def get_sync_status(self) -> SyncStatus:
        return store_settings.get_sync_status(self)

    def update_sync_status(
        self, *, in_progress: bool, last_sync_time: dt.datetime | None = None
    ) -> None:
        store_settings.update_sync_status(
            self, in_progress=in_progress, last_sync_time=last_sync_time
        )

    def reset(self) -> None:
        """Drop all synced data: events, contacts and sync metadata."""

        logger.info("resetting event data in %s", self.db_path)
        store_events.clear_event_data(self)
