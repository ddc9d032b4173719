from __future__ import annotations

import sqlite3
from pathlib import Path

from .config import DEFAULT_DB_PATH

__all__ = [
    "DEFAULT_DB_PATH",
    "DEFAULT_WORK_DOMAINS",
    "connect",
    "initialize_schema",
]

DEFAULT_WORK_DOMAINS: tuple[str, ...] = (
    "dropbox.com",
    "paper.dropbox.com",
    "docs.google.com",
    "sheets.google.com",
    "slides.google.com",
    "drive.google.com",
    "monday.com",
    "notion.so",
    "linear.app",
    "github.com",
    "gitlab.com",
    "stackoverflow.com",
    "developer.mozilla.org",
)


def connect(db_path: Path | str, check_same_thread: bool = True) -> sqlite3.Connection:
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=check_same_thread)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        conn.execute("PRAGMA journal_mode = WAL")
    except sqlite3.OperationalError:
        conn.execute("PRAGMA journal_mode = DELETE")
    conn.execute("PRAGMA synchronous = NORMAL")
    return conn


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS contacts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            email TEXT,
            created_at INTEGER NOT NULL,
            updated_at INTEGER NOT NULL,
            UNIQUE(name, email)
        );
        CREATE INDEX IF NOT EXISTS idx_contacts_email ON contacts(email) WHERE email IS NOT NULL;

        CREATE TABLE IF NOT EXISTS projects (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE,
            color TEXT,
            created_at INTEGER NOT NULL
        );

        CREATE TABLE IF NOT EXISTS events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            event_type TEXT NOT NULL,
            title TEXT NOT NULL,
            start_date INTEGER NOT NULL,
            end_date INTEGER NOT NULL,
            external_id TEXT NOT NULL,
            external_link TEXT,
            type_specific_data TEXT,
            project_id INTEGER REFERENCES projects(id) ON DELETE SET NULL,
            organizer_id INTEGER REFERENCES contacts(id) ON DELETE SET NULL,
            repository_path TEXT,
            domain TEXT,
            created_at INTEGER NOT NULL,
            updated_at INTEGER NOT NULL,
            UNIQUE(event_type, external_id)
        );
        CREATE INDEX IF NOT EXISTS idx_events_start_date ON events(start_date);
        CREATE INDEX IF NOT EXISTS idx_events_external_id ON events(event_type, external_id);
        CREATE INDEX IF NOT EXISTS idx_events_project_id ON events(project_id);
        CREATE INDEX IF NOT EXISTS idx_events_type_date ON events(event_type, start_date DESC);
        CREATE INDEX IF NOT EXISTS idx_events_organizer ON events(organizer_id) WHERE organizer_id IS NOT NULL;
        CREATE INDEX IF NOT EXISTS idx_events_repository_path ON events(repository_path) WHERE repository_path IS NOT NULL;
        CREATE INDEX IF NOT EXISTS idx_events_domain ON events(domain) WHERE domain IS NOT NULL;

        CREATE TABLE IF NOT EXISTS sync_metadata (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            last_sync_time INTEGER,
            sync_in_progress INTEGER NOT NULL DEFAULT 0,
            updated_at INTEGER NOT NULL
        );

        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at INTEGER NOT NULL
        );

        CREATE TABLE IF NOT EXISTS project_rules (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            rule_type TEXT NOT NULL,
            match_value TEXT NOT NULL,
            created_at INTEGER NOT NULL,
            UNIQUE(rule_type, match_value)
        );
        CREATE INDEX IF NOT EXISTS idx_project_rules_project_id ON project_rules(project_id);

        CREATE TABLE IF NOT EXISTS work_domains (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            domain TEXT NOT NULL UNIQUE,
            created_at INTEGER NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_work_domains_domain ON work_domains(domain);
        """
    )
    conn.commit()

