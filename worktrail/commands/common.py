from __future__ import annotations

import datetime as dt
import json
import logging
import os
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import typer
from rich import print
from rich.console import Console
from rich.logging import RichHandler

from worktrail.config import WorktrailConfig, load_config
from worktrail.errors import WorktrailError
from worktrail.sources.browser import auto_detect_profile
from worktrail.store import Event, EventStore
from worktrail.store.settings import SETTING_BROWSER_PROFILE_PATH
from worktrail.utils import parse_iso8601

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    if os.environ.get("WORKTRAIL_DEBUG") == "1":
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    root = logging.getLogger("worktrail")
    root.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(
            RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
        )


def load_config_or_exit() -> WorktrailConfig:
    try:
        return load_config()
    except OSError as exc:
        print(f"[red]Failed to read config: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def store_from_path(db_path: str | None, config: WorktrailConfig | None = None) -> EventStore:
    cfg = config or load_config_or_exit()
    try:
        store = EventStore(db_path or cfg.db_path)
    except (WorktrailError, sqlite3.Error, OSError) as exc:
        print(f"[red]Failed to open database: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    seed_browser_profile(store)
    return store


def seed_browser_profile(store: EventStore) -> None:
    """Record an auto-detected browser profile when none is configured."""

    if store.get_setting(SETTING_BROWSER_PROFILE_PATH) is not None:
        return
    profile = auto_detect_profile()
    if profile is not None:
        logger.info("using detected browser profile %s", profile)
        store.set_setting(SETTING_BROWSER_PROFILE_PATH, str(profile))


@contextmanager
def cli_errors() -> Iterator[None]:
    """Turn domain errors into a red message and exit code 1."""

    try:
        yield
    except WorktrailError as exc:
        print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc


def parse_date_option(value: str | None, *, name: str) -> dt.datetime | None:
    if value is None:
        return None
    parsed = parse_iso8601(value)
    if parsed is None:
        print(f"[red]Invalid {name}: {value!r} (expected an ISO 8601 timestamp)[/red]")
        raise typer.Exit(code=1)
    return parsed


def print_json(data: Any) -> None:
    typer.echo(json.dumps(data, ensure_ascii=False, indent=2))


def format_event_line(event: Event) -> str:
    project = f" project={event.project_id}" if event.project_id is not None else ""
    return (
        f"{event.id}|{event.event_type}|{event.start_date.isoformat()}|"
        f"{event.title}{project}"
    )
