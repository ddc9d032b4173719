from __future__ import annotations

import json

import typer
from rich import print

from worktrail.config import WorktrailConfig
from worktrail.sources.browser import auto_detect_profile
from worktrail.sources.calendar import CalendarSource, JsonCalendarProvider
from worktrail.store import EventStore
from worktrail.store.settings import SETTING_BROWSER_PROFILE_PATH

from .common import cli_errors


def setting_get_cmd(store: EventStore, *, key: str) -> None:
    value = store.get_setting(key)
    if value is None:
        print(f"[yellow]{key} is not set[/yellow]")
        raise typer.Exit(code=1)
    typer.echo(value)


def setting_set_cmd(store: EventStore, *, key: str, value: str) -> None:
    with cli_errors():
        store.set_setting(key, value)
    print(f"Set {key}")


def setting_unset_cmd(store: EventStore, *, key: str) -> None:
    if store.get_setting(key) is None:
        print(f"[yellow]{key} is not set[/yellow]")
        raise typer.Exit(code=1)
    store.delete_setting(key)
    print(f"Unset {key}")


def orgs_list_cmd(store: EventStore, *, json_output: bool) -> None:
    orgs = store.github_orgs()
    if json_output:
        typer.echo(json.dumps(orgs))
        return
    if not orgs:
        print("No organizations configured")
        return
    for org in orgs:
        typer.echo(org)


def org_add_cmd(store: EventStore, *, name: str) -> None:
    with cli_errors():
        store.add_github_org(name)
    print(f"Added organization {name.strip()}")


def org_remove_cmd(store: EventStore, *, name: str) -> None:
    with cli_errors():
        store.remove_github_org(name)
    print(f"Removed organization {name.strip()}")


def domains_list_cmd(store: EventStore, *, json_output: bool) -> None:
    domains = store.work_domains()
    if json_output:
        typer.echo(json.dumps([d.domain for d in domains]))
        return
    if not domains:
        print("No work domains; browser events are hidden")
        return
    for domain in domains:
        typer.echo(domain.domain)


def domain_add_cmd(store: EventStore, *, domain: str) -> None:
    with cli_errors():
        domain_id = store.add_work_domain(domain)
    print(f"Work domain {domain.strip().lower()} ({domain_id})")


def domain_remove_cmd(store: EventStore, *, domain: str) -> None:
    if not store.remove_work_domain(domain):
        print(f"[yellow]{domain} is not a work domain[/yellow]")
        raise typer.Exit(code=1)
    print(f"Removed work domain {domain.strip().lower()}")


def browser_detect_cmd(store: EventStore, *, save: bool) -> None:
    """Look for a browser profile and optionally store it."""

    profile = auto_detect_profile()
    if profile is None:
        print("[yellow]No browser profile found[/yellow]")
        raise typer.Exit(code=1)
    typer.echo(str(profile))
    if save:
        store.set_setting(SETTING_BROWSER_PROFILE_PATH, str(profile))
        print("Saved browser profile")


def calendar_status_cmd(config: WorktrailConfig) -> None:
    """Report whether the configured calendar export can be read."""

    path = config.calendar_export_path
    if not path:
        print("[yellow]No calendar export configured (set calendar_export_path)[/yellow]")
        raise typer.Exit(code=1)
    provider = JsonCalendarProvider(path)
    print(f"Calendar export: {provider.path}")
    print(f"Access: {provider.authorization_status()}")
    with cli_errors():
        CalendarSource(provider).ensure_access()


def db_reset_cmd(store: EventStore, *, yes: bool) -> None:
    if not yes:
        typer.confirm("Delete all synced events, contacts and sync state?", abort=True)
    store.reset()
    print("Database reset")
