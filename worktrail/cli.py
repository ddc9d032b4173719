from __future__ import annotations

import typer
from rich import print

from . import __version__
from .commands.common import (
    configure_logging,
    load_config_or_exit,
    parse_date_option,
    store_from_path,
)
from .commands.project_cmds import (
    event_assign_cmd,
    events_list_cmd,
    project_create_cmd,
    project_delete_cmd,
    project_events_cmd,
    project_update_cmd,
    projects_list_cmd,
    rule_create_cmd,
    rule_delete_cmd,
    rule_update_cmd,
    rules_apply_cmd,
    rules_list_cmd,
)
from .commands.settings_cmds import (
    browser_detect_cmd,
    calendar_status_cmd,
    db_reset_cmd,
    domain_add_cmd,
    domain_remove_cmd,
    domains_list_cmd,
    org_add_cmd,
    org_remove_cmd,
    orgs_list_cmd,
    setting_get_cmd,
    setting_set_cmd,
    setting_unset_cmd,
)
from .commands.sync_cmds import sync_auto_cmd, sync_run_cmd, sync_status_cmd
from .store import RULE_TYPES

app = typer.Typer(help="worktrail: a local timeline of calendar, git and browser activity")
sync_app = typer.Typer(help="Pull activity from every source")
events_app = typer.Typer(help="Browse stored events")
projects_app = typer.Typer(help="Manage projects")
rules_app = typer.Typer(help="Manage project classification rules")
settings_app = typer.Typer(help="Read and write source settings")
orgs_app = typer.Typer(help="Organizations whose repositories are tracked in browser history")
domains_app = typer.Typer(help="Work domains that make browser events visible")
browser_app = typer.Typer(help="Browser history source")
calendar_app = typer.Typer(help="Calendar source")
db_app = typer.Typer(help="Database maintenance")
app.add_typer(sync_app, name="sync")
app.add_typer(events_app, name="events")
app.add_typer(projects_app, name="projects")
app.add_typer(rules_app, name="rules")
app.add_typer(settings_app, name="settings")
app.add_typer(orgs_app, name="orgs")
app.add_typer(domains_app, name="domains")
app.add_typer(browser_app, name="browser")
app.add_typer(calendar_app, name="calendar")
app.add_typer(db_app, name="db")

DB_PATH_HELP = "Path to SQLite database"


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress details"),
) -> None:
    configure_logging(verbose)


@sync_app.command("run")
def sync_run(
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    apply_rules: bool = typer.Option(False, "--apply-rules", help="Apply project rules afterwards"),
    json_output: bool = typer.Option(False, "--json", help="Print progress events as JSON lines"),
) -> None:
    """Run one sync pass over calendar, git and browser history."""

    config = load_config_or_exit()
    store = store_from_path(db_path, config)
    try:
        sync_run_cmd(store, config=config, apply=apply_rules, json_output=json_output)
    finally:
        store.close()


@sync_app.command("status")
def sync_status(
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    json_output: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """Show the last sync time and event counts."""

    store = store_from_path(db_path)
    try:
        sync_status_cmd(store, json_output=json_output)
    finally:
        store.close()


@sync_app.command("auto")
def sync_auto(
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    interval_s: int = typer.Option(None, help="Seconds between sync passes"),
) -> None:
    """Keep syncing on an interval until interrupted."""

    config = load_config_or_exit()
    # Opening the store once seeds first-run settings before the loop starts.
    store_from_path(db_path, config).close()
    sync_auto_cmd(config=config, db_path=db_path, interval_s=interval_s)


@events_app.command("list")
def events_list(
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    start: str = typer.Option(None, help="ISO 8601 start of range"),
    end: str = typer.Option(None, help="ISO 8601 end of range"),
    limit: int = typer.Option(None, help="Show only the most recent N events"),
    json_output: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """List visible events, oldest first."""

    start_dt = parse_date_option(start, name="start")
    end_dt = parse_date_option(end, name="end")
    store = store_from_path(db_path)
    try:
        events_list_cmd(store, start=start_dt, end=end_dt, limit=limit, json_output=json_output)
    finally:
        store.close()


@events_app.command("assign")
def events_assign(
    event_id: int,
    project_id: int = typer.Argument(None, help="Project id; omit to clear"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Assign an event to a project by hand."""

    store = store_from_path(db_path)
    try:
        event_assign_cmd(store, event_id=event_id, project_id=project_id)
    finally:
        store.close()


@projects_app.command("list")
def projects_list(
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    json_output: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """List projects by name."""

    store = store_from_path(db_path)
    try:
        projects_list_cmd(store, json_output=json_output)
    finally:
        store.close()


@projects_app.command("create")
def projects_create(
    name: str,
    color: str = typer.Option(None, help="Display color, e.g. #3b82f6"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Create a project."""

    store = store_from_path(db_path)
    try:
        project_create_cmd(store, name=name, color=color)
    finally:
        store.close()


@projects_app.command("update")
def projects_update(
    project_id: int,
    name: str = typer.Option(None, help="New name"),
    color: str = typer.Option(None, help="New color"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Rename or recolor a project."""

    store = store_from_path(db_path)
    try:
        project_update_cmd(store, project_id=project_id, name=name, color=color)
    finally:
        store.close()


@projects_app.command("delete")
def projects_delete(
    project_id: int,
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Delete a project and its rules; its events are kept unassigned."""

    store = store_from_path(db_path)
    try:
        project_delete_cmd(store, project_id=project_id)
    finally:
        store.close()


@projects_app.command("events")
def projects_events(
    project_id: int,
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    start: str = typer.Option(None, help="ISO 8601 start of range"),
    end: str = typer.Option(None, help="ISO 8601 end of range"),
    json_output: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """List a project's events, newest first."""

    start_dt = parse_date_option(start, name="start")
    end_dt = parse_date_option(end, name="end")
    store = store_from_path(db_path)
    try:
        project_events_cmd(
            store, project_id=project_id, start=start_dt, end=end_dt, json_output=json_output
        )
    finally:
        store.close()


@rules_app.command("list")
def rules_list(
    project_id: int = typer.Option(None, help="Only rules for this project"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    json_output: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """List rules in the order they are applied."""

    store = store_from_path(db_path)
    try:
        rules_list_cmd(store, project_id=project_id, json_output=json_output)
    finally:
        store.close()


@rules_app.command("create")
def rules_create(
    project_id: int,
    rule_type: str = typer.Argument(..., help=f"One of: {', '.join(RULE_TYPES)}"),
    match_value: str = typer.Argument(..., help="Value to match"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Create a rule that assigns matching events to a project."""

    store = store_from_path(db_path)
    try:
        rule_create_cmd(store, project_id=project_id, rule_type=rule_type, match_value=match_value)
    finally:
        store.close()


@rules_app.command("update")
def rules_update(
    rule_id: int,
    rule_type: str = typer.Argument(..., help=f"One of: {', '.join(RULE_TYPES)}"),
    match_value: str = typer.Argument(..., help="Value to match"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Change a rule's type or value."""

    store = store_from_path(db_path)
    try:
        rule_update_cmd(store, rule_id=rule_id, rule_type=rule_type, match_value=match_value)
    finally:
        store.close()


@rules_app.command("delete")
def rules_delete(
    rule_id: int,
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Delete a rule."""

    store = store_from_path(db_path)
    try:
        rule_delete_cmd(store, rule_id=rule_id)
    finally:
        store.close()


@rules_app.command("apply")
def rules_apply(db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Apply every rule to the stored events."""

    store = store_from_path(db_path)
    try:
        rules_apply_cmd(store)
    finally:
        store.close()


@settings_app.command("get")
def settings_get(key: str, db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Print a setting value."""

    store = store_from_path(db_path)
    try:
        setting_get_cmd(store, key=key)
    finally:
        store.close()


@settings_app.command("set")
def settings_set(
    key: str,
    value: str,
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Set a setting, e.g. git_dev_folder or browser_profile_path."""

    store = store_from_path(db_path)
    try:
        setting_set_cmd(store, key=key, value=value)
    finally:
        store.close()


@settings_app.command("unset")
def settings_unset(key: str, db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Remove a setting so its default or auto-detection applies again."""

    store = store_from_path(db_path)
    try:
        setting_unset_cmd(store, key=key)
    finally:
        store.close()


@orgs_app.command("list")
def orgs_list(
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    json_output: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """List tracked organizations."""

    store = store_from_path(db_path)
    try:
        orgs_list_cmd(store, json_output=json_output)
    finally:
        store.close()


@orgs_app.command("add")
def orgs_add(name: str, db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Track an organization's repositories in browser history."""

    store = store_from_path(db_path)
    try:
        org_add_cmd(store, name=name)
    finally:
        store.close()


@orgs_app.command("remove")
def orgs_remove(name: str, db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Stop tracking an organization."""

    store = store_from_path(db_path)
    try:
        org_remove_cmd(store, name=name)
    finally:
        store.close()


@domains_app.command("list")
def domains_list(
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
    json_output: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """List work domains."""

    store = store_from_path(db_path)
    try:
        domains_list_cmd(store, json_output=json_output)
    finally:
        store.close()


@domains_app.command("add")
def domains_add(domain: str, db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Add a work domain."""

    store = store_from_path(db_path)
    try:
        domain_add_cmd(store, domain=domain)
    finally:
        store.close()


@domains_app.command("remove")
def domains_remove(domain: str, db_path: str = typer.Option(None, help=DB_PATH_HELP)) -> None:
    """Remove a work domain."""

    store = store_from_path(db_path)
    try:
        domain_remove_cmd(store, domain=domain)
    finally:
        store.close()


@browser_app.command("detect")
def browser_detect(
    save: bool = typer.Option(False, "--save", help="Store the detected profile path"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Find a Zen or Firefox profile with browsing history."""

    store = store_from_path(db_path)
    try:
        browser_detect_cmd(store, save=save)
    finally:
        store.close()


@calendar_app.command("status")
def calendar_status() -> None:
    """Check that the calendar export can be read."""

    calendar_status_cmd(load_config_or_exit())


@db_app.command("reset")
def db_reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
    db_path: str = typer.Option(None, help=DB_PATH_HELP),
) -> None:
    """Delete synced events, contacts and sync state; keep projects and settings."""

    store = store_from_path(db_path)
    try:
        db_reset_cmd(store, yes=yes)
    finally:
        store.close()


@app.command("version")
def version() -> None:
    """Print version."""

    print(__version__)


def main() -> None:
    app()
