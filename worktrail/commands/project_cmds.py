from __future__ import annotations

import datetime as dt

import typer
from rich import print

from worktrail.rules import apply_rules
from worktrail.store import EventStore

from .common import cli_errors, format_event_line, print_json


def events_list_cmd(
    store: EventStore,
    *,
    start: dt.datetime | None,
    end: dt.datetime | None,
    limit: int | None,
    json_output: bool,
) -> None:
    """List visible events in a date range, oldest first."""

    events = store.list_events(start, end)
    if limit is not None and limit >= 0:
        events = events[-limit:] if limit else []
    if json_output:
        print_json([event.to_dict() for event in events])
        return
    if not events:
        print("No events")
        return
    for event in events:
        typer.echo(format_event_line(event))


def projects_list_cmd(store: EventStore, *, json_output: bool) -> None:
    projects = store.list_projects()
    if json_output:
        print_json(
            [
                {
                    "id": p.id,
                    "name": p.name,
                    "color": p.color,
                    "created_at": p.created_at.isoformat(),
                }
                for p in projects
            ]
        )
        return
    if not projects:
        print("No projects")
        return
    for project in projects:
        color = f" ({project.color})" if project.color else ""
        typer.echo(f"{project.id}|{project.name}{color}")


def project_create_cmd(store: EventStore, *, name: str, color: str | None) -> None:
    with cli_errors():
        project_id = store.create_project(name, color)
    print(f"Created project {project_id}")


def project_update_cmd(
    store: EventStore, *, project_id: int, name: str | None, color: str | None
) -> None:
    with cli_errors():
        current = store.get_project(project_id)
        if current is None:
            print(f"[red]Project {project_id} not found[/red]")
            raise typer.Exit(code=1)
        store.update_project(
            project_id,
            name if name is not None else current.name,
            color if color is not None else current.color,
        )
    print(f"Updated project {project_id}")


def project_delete_cmd(store: EventStore, *, project_id: int) -> None:
    with cli_errors():
        store.delete_project(project_id)
    print(f"Deleted project {project_id}")


def project_events_cmd(
    store: EventStore,
    *,
    project_id: int,
    start: dt.datetime | None,
    end: dt.datetime | None,
    json_output: bool,
) -> None:
    """List a project's events, newest first."""

    events = store.events_by_project(project_id, start, end)
    if json_output:
        print_json([event.to_dict() for event in events])
        return
    if not events:
        print("No events")
        return
    for event in events:
        typer.echo(format_event_line(event))


def event_assign_cmd(store: EventStore, *, event_id: int, project_id: int | None) -> None:
    with cli_errors():
        store.assign_event_to_project(event_id, project_id)
    if project_id is None:
        print(f"Cleared project on event {event_id}")
    else:
        print(f"Assigned event {event_id} to project {project_id}")


def rules_list_cmd(store: EventStore, *, project_id: int | None, json_output: bool) -> None:
    rules = store.list_rules(project_id)
    if json_output:
        print_json(
            [
                {
                    "id": r.id,
                    "project_id": r.project_id,
                    "rule_type": r.rule_type,
                    "match_value": r.match_value,
                    "created_at": r.created_at.isoformat(),
                }
                for r in rules
            ]
        )
        return
    if not rules:
        print("No rules")
        return
    for rule in rules:
        typer.echo(f"{rule.id}|project={rule.project_id}|{rule.rule_type}={rule.match_value}")


def rule_create_cmd(store: EventStore, *, project_id: int, rule_type: str, match_value: str) -> None:
    with cli_errors():
        if store.get_project(project_id) is None:
            print(f"[red]Project {project_id} not found[/red]")
            raise typer.Exit(code=1)
        rule_id = store.create_rule(project_id, rule_type, match_value)
    print(f"Created rule {rule_id}")


def rule_update_cmd(store: EventStore, *, rule_id: int, rule_type: str, match_value: str) -> None:
    with cli_errors():
        store.update_rule(rule_id, rule_type, match_value)
    print(f"Updated rule {rule_id}")


def rule_delete_cmd(store: EventStore, *, rule_id: int) -> None:
    with cli_errors():
        store.delete_rule(rule_id)
    print(f"Deleted rule {rule_id}")


def rules_apply_cmd(store: EventStore) -> None:
    with cli_errors():
        affected = apply_rules(store)
    print(f"Applied rules to {affected} events")
