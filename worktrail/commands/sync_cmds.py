from __future__ import annotations

import json
import queue
import threading

import typer
from rich import print

from worktrail.config import WorktrailConfig
from worktrail.rules import apply_rules
from worktrail.store import EVENT_TYPES, EventStore
from worktrail.sync import (
    Cancelled,
    Completed,
    Failed,
    Progress,
    ProgressBus,
    SourceCompleted,
    Started,
    SyncAlreadyRunning,
    SyncEvent,
    SyncOrchestrator,
    is_terminal,
    run_auto_sync,
)


def render_event(event: SyncEvent) -> str:
    if isinstance(event, Started):
        return f"Sync started at {event.timestamp.isoformat()}"
    if isinstance(event, Progress):
        return f"[{event.source}] {event.status}: {event.message}"
    if isinstance(event, SourceCompleted):
        return f"[{event.source}] {event.new_count} new, {event.updated_count} updated"
    if isinstance(event, Completed):
        return (
            f"Sync completed: {event.total_new} new, {event.total_updated} updated "
            f"in {event.duration_ms} ms"
        )
    if isinstance(event, Cancelled):
        return "Sync cancelled"
    if isinstance(event, Failed):
        where = event.source or "sync"
        return f"[{where}] failed: {event.error}"
    return repr(event)


def sync_run_cmd(
    store: EventStore,
    *,
    config: WorktrailConfig,
    apply: bool,
    json_output: bool,
) -> None:
    """Run one sync pass, streaming progress until it finishes."""

    bus = ProgressBus(config.progress_queue_size)
    events = bus.subscribe()
    orchestrator = SyncOrchestrator(store, bus=bus, config=config)
    try:
        handle = orchestrator.start()
    except SyncAlreadyRunning as exc:
        print(f"[yellow]{exc}[/yellow]")
        raise typer.Exit(code=1) from exc
    try:
        while True:
            try:
                event = events.get(timeout=0.5)
            except queue.Empty:
                if handle.done and events.empty():
                    break
                continue
            if json_output:
                typer.echo(json.dumps(event.to_dict()))
            else:
                typer.echo(render_event(event))
            if is_terminal(event):
                break
    except KeyboardInterrupt:
        handle.cancel()
    outcome = handle.result()
    bus.unsubscribe(events)
    if apply and outcome.status == "completed":
        affected = apply_rules(store)
        if not json_output:
            print(f"Applied rules to {affected} events")
    if outcome.status == "failed":
        raise typer.Exit(code=1)


def sync_status_cmd(store: EventStore, *, json_output: bool) -> None:
    """Show the last sync time and whether a sync is running."""

    status = store.get_sync_status()
    if json_output:
        typer.echo(json.dumps(status.to_dict()))
        return
    last = status.last_sync_time.isoformat() if status.last_sync_time else "never"
    print(f"Last sync: {last}")
    print(f"In progress: {'yes' if status.sync_in_progress else 'no'}")
    for event_type in EVENT_TYPES:
        print(f"- {event_type}: {store.count_events(event_type)}")


def sync_auto_cmd(*, config: WorktrailConfig, db_path: str | None, interval_s: int | None) -> None:
    """Sync periodically until interrupted."""

    if interval_s is not None:
        config.auto_sync_interval_s = interval_s
    stop = threading.Event()
    print(f"Auto-sync every {config.auto_sync_interval_s}s (Ctrl-C to stop)")
    try:
        run_auto_sync(config, db_path=db_path, stop_event=stop)
    except KeyboardInterrupt:
        stop.set()
        print("Auto-sync stopped")
