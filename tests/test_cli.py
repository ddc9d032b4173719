import datetime as dt
import json
from pathlib import Path

from typer.testing import CliRunner

from worktrail import __version__
from worktrail.cli import app
from worktrail.store import EVENT_TYPE_CALENDAR, CalendarPayload, Event, EventStore

runner = CliRunner()


def _db(tmp_path: Path) -> list[str]:
    return ["--db-path", str(tmp_path / "cli.sqlite")]


def test_root_help_lists_command_groups() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for group in ("sync", "events", "projects", "rules", "orgs", "domains", "db"):
        assert group in result.stdout


def test_sync_help_shows_run_status_auto() -> None:
    result = runner.invoke(app, ["sync", "--help"])
    assert result.exit_code == 0
    assert "run" in result.stdout
    assert "status" in result.stdout
    assert "auto" in result.stdout


def test_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_project_and_rule_lifecycle(tmp_path: Path) -> None:
    result = runner.invoke(app, ["projects", "create", "Acme", "--color", "#ff0000", *_db(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "Created project 1" in result.stdout

    result = runner.invoke(app, ["projects", "list", "--json", *_db(tmp_path)])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)[0]["name"] == "Acme"

    result = runner.invoke(app, ["rules", "create", "1", "domain", "github.com", *_db(tmp_path)])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["rules", "list", *_db(tmp_path)])
    assert "1|project=1|domain=github.com" in result.stdout

    result = runner.invoke(app, ["rules", "create", "1", "regex", "x", *_db(tmp_path)])
    assert result.exit_code == 1
    assert "Invalid rule type" in result.stdout

    result = runner.invoke(app, ["rules", "create", "99", "domain", "gitlab.com", *_db(tmp_path)])
    assert result.exit_code == 1
    assert "Project 99 not found" in result.stdout


def test_orgs_commands_validate_names(tmp_path: Path) -> None:
    result = runner.invoke(app, ["orgs", "add", "acme", *_db(tmp_path)])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["orgs", "add", "bad_name", *_db(tmp_path)])
    assert result.exit_code == 1

    result = runner.invoke(app, ["orgs", "list", "--json", *_db(tmp_path)])
    assert json.loads(result.stdout) == ["acme"]


def test_domains_list_shows_seeded_defaults(tmp_path: Path) -> None:
    result = runner.invoke(app, ["domains", "list", "--json", *_db(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "github.com" in json.loads(result.stdout)

    result = runner.invoke(app, ["domains", "remove", "nope.example", *_db(tmp_path)])
    assert result.exit_code == 1


def test_events_list_json(tmp_path: Path) -> None:
    store = EventStore(tmp_path / "cli.sqlite")
    start = dt.datetime(2026, 3, 1, 9, 0, tzinfo=dt.UTC)
    try:
        store.upsert_event(
            Event(
                event_type=EVENT_TYPE_CALENDAR,
                title="[team] Standup",
                start_date=start,
                end_date=start + dt.timedelta(minutes=15),
                external_id="evt-1",
                payload=CalendarPayload(),
            )
        )
    finally:
        store.close()

    result = runner.invoke(app, ["events", "list", "--json", *_db(tmp_path)])
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert [e["title"] for e in data] == ["[team] Standup"]

    result = runner.invoke(app, ["events", "list", *_db(tmp_path)])
    assert "[team] Standup" in result.stdout

    result = runner.invoke(app, ["events", "list", "--start", "last week", *_db(tmp_path)])
    assert result.exit_code == 1


def test_sync_run_without_sources_completes(tmp_path: Path) -> None:
    result = runner.invoke(app, ["sync", "run", *_db(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "[calendar] failed" in result.stdout
    assert "Sync completed" in result.stdout

    result = runner.invoke(app, ["sync", "status", "--json", *_db(tmp_path)])
    status = json.loads(result.stdout)
    assert status["sync_in_progress"] is False
    assert status["last_sync_time"] is not None


def test_db_reset_requires_confirmation(tmp_path: Path) -> None:
    runner.invoke(app, ["sync", "run", *_db(tmp_path)])

    result = runner.invoke(app, ["db", "reset", *_db(tmp_path)], input="n\n")
    assert result.exit_code == 1

    result = runner.invoke(app, ["db", "reset", "--yes", *_db(tmp_path)])
    assert result.exit_code == 0, result.output
    result = runner.invoke(app, ["sync", "status", "--json", *_db(tmp_path)])
    assert json.loads(result.stdout)["last_sync_time"] is None


def test_settings_set_get_unset(tmp_path: Path) -> None:
    result = runner.invoke(app, ["settings", "set", "git_dev_folder", "/work", *_db(tmp_path)])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["settings", "get", "git_dev_folder", *_db(tmp_path)])
    assert result.stdout.strip() == "/work"

    result = runner.invoke(app, ["settings", "unset", "git_dev_folder", *_db(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "Unset git_dev_folder" in result.stdout

    result = runner.invoke(app, ["settings", "get", "git_dev_folder", *_db(tmp_path)])
    # The first-run default comes back once the override is gone.
    assert result.stdout.strip() == str(tmp_path / "home" / "Development")

    result = runner.invoke(app, ["settings", "unset", "never_set", *_db(tmp_path)])
    assert result.exit_code == 1
    assert "is not set" in result.stdout
