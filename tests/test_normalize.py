import datetime as dt
from pathlib import Path

from worktrail import normalize
from worktrail.sources.types import BrowserVisit, CalendarRecord, GitActivity, GitRepository
from worktrail.store import EVENT_TYPE_BROWSER, EVENT_TYPE_CALENDAR, EVENT_TYPE_VERSION_CONTROL

T0 = dt.datetime(2026, 3, 1, 9, 0, tzinfo=dt.UTC)


def test_parse_repository_path_handles_ssh_and_https() -> None:
    assert normalize.parse_repository_path("git@github.com:acme/api.git") == "acme/api"
    assert normalize.parse_repository_path("https://github.com/acme/api.git") == "acme/api"
    assert normalize.parse_repository_path("https://gitlab.com/group/sub/repo") == "group/sub/repo"
    assert (
        normalize.parse_repository_path("git@gitlab.com:group/subgroup/project.git")
        == "group/subgroup/project"
    )
    assert normalize.parse_repository_path("/srv/git/repo") is None


def test_extract_domain() -> None:
    assert normalize.extract_domain("https://docs.google.com/document/d/1") == "docs.google.com"
    assert normalize.extract_domain("https://example.com") == "example.com"
    assert normalize.extract_domain("not a url") == "not a url"


def test_extract_repository_path_from_code_host_urls() -> None:
    assert (
        normalize.extract_repository_path_from_url("https://github.com/facebook/react/issues/1")
        == "facebook/react"
    )
    assert (
        normalize.extract_repository_path_from_url("https://github.com/acme/api?tab=readme")
        == "acme/api"
    )
    assert normalize.extract_repository_path_from_url("https://github.com/acme") is None
    assert normalize.extract_repository_path_from_url("https://example.com/acme/api") is None


def test_truncate_url() -> None:
    long_url = "https://example.com/" + "a" * 100
    truncated = normalize.truncate_url(long_url)
    assert len(truncated) == 80
    assert truncated.endswith("...")
    assert normalize.truncate_url("https://example.com") == "https://example.com"


def test_clean_notes_collapses_blank_runs() -> None:
    assert normalize.clean_notes("\n\nAgenda  \n\n\n- item\n\n") == "Agenda\n\n- item"
    assert normalize.clean_notes("   \n") is None
    assert normalize.clean_notes(None) is None


def test_should_store_visit() -> None:
    assert normalize.should_store_visit(None, [], []) is True
    assert normalize.should_store_visit("acme/api", ["acme/api"], []) is True
    assert normalize.should_store_visit("acme/web", [], ["acme"]) is True
    assert normalize.should_store_visit("acmeco/web", [], ["acme"]) is False
    assert normalize.should_store_visit("other/repo", ["acme/api"], ["acme"]) is False


def test_calendar_event() -> None:
    record = CalendarRecord(
        event_id="uid-1",
        title="Planning",
        start=T0,
        end=T0 + dt.timedelta(hours=1),
        location="Room 4",
        notes="Agenda\n\n\n",
        attendees=("Ada", "Grace"),
        organizer="Grace",
    )

    event = normalize.calendar_event(record, organizer_id=7)

    assert event.event_type == EVENT_TYPE_CALENDAR
    assert event.external_id == "uid-1"
    assert event.organizer_id == 7
    assert event.payload.notes == "Agenda"
    assert event.payload.attendees == ["Ada", "Grace"]


def test_version_control_event() -> None:
    repo = GitRepository(
        repository_id="abc123",
        repository_name="api",
        local_path=Path("/dev/api"),
        repository_path="acme/api",
        origin_url="git@github.com:acme/api.git",
    )
    activity = GitActivity(
        repository=repo,
        activity_type="checkout",
        timestamp=T0,
        title="Switched to feature (from main)",
        ref_name="feature",
        commit_hash="cafe",
    )

    event = normalize.version_control_event(activity)

    assert event.event_type == EVENT_TYPE_VERSION_CONTROL
    assert event.external_id == "abc123:2026-03-01T09:00:00+00:00"
    assert event.start_date == event.end_date == T0
    assert event.repository_path == "acme/api"
    assert event.payload.ref_name == "feature"


def test_browser_event_uses_url_when_title_missing() -> None:
    url = "https://github.com/acme/api/pull/12"
    micros = int(T0.timestamp()) * 1_000_000 + 123
    visit = BrowserVisit(url=url, title=None, visit_date=micros, visit_count=3)

    event = normalize.browser_event(visit)

    assert event.event_type == EVENT_TYPE_BROWSER
    assert event.title == url
    assert event.start_date == T0
    assert event.domain == "github.com"
    assert event.repository_path == "acme/api"
    assert event.external_link == url
    assert event.external_id == normalize.browser_external_id(url, micros)
    assert event.external_id.startswith("browser-")


def test_browser_external_id_distinguishes_visits() -> None:
    url = "https://example.com"
    assert normalize.browser_external_id(url, 1) != normalize.browser_external_id(url, 2)
    assert normalize.browser_external_id(url, 1) == normalize.browser_external_id(url, 1)
