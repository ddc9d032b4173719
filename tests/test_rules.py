import datetime as dt

from worktrail.rules import apply_rules, url_pattern_to_like
from worktrail.store import (
    EVENT_TYPE_BROWSER,
    EVENT_TYPE_CALENDAR,
    EVENT_TYPE_VERSION_CONTROL,
    BrowserPayload,
    CalendarPayload,
    Event,
    EventStore,
    VersionControlPayload,
)

T0 = dt.datetime(2026, 3, 1, 9, 0, tzinfo=dt.UTC)


def _browser(store: EventStore, external_id: str, url: str, domain: str, repo: str | None = None) -> int:
    event_id, _ = store.upsert_event(
        Event(
            event_type=EVENT_TYPE_BROWSER,
            title=url,
            start_date=T0,
            end_date=T0,
            external_id=external_id,
            external_link=url,
            payload=BrowserPayload(url=url, domain=domain, repository_path=repo),
            repository_path=repo,
            domain=domain,
        )
    )
    return event_id


def _meeting(store: EventStore, external_id: str, title: str, organizer_id: int | None = None) -> int:
    event_id, _ = store.upsert_event(
        Event(
            event_type=EVENT_TYPE_CALENDAR,
            title=title,
            start_date=T0,
            end_date=T0 + dt.timedelta(hours=1),
            external_id=external_id,
            payload=CalendarPayload(),
            organizer_id=organizer_id,
        )
    )
    return event_id


def _commit(store: EventStore, external_id: str, repo: str) -> int:
    event_id, _ = store.upsert_event(
        Event(
            event_type=EVENT_TYPE_VERSION_CONTROL,
            title="commit",
            start_date=T0,
            end_date=T0,
            external_id=external_id,
            payload=VersionControlPayload(
                repository_id="r", repository_name=repo.split("/")[-1], activity_type="commit"
            ),
            repository_path=repo,
        )
    )
    return event_id


def test_domain_rule_assigns_browser_events(store: EventStore) -> None:
    project_id = store.create_project("Open source")
    store.create_rule(project_id, "domain", "github.com")
    gh = _browser(store, "b1", "https://github.com/acme/api", "github.com")
    other = _browser(store, "b2", "https://gitlab.com/acme/api", "gitlab.com")

    affected = apply_rules(store)

    assert affected == 1
    assert store.get_event(gh).project_id == project_id
    assert store.get_event(other).project_id is None


def test_later_rule_wins_when_two_match(store: EventStore) -> None:
    first = store.create_project("First")
    second = store.create_project("Second")
    store.create_rule(first, "domain", "github.com")
    store.create_rule(second, "repository", "acme/api")
    event_id = _browser(store, "b1", "https://github.com/acme/api", "github.com", "acme/api")

    affected = apply_rules(store)

    assert affected == 2
    assert store.get_event(event_id).project_id == second


def test_repository_rule_covers_commits_and_visits(store: EventStore) -> None:
    project_id = store.create_project("API")
    store.create_rule(project_id, "repository", "acme/api")
    commit = _commit(store, "c1", "acme/api")
    visit = _browser(store, "b1", "https://github.com/acme/api/pulls", "github.com", "acme/api")
    unrelated = _commit(store, "c2", "acme/web")

    apply_rules(store)

    assert store.get_event(commit).project_id == project_id
    assert store.get_event(visit).project_id == project_id
    assert store.get_event(unrelated).project_id is None


def test_title_pattern_is_case_insensitive_substring(store: EventStore) -> None:
    project_id = store.create_project("Planning")
    store.create_rule(project_id, "title_pattern", "sprint")
    hit = _meeting(store, "m1", "Q2 Sprint Planning")
    miss = _meeting(store, "m2", "Lunch")

    apply_rules(store)

    assert store.get_event(hit).project_id == project_id
    assert store.get_event(miss).project_id is None


def test_organizer_rule_matches_contact_name(store: EventStore) -> None:
    project_id = store.create_project("Client")
    store.create_rule(project_id, "organizer", "Grace Hopper")
    grace = store.upsert_contact("Grace Hopper", "grace@example.com")
    other = store.upsert_contact("Someone Else")
    hit = _meeting(store, "m1", "Review", organizer_id=grace)
    miss = _meeting(store, "m2", "Review", organizer_id=other)

    apply_rules(store)

    assert store.get_event(hit).project_id == project_id
    assert store.get_event(miss).project_id is None


def test_url_pattern_supports_wildcards(store: EventStore) -> None:
    project_id = store.create_project("Docs")
    store.create_rule(project_id, "url_pattern", "https://docs.google.com/*")
    hit = _browser(store, "b1", "https://docs.google.com/document/d/1", "docs.google.com")
    miss = _browser(store, "b2", "https://drive.google.com/file/1", "drive.google.com")

    apply_rules(store)

    assert store.get_event(hit).project_id == project_id
    assert store.get_event(miss).project_id is None


def test_url_pattern_to_like() -> None:
    assert url_pattern_to_like("https://*.example.com/?") == "https://%.example.com/_"
    assert url_pattern_to_like("%already%") == "%already%"


def test_apply_rules_without_rules_touches_nothing(store: EventStore) -> None:
    _meeting(store, "m1", "Standup")
    assert apply_rules(store) == 0
