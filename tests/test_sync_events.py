import datetime as dt
import logging

import pytest

from worktrail.sync import (
    CancellationToken,
    Cancelled,
    Completed,
    Failed,
    Progress,
    ProgressBus,
    SourceCompleted,
    Started,
    SyncCancelled,
    is_terminal,
)
from worktrail.sync.events import drain


def test_subscribers_only_see_later_events() -> None:
    bus = ProgressBus()
    early = bus.subscribe()
    bus.publish(Started(dt.datetime(2026, 3, 1, tzinfo=dt.UTC)))
    late = bus.subscribe()
    bus.publish(Progress("calendar", "starting", "Checking calendar access"))

    assert len(drain(early)) == 2
    assert drain(late) == [Progress("calendar", "starting", "Checking calendar access")]


def test_full_queue_drops_for_that_subscriber_only(caplog: pytest.LogCaptureFixture) -> None:
    bus = ProgressBus()
    slow = bus.subscribe(maxsize=1)
    fast = bus.subscribe()

    with caplog.at_level(logging.WARNING, logger="worktrail.sync.events"):
        bus.publish(Progress("browser", "starting", "a"))
        bus.publish(Progress("browser", "in_progress", "b"))

    assert [e.message for e in drain(slow)] == ["a"]
    assert [e.message for e in drain(fast)] == ["a", "b"]
    assert "queue full" in caplog.text


def test_unsubscribe_stops_delivery() -> None:
    bus = ProgressBus()
    q = bus.subscribe()
    assert bus.subscriber_count == 1
    bus.unsubscribe(q)
    bus.unsubscribe(q)
    bus.publish(Cancelled())

    assert bus.subscriber_count == 0
    assert drain(q) == []


def test_event_dicts_carry_type_tags() -> None:
    started = Started(dt.datetime(2026, 3, 1, 9, 0, tzinfo=dt.UTC))

    assert started.to_dict() == {"type": "started", "timestamp": "2026-03-01T09:00:00+00:00"}
    assert SourceCompleted("version_control", 3, 1).to_dict() == {
        "type": "source_completed",
        "source": "version_control",
        "new_count": 3,
        "updated_count": 1,
    }
    assert Completed(4, 2, 120).to_dict()["type"] == "completed"
    assert Failed(None, "boom").to_dict() == {"type": "failed", "source": None, "error": "boom"}


def test_is_terminal() -> None:
    assert is_terminal(Completed(0, 0, 0))
    assert is_terminal(Cancelled())
    assert is_terminal(Failed(None, "boom"))
    assert not is_terminal(Failed("browser", "boom"))
    assert not is_terminal(Progress("browser", "completed", "done"))


def test_cancellation_token() -> None:
    token = CancellationToken()
    token.raise_if_cancelled()
    assert token.cancelled is False

    token.cancel()

    assert token.cancelled is True
    with pytest.raises(SyncCancelled):
        token.raise_if_cancelled()
