"""Progress notifications emitted by a sync pass and the bus that carries them."""

from __future__ import annotations

import datetime as dt
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, ClassVar, Final

from ..utils import iso

logger = logging.getLogger(__name__)

SOURCE_CALENDAR: Final = "calendar"
SOURCE_VERSION_CONTROL: Final = "version_control"
SOURCE_BROWSER: Final = "browser"

STATUS_STARTING: Final = "starting"
STATUS_IN_PROGRESS: Final = "in_progress"
STATUS_COMPLETED: Final = "completed"
STATUS_FAILED: Final = "failed"

DEFAULT_QUEUE_SIZE: Final = 256


@dataclass(frozen=True, slots=True)
class Started:
    type: ClassVar[str] = "started"

    timestamp: dt.datetime

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "timestamp": iso(self.timestamp)}


@dataclass(frozen=True, slots=True)
class Progress:
    type: ClassVar[str] = "progress"

    source: str
    status: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "source": self.source,
            "status": self.status,
            "message": self.message,
        }


@dataclass(frozen=True, slots=True)
class SourceCompleted:
    type: ClassVar[str] = "source_completed"

    source: str
    new_count: int
    updated_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "source": self.source,
            "new_count": self.new_count,
            "updated_count": self.updated_count,
        }


@dataclass(frozen=True, slots=True)
class Completed:
    type: ClassVar[str] = "completed"

    total_new: int
    total_updated: int
    duration_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "total_new": self.total_new,
            "total_updated": self.total_updated,
            "duration_ms": self.duration_ms,
        }


@dataclass(frozen=True, slots=True)
class Cancelled:
    type: ClassVar[str] = "cancelled"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type}


@dataclass(frozen=True, slots=True)
class Failed:
    type: ClassVar[str] = "failed"

    source: str | None
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "source": self.source, "error": self.error}


SyncEvent = Started | Progress | SourceCompleted | Completed | Cancelled | Failed


def is_terminal(event: SyncEvent) -> bool:
    """True for the last event of a pass: completion, cancellation or a top-level failure."""

    if isinstance(event, Failed):
        return event.source is None
    return isinstance(event, (Completed, Cancelled))


class ProgressBus:
    """Thread-safe fan-out of sync events to bounded subscriber queues.

    A subscriber only sees events published after it subscribed. When its
    queue is full the event is dropped for that subscriber alone.
    """

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE) -> None:
        self.maxsize = maxsize
        self._queues: list[queue.Queue[SyncEvent]] = []
        self._lock = threading.RLock()

    def subscribe(self, maxsize: int | None = None) -> queue.Queue[SyncEvent]:
        q: queue.Queue[SyncEvent] = queue.Queue(
            maxsize=self.maxsize if maxsize is None else maxsize
        )
        with self._lock:
            self._queues.append(q)
        return q

    def unsubscribe(self, queue_ref: queue.Queue[SyncEvent]) -> None:
        with self._lock:
            if queue_ref in self._queues:
                self._queues.remove(queue_ref)

    def publish(self, event: SyncEvent) -> None:
        with self._lock:
            targets = list(self._queues)
        for q in targets:
            try:
                q.put_nowait(event)
            except queue.Full:
                logger.warning("progress subscriber queue full; dropping %s event", event.type)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._queues)


def drain(q: queue.Queue[SyncEvent]) -> list[SyncEvent]:
    """Everything currently buffered in ``q``, without blocking."""

    events: list[SyncEvent] = []
    while True:
        try:
            events.append(q.get_nowait())
        except queue.Empty:
            return events
