from __future__ import annotations

import datetime as dt

from .errors import ParseError


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.UTC).replace(microsecond=0)


def parse_iso8601(value: str) -> dt.datetime | None:
    raw = value.strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = dt.datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.UTC)
    return parsed.astimezone(dt.UTC)


def require_iso8601(value: object, *, field: str) -> dt.datetime:
    if isinstance(value, dt.datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)
    if not isinstance(value, str):
        raise ParseError(f"{field}: expected an RFC 3339 timestamp, got {value!r}")
    parsed = parse_iso8601(value)
    if parsed is None:
        raise ParseError(f"{field}: invalid timestamp {value!r}")
    return parsed


def to_epoch(value: dt.datetime) -> int:
    return int(value.timestamp())


def from_epoch(seconds: int | float) -> dt.datetime:
    return dt.datetime.fromtimestamp(int(seconds), dt.UTC)


def from_epoch_micros(micros: int) -> dt.datetime:
    return from_epoch(micros // 1_000_000)


def to_epoch_micros(value: dt.datetime) -> int:
    return to_epoch(value) * 1_000_000


def iso(value: dt.datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(dt.UTC).isoformat()
