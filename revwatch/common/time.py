"""Common time utilities."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for DB defaults."""
    return dt.datetime.now(dt.UTC)


def from_epoch_seconds(seconds: int | str) -> dt.datetime:
    """Convert a Unix timestamp (as emitted by ``git log %ct``) to aware UTC."""
    return dt.datetime.fromtimestamp(int(seconds), dt.UTC)


def ensure_utc(value: dt.datetime) -> dt.datetime:
    """Return ``value`` in UTC, treating naive datetimes as already UTC.

    Baselines read back from SQLite and dates typed by hand are frequently
    naive; comparing them against aware commit timestamps would raise.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.UTC)
    return value.astimezone(dt.UTC)


def parse_iso_timestamp(text: str) -> dt.datetime:
    """Parse an ISO 8601 timestamp such as Subversion's ``svn:date`` value.

    Raises
    ------
    ValueError
        If ``text`` is not a valid ISO 8601 timestamp.

    """
    return ensure_utc(dt.datetime.fromisoformat(text.strip()))
