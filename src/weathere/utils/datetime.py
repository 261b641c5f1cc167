"""DateTime utilities for the project."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current UTC time."""
    return datetime.now(timezone.utc)


def bucket_hour(ts: datetime) -> datetime:
    """Return the hour bucket containing ``ts``.

    Minutes, seconds and microseconds are zeroed. The timezone of ``ts`` is
    kept as-is (truncation only, no conversion), so naive input stays naive.
    """
    return ts.replace(minute=0, second=0, microsecond=0)


def parse_iso_timestamp(ts_iso: str) -> datetime:
    """Parse ISO timestamp string to datetime object."""
    return datetime.fromisoformat(ts_iso.strip().replace("Z", "+00:00"))


def to_utc(ts: datetime) -> datetime:
    """Return ``ts`` as an aware UTC datetime. Naive values are taken as UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def to_storage_key(ts: datetime) -> str:
    """Serialize an instant to the UTC ISO form used as a store key."""
    return to_utc(ts).isoformat()
