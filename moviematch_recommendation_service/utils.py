"""Small time helpers shared by repositories and services."""
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """
    Attach UTC to naive datetimes read back from the database.

    SQLite drops tzinfo on the way out, MySQL never stores it.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
