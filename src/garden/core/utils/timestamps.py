"""UTC timestamp helpers and the lexically sortable storage format"""

from datetime import datetime, timezone

from garden.errors import InvalidDatetimeError


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_datetime(value: datetime) -> str:
    """Render as fixed-width ISO-8601 UTC text (microsecond precision) so string order matches time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_datetime(value: str, field: str) -> datetime:
    """Parse a stored timestamp. Raises InvalidDatetimeError if malformed or naive."""
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise InvalidDatetimeError(field, str(value)) from e
    if parsed.tzinfo is None:
        raise InvalidDatetimeError(field, value)
    return parsed.astimezone(timezone.utc)
