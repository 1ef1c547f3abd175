from datetime import date, datetime, timedelta, timezone

from dateutil import parser

# Every slot boundary is rendered on the epoch day so that boundaries compare
# as plain string equality in the store.
EPOCH_DAY = "1970-01-01"


def parse_time_to_hour(time_str: str) -> int:
    """
    Get the hour bucket of a time string

    Args:
        time_str: ISO datetime ("1970-01-01T09:00:00.000Z"), "HH:mm" or a bare hour ("9")

    Returns:
        Hour of day, 0-24 (24 only marks the end of the day)

    Raises:
        ValueError: If the string is in none of the accepted formats
    """
    value = (time_str or "").strip()
    if not value:
        raise ValueError("Time string is empty.")

    try:
        if "T24:" in value:
            # end-of-day boundary produced by hour_to_iso_time(24)
            hour = 24
        elif "T" in value:
            parsed = parser.isoparse(value)
            if parsed.tzinfo is not None:
                parsed = parsed.astimezone(timezone.utc)
            hour = parsed.hour
        elif ":" in value:
            hour = int(value.split(":")[0])
        else:
            hour = int(value)
    except (ValueError, OverflowError) as e:
        raise ValueError(f'Invalid time string: "{time_str}". {str(e)}')

    if hour < 0 or hour > 24:
        raise ValueError(f'Hour out of range in time string: "{time_str}".')

    return hour


def hour_to_iso_time(hour: int) -> str:
    """Render an hour bucket as the canonical slot boundary string"""
    if hour < 0 or hour > 24:
        raise ValueError(f"Hour out of range: {hour}")
    return f"{EPOCH_DAY}T{hour:02d}:00:00.000Z"


def format_hour_range(start_hour: int, end_hour: int) -> str:
    return f"{start_hour}:00-{end_hour}:00"


def utc_now_iso(minutes_from_now: int = 0) -> str:
    """Current UTC time (optionally shifted) in the millisecond ISO format used for slots"""
    now = datetime.now(timezone.utc) + timedelta(minutes=minutes_from_now)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_date_string() -> str:
    """Current UTC date as YYYY-MM-DD"""
    return datetime.now(timezone.utc).date().isoformat()


def parse_date(date_str: str) -> date:
    """
    Parse a "YYYY-MM-DD" scheduled date

    Raises:
        ValueError: If the date is malformed
    """
    try:
        return date.fromisoformat(date_str)
    except (TypeError, ValueError):
        raise ValueError(f'Invalid date: "{date_str}". Expected YYYY-MM-DD.')


def is_past_date(date_str: str) -> bool:
    return parse_date(date_str).isoformat() < utc_date_string()
