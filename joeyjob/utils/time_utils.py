"""Time conversion helpers shared by availability checks and booking submission"""
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60
WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

_TIME_12H_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})\s*(am|pm)$", re.IGNORECASE)


def parse_12_hour(time_12h: str) -> Tuple[int, int]:
    """Parse "2:00 pm" / "9:30am" into a (hour, minute) pair on the 24-hour clock."""
    match = _TIME_12H_PATTERN.match(time_12h.strip()) if time_12h else None
    if not match:
        raise ValueError(f"Invalid time format: {time_12h}")

    hour = int(match.group(1))
    minute = int(match.group(2))
    period = match.group(3).lower()
    if not 1 <= hour <= 12 or minute > 59:
        raise ValueError(f"Invalid time format: {time_12h}")

    if period == "pm" and hour != 12:
        hour += 12
    elif period == "am" and hour == 12:
        hour = 0

    return hour, minute


def to_24_hour(time_12h: str) -> str:
    """Convert a 12-hour time string to "HH:MM"."""
    hour, minute = parse_12_hour(time_12h)
    return f"{hour:02d}:{minute:02d}"


def time_to_minutes(time_24h: str) -> int:
    """Minutes since midnight for an "HH:MM" string."""
    hours, minutes = time_24h.strip().split(":")[:2]
    return int(hours) * 60 + int(minutes)


def minutes_to_24_hour(minutes: int) -> str:
    """Render minutes since midnight as "HH:MM", wrapping past midnight."""
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def minutes_to_12_hour(minutes: int) -> str:
    """Render minutes since midnight as a slot label like "9:00am"."""
    minutes %= MINUTES_PER_DAY
    hours, mins = divmod(minutes, 60)
    period = "pm" if hours >= 12 else "am"
    hours = hours % 12 or 12
    return f"{hours}:{mins:02d}{period}"


def calculate_end_time(start_time_12h: str, duration_minutes: int) -> str:
    """End time in 24-hour local time; a day overflow wraps modulo 24 hours."""
    start_minutes = time_to_minutes(to_24_hour(start_time_12h))
    return minutes_to_24_hour(start_minutes + duration_minutes)


def parse_booking_date(value: str) -> date:
    """Accept "2025-09-17" or a full ISO timestamp and keep only the calendar date."""
    return date.fromisoformat(value.split("T")[0])


def resolve_timezone(name: Optional[str], default: str = "UTC") -> ZoneInfo:
    """Look up an IANA timezone, falling back to the default for unknown labels."""
    try:
        return ZoneInfo(name or default)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{name}', falling back to {default}")
        return ZoneInfo(default)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_to_utc(day: date, minutes: int, tz: ZoneInfo) -> datetime:
    """UTC instant for a wall-clock time (minutes since midnight) on a local date."""
    day = day + timedelta(days=minutes // MINUTES_PER_DAY)
    minutes %= MINUTES_PER_DAY
    local = datetime.combine(day, time(minutes // 60, minutes % 60), tzinfo=tz)
    return local.astimezone(timezone.utc)


@dataclass(frozen=True)
class BookingWindow:
    """Requested slot expressed both in UTC and in the organization's local time"""
    local_date: date
    start_time: str  # "HH:MM" local
    end_time: str  # "HH:MM" local, wraps past midnight
    start_at: datetime  # UTC
    end_at: datetime  # UTC
    timezone: str

    @property
    def duration_minutes(self) -> int:
        return int((self.end_at - self.start_at).total_seconds() // 60)


def build_booking_window(
        booking_date: str,
        time_12h: str,
        duration_minutes: int,
        timezone_name: Optional[str] = None,
        default_timezone: str = "UTC",
) -> BookingWindow:
    """Convert a date + 12-hour time in the organization timezone into a booking window."""
    tz = resolve_timezone(timezone_name, default_timezone)
    local_date = parse_booking_date(booking_date)
    start_minutes = time_to_minutes(to_24_hour(time_12h))

    start_at = local_to_utc(local_date, start_minutes, tz)
    end_at = start_at + timedelta(minutes=duration_minutes)

    return BookingWindow(
        local_date=local_date,
        start_time=minutes_to_24_hour(start_minutes),
        end_time=minutes_to_24_hour(start_minutes + duration_minutes),
        start_at=start_at,
        end_at=end_at,
        timezone=tz.key,
    )
