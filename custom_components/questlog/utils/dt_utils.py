# File: utils/dt_utils.py
"""Date and time utilities for QuestLog.

Pure Python date/time functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

Day keys are local-calendar ``YYYY-MM-DD`` strings. All day arithmetic is done
on ``datetime.date`` values, never by offsetting UTC timestamps, so results are
stable across DST transitions.

Functions:
    - set_default_timezone / get_default_timezone: Configure the local zone
    - dt_now_local: Current datetime in local timezone
    - dt_today_local: Today's date in local timezone
    - now_ts: Current epoch time in milliseconds
    - day_key: Format a date as a day key
    - today_key: Today's day key
    - parse_day_key: Parse a day key back into a date
    - add_days: Shift a day key by N calendar days
    - weekday_index: Weekday of a day key (0=Sun..6=Sat)
    - week_start_of: Monday key of the week containing a day key
    - week_days: The seven day keys of a week
    - is_valid_day_key: Validate a day key string
"""

from __future__ import annotations

from datetime import date, datetime
import logging
from zoneinfo import ZoneInfo

# Third-party date utilities (no HA dependency)
from dateutil.relativedelta import MO, relativedelta

# Module-level logger (no HA dependency)
_LOGGER = logging.getLogger(__name__)

# Default timezone - can be overridden by caller
DEFAULT_TIME_ZONE: ZoneInfo = ZoneInfo("UTC")

DAY_KEY_FORMAT = "%Y-%m-%d"
DAYS_IN_WEEK = 7


# ==============================================================================
# Timezone Configuration
# ==============================================================================


def set_default_timezone(tz: ZoneInfo) -> None:
    """Set the default timezone for all dt_utils functions.

    Call this during integration setup to configure the user's timezone.

    Args:
        tz: ZoneInfo object representing the default timezone
    """
    global DEFAULT_TIME_ZONE  # noqa: PLW0603
    DEFAULT_TIME_ZONE = tz


def get_default_timezone() -> ZoneInfo:
    """Get the current default timezone."""
    return DEFAULT_TIME_ZONE


# ==============================================================================
# Current Date/Time Functions
# ==============================================================================


def dt_now_local(tz: ZoneInfo | None = None) -> datetime:
    """Return the current datetime in local timezone (timezone-aware).

    Args:
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.

    Returns:
        Current datetime in the specified timezone.
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    return datetime.now(tz_info)


def dt_today_local(tz: ZoneInfo | None = None) -> date:
    """Return today's date in local timezone as a `datetime.date`.

    Example:
        datetime.date(2025, 3, 10)
    """
    return dt_now_local(tz).date()


def now_ts() -> int:
    """Return the current epoch time in milliseconds."""
    return int(datetime.now(DEFAULT_TIME_ZONE).timestamp() * 1000)


# ==============================================================================
# Day Keys
# ==============================================================================


def day_key(value: date | datetime, tz: ZoneInfo | None = None) -> str:
    """Format a date (or aware datetime) as a local day key.

    Aware datetimes are converted to the local timezone first so a late-evening
    UTC instant lands on the correct local calendar day.

    Args:
        value: A date, or a datetime (naive datetimes are taken as local)
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.

    Returns:
        Day key string

    Examples:
        day_key(date(2025, 3, 10)) → "2025-03-10"
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz or DEFAULT_TIME_ZONE)
        value = value.date()
    return value.strftime(DAY_KEY_FORMAT)


def today_key(tz: ZoneInfo | None = None) -> str:
    """Return today's local day key."""
    return day_key(dt_today_local(tz))


def parse_day_key(key: str) -> date:
    """Parse a day key into a `datetime.date`.

    Raises:
        ValueError: If the key is not a valid ``YYYY-MM-DD`` date
    """
    return datetime.strptime(key, DAY_KEY_FORMAT).date()


def is_valid_day_key(key: object) -> bool:
    """Return True if key is a well-formed day key string."""
    if not isinstance(key, str):
        return False
    try:
        parse_day_key(key)
    except ValueError:
        return False
    return True


def add_days(key: str, days: int) -> str:
    """Shift a day key by a number of calendar days.

    Examples:
        add_days("2025-03-10", 1) → "2025-03-11"
        add_days("2025-03-01", -1) → "2025-02-28"
    """
    return day_key(parse_day_key(key) + relativedelta(days=days))


def weekday_index(key: str) -> int:
    """Return the weekday of a day key with 0=Sunday .. 6=Saturday.

    Python's ``date.weekday()`` is 0=Monday, so it is rotated by one.

    Examples:
        weekday_index("2025-03-09") → 0  (Sunday)
        weekday_index("2025-03-10") → 1  (Monday)
    """
    return (parse_day_key(key).weekday() + 1) % DAYS_IN_WEEK


def week_start_of(key: str) -> str:
    """Return the Monday key of the week containing the given day.

    Weeks run Monday..Sunday, so a Sunday belongs to the week that started
    six days earlier.

    Examples:
        week_start_of("2025-03-12") → "2025-03-10"
        week_start_of("2025-03-16") → "2025-03-10"
    """
    return day_key(parse_day_key(key) + relativedelta(weekday=MO(-1)))


def week_days(week_start: str) -> list[str]:
    """Return the seven consecutive day keys starting at week_start."""
    return [add_days(week_start, offset) for offset in range(DAYS_IN_WEEK)]
