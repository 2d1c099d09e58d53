# local_date.py
"""
Calendar-day helpers.

Every "which day is this for" question in the app goes through here. A
CalendarDay is a plain 'YYYY-MM-DD' string computed from the wall-clock
fields of an instant in the user's timezone.
"""
import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterator, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

CalendarDay = str
Instant = Union[datetime, int, float, str]
TimezoneLike = Union[tzinfo, str, None]

_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class HabitDateError(ValueError):
    """Base class for bad date/timezone input."""


class InvalidDate(HabitDateError):
    """A CalendarDay or instant that cannot be read."""


class InvalidTimezone(HabitDateError):
    """A timezone name that is not in the tz database."""


# -------------------------
# Timezones
# -------------------------
def resolve_timezone(tz: TimezoneLike) -> Optional[tzinfo]:
    """
    Turn an IANA name or tzinfo into a tzinfo.
    None stays None, which means "the machine's local zone".
    """
    if tz is None or isinstance(tz, tzinfo):
        return tz
    if isinstance(tz, str):
        name = tz.strip()
        if not name:
            return None
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise InvalidTimezone(f"Unknown timezone: {tz!r}") from e
    raise InvalidTimezone(f"Unsupported timezone value: {tz!r}")


def _localize(moment: datetime, zone: Optional[tzinfo]) -> datetime:
    if moment.tzinfo is None:
        # naive values are wall-clock readings already in the target zone
        return moment if zone is None else moment.replace(tzinfo=zone)
    return moment.astimezone(zone)


# -------------------------
# Normalizer
# -------------------------
def format_calendar_day(d: date) -> CalendarDay:
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"


def today(tz: TimezoneLike = None) -> CalendarDay:
    """Today's CalendarDay in `tz` (local zone of this process when omitted)."""
    zone = resolve_timezone(tz)
    now = datetime.now(timezone.utc).astimezone(zone)
    return format_calendar_day(now)


def _coerce_instant(instant: Instant) -> datetime:
    if isinstance(instant, datetime):
        return instant
    if isinstance(instant, bool):
        raise InvalidDate(f"Not an instant: {instant!r}")
    if isinstance(instant, (int, float)):
        try:
            return datetime.fromtimestamp(instant, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise InvalidDate(f"Timestamp out of range: {instant!r}") from e
    if isinstance(instant, str):
        text = instant.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError as e:
            raise InvalidDate(f"Unparseable instant: {instant!r}") from e
    if hasattr(instant, "to_datetime"):
        # google.api_core DatetimeWithNanoseconds / older Timestamp objects
        return instant.to_datetime()
    raise InvalidDate(f"Not an instant: {instant!r}")


def to_calendar_day(instant: Instant, tz: TimezoneLike = None) -> CalendarDay:
    """
    CalendarDay of `instant` as seen on a wall clock in `tz`.

    Aware datetimes (and ISO strings with an offset, and POSIX timestamps)
    are converted into the zone first. Naive datetimes are taken to be a
    wall-clock reading in that zone already. The date is read from the
    converted datetime's own fields, so DST shifts and half-hour offsets
    come out right.
    """
    zone = resolve_timezone(tz)
    local = _localize(_coerce_instant(instant), zone)
    return format_calendar_day(local)


def to_instant(instant: Instant) -> datetime:
    """Aware datetime for a stored timestamp. Naive values are read as UTC."""
    moment = _coerce_instant(instant)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


# -------------------------
# CalendarDay arithmetic
# -------------------------
def parse_calendar_day(day: CalendarDay) -> date:
    """Strict 'YYYY-MM-DD' → date. Raises InvalidDate, never guesses."""
    if not isinstance(day, str) or not _DAY_RE.match(day):
        raise InvalidDate(f"Expected YYYY-MM-DD, got {day!r}")
    try:
        return date.fromisoformat(day)
    except ValueError as e:
        raise InvalidDate(f"Not a calendar date: {day!r}") from e


def is_calendar_day(value) -> bool:
    try:
        parse_calendar_day(value)
    except InvalidDate:
        return False
    return True


def add_days(day: CalendarDay, n: int) -> CalendarDay:
    try:
        return format_calendar_day(parse_calendar_day(day) + timedelta(days=n))
    except OverflowError as e:
        raise InvalidDate(f"{day} + {n} days is out of range") from e


def days_between(start: CalendarDay, end: CalendarDay) -> int:
    """Whole calendar days from `start` to `end` (negative if end is earlier)."""
    return parse_calendar_day(end).toordinal() - parse_calendar_day(start).toordinal()


def weekday_of(day: CalendarDay) -> int:
    """0=Sunday .. 6=Saturday, matching how habits store targetDays."""
    return parse_calendar_day(day).isoweekday() % 7


def day_range(start: CalendarDay, end: CalendarDay) -> Iterator[CalendarDay]:
    """Inclusive range of CalendarDays; empty when end < start."""
    first = parse_calendar_day(start)
    for offset in range(days_between(start, end) + 1):
        yield format_calendar_day(first + timedelta(days=offset))
