# habit_schedule.py
"""
Habit recurrence rules and the "is this habit due on day X" check.

All day inputs are CalendarDay strings from local_date; nothing in here
looks at the clock.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from local_date import (
    CalendarDay,
    InvalidDate,
    TimezoneLike,
    add_days,
    day_range,
    days_between,
    format_calendar_day,
    is_calendar_day,
    parse_calendar_day,
    to_calendar_day,
    weekday_of,
)

DAILY = "daily"
WEEKLY = "weekly"
MONTHLY = "monthly"
INTERVAL = "interval"
FREQUENCIES = (DAILY, WEEKLY, MONTHLY, INTERVAL)

WEEKDAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

# how far ahead next_due_day searches before giving up
DEFAULT_HORIZON_DAYS = 366


@dataclass(frozen=True)
class Recurrence:
    kind: Optional[str]
    weekdays: FrozenSet[int] = field(default_factory=frozenset)
    month_days: FrozenSet[int] = field(default_factory=frozenset)
    interval_days: Optional[int] = None
    start_day: Optional[CalendarDay] = None

    @classmethod
    def daily(cls) -> "Recurrence":
        return cls(DAILY)

    @classmethod
    def weekly(cls, weekdays: Iterable[int]) -> "Recurrence":
        return cls(WEEKLY, weekdays=frozenset(weekdays))

    @classmethod
    def monthly(cls, month_days: Iterable[int]) -> "Recurrence":
        return cls(MONTHLY, month_days=frozenset(month_days))

    @classmethod
    def every(cls, interval_days: int, start_day: Optional[CalendarDay] = None) -> "Recurrence":
        return cls(INTERVAL, interval_days=interval_days, start_day=start_day)


@dataclass(frozen=True)
class Habit:
    id: str
    recurrence: Optional[Recurrence]
    created_day: CalendarDay
    end_day: Optional[CalendarDay] = None
    name: str = ""
    user_id: Optional[str] = None
    is_archived: bool = False
    description: str = ""


# -------------------------
# Validation
# -------------------------
def validate_recurrence(recurrence: Optional[Recurrence]) -> List[str]:
    """Return a list of problems with the rule; empty means it is usable."""
    if recurrence is None:
        return ["Recurrence is missing"]
    kind = recurrence.kind
    if kind not in FREQUENCIES:
        return [f"Unknown frequency {kind!r}; expected one of {', '.join(FREQUENCIES)}"]

    problems = []
    if kind == WEEKLY:
        if not recurrence.weekdays:
            problems.append("Weekly habits need at least one weekday")
        elif any(not _is_int(d) or not 0 <= d <= 6 for d in recurrence.weekdays):
            problems.append("Weekdays must be integers 0 (Sunday) to 6 (Saturday)")
    elif kind == MONTHLY:
        if not recurrence.month_days:
            problems.append("Monthly habits need at least one day of the month")
        elif any(not _is_int(d) or not 1 <= d <= 31 for d in recurrence.month_days):
            problems.append("Days of the month must be integers 1 to 31")
    elif kind == INTERVAL:
        n = recurrence.interval_days
        if not _is_int(n) or n < 1:
            problems.append("Interval must be a whole number of days, at least 1")
        if recurrence.start_day is not None and not is_calendar_day(recurrence.start_day):
            problems.append(f"Start date {recurrence.start_day!r} is not YYYY-MM-DD")
    return problems


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _habit_days_ok(habit: Habit) -> bool:
    if not is_calendar_day(habit.created_day):
        return False
    return habit.end_day is None or is_calendar_day(habit.end_day)


# -------------------------
# Evaluator
# -------------------------
def is_due_on(habit: Habit, day: CalendarDay) -> bool:
    """
    True when `habit` is scheduled on `day`.

    Raises InvalidDate for a malformed `day`. A broken habit (bad rule, bad
    stored dates) is simply never due.
    """
    target = parse_calendar_day(day)
    if not _habit_days_ok(habit) or validate_recurrence(habit.recurrence):
        return False
    if day < habit.created_day:
        return False
    if habit.end_day is not None and day > habit.end_day:
        return False

    rule = habit.recurrence
    if rule.kind == DAILY:
        return True
    if rule.kind == WEEKLY:
        return weekday_of(day) in rule.weekdays
    if rule.kind == MONTHLY:
        # a 31st-only habit is skipped in shorter months
        return target.day in rule.month_days
    if rule.kind == INTERVAL:
        elapsed = days_between(rule.start_day or habit.created_day, day)
        return elapsed >= 0 and elapsed % rule.interval_days == 0
    return False


def due_days(habit: Habit, start: CalendarDay, end: CalendarDay) -> List[CalendarDay]:
    return [d for d in day_range(start, end) if is_due_on(habit, d)]


def next_due_day(habit: Habit, from_day: CalendarDay,
                 horizon: int = DEFAULT_HORIZON_DAYS) -> Optional[CalendarDay]:
    """First due day on or after `from_day`, or None within `horizon` days."""
    parse_calendar_day(from_day)
    if not _habit_days_ok(habit) or validate_recurrence(habit.recurrence):
        return None

    rule = habit.recurrence
    if rule.kind == INTERVAL:
        anchor = rule.start_day or habit.created_day
        start = max(from_day, habit.created_day, anchor)
        candidate = add_days(start, (-days_between(anchor, start)) % rule.interval_days)
        if habit.end_day is not None and candidate > habit.end_day:
            return None
        if days_between(from_day, candidate) > horizon:
            return None
        return candidate

    candidate = max(from_day, habit.created_day)
    while days_between(from_day, candidate) <= horizon:
        if habit.end_day is not None and candidate > habit.end_day:
            return None
        if is_due_on(habit, candidate):
            return candidate
        candidate = add_days(candidate, 1)
    return None


def days_until_due(habit: Habit, from_day: CalendarDay) -> Optional[int]:
    nxt = next_due_day(habit, from_day)
    return None if nxt is None else days_between(from_day, nxt)


# -------------------------
# Stored document shape
# -------------------------
# Stand-in for entries that cannot be a day number (lists, dicts, None...);
# validate_recurrence rejects it.
_BAD_ENTRY = -1


def _int_set(values) -> FrozenSet[int]:
    if not isinstance(values, (list, tuple, set, frozenset)):
        return frozenset()
    out = set()
    for v in values:
        if isinstance(v, str) and v.strip().lstrip("-").isdigit():
            v = int(v)
        elif isinstance(v, str) and v.strip()[:3].title() in WEEKDAY_NAMES:
            v = WEEKDAY_NAMES.index(v.strip()[:3].title())
        elif not isinstance(v, (str, int, float)):
            v = _BAD_ENTRY
        out.add(v)
    return frozenset(out)


def _stored_day(value, tz: TimezoneLike = None):
    """Date fields may come back from Firestore as Timestamps or datetimes."""
    if isinstance(value, datetime) or hasattr(value, "to_datetime"):
        try:
            return to_calendar_day(value, tz)
        except InvalidDate:
            return value
    if isinstance(value, date):
        return format_calendar_day(value)
    return value or None


def recurrence_from_dict(data: Dict[str, Any], tz: TimezoneLike = None) -> Recurrence:
    """
    Build a Recurrence from a habit document. Bad values are kept as-is so
    validate_recurrence can report them; this never raises.
    """
    kind = data.get("frequency") or data.get("frequencyType") or None
    if isinstance(kind, str):
        kind = kind.strip().lower() or None
    if kind == "custom":
        kind = INTERVAL
    interval = data.get("intervalDays", data.get("customFrequencyValue"))
    if isinstance(interval, str) and interval.strip().isdigit():
        interval = int(interval)
    return Recurrence(
        kind=kind,
        weekdays=_int_set(data.get("targetDays", data.get("reminderDays"))),
        month_days=_int_set(data.get("monthDays")),
        interval_days=interval,
        start_day=_stored_day(data.get("startDate"), tz),
    )


def habit_from_dict(habit_id: str, data: Dict[str, Any], tz: TimezoneLike = None) -> Habit:
    """
    Habit from its stored document. `createdDay` wins; otherwise the
    `createdAt` instant is normalised to a CalendarDay in `tz`.
    """
    created_day = _stored_day(data.get("createdDay"), tz)
    if not created_day and data.get("createdAt") is not None:
        try:
            created_day = to_calendar_day(data["createdAt"], tz)
        except InvalidDate:
            created_day = None
    return Habit(
        id=habit_id,
        recurrence=recurrence_from_dict(data, tz),
        created_day=created_day or "",
        end_day=_stored_day(data.get("endDate"), tz),
        name=data.get("name", ""),
        user_id=data.get("userID"),
        is_archived=bool(data.get("isArchived", False)),
        description=data.get("description", ""),
    )


def habit_to_dict(habit: Habit) -> Dict[str, Any]:
    rule = habit.recurrence or Recurrence(None)
    return {
        "name": habit.name,
        "description": habit.description,
        "userID": habit.user_id,
        "frequency": rule.kind,
        "targetDays": sorted(rule.weekdays),
        "monthDays": sorted(rule.month_days),
        "intervalDays": rule.interval_days,
        "startDate": rule.start_day,
        "createdDay": habit.created_day,
        "endDate": habit.end_day,
        "isArchived": habit.is_archived,
    }
