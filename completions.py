# completions.py
"""
Completion records and per-day habit status.

The daily "reset" is not a write: a day with no record (or a record for a
different day) simply reads as PENDING.
"""
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Sequence

from habit_schedule import Habit, is_due_on
from local_date import CalendarDay, InvalidDate, parse_calendar_day, to_instant


class Status(str, Enum):
    NOT_DUE = "not_due"
    PENDING = "pending"
    COMPLETED = "completed"


@dataclass(frozen=True)
class CompletionRecord:
    habit_id: str
    day: CalendarDay
    completed: bool
    timestamp: Optional[datetime]
    id: Optional[str] = None
    user_id: Optional[str] = None
    notes: str = ""


def record_id(habit_id: str, day: CalendarDay) -> str:
    """Store id for the (habit, day) pair, so upserts never duplicate."""
    return f"{habit_id}_{day}"


_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _ts_key(ts: Optional[datetime]) -> datetime:
    if ts is None:
        return _OLDEST
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def resolve_record(habit_id: str, day: CalendarDay,
                   completions: Iterable[CompletionRecord]) -> Optional[CompletionRecord]:
    """
    The one record that counts for (habit_id, day).

    The store does not enforce uniqueness, so duplicates are possible: the
    latest timestamp wins, and on equal timestamps the later entry in
    `completions` wins.
    """
    best = None
    best_key = None
    for position, rec in enumerate(completions):
        if rec.habit_id != habit_id or rec.day != day:
            continue
        key = (_ts_key(rec.timestamp), position)
        if best_key is None or key > best_key:
            best, best_key = rec, key
    return best


def status_on(habit: Habit, day: CalendarDay,
              completions: Sequence[CompletionRecord]) -> Status:
    if not is_due_on(habit, day):
        return Status.NOT_DUE
    rec = resolve_record(habit.id, day, completions)
    if rec is not None and rec.completed:
        return Status.COMPLETED
    return Status.PENDING


def statuses_on(habits: Iterable[Habit], day: CalendarDay,
                completions: Sequence[CompletionRecord]) -> Dict[str, Status]:
    return {h.id: status_on(h, day, completions) for h in habits}


def toggle(habit: Habit, day: CalendarDay, completions: Sequence[CompletionRecord],
           now: Optional[datetime] = None) -> CompletionRecord:
    """
    The record to upsert after the user taps a habit for `day`.

    Flips the existing record (keeping its id) or starts a new completed
    one. Nothing is written here.
    """
    parse_calendar_day(day)
    now = now or datetime.now(timezone.utc)
    existing = resolve_record(habit.id, day, completions)
    if existing is None:
        return CompletionRecord(
            habit_id=habit.id,
            day=day,
            completed=True,
            timestamp=now,
            id=record_id(habit.id, day),
            user_id=habit.user_id,
        )
    # the new record must outrank the one it replaces
    stamp = max(_ts_key(now), _ts_key(existing.timestamp))
    return replace(
        existing,
        completed=not existing.completed,
        timestamp=stamp,
        id=existing.id or record_id(habit.id, day),
    )


# -------------------------
# Stored document shape
# -------------------------
def completion_from_dict(doc_id: Optional[str], data: Dict[str, Any]) -> CompletionRecord:
    day = data.get("date")
    parse_calendar_day(day)
    ts = data.get("timestamp")
    if ts is not None and not isinstance(ts, datetime):
        try:
            ts = to_instant(ts)
        except InvalidDate as e:
            raise InvalidDate(f"Completion {doc_id} has a bad timestamp: {ts!r}") from e
    return CompletionRecord(
        habit_id=data.get("habitID") or data.get("habitId"),
        day=day,
        completed=bool(data.get("completed", False)),
        timestamp=ts,
        id=doc_id,
        user_id=data.get("userID"),
        notes=data.get("notes") or "",
    )


def completion_to_dict(record: CompletionRecord) -> Dict[str, Any]:
    return {
        "habitID": record.habit_id,
        "userID": record.user_id,
        "date": record.day,
        "completed": record.completed,
        "timestamp": record.timestamp,
        "notes": record.notes,
    }
