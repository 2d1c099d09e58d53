# progress.py
"""Streaks and completion rates, counted over due days only."""
from typing import Any, Dict, List, Sequence

from completions import CompletionRecord, Status, status_on
from habit_schedule import Habit
from local_date import CalendarDay, add_days, day_range, days_between, parse_calendar_day

# look-back cap for streak / overdue scans
MAX_LOOKBACK_DAYS = 3660


def _own_records(habit: Habit, completions: Sequence[CompletionRecord]) -> List[CompletionRecord]:
    return [c for c in completions if c.habit_id == habit.id]


def _earliest_day(habit: Habit, today: CalendarDay) -> CalendarDay:
    floor = add_days(today, -MAX_LOOKBACK_DAYS)
    if habit.created_day and habit.created_day > floor:
        return habit.created_day
    return floor


def current_streak(habit: Habit, today: CalendarDay,
                   completions: Sequence[CompletionRecord]) -> int:
    """
    Completed due days in a row, counting back from `today`.

    Days the habit isn't due are skipped. Today still being pending does
    not break the streak (the day isn't over yet).
    """
    parse_calendar_day(today)
    streak = 0
    day = today
    earliest = _earliest_day(habit, today)
    own = _own_records(habit, completions)
    while day >= earliest:
        status = status_on(habit, day, own)
        if status == Status.COMPLETED:
            streak += 1
        elif status == Status.PENDING and day != today:
            break
        day = add_days(day, -1)
    return streak


def longest_streak(habit: Habit, start: CalendarDay, end: CalendarDay,
                   completions: Sequence[CompletionRecord]) -> int:
    best = run = 0
    own = _own_records(habit, completions)
    for day in day_range(start, end):
        status = status_on(habit, day, own)
        if status == Status.COMPLETED:
            run += 1
            best = max(best, run)
        elif status == Status.PENDING:
            run = 0
    return best


def completion_rate(habit: Habit, start: CalendarDay, end: CalendarDay,
                    completions: Sequence[CompletionRecord]) -> int:
    """Percentage (0-100) of due days in [start, end] that were completed."""
    due = done = 0
    own = _own_records(habit, completions)
    for day in day_range(start, end):
        status = status_on(habit, day, own)
        if status == Status.NOT_DUE:
            continue
        due += 1
        if status == Status.COMPLETED:
            done += 1
    if due == 0:
        return 0
    return round(done * 100 / due)


def weekly_progress(habit: Habit, today: CalendarDay,
                    completions: Sequence[CompletionRecord]) -> Dict[str, Any]:
    start = add_days(today, -6)
    days: List[Dict[str, str]] = []
    due = done = 0
    for day in day_range(start, today):
        status = status_on(habit, day, completions)
        days.append({"date": day, "status": status.value})
        if status != Status.NOT_DUE:
            due += 1
        if status == Status.COMPLETED:
            done += 1
    return {
        "habitId": habit.id,
        "start": start,
        "end": today,
        "days": days,
        "due": due,
        "completed": done,
        "completedToday": days[-1]["status"] == Status.COMPLETED.value,
    }


def is_overdue(habit: Habit, today: CalendarDay,
               completions: Sequence[CompletionRecord]) -> bool:
    """True if some due day before `today` was never completed."""
    parse_calendar_day(today)
    earliest = _earliest_day(habit, today)
    yesterday = add_days(today, -1)
    if days_between(earliest, yesterday) < 0:
        return False
    own = _own_records(habit, completions)
    for day in day_range(earliest, yesterday):
        if status_on(habit, day, own) == Status.PENDING:
            return True
    return False


def daily_summary(habits: Sequence[Habit], today: CalendarDay,
                  completions: Sequence[CompletionRecord]) -> Dict[str, Any]:
    """Counts for one day across all of a user's habits."""
    due = done = 0
    pending: List[str] = []
    streaks: Dict[str, int] = {}
    for habit in habits:
        status = status_on(habit, today, completions)
        if status == Status.NOT_DUE:
            continue
        due += 1
        if status == Status.COMPLETED:
            done += 1
        else:
            pending.append(habit.name or habit.id)
        streaks[habit.name or habit.id] = current_streak(habit, today, completions)
    return {"today": today, "due": due, "completed": done, "pending": pending, "streaks": streaks}
