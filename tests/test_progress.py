# tests/test_progress.py
from datetime import datetime, timezone

from completions import CompletionRecord
from habit_schedule import Habit, Recurrence
from progress import (
    completion_rate, current_streak, daily_summary, is_overdue, longest_streak, weekly_progress,
)

TS = datetime(2024, 3, 1, tzinfo=timezone.utc)


def done(*days, habit_id="h1", completed=True):
    return [CompletionRecord(habit_id, d, completed, TS) for d in days]


DAILY = Habit("h1", Recurrence.daily(), "2024-03-01", name="Water")
MWF = Habit("h1", Recurrence.weekly({1, 3, 5}), "2024-03-01", name="Gym")


def test_streak_not_broken_by_pending_today():
    records = done("2024-03-08", "2024-03-09", "2024-03-10")
    assert current_streak(DAILY, "2024-03-11", records) == 3
    assert current_streak(DAILY, "2024-03-11", records + done("2024-03-11")) == 4


def test_streak_stops_at_first_missed_day():
    records = done("2024-03-05", "2024-03-07", "2024-03-08")
    assert current_streak(DAILY, "2024-03-08", records) == 2


def test_streak_skips_days_not_scheduled():
    # Mon 4th, Wed 6th, Fri 8th, Mon 11th; Fri 1st was missed
    records = done("2024-03-04", "2024-03-06", "2024-03-08", "2024-03-11")
    assert current_streak(MWF, "2024-03-11", records) == 4


def test_streak_ignores_unchecked_records_and_other_habits():
    records = done("2024-03-10") + done("2024-03-09", completed=False) + done("2024-03-08", habit_id="h2")
    assert current_streak(DAILY, "2024-03-10", records) == 1


def test_longest_streak():
    records = done("2024-03-01", "2024-03-02", "2024-03-04", "2024-03-05", "2024-03-06")
    assert longest_streak(DAILY, "2024-03-01", "2024-03-10", records) == 3


def test_completion_rate_counts_due_days_only():
    assert completion_rate(DAILY, "2024-03-01", "2024-03-10", done("2024-03-02", "2024-03-03", "2024-03-04")) == 30
    # due: Fri 1, Mon 4, Wed 6, Fri 8
    assert completion_rate(MWF, "2024-03-01", "2024-03-09", done("2024-03-04", "2024-03-06")) == 50
    assert completion_rate(DAILY, "2024-02-01", "2024-02-10", []) == 0


def test_weekly_progress_shape():
    data = weekly_progress(MWF, "2024-03-11", done("2024-03-06", "2024-03-11"))
    assert data["start"] == "2024-03-05"
    assert [d["date"] for d in data["days"]][0] == "2024-03-05"
    assert len(data["days"]) == 7
    # Wed 6, Fri 8, Mon 11 are due
    assert data["due"] == 3
    assert data["completed"] == 2
    assert data["completedToday"] is True
    assert data["days"][1] == {"date": "2024-03-06", "status": "completed"}
    assert data["days"][3] == {"date": "2024-03-08", "status": "pending"}
    assert data["days"][0] == {"date": "2024-03-05", "status": "not_due"}


def test_is_overdue_for_interval_habit():
    habit = Habit("h1", Recurrence.every(3), "2024-03-01")
    assert is_overdue(habit, "2024-03-08", done("2024-03-01", "2024-03-04")) is True
    assert is_overdue(habit, "2024-03-08", done("2024-03-01", "2024-03-04", "2024-03-07")) is False
    # today itself is never overdue
    assert is_overdue(habit, "2024-03-07", done("2024-03-01", "2024-03-04")) is False
    assert is_overdue(habit, "2024-03-01", []) is False


def test_daily_summary():
    summary = daily_summary([DAILY, Habit("h2", Recurrence.weekly({2}), "2024-03-01", name="Read")],
                            "2024-03-11", done("2024-03-10", "2024-03-11"))
    assert summary == {
        "today": "2024-03-11",
        "due": 1,
        "completed": 1,
        "pending": [],
        "streaks": {"Water": 2},
    }
