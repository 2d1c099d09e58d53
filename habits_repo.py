# habits_repo.py
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from sqlalchemy import (
    create_engine, MetaData, Table, Column, String, Boolean, Integer,
    DateTime, JSON, select, delete, text, Index
)

from completions import CompletionRecord, completion_from_dict, completion_to_dict, record_id
from habit_schedule import Habit, habit_from_dict, habit_to_dict
from local_date import CalendarDay, TimezoneLike, to_calendar_day

# -------------------------
# Engine
# -------------------------
def make_engine(database_url: str = "sqlite:///habits.db"):
    """Create and return a SQLAlchemy engine (SQLite by default)."""
    return create_engine(database_url, future=True)

# -------------------------
# Schema (module-level, shared)
# -------------------------
metadata = MetaData()

habits = Table(
    "habits", metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("name", String, nullable=False),
    Column("description", String),
    Column("frequency", String),  # daily/weekly/monthly/interval
    Column("target_days", JSON),
    Column("month_days", JSON),
    Column("interval_days", Integer),
    Column("start_date", String(10)),
    Column("created_day", String(10), nullable=False),
    Column("end_date", String(10)),
    Column("is_archived", Boolean, nullable=False, server_default=text("0")),
    Column("created_at", DateTime(timezone=True), nullable=False),
)
Index("ix_habits_user_active", habits.c.user_id, habits.c.is_archived)

# one row per (habit, day): the id is completions.record_id(habit_id, day)
habit_completions = Table(
    "habit_completions", metadata,
    Column("id", String, primary_key=True),
    Column("habit_id", String, nullable=False, index=True),
    Column("user_id", String, nullable=False, index=True),
    Column("date", String(10), nullable=False),
    Column("completed", Boolean, nullable=False),
    Column("timestamp", DateTime(timezone=True)),
    Column("notes", String),
)
Index("ix_completions_habit_date", habit_completions.c.habit_id, habit_completions.c.date)

# -------------------------
# DB init
# -------------------------
def init_db(engine):
    """Create tables if they do not exist."""
    metadata.create_all(engine)

# -------------------------
# Helpers
# -------------------------
def _row_to_dict(row) -> Dict[str, Any]:
    # SQLAlchemy 2.x: row is Row; use _mapping
    return dict(row._mapping)


def _aware(ts: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back; everything is stored as UTC
    if ts is not None and ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def _habit_row_to_doc(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "name": row["name"],
        "description": row["description"] or "",
        "userID": row["user_id"],
        "frequency": row["frequency"],
        "targetDays": row["target_days"] or [],
        "monthDays": row["month_days"] or [],
        "intervalDays": row["interval_days"],
        "startDate": row["start_date"],
        "createdDay": row["created_day"],
        "endDate": row["end_date"],
        "isArchived": row["is_archived"],
    }


def _completion_row_to_doc(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "habitID": row["habit_id"],
        "userID": row["user_id"],
        "date": row["date"],
        "completed": row["completed"],
        "timestamp": _aware(row["timestamp"]),
        "notes": row["notes"] or "",
    }

# -------------------------
# Store
# -------------------------
class SqlHabitStore:
    """Habit/completion store on a SQL database (SQLite for local runs and tests)."""

    def __init__(self, engine, tz: TimezoneLike = None):
        self.engine = engine
        self.tz = tz
        init_db(engine)

    # Habits
    def add_habit(self, user_id: str, data: Dict[str, Any]) -> Habit:
        """
        Insert a habit. data must include `name`; the creation day is
        today in the store's timezone unless `createdDay` is given.
        """
        if not (data.get("name") or "").strip():
            raise ValueError("'name' is required")

        now = datetime.now(timezone.utc)
        habit_id = data.get("id") or uuid.uuid4().hex
        doc = dict(data, userID=user_id, name=data["name"].strip(),
                   description=(data.get("description") or "").strip())
        doc.setdefault("createdDay", to_calendar_day(now, self.tz))
        habit = habit_from_dict(habit_id, doc, self.tz)
        stored = habit_to_dict(habit)

        payload = {
            "id": habit_id,
            "user_id": user_id,
            "name": stored["name"],
            "description": stored["description"],
            "frequency": stored["frequency"],
            "target_days": stored["targetDays"],
            "month_days": stored["monthDays"],
            "interval_days": stored["intervalDays"],
            "start_date": stored["startDate"],
            "created_day": stored["createdDay"],
            "end_date": stored["endDate"],
            "is_archived": stored["isArchived"],
            "created_at": now,
        }
        with self.engine.begin() as conn:  # ensures commit
            conn.execute(habits.insert().values(**payload))
        return habit

    def get_habit(self, habit_id: str) -> Optional[Habit]:
        with self.engine.connect() as conn:
            row = conn.execute(select(habits).where(habits.c.id == habit_id)).first()
        if row is None:
            return None
        return habit_from_dict(habit_id, _habit_row_to_doc(_row_to_dict(row)), self.tz)

    def list_habits(self, user_id: str, include_archived: bool = False) -> List[Habit]:
        stmt = select(habits).where(habits.c.user_id == user_id)
        if not include_archived:
            stmt = stmt.where(habits.c.is_archived == False)  # noqa: E712
        with self.engine.connect() as conn:
            rows = conn.execute(stmt.order_by(habits.c.created_at)).all()
        return [
            habit_from_dict(r.id, _habit_row_to_doc(_row_to_dict(r)), self.tz)
            for r in rows
        ]

    def delete_habit(self, habit_id: str) -> int:
        """Delete a habit and its completions; returns the number of completions removed."""
        with self.engine.begin() as conn:
            removed = conn.execute(
                delete(habit_completions).where(habit_completions.c.habit_id == habit_id)
            ).rowcount
            conn.execute(delete(habits).where(habits.c.id == habit_id))
        return removed

    # Completions
    def list_completions(self, user_id: str, habit_id: Optional[str] = None,
                         day: Optional[CalendarDay] = None) -> List[CompletionRecord]:
        stmt = select(habit_completions).where(habit_completions.c.user_id == user_id)
        if habit_id:
            stmt = stmt.where(habit_completions.c.habit_id == habit_id)
        if day:
            stmt = stmt.where(habit_completions.c.date == day)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).all()
        return [completion_from_dict(r.id, _completion_row_to_doc(_row_to_dict(r))) for r in rows]

    def upsert_completion(self, user_id: str, record: CompletionRecord) -> CompletionRecord:
        """Insert or overwrite the completion row with the record's id."""
        record = replace(record, user_id=user_id, id=record.id or record_id(record.habit_id, record.day))
        doc = completion_to_dict(record)
        values = {
            "habit_id": doc["habitID"],
            "user_id": user_id,
            "date": doc["date"],
            "completed": doc["completed"],
            "timestamp": doc["timestamp"],
            "notes": doc["notes"],
        }
        with self.engine.begin() as conn:
            updated = conn.execute(
                habit_completions.update()
                .where(habit_completions.c.id == record.id)
                .values(**values)
            ).rowcount
            if not updated:
                conn.execute(habit_completions.insert().values(id=record.id, **values))
        return record
