# firestore_store.py
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from completions import CompletionRecord, completion_from_dict, completion_to_dict, record_id
from habit_schedule import Habit, habit_from_dict, habit_to_dict
from local_date import CalendarDay, TimezoneLike, to_calendar_day

HABITS = "habits"
COMPLETIONS = "habit_completions"

# Firestore caps a write batch at 500 operations
BATCH_LIMIT = 500


class FirestoreHabitStore:
    """Habits and completions kept in Cloud Firestore via the Admin SDK."""

    def __init__(self, db, tz: TimezoneLike = None):
        self.db = db
        self.tz = tz

    # Habits
    def add_habit(self, user_id: str, data: Dict[str, Any]) -> Habit:
        if not (data.get("name") or "").strip():
            raise ValueError("'name' is required")

        now = datetime.now(timezone.utc)
        doc = dict(data, userID=user_id, name=data["name"].strip(),
                   description=(data.get("description") or "").strip())
        doc.setdefault("createdDay", to_calendar_day(now, self.tz))
        doc_ref = self.db.collection(HABITS).document(data.get("id") or uuid.uuid4().hex)
        habit = habit_from_dict(doc_ref.id, doc, self.tz)

        payload = habit_to_dict(habit)
        payload["createdAt"] = now
        payload["updatedAt"] = now
        doc_ref.set(payload)
        return habit

    def get_habit(self, habit_id: str) -> Optional[Habit]:
        snap = self.db.collection(HABITS).document(habit_id).get()
        if not snap.exists:
            return None
        return habit_from_dict(snap.id, snap.to_dict() or {}, self.tz)

    def list_habits(self, user_id: str, include_archived: bool = False) -> List[Habit]:
        docs = self.db.collection(HABITS).where("userID", "==", user_id).stream()
        out = []
        for d in docs:
            habit = habit_from_dict(d.id, d.to_dict() or {}, self.tz)
            if include_archived or not habit.is_archived:
                out.append(habit)
        return out

    def delete_habit(self, habit_id: str) -> int:
        """Delete a habit and all of its completion docs."""
        removed = 0
        batch = self.db.batch()
        pending = 0
        for snap in self.db.collection(COMPLETIONS).where("habitID", "==", habit_id).stream():
            batch.delete(snap.reference)
            removed += 1
            pending += 1
            if pending == BATCH_LIMIT - 1:
                batch.commit()
                batch = self.db.batch()
                pending = 0
        batch.delete(self.db.collection(HABITS).document(habit_id))
        batch.commit()
        return removed

    # Completions
    def list_completions(self, user_id: str, habit_id: Optional[str] = None,
                         day: Optional[CalendarDay] = None) -> List[CompletionRecord]:
        query = self.db.collection(COMPLETIONS).where("userID", "==", user_id)
        if habit_id:
            query = query.where("habitID", "==", habit_id)
        if day:
            query = query.where("date", "==", day)
        return [completion_from_dict(d.id, d.to_dict() or {}) for d in query.stream()]

    def upsert_completion(self, user_id: str, record: CompletionRecord) -> CompletionRecord:
        record = replace(record, user_id=user_id, id=record.id or record_id(record.habit_id, record.day))
        self.db.collection(COMPLETIONS).document(record.id).set(completion_to_dict(record), merge=True)
        return record
