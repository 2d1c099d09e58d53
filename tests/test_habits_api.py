# tests/test_habits_api.py
import pytest

import web_app
from habits_repo import SqlHabitStore, make_engine
from local_date import today


@pytest.fixture
def store(tmp_path):
    return SqlHabitStore(make_engine(f"sqlite:///{tmp_path / 'api.db'}"))


@pytest.fixture
def client(store, monkeypatch):
    monkeypatch.setitem(web_app.app.config, "HABIT_STORE", store)
    monkeypatch.setitem(web_app.app.config, "TESTING", True)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    client = web_app.app.test_client()
    # Seed a fake logged-in user in the session
    with client.session_transaction() as sess:
        sess["user_email"] = "test@example.com"
        sess["user_uid"] = "test-uid"
    return client


@pytest.fixture
def habit(store):
    return store.add_habit("test-uid", {"name": "Gym", "frequency": "weekly",
                                        "targetDays": [1, 3, 5], "createdDay": "2024-03-01"})


# ---------------------------------------------------------
# Auth and input errors
# ---------------------------------------------------------
def test_requires_login(store, monkeypatch):
    monkeypatch.setitem(web_app.app.config, "HABIT_STORE", store)
    resp = web_app.app.test_client().get("/api/habits")
    assert resp.status_code == 401


def test_bad_date_is_rejected(client, habit):
    resp = client.post(f"/api/habits/{habit.id}/toggle", json={"date": "2024-3-11"})
    assert resp.status_code == 400
    assert resp.get_json()["success"] is False


def test_unknown_timezone_is_rejected(client):
    resp = client.get("/api/habits?tz=Mars/Olympus_Mons")
    assert resp.status_code == 400


def test_missing_and_foreign_habits(client, store):
    assert client.get("/api/habits/nope/status?date=2024-03-11").status_code == 404
    other = store.add_habit("someone-else", {"name": "Theirs", "frequency": "daily",
                                             "createdDay": "2024-03-01"})
    assert client.post(f"/api/habits/{other.id}/toggle", json={"date": "2024-03-11"}).status_code == 403


# ---------------------------------------------------------
# Create
# ---------------------------------------------------------
def test_create_weekly_habit(client, store):
    resp = client.post("/api/habits", json={
        "name": "Gym", "frequency": "weekly", "targetDays": ["Mon", "Wed", "Fri"],
    })
    data = resp.get_json()

    assert resp.status_code == 200
    assert data["success"] is True
    created = store.get_habit(data["habitId"])
    assert created.user_id == "test-uid"
    assert sorted(created.recurrence.weekdays) == [1, 3, 5]


def test_create_interval_habit_starts_today_in_callers_zone(client, store):
    before = today("Pacific/Kiritimati")
    resp = client.post("/api/habits", headers={"X-Timezone": "Pacific/Kiritimati"},
                       json={"name": "Clean Desk", "frequency": "interval", "intervalDays": 2})
    after = today("Pacific/Kiritimati")

    assert resp.status_code == 200
    created = store.get_habit(resp.get_json()["habitId"])
    assert created.created_day in {before, after}
    assert created.recurrence.interval_days == 2


@pytest.mark.parametrize("payload", [
    {"name": "Read Book"},
    {"name": "Stretch", "frequency": "interval", "intervalDays": ""},
    {"name": "Stretch", "frequency": "weekly", "targetDays": []},
    {"name": "Stretch", "frequency": "daily", "endDate": "soon"},
    {"name": "", "frequency": "daily"},
    {"name": "Stretch", "frequency": "weekly", "targetDays": [[1]]},
    {"name": "Stretch", "frequency": "monthly", "monthDays": [{"d": 3}]},
    {"name": 7, "frequency": "daily"},
    ["Stretch", "daily"],
])
def test_invalid_habit_is_rejected(client, payload):
    resp = client.post("/api/habits", json=payload)
    assert resp.status_code == 400
    assert resp.get_json()["success"] is False


# ---------------------------------------------------------
# Status / toggle
# ---------------------------------------------------------
def test_toggle_flow(client, store, habit):
    url = f"/api/habits/{habit.id}"
    assert client.get(f"{url}/status?date=2024-03-11").get_json()["status"] == "pending"

    resp = client.post(f"{url}/toggle", json={"date": "2024-03-11"})
    data = resp.get_json()
    assert resp.status_code == 200
    assert data["status"] == "completed"
    assert data["completion"]["id"] == f"{habit.id}_2024-03-11"
    assert data["completion"]["completed"] is True

    assert client.get(f"{url}/status?date=2024-03-11").get_json()["status"] == "completed"

    data = client.post(f"{url}/toggle", json={"date": "2024-03-11"}).get_json()
    assert data["status"] == "pending"
    assert len(store.list_completions("test-uid", habit_id=habit.id)) == 1


def test_status_not_due_on_unscheduled_day(client, habit):
    data = client.get(f"/api/habits/{habit.id}/status?date=2024-03-12").get_json()
    assert data["status"] == "not_due"


def test_list_habits_for_day(client, habit):
    client.post(f"/api/habits/{habit.id}/toggle", json={"date": "2024-03-08"})
    client.post(f"/api/habits/{habit.id}/toggle", json={"date": "2024-03-11"})

    data = client.get("/api/habits?date=2024-03-12").get_json()

    assert data["today"] == "2024-03-12"
    [item] = data["habits"]
    assert item["id"] == habit.id
    assert item["status"] == "not_due"
    assert item["isDue"] is False
    assert item["nextDueDate"] == "2024-03-13"
    assert item["streak"] == 2
    assert item["overdue"] is True  # Fri 1st, Mon 4th, Wed 6th were missed


def test_weekly_progress(client, habit):
    client.post(f"/api/habits/{habit.id}/toggle", json={"date": "2024-03-06"})
    client.post(f"/api/habits/{habit.id}/toggle", json={"date": "2024-03-11"})

    data = client.get(f"/habit/{habit.id}/weekly-progress?date=2024-03-11").get_json()

    assert data["success"] is True
    assert data["due"] == 3
    assert data["completed"] == 2
    assert data["completedToday"] is True
    assert data["streak_current"] == 1


def test_delete_habit(client, store, habit):
    client.post(f"/api/habits/{habit.id}/toggle", json={"date": "2024-03-11"})
    resp = client.delete(f"/api/habits/{habit.id}")
    assert resp.status_code == 200
    assert resp.get_json()["deletedCompletions"] == 1
    assert store.get_habit(habit.id) is None


def test_store_failure_returns_500(client, monkeypatch):
    class BrokenStore:
        def list_habits(self, user_id):
            raise RuntimeError("db down")

    monkeypatch.setitem(web_app.app.config, "HABIT_STORE", BrokenStore())
    resp = client.get("/api/habits?date=2024-03-11")
    assert resp.status_code == 500
    assert resp.get_json()["success"] is False


# ---------------------------------------------------------
# Motivation
# ---------------------------------------------------------
def test_motivation_falls_back_without_ai(client, habit):
    client.post(f"/api/habits/{habit.id}/toggle", json={"date": "2024-03-11"})
    data = client.post("/api/insights/motivation", json={"date": "2024-03-11"}).get_json()

    assert data["success"] is True
    assert data["aiGenerated"] is False
    assert data["summary"]["due"] == 1
    assert data["summary"]["completed"] == 1
    assert "All 1 habits done" in data["message"]


def test_day_rollover_reads_as_pending_without_deleting(client, store, habit):
    client.post(f"/api/habits/{habit.id}/toggle", json={"date": "2024-03-11"})

    data = client.get("/api/habits?date=2024-03-13").get_json()

    assert data["habits"][0]["status"] == "pending"
    assert [c.day for c in store.list_completions("test-uid")] == ["2024-03-11"]


@pytest.mark.parametrize("body", [[1, 2], "2024-03-11", 42])
def test_non_object_body_means_today(client, habit, body, monkeypatch):
    monkeypatch.setitem(web_app.app.config, "DEFAULT_TIMEZONE", "UTC")
    before = today("UTC")
    resp = client.post(f"/api/habits/{habit.id}/toggle", json=body)
    after = today("UTC")

    assert resp.status_code == 200
    assert resp.get_json()["completion"]["date"] in {before, after}

    resp = client.post("/api/insights/motivation", json=body)
    assert resp.status_code == 200
    assert resp.get_json()["summary"]["today"] in {before, after}
