# web_app.py
import os, traceback, firebase_admin
from flask import Flask, request, session, jsonify

from ai_insights import motivational_message
from completions import completion_to_dict, status_on, toggle
from firestore_store import FirestoreHabitStore
from habit_schedule import (
    habit_to_dict, is_due_on, next_due_day, recurrence_from_dict, validate_recurrence,
)
from habits_repo import SqlHabitStore, make_engine
from local_date import HabitDateError, is_calendar_day, parse_calendar_day, resolve_timezone, today
from progress import current_streak, daily_summary, is_overdue, weekly_progress

# ---------------- Flask ---------------- #
app = Flask(__name__)
app.secret_key = os.environ.get('SECRET_KEY', 'your-secret-key-change-this-in-production')

app.config.update(
    SESSION_COOKIE_NAME='habit_session',
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SAMESITE='Lax',
    SESSION_COOKIE_SECURE=False,  # set True if you serve over HTTPS
    FIREBASE_CREDENTIALS=os.environ.get('FIREBASE_CREDENTIALS', 'firebase-credentials.json'),
    HABITS_DATABASE_URL=os.environ.get('HABITS_DATABASE_URL', 'sqlite:///habits.db'),
    DEFAULT_TIMEZONE=os.environ.get('DEFAULT_TIMEZONE') or None,  # None = server's local zone
    HABIT_STORE=None,
)

# ---------------- Firebase Admin ---------------- #
from firebase_admin import credentials, firestore

try:
    try:
        firebase_admin.get_app()
        print("Firebase Admin SDK already initialized")
    except ValueError:
        cred = credentials.Certificate(app.config['FIREBASE_CREDENTIALS'])
        firebase_admin.initialize_app(cred)
        print("Firebase Admin SDK initialized successfully")
except Exception as e:
    print(f"Firebase Admin SDK initialization failed: {e}")

try:
    db = firestore.client()
    print("Firestore client initialized successfully")
except Exception as e:
    print(f"Firestore initialization failed, using local SQL store: {e}")
    db = None

# ---------------- Helpers ---------------- #
def get_store():
    """Firestore when the Admin SDK came up, otherwise the SQL store."""
    store = app.config.get('HABIT_STORE')
    if store is None:
        if db is not None:
            store = FirestoreHabitStore(db, app.config['DEFAULT_TIMEZONE'])
        else:
            engine = make_engine(app.config['HABITS_DATABASE_URL'])
            store = SqlHabitStore(engine, app.config['DEFAULT_TIMEZONE'])
            print(f"[get_store] Using SQL store at {app.config['HABITS_DATABASE_URL']}")
        app.config['HABIT_STORE'] = store
    return store


def current_user_id():
    return session.get('user_uid') or session.get('user_email')


def request_timezone():
    """Timezone for this request: ?tz=, then X-Timezone, then DEFAULT_TIMEZONE."""
    name = request.args.get('tz') or request.headers.get('X-Timezone') or app.config['DEFAULT_TIMEZONE']
    return resolve_timezone(name)


def request_day(tz, payload=None):
    """CalendarDay the caller asked about, or today in their timezone."""
    if not isinstance(payload, dict):
        payload = {}
    day = payload.get('date') or request.args.get('date')
    if day is None:
        return today(tz)
    parse_calendar_day(day)
    return day


def _ts_to_iso(v):
    """Convert Firestore Timestamp/datetime to an ISO string for JSON."""
    if v is None:
        return None
    if hasattr(v, "isoformat"):
        return v.isoformat()
    if hasattr(v, "to_datetime"):
        return v.to_datetime().isoformat()
    return str(v)


def _completion_json(record):
    data = completion_to_dict(record)
    data['id'] = record.id
    data['timestamp'] = _ts_to_iso(record.timestamp)
    return data


def _load_owned_habit(habit_id, user_id):
    """(habit, None) or (None, error response)."""
    habit = get_store().get_habit(habit_id)
    if habit is None:
        return None, (jsonify({'error': 'Habit not found'}), 404)
    if habit.user_id != user_id:
        return None, (jsonify({'error': 'Not authorized to access this habit'}), 403)
    return habit, None


def _server_error(tag, message, e):
    print(f"[{tag}] {message}: {e}")
    print(f"[{tag}] Traceback: {traceback.format_exc()}")
    return jsonify({'success': False, 'error': message}), 500


@app.errorhandler(HabitDateError)
def handle_bad_date(e):
    return jsonify({'success': False, 'error': str(e)}), 400

# ---------------- Habits API ---------------- #
@app.route('/api/habits', methods=['GET', 'POST'])
def habits_api():
    user_id = current_user_id()
    if not user_id:
        return jsonify({'error': 'Authentication required'}), 401

    tz = request_timezone()

    if request.method == 'POST':
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({'success': False, 'error': 'Expected a JSON object'}), 400
        name = payload.get('name')
        if not isinstance(name, str) or not name.strip():
            return jsonify({'success': False, 'error': 'Habit name is required'}), 400

        errors = validate_recurrence(recurrence_from_dict(payload))
        for key in ('startDate', 'endDate'):
            if payload.get(key) and not is_calendar_day(payload[key]):
                errors.append(f"{key} must be YYYY-MM-DD")
        if errors:
            return jsonify({'success': False, 'errors': errors}), 400

        data = {k: payload.get(k) for k in (
            'name', 'description', 'frequency', 'targetDays', 'monthDays',
            'intervalDays', 'startDate', 'endDate',
        ) if payload.get(k) is not None}
        data['createdDay'] = today(tz)

        try:
            habit = get_store().add_habit(user_id, data)
        except Exception as e:
            return _server_error('habits_api', 'Failed to create habit', e)
        print(f"[habits_api] Created habit {habit.id} for {user_id}")
        return jsonify({'success': True, 'habitId': habit.id, 'habit': habit_to_dict(habit)}), 200

    day = request_day(tz)
    try:
        store = get_store()
        habits = store.list_habits(user_id)
        completions = store.list_completions(user_id)
    except Exception as e:
        return _server_error('habits_api', 'Failed to load habits', e)

    items = []
    for habit in habits:
        item = habit_to_dict(habit)
        item.update({
            'id': habit.id,
            'status': status_on(habit, day, completions).value,
            'isDue': is_due_on(habit, day),
            'nextDueDate': next_due_day(habit, day),
            'streak': current_streak(habit, day, completions),
            'overdue': is_overdue(habit, day, completions),
        })
        items.append(item)
    return jsonify({'success': True, 'today': day, 'habits': items}), 200


@app.route('/api/habits/<habit_id>', methods=['DELETE'])
def delete_habit(habit_id):
    user_id = current_user_id()
    if not user_id:
        return jsonify({'error': 'Authentication required'}), 401

    try:
        habit, err = _load_owned_habit(habit_id, user_id)
        if err:
            return err
        removed = get_store().delete_habit(habit.id)
    except Exception as e:
        return _server_error('delete_habit', 'Failed to delete habit', e)

    print(f"[delete_habit] Deleted habit {habit_id} and {removed} completions")
    return jsonify({'success': True, 'deletedCompletions': removed}), 200


@app.route('/api/habits/<habit_id>/status', methods=['GET'])
def habit_status(habit_id):
    user_id = current_user_id()
    if not user_id:
        return jsonify({'error': 'Authentication required'}), 401

    day = request_day(request_timezone())
    try:
        habit, err = _load_owned_habit(habit_id, user_id)
        if err:
            return err
        completions = get_store().list_completions(user_id, habit_id=habit_id, day=day)
    except Exception as e:
        return _server_error('habit_status', 'Failed to load habit status', e)

    return jsonify({
        'success': True,
        'habitId': habit_id,
        'date': day,
        'status': status_on(habit, day, completions).value,
    }), 200


@app.route('/api/habits/<habit_id>/toggle', methods=['POST'])
def toggle_habit(habit_id):
    """Flip the habit's completion for a day (today in the caller's timezone by default)."""
    user_id = current_user_id()
    if not user_id:
        return jsonify({'error': 'Authentication required'}), 401

    day = request_day(request_timezone(), request.get_json(silent=True))
    try:
        habit, err = _load_owned_habit(habit_id, user_id)
        if err:
            return err
        store = get_store()
        # fresh snapshot for this (habit, day) right before writing
        existing = store.list_completions(user_id, habit_id=habit_id, day=day)
        saved = store.upsert_completion(user_id, toggle(habit, day, existing))
    except Exception as e:
        return _server_error('toggle_habit', 'Failed to update habit completion', e)

    print(f"[toggle_habit] {habit_id} on {day}: completed={saved.completed}")
    return jsonify({
        'success': True,
        'completion': _completion_json(saved),
        'status': status_on(habit, day, existing + [saved]).value,
    }), 200


@app.route('/habit/<habit_id>/weekly-progress', methods=['GET'])
def get_habit_weekly_progress(habit_id):
    """Last 7 days of statuses plus the current streak for one habit."""
    user_id = current_user_id()
    if not user_id:
        return jsonify({'error': 'Authentication required'}), 401

    day = request_day(request_timezone())
    try:
        habit, err = _load_owned_habit(habit_id, user_id)
        if err:
            return err
        completions = get_store().list_completions(user_id, habit_id=habit_id)
    except Exception as e:
        return _server_error('get_habit_weekly_progress', 'Failed to get habit weekly progress', e)

    data = weekly_progress(habit, day, completions)
    data['success'] = True
    data['streak_current'] = current_streak(habit, day, completions)
    return jsonify(data), 200

# ---------------- AI ---------------- #
@app.route('/api/insights/motivation', methods=['POST'])
def motivation():
    user_id = current_user_id()
    if not user_id:
        return jsonify({'error': 'Authentication required'}), 401

    day = request_day(request_timezone(), request.get_json(silent=True))
    try:
        store = get_store()
        summary = daily_summary(store.list_habits(user_id), day, store.list_completions(user_id))
    except Exception as e:
        return _server_error('motivation', 'Failed to build daily summary', e)

    result = motivational_message(summary)
    result.update({'success': True, 'summary': summary})
    return jsonify(result), 200


if __name__ == '__main__':
    app.run(debug=os.environ.get('FLASK_DEBUG') == '1')
