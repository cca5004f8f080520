"""
Backend API for the Personal Assistant App
Handles tasks, projects, chat, calendar mirroring and the AI proxy endpoints
"""

import logging
import sys
from datetime import date, datetime

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS

from .aggregation import (
    filter_tasks, get_events_for_date, get_project_tasks, get_stats, get_tasks_for_date,
    get_today_tasks, month_grid, project_view, split_by_completion, task_view,
)
from .ai_handlers import ai_bp, make_client
from .assistant import AssistantService
from .config import Config
from .google_calendar_service import CalendarAuthError, CalendarSyncError, GoogleCalendarService
from .priority import TIERS
from .storage import storage_from_config
from .store import AppStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

api_bp = Blueprint('api', __name__)


def configure_logging(level='INFO'):
    """Send package logs to stderr"""
    package_logger = logging.getLogger('personal_assistant')
    package_logger.setLevel(level)
    if not package_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        package_logger.addHandler(handler)


def get_store() -> AppStore:
    return current_app.extensions['assistant_store']


def _now():
    return datetime.now()


def _body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


@api_bp.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint"""
    return jsonify({'status': 'ok', 'message': 'Personal Assistant API is running'})


# Task CRUD Operations

@api_bp.route('/api/tasks', methods=['GET'])
def get_tasks():
    """Get tasks, optionally filtered by search text, project and tier"""
    try:
        store = get_store()
        now = _now()
        priority = request.args.get('priority', 'all')
        if priority != 'all' and priority not in TIERS:
            return jsonify({'error': f'Unknown priority: {priority}'}), 400

        tasks = filter_tasks(
            store.tasks,
            search=request.args.get('search', ''),
            project_id=request.args.get('project', 'all'),
            priority=priority,
            now=now
        )
        incomplete, completed = split_by_completion(tasks)
        return jsonify({
            'tasks': [task_view(t, now) for t in tasks],
            'incomplete': len(incomplete),
            'completed': len(completed)
        })
    except Exception as e:
        logger.exception("Error getting tasks")
        return jsonify({'error': str(e)}), 500


@api_bp.route('/api/tasks/today', methods=['GET'])
def get_today():
    """Get incomplete tasks, most urgent first"""
    now = _now()
    tasks = get_today_tasks(get_store().tasks, now)
    return jsonify({'tasks': [task_view(t, now) for t in tasks]})


@api_bp.route('/api/tasks/<task_id>', methods=['GET'])
def get_task(task_id):
    """Get a specific task"""
    task = get_store().get_task(task_id)
    if task is None:
        return jsonify({'error': 'Task not found'}), 404
    return jsonify({'task': task_view(task, _now())})


@api_bp.route('/api/tasks', methods=['POST'])
def create_task():
    """Create a new task"""
    data = _body()
    if not data or not data.get('title'):
        return jsonify({'error': 'Missing required fields: title'}), 400

    try:
        task = get_store().add_task(data)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.exception("Error creating task")
        return jsonify({'error': str(e)}), 500

    logger.info("Created task %s", task.id)
    return jsonify({'task': task_view(task, _now())}), 201


@api_bp.route('/api/tasks/<task_id>', methods=['PUT'])
def update_task(task_id):
    """Update an existing task"""
    data = _body()
    if data is None:
        return jsonify({'error': 'Invalid request'}), 400

    try:
        task = get_store().update_task(task_id, data)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.exception("Error updating task")
        return jsonify({'error': str(e)}), 500

    if task is None:
        return jsonify({'error': 'Task not found'}), 404
    return jsonify({'task': task_view(task, _now())})


@api_bp.route('/api/tasks/<task_id>', methods=['DELETE'])
def delete_task(task_id):
    """Delete a task"""
    if not get_store().delete_task(task_id):
        return jsonify({'error': 'Task not found'}), 404
    return jsonify({'message': 'Task deleted successfully'})


@api_bp.route('/api/tasks/<task_id>/toggle-complete', methods=['POST'])
def toggle_task_complete(task_id):
    """Toggle task completion status"""
    task = get_store().toggle_task(task_id)
    if task is None:
        return jsonify({'error': 'Task not found'}), 404
    return jsonify({
        'task': task_view(task, _now()),
        'message': 'Task marked as completed' if task.completed else 'Task marked as incomplete'
    })


# Project CRUD Operations

@api_bp.route('/api/projects', methods=['GET'])
def get_projects():
    """Get all projects with their progress"""
    store = get_store()
    return jsonify({'projects': [project_view(p, store.tasks) for p in store.projects]})


@api_bp.route('/api/projects/<project_id>', methods=['GET'])
def get_project(project_id):
    store = get_store()
    project = store.get_project(project_id)
    if project is None:
        return jsonify({'error': 'Project not found'}), 404
    return jsonify({'project': project_view(project, store.tasks)})


@api_bp.route('/api/projects/<project_id>/tasks', methods=['GET'])
def get_tasks_of_project(project_id):
    store = get_store()
    if store.get_project(project_id) is None:
        return jsonify({'error': 'Project not found'}), 404
    now = _now()
    return jsonify({'tasks': [task_view(t, now) for t in get_project_tasks(store.tasks, project_id)]})


@api_bp.route('/api/projects', methods=['POST'])
def create_project():
    """Create a new project"""
    data = _body()
    if not data or not data.get('name'):
        return jsonify({'error': 'Missing required fields: name'}), 400

    store = get_store()
    try:
        project = store.add_project(data)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.exception("Error creating project")
        return jsonify({'error': str(e)}), 500

    return jsonify({'project': project_view(project, store.tasks)}), 201


@api_bp.route('/api/projects/<project_id>', methods=['PUT'])
def update_project(project_id):
    """Update an existing project"""
    data = _body()
    if data is None:
        return jsonify({'error': 'Invalid request'}), 400

    store = get_store()
    try:
        project = store.update_project(project_id, data)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        logger.exception("Error updating project")
        return jsonify({'error': str(e)}), 500

    if project is None:
        return jsonify({'error': 'Project not found'}), 404
    return jsonify({'project': project_view(project, store.tasks)})


@api_bp.route('/api/projects/<project_id>', methods=['DELETE'])
def delete_project(project_id):
    """Delete a project and its tasks"""
    if not get_store().delete_project(project_id):
        return jsonify({'error': 'Project not found'}), 404
    return jsonify({'message': 'Project deleted successfully'})


@api_bp.route('/api/stats', methods=['GET'])
def stats():
    store = get_store()
    return jsonify(get_stats(store.tasks, store.projects, _now()))


# Chat

@api_bp.route('/api/messages', methods=['GET'])
def get_messages():
    """Get chat history"""
    store = get_store()
    try:
        limit = int(request.args.get('limit', 0))
    except ValueError:
        return jsonify({'error': 'limit must be an integer'}), 400
    messages = store.recent_messages(limit) if limit > 0 else store.messages
    return jsonify({'messages': [m.to_dict() for m in messages]})


@api_bp.route('/api/messages', methods=['POST'])
def send_message():
    """Send a chat message and merge what the assistant extracts from it"""
    data = _body()
    content = data.get('content') if data else None
    if not isinstance(content, str) or not content.strip():
        return jsonify({'error': 'Missing required fields: content'}), 400

    client = make_client(current_app.config)
    if client is None:
        logger.error("GEMINI_API_KEY is not configured")
        return jsonify({'error': 'API key not configured'}), 500

    assistant = AssistantService(
        get_store(),
        client,
        extract_tasks_enabled=current_app.config['AUTO_EXTRACT_TASKS'],
        update_profile_enabled=current_app.config['AUTO_UPDATE_PROFILE']
    )
    try:
        result = assistant.send_message(content)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify(result), 201


@api_bp.route('/api/profile', methods=['GET'])
def get_profile():
    return jsonify({'profile': get_store().profile})


@api_bp.route('/api/settings/theme', methods=['GET'])
def get_theme():
    return jsonify({'theme': get_store().theme})


@api_bp.route('/api/settings/theme', methods=['PUT'])
def set_theme():
    data = _body() or {}
    try:
        theme = get_store().set_theme(data.get('theme'))
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify({'theme': theme})


# Google Calendar Integration

@api_bp.route('/api/google-calendar/token', methods=['PUT'])
def set_calendar_token():
    """Store the calendar access token obtained by the client"""
    data = _body() or {}
    try:
        get_store().set_access_token(data.get('token'))
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify({'authenticated': True})


@api_bp.route('/api/google-calendar/token', methods=['DELETE'])
def clear_calendar_token():
    get_store().clear_access_token()
    return jsonify({'authenticated': False})


@api_bp.route('/api/google-calendar/status', methods=['GET'])
def google_calendar_status():
    """Check Google Calendar authentication status"""
    is_authenticated = bool(get_store().access_token)
    return jsonify({
        'authenticated': is_authenticated,
        'message': 'Authenticated with Google Calendar' if is_authenticated else 'Not authenticated'
    })


@api_bp.route('/api/google-calendar/sync', methods=['POST'])
def sync_google_calendar():
    """Replace the local calendar cache with upcoming Google Calendar events"""
    store = get_store()
    if not store.access_token:
        return jsonify({
            'error': 'Not authenticated with Google Calendar',
            'auth_required': True,
            'message': 'Please authenticate with Google Calendar first'
        }), 401

    cached = [e.to_dict() for e in store.calendar_events]
    try:
        service = GoogleCalendarService(store.access_token)
        events = service.fetch_upcoming(
            days=current_app.config['CALENDAR_LOOKAHEAD_DAYS'],
            max_results=current_app.config['CALENDAR_MAX_RESULTS']
        )
    except CalendarAuthError:
        store.clear_access_token()
        return jsonify({
            'error': 'Calendar token expired',
            'auth_required': True,
            'message': '認証の有効期限が切れました。再度ログインしてください'
        }), 401
    except CalendarSyncError as e:
        return jsonify({'error': f'カレンダーの読み込みに失敗: {e}', 'events': cached}), 502
    except Exception:
        logger.exception("Calendar error")
        return jsonify({'error': 'カレンダーとの接続に失敗しました', 'events': cached}), 503

    store.replace_calendar_events(events)
    logger.info("Synced %d calendar events", len(events))
    return jsonify({'events': [e.to_dict() for e in events], 'count': len(events)})


@api_bp.route('/api/calendar/events', methods=['GET'])
def get_calendar_events():
    """Get the cached calendar events"""
    return jsonify({'events': [e.to_dict() for e in get_store().calendar_events]})


def _parse_day(value):
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return None


@api_bp.route('/api/calendar/day', methods=['GET'])
def calendar_day():
    """Tasks due and events starting on one date"""
    day = _parse_day(request.args.get('date'))
    if day is None:
        return jsonify({'error': 'date must be YYYY-MM-DD'}), 400

    store = get_store()
    now = _now()
    return jsonify({
        'date': day.isoformat(),
        'tasks': [task_view(t, now) for t in get_tasks_for_date(store.tasks, day)],
        'events': [e.to_dict() for e in get_events_for_date(store.calendar_events, day)]
    })


@api_bp.route('/api/calendar/month', methods=['GET'])
def calendar_month():
    """Sunday-first month grid with the tasks and events of each day"""
    today = _now().date()
    try:
        year = int(request.args.get('year', today.year))
        month = int(request.args.get('month', today.month))
        days = month_grid(year, month)
    except ValueError:
        return jsonify({'error': 'Invalid year or month'}), 400

    store = get_store()
    now = _now()
    cells = []
    for day in days:
        if day is None:
            cells.append(None)
            continue
        cells.append({
            'date': day.isoformat(),
            'tasks': [task_view(t, now) for t in get_tasks_for_date(store.tasks, day)],
            'events': [e.to_dict() for e in get_events_for_date(store.calendar_events, day)]
        })
    return jsonify({'year': year, 'month': month, 'days': cells})


def create_app(config_overrides=None, storage=None):
    """
    Build the Flask application

    Args:
        config_overrides: Mapping applied on top of Config
        storage: Storage backend; defaults to STORAGE_DIR or memory

    Returns:
        Configured Flask app with its AppStore loaded
    """
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)
    app.json.ensure_ascii = False

    configure_logging(app.config['LOG_LEVEL'])

    # Permissive CORS for the browser client
    CORS(app,
         resources={
             r"/api/*": {
                 "origins": app.config['CORS_ORIGINS'],
                 "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
                 "allow_headers": ["Content-Type", "Authorization"]
             }
         })

    backend = storage if storage is not None else storage_from_config(app.config['STORAGE_DIR'])
    app.extensions['assistant_store'] = AppStore(backend).load()

    app.register_blueprint(api_bp)
    app.register_blueprint(ai_bp)

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    return app


def main():
    app = create_app()
    app.run(debug=app.config['DEBUG'], host='0.0.0.0', port=app.config['PORT'])


if __name__ == '__main__':
    main()
