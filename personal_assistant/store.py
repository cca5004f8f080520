"""
Application state container

AppStore owns the in-memory collections and writes every mutation through to
a key-value storage backend. Writes are fire-and-forget: a failed write is
logged and the in-memory state stays authoritative for this process.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from .extraction import dedupe_tasks
from .models import (
    Task, Project, Message, CalendarEvent, PROJECT_PRIORITIES, MESSAGE_ROLES,
    new_id, now_iso, empty_profile,
)
from .priority import parse_due_date
from .storage import StorageError

logger = logging.getLogger(__name__)

PROJECTS_KEY = 'projects'
TASKS_KEY = 'tasks'
MESSAGES_KEY = 'messages'
CALENDAR_EVENTS_KEY = 'calendar-events'
PROFILE_KEY = 'profile'
THEME_KEY = 'theme'
ACCESS_TOKEN_KEY = 'google-access-token'

THEMES = ('light', 'dark')
CONTEXT_WINDOW = 10

PROFILE_LISTS = ('recentEvents', 'concerns', 'strengths')


def _clean_date(value: Any, field: str) -> Optional[str]:
    if value in (None, ''):
        return None
    parsed = parse_due_date(value)
    if parsed is None:
        raise ValueError(f"Invalid date format for {field}: {value!r}")
    return parsed.isoformat()


def _clean_text(value: Any, field: str, required: bool = False) -> str:
    if value is None:
        value = ''
    if not isinstance(value, str):
        raise ValueError(f"{field} must be a string")
    value = value.strip()
    if required and not value:
        raise ValueError(f"Missing required field: {field}")
    return value


def merge_profile(current: Optional[Dict[str, Any]], updates: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Merge profile deltas into a profile

    Companies are merged by name (non-empty fields of the update win); the
    string lists are unioned, keeping first-seen order. Merging the same
    update twice changes nothing.
    """
    merged = empty_profile()
    for key, value in (current or {}).items():
        merged[key] = list(value) if isinstance(value, list) else value

    updates = updates or {}

    companies = [dict(c) for c in merged.get('companies') or [] if isinstance(c, dict)]
    by_name = {c.get('name'): c for c in companies if c.get('name')}
    for company in updates.get('companies') or []:
        if not isinstance(company, dict) or not company.get('name'):
            continue
        existing = by_name.get(company['name'])
        if existing is None:
            entry = {field: company.get(field, '') for field in ('name', 'status', 'date', 'notes')}
            companies.append(entry)
            by_name[entry['name']] = entry
        else:
            for field in ('status', 'date', 'notes'):
                if company.get(field):
                    existing[field] = company[field]
    merged['companies'] = companies

    for key in PROFILE_LISTS:
        items = [item for item in merged.get(key) or [] if isinstance(item, str)]
        for item in updates.get(key) or []:
            if isinstance(item, str) and item.strip() and item not in items:
                items.append(item)
        merged[key] = items

    return merged


class AppStore:
    """In-memory collections with write-through persistence"""

    def __init__(self, storage):
        self.storage = storage
        self.projects: List[Project] = []
        self.tasks: List[Task] = []
        self.messages: List[Message] = []
        self.calendar_events: List[CalendarEvent] = []
        self.profile: Dict[str, Any] = empty_profile()
        self.theme = 'light'
        self.access_token: Optional[str] = None

    # Persistence

    def _read(self, key: str):
        try:
            raw = self.storage.get(key)
        except (OSError, StorageError) as e:
            logger.error("Storage get error for %s: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.error("Discarding unreadable value for %s: %s", key, e)
            return None

    def _write(self, key: str, value) -> bool:
        try:
            self.storage.set(key, json.dumps(value, ensure_ascii=False))
            return True
        except (OSError, StorageError, TypeError) as e:
            logger.error("Storage set error for %s: %s", key, e)
            return False

    def _remove(self, key: str) -> bool:
        try:
            self.storage.delete(key)
            return True
        except (OSError, StorageError) as e:
            logger.error("Storage delete error for %s: %s", key, e)
            return False

    def load(self) -> 'AppStore':
        """Replace in-memory state with whatever storage holds"""
        projects = self._read(PROJECTS_KEY)
        tasks = self._read(TASKS_KEY)
        messages = self._read(MESSAGES_KEY)
        events = self._read(CALENDAR_EVENTS_KEY)
        profile = self._read(PROFILE_KEY)
        theme = self._read(THEME_KEY)
        token = self._read(ACCESS_TOKEN_KEY)

        if isinstance(projects, list):
            self.projects = [Project.from_dict(p) for p in projects if isinstance(p, dict)]
        if isinstance(tasks, list):
            self.tasks = [Task.from_dict(t) for t in tasks if isinstance(t, dict)]
        if isinstance(messages, list):
            self.messages = [Message.from_dict(m) for m in messages if isinstance(m, dict)]
        if isinstance(events, list):
            self.calendar_events = [CalendarEvent.from_dict(e) for e in events if isinstance(e, dict)]
        if isinstance(profile, dict):
            self.profile = merge_profile(profile, None)
        if theme in THEMES:
            self.theme = theme
        if isinstance(token, str) and token:
            self.access_token = token

        logger.info(
            "Loaded %d projects, %d tasks, %d messages, %d calendar events",
            len(self.projects), len(self.tasks), len(self.messages), len(self.calendar_events)
        )
        return self

    def _save_projects(self):
        self._write(PROJECTS_KEY, [p.to_dict() for p in self.projects])

    def _save_tasks(self):
        self._write(TASKS_KEY, [t.to_dict() for t in self.tasks])

    def _save_messages(self):
        self._write(MESSAGES_KEY, [m.to_dict() for m in self.messages])

    # Projects

    def get_project(self, project_id: str) -> Optional[Project]:
        return next((p for p in self.projects if p.id == project_id), None)

    def add_project(self, data: Dict[str, Any]) -> Project:
        priority = data.get('priority') or 'medium'
        if priority not in PROJECT_PRIORITIES:
            raise ValueError(f"Priority must be one of {', '.join(PROJECT_PRIORITIES)}")
        project = Project(
            id=new_id(),
            name=_clean_text(data.get('name'), 'name', required=True),
            description=_clean_text(data.get('description'), 'description'),
            priority=priority,
            deadline=_clean_date(data.get('deadline'), 'deadline'),
            progress=0,
            created_at=now_iso()
        )
        self.projects.append(project)
        self._save_projects()
        return project

    def update_project(self, project_id: str, updates: Dict[str, Any]) -> Optional[Project]:
        """Apply field edits; id, progress and createdAt are not editable"""
        project = self.get_project(project_id)
        if project is None:
            return None

        if 'name' in updates:
            project.name = _clean_text(updates['name'], 'name', required=True)
        if 'description' in updates:
            project.description = _clean_text(updates['description'], 'description')
        if 'priority' in updates:
            if updates['priority'] not in PROJECT_PRIORITIES:
                raise ValueError(f"Priority must be one of {', '.join(PROJECT_PRIORITIES)}")
            project.priority = updates['priority']
        if 'deadline' in updates:
            project.deadline = _clean_date(updates['deadline'], 'deadline')

        self._save_projects()
        return project

    def delete_project(self, project_id: str) -> bool:
        """Delete a project and every task that references it"""
        if self.get_project(project_id) is None:
            return False
        self.projects = [p for p in self.projects if p.id != project_id]
        before = len(self.tasks)
        self.tasks = [t for t in self.tasks if t.project_id != project_id]
        logger.info("Deleted project %s and %d tasks", project_id, before - len(self.tasks))
        self._save_projects()
        self._save_tasks()
        return True

    # Tasks

    def get_task(self, task_id: str) -> Optional[Task]:
        return next((t for t in self.tasks if t.id == task_id), None)

    def add_task(self, data: Dict[str, Any]) -> Task:
        task = Task(
            id=new_id(),
            title=_clean_text(data.get('title'), 'title', required=True),
            description=_clean_text(data.get('description'), 'description'),
            due_date=_clean_date(data.get('dueDate'), 'dueDate'),
            project_id=data.get('projectId') or None,
            completed=False,
            created_at=now_iso()
        )
        self.tasks.append(task)
        self._save_tasks()
        return task

    def update_task(self, task_id: str, updates: Dict[str, Any]) -> Optional[Task]:
        task = self.get_task(task_id)
        if task is None:
            return None

        if 'title' in updates:
            task.title = _clean_text(updates['title'], 'title', required=True)
        if 'description' in updates:
            task.description = _clean_text(updates['description'], 'description')
        if 'dueDate' in updates:
            task.due_date = _clean_date(updates['dueDate'], 'dueDate')
        if 'projectId' in updates:
            task.project_id = updates['projectId'] or None
        if 'completed' in updates:
            task.completed = bool(updates['completed'])

        self._save_tasks()
        return task

    def toggle_task(self, task_id: str) -> Optional[Task]:
        task = self.get_task(task_id)
        if task is None:
            return None
        task.completed = not task.completed
        self._save_tasks()
        return task

    def delete_task(self, task_id: str) -> bool:
        if self.get_task(task_id) is None:
            return False
        self.tasks = [t for t in self.tasks if t.id != task_id]
        self._save_tasks()
        return True

    def add_extracted_tasks(self, items: Iterable[Dict[str, Any]]) -> List[Task]:
        """
        Add tasks produced by the extraction handler

        Items that duplicate the title of an incomplete task are skipped; the model's
        own priority guess is ignored since tiers are derived from the due date.
        """
        existing = [t.to_dict() for t in self.tasks if not t.completed]
        created = []
        for item in dedupe_tasks(list(items), existing):
            try:
                due_date = _clean_date(item.get('dueDate'), 'dueDate')
            except ValueError:
                due_date = None
            task = Task(
                id=new_id(),
                title=item['title'].strip(),
                description=item.get('description') or '',
                due_date=due_date,
                project_id=None,
                completed=False,
                created_at=now_iso()
            )
            self.tasks.append(task)
            created.append(task)
        if created:
            self._save_tasks()
            logger.info("Added %d extracted tasks", len(created))
        return created

    # Messages

    def append_message(self, role: str, content: str) -> Message:
        if role not in MESSAGE_ROLES:
            raise ValueError(f"Unknown message role: {role!r}")
        message = Message(id=new_id(), role=role, content=content, timestamp=now_iso())
        self.messages.append(message)
        self._save_messages()
        return message

    def recent_messages(self, limit: int = CONTEXT_WINDOW) -> List[Message]:
        return self.messages[-limit:] if limit > 0 else []

    # Calendar

    def replace_calendar_events(self, events: Iterable[CalendarEvent]) -> List[CalendarEvent]:
        """Swap the whole calendar cache for a fresh sync result"""
        self.calendar_events = list(events)
        self._write(CALENDAR_EVENTS_KEY, [e.to_dict() for e in self.calendar_events])
        return self.calendar_events

    def set_access_token(self, token: str) -> None:
        token = _clean_text(token, 'token', required=True)
        if 'access_token=' in token:
            # pasted redirect fragment
            token = token.split('access_token=', 1)[1].split('&', 1)[0]
        self.access_token = token
        self._write(ACCESS_TOKEN_KEY, token)

    def clear_access_token(self) -> None:
        self.access_token = None
        self._remove(ACCESS_TOKEN_KEY)

    # Profile and settings

    def apply_profile_updates(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        self.profile = merge_profile(self.profile, updates)
        self._write(PROFILE_KEY, self.profile)
        return self.profile

    def set_theme(self, theme: str) -> str:
        if theme not in THEMES:
            raise ValueError(f"Theme must be one of {', '.join(THEMES)}")
        self.theme = theme
        self._write(THEME_KEY, theme)
        return theme

    # Snapshot used for prompts

    def tasks_for_prompt(self) -> List[Dict[str, Any]]:
        return [t.to_dict() for t in self.tasks]

    def projects_for_prompt(self) -> List[Dict[str, Any]]:
        return [p.to_dict() for p in self.projects]
