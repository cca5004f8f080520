"""
Data models for tasks, projects, chat messages and calendar events
"""

import uuid
from datetime import datetime
from typing import Optional, Dict, Any, List

PROJECT_PRIORITIES = ('low', 'medium', 'high')
MESSAGE_ROLES = ('user', 'assistant')


def new_id() -> str:
    """Generate a unique entity id"""
    return str(uuid.uuid4())


def now_iso() -> str:
    return datetime.now().isoformat()


class Task:
    """Task model

    The urgency tier is not an attribute: it is derived from ``due_date`` on
    every read (see ``priority.calculate_priority``).
    """

    def __init__(self, id: str, title: str, description: Optional[str] = None,
                 due_date: Optional[str] = None, project_id: Optional[str] = None,
                 completed: bool = False, created_at: Optional[str] = None):
        self.id = id
        self.title = title
        self.description = description or ''
        self.due_date = due_date or None  # YYYY-MM-DD
        self.project_id = project_id or None
        self.completed = completed
        self.created_at = created_at or now_iso()

    def to_dict(self) -> Dict[str, Any]:
        """Convert task to its stored dictionary form"""
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'dueDate': self.due_date,
            'projectId': self.project_id,
            'completed': self.completed,
            'createdAt': self.created_at
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Task':
        """Create task from dictionary"""
        return cls(
            id=data.get('id') or new_id(),
            title=data.get('title', ''),
            description=data.get('description'),
            due_date=data.get('dueDate'),
            project_id=data.get('projectId'),
            completed=bool(data.get('completed', False)),
            created_at=data.get('createdAt')
        )


class Project:
    """Project model"""

    def __init__(self, id: str, name: str, description: Optional[str] = None,
                 priority: str = 'medium', deadline: Optional[str] = None,
                 progress: int = 0, created_at: Optional[str] = None):
        self.id = id
        self.name = name
        self.description = description or ''
        self.priority = priority if priority in PROJECT_PRIORITIES else 'medium'
        self.deadline = deadline or None
        self.progress = progress  # only meaningful at creation, recomputed on read
        self.created_at = created_at or now_iso()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'priority': self.priority,
            'deadline': self.deadline,
            'progress': self.progress,
            'createdAt': self.created_at
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Project':
        return cls(
            id=data.get('id') or new_id(),
            name=data.get('name', ''),
            description=data.get('description'),
            priority=data.get('priority', 'medium'),
            deadline=data.get('deadline'),
            progress=data.get('progress', 0),
            created_at=data.get('createdAt')
        )


class Message:
    """Chat message model"""

    def __init__(self, id: str, role: str, content: str, timestamp: Optional[str] = None):
        self.id = id
        self.role = role
        self.content = content
        self.timestamp = timestamp or now_iso()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'role': self.role,
            'content': self.content,
            'timestamp': self.timestamp
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Message':
        return cls(
            id=data.get('id') or new_id(),
            role=data.get('role', 'user'),
            content=data.get('content', ''),
            timestamp=data.get('timestamp')
        )


class CalendarEvent:
    """Read-only mirror of a remote calendar event"""

    def __init__(self, id: str, title: str, start: str, end: str,
                 description: Optional[str] = None, location: Optional[str] = None,
                 all_day: bool = False):
        self.id = id
        self.title = title
        self.start = start
        self.end = end
        self.description = description or ''
        self.location = location or ''
        self.all_day = all_day

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'start': self.start,
            'end': self.end,
            'location': self.location,
            'allDay': self.all_day
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CalendarEvent':
        return cls(
            id=data.get('id', ''),
            title=data.get('title', ''),
            start=data.get('start', ''),
            end=data.get('end', ''),
            description=data.get('description'),
            location=data.get('location'),
            all_day=bool(data.get('allDay', False))
        )

    @classmethod
    def from_google(cls, event: Dict[str, Any]) -> 'CalendarEvent':
        """Create event from a Google Calendar API event resource"""
        start = event.get('start', {})
        end = event.get('end', {})
        return cls(
            id=event.get('id', ''),
            title=event.get('summary') or '(タイトルなし)',
            start=start.get('dateTime', start.get('date', '')),
            end=end.get('dateTime', end.get('date', '')),
            description=event.get('description'),
            location=event.get('location'),
            all_day='dateTime' not in start
        )


def empty_profile() -> Dict[str, List[Any]]:
    """Profile shape filled by the profile-update handler"""
    return {
        'companies': [],
        'recentEvents': [],
        'concerns': [],
        'strengths': []
    }
