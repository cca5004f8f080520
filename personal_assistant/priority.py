"""
Urgency tiers derived from task due dates
"""

import math
from datetime import date, datetime, timedelta
from typing import Optional, Union

OVERDUE = 'overdue'
URGENT = 'urgent'
HIGH = 'high'
MEDIUM = 'medium'
LOW = 'low'

TIERS = (OVERDUE, URGENT, HIGH, MEDIUM, LOW)

# Ascending sort key, most urgent first
PRIORITY_ORDER = {tier: index for index, tier in enumerate(TIERS)}

DateLike = Union[str, date, datetime, None]


def parse_due_date(value: DateLike) -> Optional[date]:
    """
    Parse a stored due date into a calendar date

    Accepts ``YYYY-MM-DD`` strings, full ISO timestamps (a trailing ``Z`` is
    allowed) and date/datetime objects. Returns None for missing or
    unparseable values.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace('Z', '+00:00')).date()
    except ValueError:
        return None


def _as_datetime(now: Union[date, datetime]) -> datetime:
    if isinstance(now, datetime):
        if now.tzinfo:
            now = now.replace(tzinfo=None)
        return now
    return datetime(now.year, now.month, now.day)


def days_until_due(due: date, now: Union[date, datetime]) -> int:
    """Whole days from ``now`` until midnight of ``due``, rounded up"""
    due_at = datetime(due.year, due.month, due.day)
    delta = due_at - _as_datetime(now)
    return math.ceil(delta / timedelta(days=1))


def calculate_priority(task, now: Union[date, datetime, None] = None) -> str:
    """
    Map a task's due date to an urgency tier

    Args:
        task: Task object or task dictionary (``dueDate`` key)
        now: Reference time; defaults to the current local time

    Returns:
        One of overdue, urgent, high, medium, low
    """
    if isinstance(task, dict):
        raw_due = task.get('dueDate')
    else:
        raw_due = getattr(task, 'due_date', None)

    due = parse_due_date(raw_due)
    if due is None:
        return LOW

    days = days_until_due(due, now if now is not None else datetime.now())

    if days < 0:
        return OVERDUE
    if days <= 1:
        return URGENT
    if days <= 3:
        return HIGH
    if days <= 7:
        return MEDIUM
    return LOW


def priority_rank(task, now: Union[date, datetime, None] = None) -> int:
    return PRIORITY_ORDER[calculate_priority(task, now)]
