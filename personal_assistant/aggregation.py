"""
Read-only views over task, project and calendar snapshots

Everything here is a pure function of its arguments; nothing is cached, so
callers recompute on every request.
"""

import calendar
import math
from datetime import date, datetime
from typing import Dict, Any, Iterable, List, Optional, Tuple, Union

from .models import Task, Project, CalendarEvent
from .priority import calculate_priority, parse_due_date, priority_rank, OVERDUE, URGENT

ALL = 'all'


def percentage(part: int, whole: int) -> int:
    """Rounded percentage, half-up, 0 for an empty whole"""
    if whole <= 0:
        return 0
    return int(math.floor(part / whole * 100 + 0.5))


def get_today_tasks(tasks: Iterable[Task], now: Union[date, datetime, None] = None) -> List[Task]:
    """Incomplete tasks, most urgent first"""
    now = now or datetime.now()
    pending = [task for task in tasks if not task.completed]
    return sorted(pending, key=lambda task: priority_rank(task, now))


def get_stats(tasks: List[Task], projects: List[Project],
              now: Union[date, datetime, None] = None) -> Dict[str, int]:
    """Dashboard counters"""
    now = now or datetime.now()
    total = len(tasks)
    completed = len([task for task in tasks if task.completed])
    urgent = [
        task for task in get_today_tasks(tasks, now)
        if calculate_priority(task, now) in (OVERDUE, URGENT)
    ]
    return {
        'totalTasks': total,
        'completedTasks': completed,
        'completionRate': percentage(completed, total),
        'urgentTasks': len(urgent),
        'totalProjects': len(projects)
    }


def get_project_tasks(tasks: Iterable[Task], project_id: str) -> List[Task]:
    return [task for task in tasks if task.project_id == project_id]


def calculate_project_progress(tasks: Iterable[Task], project_id: str) -> int:
    """Completed share of a project's tasks, 0 when it has none"""
    project_tasks = get_project_tasks(tasks, project_id)
    if not project_tasks:
        return 0
    completed = len([task for task in project_tasks if task.completed])
    return percentage(completed, len(project_tasks))


def filter_tasks(tasks: Iterable[Task], search: str = '', project_id: Optional[str] = ALL,
                 priority: Optional[str] = ALL,
                 now: Union[date, datetime, None] = None) -> List[Task]:
    """
    Filter tasks the way the task list does

    Args:
        tasks: Tasks to filter
        search: Case-insensitive substring of the title
        project_id: Project id, or 'all'
        priority: Derived tier, or 'all'
        now: Reference time for the tier

    Returns:
        Matching tasks in their original order
    """
    now = now or datetime.now()
    needle = (search or '').lower()
    matches = []
    for task in tasks:
        if needle and needle not in task.title.lower():
            continue
        if project_id and project_id != ALL and task.project_id != project_id:
            continue
        if priority and priority != ALL and calculate_priority(task, now) != priority:
            continue
        matches.append(task)
    return matches


def split_by_completion(tasks: Iterable[Task]) -> Tuple[List[Task], List[Task]]:
    incomplete, completed = [], []
    for task in tasks:
        (completed if task.completed else incomplete).append(task)
    return incomplete, completed


def get_tasks_for_date(tasks: Iterable[Task], day: date) -> List[Task]:
    return [task for task in tasks if parse_due_date(task.due_date) == day]


def get_events_for_date(events: Iterable[CalendarEvent], day: date) -> List[CalendarEvent]:
    return [event for event in events if parse_due_date(event.start) == day]


def month_grid(year: int, month: int) -> List[Optional[date]]:
    """
    Days of a month laid out on Sunday-first weeks

    Leading slots before the first day are None.
    """
    first = date(year, month, 1)
    days_in_month = calendar.monthrange(year, month)[1]
    leading = (first.weekday() + 1) % 7
    days: List[Optional[date]] = [None] * leading
    days.extend(date(year, month, day) for day in range(1, days_in_month + 1))
    return days


def task_view(task: Task, now: Union[date, datetime, None] = None) -> Dict[str, Any]:
    """Task dictionary with its derived tier"""
    data = task.to_dict()
    data['priority'] = calculate_priority(task, now or datetime.now())
    return data


def project_view(project: Project, tasks: Iterable[Task]) -> Dict[str, Any]:
    """Project dictionary with its derived progress"""
    data = project.to_dict()
    data['progress'] = calculate_project_progress(tasks, project.id)
    return data
