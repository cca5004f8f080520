from __future__ import annotations

from datetime import date, datetime
import unittest

from personal_assistant.aggregation import (
    calculate_project_progress,
    filter_tasks,
    get_events_for_date,
    get_stats,
    get_tasks_for_date,
    get_today_tasks,
    month_grid,
    percentage,
    project_view,
    split_by_completion,
)
from personal_assistant.models import CalendarEvent, Project, Task


NOW = datetime(2025, 3, 10, 12, 0)


def _tasks() -> list[Task]:
    return [
        Task(id="a", title="Write report", due_date="2025-03-20", project_id="p1"),
        Task(id="b", title="Submit ES", due_date="2025-03-09", project_id="p1"),
        Task(id="c", title="Buy milk", due_date="2025-03-11", completed=True),
        Task(id="d", title="Interview prep", due_date="2025-03-12", project_id="p2"),
    ]


class TestStats(unittest.TestCase):
    def test_empty_stats_are_zero(self) -> None:
        self.assertEqual(
            {"totalTasks": 0, "completedTasks": 0, "completionRate": 0, "urgentTasks": 0, "totalProjects": 0},
            get_stats([], [], NOW),
        )

    def test_stats_count_urgent_and_completion(self) -> None:
        projects = [Project(id="p1", name="Job hunt"), Project(id="p2", name="Study")]
        stats = get_stats(_tasks(), projects, NOW)
        self.assertEqual(4, stats["totalTasks"])
        self.assertEqual(1, stats["completedTasks"])
        self.assertEqual(25, stats["completionRate"])
        # the completed urgent task does not count
        self.assertEqual(1, stats["urgentTasks"])
        self.assertEqual(2, stats["totalProjects"])

    def test_percentage_rounds_half_up(self) -> None:
        self.assertEqual(33, percentage(1, 3))
        self.assertEqual(67, percentage(2, 3))
        self.assertEqual(50, percentage(1, 2))
        self.assertEqual(0, percentage(3, 0))


class TestTodayAndProgress(unittest.TestCase):
    def test_today_tasks_sorted_by_urgency(self) -> None:
        ordered = get_today_tasks(_tasks(), NOW)
        self.assertEqual(["b", "d", "a"], [task.id for task in ordered])

    def test_project_progress(self) -> None:
        tasks = _tasks()
        self.assertEqual(0, calculate_project_progress(tasks, "p1"))
        self.assertEqual(0, calculate_project_progress(tasks, "missing"))
        tasks[0].completed = True
        self.assertEqual(50, calculate_project_progress(tasks, "p1"))
        self.assertEqual(50, project_view(Project(id="p1", name="Job hunt"), tasks)["progress"])


class TestFilters(unittest.TestCase):
    def test_filter_by_search_project_and_priority(self) -> None:
        tasks = _tasks()
        self.assertEqual(["b"], [t.id for t in filter_tasks(tasks, search="submit", now=NOW)])
        self.assertEqual(["a", "b"], [t.id for t in filter_tasks(tasks, project_id="p1", now=NOW)])
        self.assertEqual(["d"], [t.id for t in filter_tasks(tasks, priority="high", now=NOW)])
        self.assertEqual(4, len(filter_tasks(tasks, now=NOW)))

    def test_split_by_completion(self) -> None:
        incomplete, completed = split_by_completion(_tasks())
        self.assertEqual(["a", "b", "d"], [t.id for t in incomplete])
        self.assertEqual(["c"], [t.id for t in completed])


class TestCalendarViews(unittest.TestCase):
    def test_items_for_date(self) -> None:
        events = [
            CalendarEvent(id="e1", title="Meeting", start="2025-03-12T10:00:00+09:00", end="2025-03-12T11:00:00+09:00"),
            CalendarEvent(id="e2", title="Holiday", start="2025-03-13", end="2025-03-14", all_day=True),
        ]
        day = date(2025, 3, 12)
        self.assertEqual(["d"], [t.id for t in get_tasks_for_date(_tasks(), day)])
        self.assertEqual(["e1"], [e.id for e in get_events_for_date(events, day)])

    def test_month_grid_is_sunday_first(self) -> None:
        # 2025-03-01 is a Saturday
        days = month_grid(2025, 3)
        self.assertEqual([None] * 6, days[:6])
        self.assertEqual(date(2025, 3, 1), days[6])
        self.assertEqual(6 + 31, len(days))
        # 2023-10-01 is a Sunday
        self.assertEqual(date(2023, 10, 1), month_grid(2023, 10)[0])


if __name__ == "__main__":
    unittest.main()
