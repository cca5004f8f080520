from __future__ import annotations

import json
from tempfile import TemporaryDirectory
import unittest

from personal_assistant.storage import FileStorage, MemoryStorage
from personal_assistant.store import AppStore, merge_profile


class BrokenStorage(MemoryStorage):
    def set(self, key: str, value: str) -> None:
        raise OSError("disk full")

    def delete(self, key: str) -> None:
        raise OSError("read-only filesystem")


class TestProjectsAndTasks(unittest.TestCase):
    def setUp(self) -> None:
        self.storage = MemoryStorage()
        self.store = AppStore(self.storage).load()

    def test_add_task_validates_and_persists(self) -> None:
        task = self.store.add_task({"title": "  ESを提出する ", "dueDate": "2025-03-14"})
        self.assertEqual("ESを提出する", task.title)
        self.assertEqual("2025-03-14", task.due_date)
        self.assertFalse(task.completed)
        saved = json.loads(self.storage.get("tasks"))
        self.assertEqual([task.id], [item["id"] for item in saved])
        self.assertNotIn("priority", saved[0])

        with self.assertRaises(ValueError):
            self.store.add_task({"title": "   "})
        with self.assertRaises(ValueError):
            self.store.add_task({"title": "x", "dueDate": "next week"})

    def test_update_and_toggle(self) -> None:
        task = self.store.add_task({"title": "Write report"})
        self.store.update_task(task.id, {"dueDate": "2025-04-01", "description": "draft"})
        self.assertEqual("2025-04-01", task.due_date)
        self.assertEqual("draft", task.description)
        self.store.toggle_task(task.id)
        self.assertTrue(task.completed)
        self.store.toggle_task(task.id)
        self.assertFalse(task.completed)
        self.assertIsNone(self.store.update_task("missing", {"title": "x"}))
        self.assertIsNone(self.store.toggle_task("missing"))

    def test_delete_project_cascades_only_its_tasks(self) -> None:
        doomed = self.store.add_project({"name": "Job hunt", "priority": "high"})
        kept = self.store.add_project({"name": "Study"})
        self.store.add_task({"title": "ES", "projectId": doomed.id})
        self.store.add_task({"title": "Interview", "projectId": doomed.id})
        other = self.store.add_task({"title": "Read book", "projectId": kept.id})
        loose = self.store.add_task({"title": "Buy milk"})

        self.assertTrue(self.store.delete_project(doomed.id))
        self.assertEqual([other.id, loose.id], [t.id for t in self.store.tasks])
        self.assertEqual([kept.id], [p.id for p in self.store.projects])
        self.assertFalse(self.store.delete_project(doomed.id))

    def test_project_priority_is_validated(self) -> None:
        with self.assertRaises(ValueError):
            self.store.add_project({"name": "x", "priority": "urgent"})
        project = self.store.add_project({"name": "x"})
        self.assertEqual("medium", project.priority)
        with self.assertRaises(ValueError):
            self.store.update_project(project.id, {"priority": "overdue"})

    def test_extracted_tasks_skip_duplicates(self) -> None:
        self.store.add_task({"title": "ESを提出する"})
        created = self.store.add_extracted_tasks([
            {"title": "ESを提出する", "dueDate": "2025-03-14", "priority": "high"},
            {"title": "面接の準備", "dueDate": "bad", "priority": "high", "projectId": "p1"},
        ])
        self.assertEqual(["面接の準備"], [t.title for t in created])
        self.assertIsNone(created[0].due_date)
        self.assertIsNone(created[0].project_id)
        self.assertEqual(2, len(self.store.tasks))


    def test_completed_task_does_not_block_recurring_task(self) -> None:
        done = self.store.add_task({"title": "週報を書く", "dueDate": "2025-03-07"})
        self.store.toggle_task(done.id)
        created = self.store.add_extracted_tasks([{"title": "週報を書く", "dueDate": "2025-03-14"}])
        self.assertEqual(["2025-03-14"], [t.due_date for t in created])
        self.assertEqual(2, len(self.store.tasks))

        again = self.store.add_extracted_tasks([{"title": "週報を書く", "dueDate": "2025-03-14"}])
        self.assertEqual([], again)

    def test_tasks_sharing_a_stem_are_both_added(self) -> None:
        self.store.add_task({"title": "ES提出"})
        created = self.store.add_extracted_tasks([{"title": "B社のES提出"}])
        self.assertEqual(["B社のES提出"], [t.title for t in created])


class TestPersistence(unittest.TestCase):
    def test_state_survives_reload(self) -> None:
        with TemporaryDirectory() as tmp:
            store = AppStore(FileStorage(tmp)).load()
            project = store.add_project({"name": "Job hunt"})
            store.add_task({"title": "ES", "projectId": project.id, "dueDate": "2025-03-14"})
            store.append_message("user", "こんにちは")
            store.set_theme("dark")
            store.set_access_token("#access_token=ya29.abc&token_type=Bearer")

            reloaded = AppStore(FileStorage(tmp)).load()
            self.assertEqual(["Job hunt"], [p.name for p in reloaded.projects])
            self.assertEqual(["ES"], [t.title for t in reloaded.tasks])
            self.assertEqual(["こんにちは"], [m.content for m in reloaded.messages])
            self.assertEqual("dark", reloaded.theme)
            self.assertEqual("ya29.abc", reloaded.access_token)

            reloaded.clear_access_token()
            self.assertIsNone(AppStore(FileStorage(tmp)).load().access_token)

    def test_unreadable_values_are_ignored(self) -> None:
        storage = MemoryStorage()
        storage.set("tasks", "{not json")
        storage.set("theme", '"purple"')
        store = AppStore(storage).load()
        self.assertEqual([], store.tasks)
        self.assertEqual("light", store.theme)

    def test_failed_writes_do_not_break_mutations(self) -> None:
        store = AppStore(BrokenStorage()).load()
        task = store.add_task({"title": "Still works"})
        self.assertEqual([task], store.tasks)
        self.assertTrue(store.delete_task(task.id))
        store.set_access_token("token")
        store.clear_access_token()
        self.assertIsNone(store.access_token)

    def test_theme_must_be_known(self) -> None:
        store = AppStore(MemoryStorage())
        with self.assertRaises(ValueError):
            store.set_theme("purple")


class TestMessages(unittest.TestCase):
    def test_recent_messages_window(self) -> None:
        store = AppStore(MemoryStorage())
        for index in range(12):
            store.append_message("user" if index % 2 == 0 else "assistant", f"m{index}")
        self.assertEqual([f"m{i}" for i in range(2, 12)], [m.content for m in store.recent_messages()])
        self.assertEqual([], store.recent_messages(0))
        with self.assertRaises(ValueError):
            store.append_message("system", "nope")


class TestProfileMerge(unittest.TestCase):
    def test_merge_companies_and_lists(self) -> None:
        current = {
            "companies": [{"name": "A社", "status": "ES提出", "date": "", "notes": ""}],
            "recentEvents": [],
            "concerns": ["面接"],
            "strengths": [],
        }
        updates = {
            "companies": [
                {"name": "A社", "status": "一次面接", "date": "2025-03-14"},
                {"name": "B社", "status": "説明会"},
            ],
            "concerns": ["面接", "GD"],
        }
        merged = merge_profile(current, updates)
        self.assertEqual(
            [
                {"name": "A社", "status": "一次面接", "date": "2025-03-14", "notes": ""},
                {"name": "B社", "status": "説明会", "date": "", "notes": ""},
            ],
            merged["companies"],
        )
        self.assertEqual(["面接", "GD"], merged["concerns"])
        self.assertEqual(merged, merge_profile(merged, updates))
        self.assertEqual(["面接"], current["concerns"])

    def test_store_applies_updates(self) -> None:
        storage = MemoryStorage()
        store = AppStore(storage)
        store.apply_profile_updates({"strengths": ["継続力"]})
        self.assertEqual(["継続力"], json.loads(storage.get("profile"))["strengths"])


if __name__ == "__main__":
    unittest.main()
