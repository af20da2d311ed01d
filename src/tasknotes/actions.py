"""
Task Notes Actions

Thin wrappers over NoteDatabase used by the REST API and the client view
state. Database errors are logged and surfaced as None/False/[] rather than
raised; there is no retry. Successful mutations notify change listeners so
open views can refetch.
"""

import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from .database import NoteDatabase, DEFAULT_TASK_TITLE
from .models import TaskInput
from .richtext import sanitize_html

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str, Dict[str, Any]], None]


class NoteActions:
    """
    Remote-call facade for categories and tasks.

    Every method returns a plain value: rows as dicts, None/False on failure,
    empty lists when a listing cannot be read.
    """

    def __init__(self, db: NoteDatabase):
        self.db = db
        self._listeners: List[ChangeListener] = []

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event_type: str, data: Dict[str, Any]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event_type, data)
            except Exception as e:
                logger.error(f"Change listener failed for {event_type}: {e}")

    # Categories

    def get_categories(self) -> List[Dict[str, Any]]:
        try:
            return self.db.list_categories()
        except sqlite3.Error as e:
            logger.error(f"Error fetching categories: {e}")
            return []

    def get_category(self, category_id: str) -> Optional[Dict[str, Any]]:
        try:
            return self.db.get_category(category_id)
        except sqlite3.Error as e:
            logger.error(f"Error fetching category {category_id}: {e}")
            return None

    def category_name_taken(self, name: str, exclude_id: Optional[str] = None) -> bool:
        """True if another category already uses this name (case-insensitive)."""
        try:
            existing = self.db.find_category_by_name(name)
        except sqlite3.Error as e:
            logger.error(f"Error checking category name {name!r}: {e}")
            return False
        return existing is not None and existing["id"] != exclude_id

    def create_category(self, name: str) -> Optional[Dict[str, Any]]:
        name = (name or "").strip()
        if not name:
            logger.warning("Rejected category with empty name")
            return None
        if self.category_name_taken(name):
            logger.warning(f"Rejected duplicate category name {name!r}")
            return None
        try:
            category = self.db.create_category(name)
        except sqlite3.Error as e:
            logger.error(f"Error creating category: {e}")
            return None
        self._notify("category.created", {"category": category})
        return category

    def rename_category(self, category_id: str, name: str) -> Optional[Dict[str, Any]]:
        name = (name or "").strip()
        if not name:
            logger.warning(f"Rejected empty name for category {category_id}")
            return None
        if self.category_name_taken(name, exclude_id=category_id):
            logger.warning(f"Rejected duplicate category name {name!r}")
            return None
        try:
            category = self.db.rename_category(category_id, name)
        except sqlite3.Error as e:
            logger.error(f"Error renaming category {category_id}: {e}")
            return None
        if category is None:
            logger.warning(f"Category {category_id} not found for rename")
            return None
        self._notify("category.updated", {"category": category})
        return category

    def delete_category(self, category_id: str) -> bool:
        try:
            result = self.db.delete_category(category_id)
        except sqlite3.Error as e:
            logger.error(f"Error deleting category {category_id}: {e}")
            return False
        if not result["success"]:
            logger.warning(result["error"])
            return False
        logger.info(result["message"])
        self._notify("category.deleted", {
            "category_id": category_id,
            "uncategorized_tasks": result["uncategorized_tasks"],
        })
        return True

    # Tasks

    def get_tasks(self) -> List[Dict[str, Any]]:
        """All live tasks, kept for callers that do not filter by category."""
        try:
            return self.db.list_tasks()
        except sqlite3.Error as e:
            logger.error(f"Error fetching tasks: {e}")
            return []

    def get_tasks_by_category(self, category_id: Optional[str]) -> List[Dict[str, Any]]:
        try:
            return self.db.list_tasks_by_category(category_id or None)
        except sqlite3.Error as e:
            logger.error(f"Error fetching tasks by category: {e}")
            return []

    def get_deleted_tasks(self) -> List[Dict[str, Any]]:
        try:
            return self.db.list_deleted_tasks()
        except sqlite3.Error as e:
            logger.error(f"Error fetching deleted tasks: {e}")
            return []

    def get_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        try:
            return self.db.get_task(task_id)
        except sqlite3.Error as e:
            logger.error(f"Error fetching task {task_id}: {e}")
            return None

    def _prepare(self, task_data: TaskInput):
        title = task_data.title if task_data.title and task_data.title.strip() else DEFAULT_TASK_TITLE
        content = sanitize_html(task_data.content)
        category_id = task_data.category_id or None
        return title, content, category_id

    def create_task(self, task_data: TaskInput) -> Optional[Dict[str, Any]]:
        title, content, category_id = self._prepare(task_data)
        try:
            task = self.db.create_task(title, content, category_id)
        except sqlite3.Error as e:
            logger.error(f"Error creating task: {e}")
            return None
        self._notify("task.created", {"task": task})
        return task

    def update_task(self, task_id: str, task_data: TaskInput) -> Optional[Dict[str, Any]]:
        title, content, category_id = self._prepare(task_data)
        try:
            task = self.db.update_task(task_id, title, content, category_id)
        except sqlite3.Error as e:
            logger.error(f"Error updating task {task_id}: {e}")
            return None
        if task is None:
            logger.warning(f"Task {task_id} not found or deleted, update skipped")
            return None
        self._notify("task.updated", {"task": task})
        return task

    def delete_task(self, task_id: str) -> bool:
        """Soft delete: the task moves to the trash and can be restored."""
        try:
            deleted = self.db.soft_delete_task(task_id)
        except sqlite3.Error as e:
            logger.error(f"Error deleting task {task_id}: {e}")
            return False
        if deleted:
            self._notify("task.deleted", {"task_id": task_id})
        return deleted

    def restore_task(self, task_id: str) -> bool:
        try:
            restored = self.db.restore_task(task_id)
        except sqlite3.Error as e:
            logger.error(f"Error restoring task {task_id}: {e}")
            return False
        if restored:
            self._notify("task.restored", {"task_id": task_id})
        return restored

    def purge_task(self, task_id: str) -> bool:
        """Permanently delete a task that is already in the trash."""
        try:
            purged = self.db.purge_task(task_id)
        except sqlite3.Error as e:
            logger.error(f"Error purging task {task_id}: {e}")
            return False
        if purged:
            self._notify("task.purged", {"task_id": task_id})
        return purged

    def purge_expired(self, retention_days: int) -> int:
        """Permanently delete trash entries older than the retention window."""
        cutoff = (datetime.now(timezone.utc) - timedelta(days=retention_days)).isoformat()
        try:
            removed = self.db.purge_deleted_before(cutoff)
        except sqlite3.Error as e:
            logger.error(f"Error purging expired trash: {e}")
            return 0
        if removed:
            self._notify("trash.purged", {"tasks_removed": removed})
        return removed

    def check_connection(self) -> Dict[str, Any]:
        """Probe the database; never raises."""
        logger.info("Testing database connection...")
        try:
            self.db.ping()
        except sqlite3.Error as e:
            logger.error(f"Connection test failed: {e}")
            return {"success": False, "error": str(e)}
        logger.info("Categories and tasks tables accessible")
        return {"success": True, "message": "All tests completed successfully"}
