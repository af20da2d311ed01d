"""
Task Board View State

Holds what the task page shows: the category dropdown, the selected
category and its task grid. Mutations are applied to the local list first
and reverted if the remote call fails. Failures are surfaced through
``error`` rather than raised.
"""

import logging
from typing import Any, Dict, List, Optional

from .actions import NoteActions
from .database import DEFAULT_TASK_TITLE
from .models import TaskInput

logger = logging.getLogger(__name__)

UNCATEGORIZED_LABEL = "All Tasks (Uncategorized)"


class TaskBoard:
    """
    Client-side state for the category selector and task grid.

    Attributes:
        categories: Categories in dropdown order (oldest first)
        current_category_id: Selected category, None for uncategorized
        tasks: Live tasks of the selected category, newest first
        is_loading: True while a listing is being fetched
        error: Message from the last failed operation, cleared on the next one
    """

    def __init__(self, actions: NoteActions):
        self.actions = actions
        self.categories: List[Dict[str, Any]] = []
        self.current_category_id: Optional[str] = None
        self.tasks: List[Dict[str, Any]] = []
        self.is_loading = False
        self.error: Optional[str] = None

    # Loading and selection

    def load(self) -> None:
        """Fetch categories and the selected category's tasks."""
        self.error = None
        self.categories = self.actions.get_categories()
        if self.current_category_id and self.get_category(self.current_category_id) is None:
            self.current_category_id = None
        self.refresh_tasks()

    def refresh_tasks(self) -> None:
        self.is_loading = True
        try:
            self.tasks = self.actions.get_tasks_by_category(self.current_category_id)
        finally:
            self.is_loading = False

    def select_category(self, category_id: Optional[str]) -> None:
        """Switch the dropdown selection and refetch the grid."""
        self.current_category_id = category_id or None
        self.error = None
        self.refresh_tasks()

    def get_category(self, category_id: Optional[str]) -> Optional[Dict[str, Any]]:
        for category in self.categories:
            if category["id"] == category_id:
                return category
        return None

    def category_label(self, category_id: Optional[str]) -> str:
        category = self.get_category(category_id) if category_id else None
        return category["name"] if category else UNCATEGORIZED_LABEL

    # Categories

    def _name_taken(self, name: str, exclude_id: Optional[str] = None) -> bool:
        wanted = name.strip().lower()
        return any(
            c["name"].strip().lower() == wanted and c["id"] != exclude_id
            for c in self.categories
        )

    def _check_category_name(self, name: str, exclude_id: Optional[str] = None) -> Optional[str]:
        name = (name or "").strip()
        if not name:
            self.error = "Category name cannot be empty."
            return None
        if self._name_taken(name, exclude_id):
            self.error = f'Category "{name}" already exists.'
            return None
        return name

    def add_category(self, name: str, select: bool = True) -> Optional[Dict[str, Any]]:
        """Create a category, optionally switching to it."""
        self.error = None
        name = self._check_category_name(name)
        if name is None:
            return None
        category = self.actions.create_category(name)
        if category is None:
            self.error = "Failed to create category."
            return None
        self.categories.append(category)
        if select:
            self.select_category(category["id"])
        return category

    def rename_category(self, category_id: str, name: str) -> Optional[Dict[str, Any]]:
        self.error = None
        name = self._check_category_name(name, exclude_id=category_id)
        if name is None:
            return None
        category = self.actions.rename_category(category_id, name)
        if category is None:
            self.error = "Failed to rename category."
            return None
        self.categories = [category if c["id"] == category_id else c for c in self.categories]
        return category

    def delete_category(self, category_id: str) -> bool:
        """Delete a category; its tasks become uncategorized."""
        self.error = None
        if not self.actions.delete_category(category_id):
            self.error = "Failed to delete category."
            return False
        self.categories = [c for c in self.categories if c["id"] != category_id]
        if self.current_category_id in (category_id, None):
            self.select_category(None)
        return True

    # Tasks

    def _belongs(self, task: Dict[str, Any]) -> bool:
        return not task.get("is_deleted") and (task.get("category_id") or None) == self.current_category_id

    def _index_of(self, task_id: str) -> Optional[int]:
        for i, task in enumerate(self.tasks):
            if task["id"] == task_id:
                return i
        return None

    def _insert_sorted(self, task: Dict[str, Any]) -> None:
        for i, existing in enumerate(self.tasks):
            if existing["created_at"] < task["created_at"]:
                self.tasks.insert(i, task)
                return
        self.tasks.append(task)

    def apply_saved(self, task: Dict[str, Any]) -> None:
        """Reconcile the grid with a task row returned by the server."""
        index = self._index_of(task["id"])
        if self._belongs(task):
            if index is None:
                self._insert_sorted(task)
            else:
                self.tasks[index] = task
        elif index is not None:
            del self.tasks[index]

    def create_task(
        self,
        title: str,
        content: str,
        category_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        self.error = None
        task = self.actions.create_task(
            TaskInput(title=title, content=content, category_id=category_id)
        )
        if task is None:
            self.error = "Failed to create task."
            return None
        self.apply_saved(task)
        return task

    def update_task(
        self,
        task_id: str,
        title: str,
        content: str,
        category_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Apply the edit locally, then confirm with the server or revert."""
        self.error = None
        index = self._index_of(task_id)
        previous = self.tasks[index] if index is not None else None

        if previous is not None:
            self.apply_saved({
                **previous,
                "title": title if title and title.strip() else DEFAULT_TASK_TITLE,
                "content": content,
                "category_id": category_id or None,
            })

        task = self.actions.update_task(
            task_id, TaskInput(title=title, content=content, category_id=category_id)
        )
        if task is None:
            if previous is not None:
                current = self._index_of(task_id)
                if current is not None:
                    del self.tasks[current]
                self.tasks.insert(min(index, len(self.tasks)), previous)
            self.error = "Failed to update task."
            return None

        self.apply_saved(task)
        return task

    def delete_task(self, task_id: str) -> bool:
        """Soft delete with the card removed immediately."""
        self.error = None
        index = self._index_of(task_id)
        removed = self.tasks.pop(index) if index is not None else None

        if not self.actions.delete_task(task_id):
            if removed is not None:
                self.tasks.insert(min(index, len(self.tasks)), removed)
            self.error = "Failed to delete task."
            return False
        return True

    def restore_task(self, task_id: str) -> bool:
        self.error = None
        if not self.actions.restore_task(task_id):
            self.error = "Failed to restore task."
            return False
        task = self.actions.get_task(task_id)
        if task is not None:
            self.apply_saved(task)
        return True

    def trash(self) -> List[Dict[str, Any]]:
        return self.actions.get_deleted_tasks()
