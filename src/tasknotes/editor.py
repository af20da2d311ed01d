"""
Task Editor State

State behind the task edit modal: title, rich-text content and category
selection for a new or existing task. Every edit is written to the local
draft store; edits to an existing task are also autosaved after a short
debounce. Reopening a task with a stored draft recovers the draft.
"""

import logging
from typing import Any, Dict, Optional

from .board import TaskBoard
from .config import get_settings
from .drafts import Autosaver, DraftStore, draft_key
from .formatting import format_task_date
from .models import TaskInput
from .richtext import is_blank_html

logger = logging.getLogger(__name__)

EMPTY_TASK_ERROR = "Please add a title or some content before saving."

_UNSET = object()


class TaskEditor:
    """Edit modal state bound to a TaskBoard and a DraftStore."""

    def __init__(self, board: TaskBoard, drafts: DraftStore, autosave_delay: Optional[float] = None):
        self.board = board
        self.drafts = drafts
        if autosave_delay is None:
            autosave_delay = get_settings().autosave_delay
        self.autosave_delay = autosave_delay

        self.is_open = False
        self.task: Optional[Dict[str, Any]] = None
        self.title = ""
        self.content = ""
        self.category_id: Optional[str] = None
        self.error: Optional[str] = None
        self.draft_recovered = False
        self.autosaver: Optional[Autosaver] = None

    @property
    def is_editing(self) -> bool:
        return self.task is not None

    @property
    def key(self) -> str:
        return draft_key(self.task["id"] if self.task else None)

    def open(self, task: Optional[Dict[str, Any]] = None) -> None:
        """Open the modal for an existing task, or for a new one when task is None."""
        self.close()
        self.is_open = True
        self.task = task
        self.error = None
        if task is not None:
            self.title = task.get("title") or ""
            self.content = task.get("content") or ""
            self.category_id = task.get("category_id") or self.board.current_category_id
            self.autosaver = Autosaver(self._autosave, self.autosave_delay)
        else:
            self.title = ""
            self.content = ""
            self.category_id = self.board.current_category_id

        draft = self.drafts.load(self.key)
        self.draft_recovered = draft is not None
        if draft is not None:
            logger.info(f"Recovered local draft for {self.key}")
            self.title = draft.title
            self.content = draft.content
            self.category_id = draft.category_id

    def edit(self, *, title: Optional[str] = None, content: Optional[str] = None,
             category_id: Any = _UNSET) -> None:
        """
        Apply an edit, store it as a draft and restart the autosave timer.

        Autosave only applies to existing tasks and needs a running event loop.
        """
        if not self.is_open:
            raise RuntimeError("Editor is not open")
        if title is not None:
            self.title = title
        if content is not None:
            self.content = content
        if category_id is not _UNSET:
            self.category_id = category_id or None
        self.drafts.save(self.key, self.title, self.content, self.category_id)
        if self.autosaver is not None:
            self.autosaver.schedule()

    def has_content(self) -> bool:
        return bool(self.title.strip()) or not is_blank_html(self.content)

    def validate(self) -> bool:
        if not self.has_content():
            self.error = EMPTY_TASK_ERROR
            return False
        self.error = None
        return True

    async def _autosave(self) -> None:
        if self.task is None or not self.has_content():
            return
        task_id = self.task["id"]
        snapshot = (self.title, self.content, self.category_id)
        task = self.board.actions.update_task(
            task_id,
            TaskInput(title=self.title, content=self.content, category_id=self.category_id),
        )
        if task is None:
            raise RuntimeError(f"Autosave of task {task_id} was rejected")
        self.task = task
        self.board.apply_saved(task)
        # Edits made while saving keep their draft
        if snapshot == (self.title, self.content, self.category_id):
            self.drafts.discard(draft_key(task_id))

    async def save(self) -> Optional[Dict[str, Any]]:
        """Validate and persist the current state. Closes the modal on success."""
        if not self.validate():
            return None
        if self.autosaver is not None:
            # Drop the pending autosave; only wait for one already running
            self.autosaver.cancel()
            await self.autosaver.flush()

        key = self.key
        if self.task is not None:
            task = self.board.update_task(self.task["id"], self.title, self.content, self.category_id)
        else:
            task = self.board.create_task(self.title, self.content, self.category_id)
        if task is None:
            self.error = self.board.error
            return None

        self.drafts.discard(key)
        self.close()
        return task

    def delete(self) -> bool:
        """Soft-delete the task being edited."""
        if self.task is None:
            return False
        task_id = self.task["id"]
        if not self.board.delete_task(task_id):
            self.error = self.board.error
            return False
        self.drafts.discard(draft_key(task_id))
        self.close()
        return True

    def close(self, discard: bool = False) -> None:
        """Close the modal. The draft stays for recovery unless discarded."""
        if self.autosaver is not None:
            self.autosaver.cancel()
            self.autosaver = None
        if discard and self.is_open:
            self.drafts.discard(self.key)
        self.is_open = False
        self.task = None
        self.title = ""
        self.content = ""
        self.category_id = None
        self.draft_recovered = False

    @property
    def created_label(self) -> str:
        return format_task_date(self.task.get("created_at")) if self.task else ""

    @property
    def updated_label(self) -> str:
        """Shown only when it differs from the created label."""
        if not self.task:
            return ""
        updated = format_task_date(self.task.get("updated_at"))
        return updated if updated and updated != self.created_label else ""
