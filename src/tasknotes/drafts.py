"""
Draft persistence and debounced autosave.

DraftStore keeps unsaved editor state in a local JSON file so an interrupted
edit can be recovered the next time the task is opened. Autosaver debounces
save calls: every edit restarts the timer and only the last edit is sent.
"""

import asyncio
import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError

from .config import get_settings
from .models import Draft

logger = logging.getLogger(__name__)

NEW_TASK_KEY = "new"


def draft_key(task_id: Optional[str]) -> str:
    """Drafts are keyed by task id, or by a fixed key for an unsaved new task."""
    return task_id or NEW_TASK_KEY


class DraftStore:
    """JSON-file backed draft storage keyed by task id."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else get_settings().drafts_path
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable draft file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring draft file {self.path}: expected an object")
            return {}
        return data

    def _write_all(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)

    def load(self, key: str) -> Optional[Draft]:
        with self._lock:
            raw = self._read_all().get(key)
        if raw is None:
            return None
        try:
            return Draft.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Discarding malformed draft {key!r}: {e}")
            return None

    def save(
        self,
        key: str,
        title: str,
        content: str,
        category_id: Optional[str] = None,
    ) -> Draft:
        draft = Draft(
            title=title,
            content=content,
            category_id=category_id,
            saved_at=datetime.now(timezone.utc).isoformat(),
        )
        with self._lock:
            data = self._read_all()
            data[key] = draft.model_dump()
            self._write_all(data)
        return draft

    def discard(self, key: str) -> bool:
        with self._lock:
            data = self._read_all()
            if key not in data:
                return False
            del data[key]
            self._write_all(data)
            return True

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._read_all())


class Autosaver:
    """
    Debounce timer around an async save callable.

    schedule() restarts the timer; when it elapses the save runs once.
    A save already in flight is never cancelled by a later schedule().
    Save errors are logged and kept in ``last_error``.
    """

    def __init__(self, save: Callable[[], Awaitable[Any]], delay: float = 1.0):
        self._save = save
        self.delay = delay
        self._timer: Optional[asyncio.Task] = None
        self._in_flight: Optional[asyncio.Task] = None
        self.save_count = 0
        self.last_error: Optional[Exception] = None

    @property
    def pending(self) -> bool:
        """True while a save is waiting for the debounce window to close."""
        return self._timer is not None and not self._timer.done()

    def schedule(self) -> None:
        """Restart the debounce timer. Must be called from a running event loop."""
        self.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._fire())

    async def _fire(self) -> None:
        await asyncio.sleep(self.delay)
        self._timer = None
        self._in_flight = asyncio.current_task()
        try:
            await self._run()
        finally:
            # A later save may already be in flight
            if self._in_flight is asyncio.current_task():
                self._in_flight = None

    async def _run(self) -> None:
        try:
            await self._save()
        except Exception as e:
            logger.error(f"Autosave failed: {e}")
            self.last_error = e
            return
        self.save_count += 1
        self.last_error = None

    async def flush(self) -> bool:
        """Run a pending save immediately. Returns True if a save ran."""
        if self._in_flight is not None:
            await asyncio.shield(self._in_flight)
        if not self.pending:
            return False
        self.cancel()
        await self._run()
        return True

    def cancel(self) -> None:
        """Drop the pending save, if any."""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None
