"""
Task Notes Database Layer

Provides SQLite-based storage for categories and tasks with WAL mode for
concurrent access. Tasks are soft-deleted into a trash and can be restored;
deleting a category leaves its tasks uncategorized.
"""

import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_TASK_TITLE = "Untitled Task"

_TASK_COLUMNS = """
    id, title, content, category_id, created_at, updated_at, deleted_at, is_deleted
"""

_CATEGORY_COLUMNS = "id, name, created_at"


def _task_from_row(row) -> Dict[str, Any]:
    return {
        "id": row[0],
        "title": row[1],
        "content": row[2],
        "category_id": row[3],
        "created_at": row[4],
        "updated_at": row[5],
        "deleted_at": row[6],
        "is_deleted": bool(row[7]),
    }


def _category_from_row(row) -> Dict[str, Any]:
    return {"id": row[0], "name": row[1], "created_at": row[2]}


class NoteDatabase:
    """
    SQLite database holding categories and tasks.

    Features:
    - WAL mode for concurrent read/write access
    - Single shared connection guarded by a re-entrant lock
    - Foreign keys enforced so deleting a category nulls task references
    - Soft delete with restore and permanent purge
    """

    def __init__(self, db_path: str):
        """
        Initialize NoteDatabase with SQLite WAL mode configuration.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._connection_lock = threading.RLock()
        self._connection: Optional[sqlite3.Connection] = None

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_database()

    def _initialize_database(self, drop_existing: bool = False) -> None:
        """Initialize database with WAL mode and create schema if needed.

        Args:
            drop_existing: If True, drops all existing tables first
        """
        try:
            self._connection = sqlite3.connect(
                str(self.db_path),
                isolation_level=None,  # Autocommit mode
                check_same_thread=False
            )
            cursor = self._connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.execute("PRAGMA foreign_keys=ON")

            if drop_existing:
                self._drop_existing_tables()

            self._create_schema()

        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to initialize database at {self.db_path}: {e}")

    def _create_schema(self) -> None:
        """Create database schema with indexes for the listing queries."""
        cursor = self._connection.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS categories (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS tasks (
                id TEXT PRIMARY KEY,
                title TEXT,
                content TEXT,
                category_id TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                deleted_at TEXT NULL,
                is_deleted INTEGER NOT NULL DEFAULT 0 CHECK (is_deleted IN (0, 1)),
                FOREIGN KEY (category_id) REFERENCES categories (id) ON DELETE SET NULL
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_categories_created
            ON categories (created_at)
        """)

        # Most frequent query: one category's live tasks, newest first
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_tasks_category_created
            ON tasks (category_id, created_at DESC)
            WHERE is_deleted = 0
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_tasks_trash
            ON tasks (deleted_at)
            WHERE is_deleted = 1
        """)

    def _drop_existing_tables(self) -> None:
        """Drop all existing tables for clean slate initialization."""
        cursor = self._connection.cursor()
        cursor.execute("DROP INDEX IF EXISTS idx_tasks_trash")
        cursor.execute("DROP INDEX IF EXISTS idx_tasks_category_created")
        cursor.execute("DROP INDEX IF EXISTS idx_categories_created")
        cursor.execute("DROP TABLE IF EXISTS tasks")
        cursor.execute("DROP TABLE IF EXISTS categories")

    def _get_current_time_str(self) -> str:
        """Get current UTC time as ISO string for database operations."""
        return datetime.now(timezone.utc).isoformat()

    # Categories

    def list_categories(self) -> List[Dict[str, Any]]:
        """Return all categories, oldest first."""
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(f"""
                SELECT {_CATEGORY_COLUMNS} FROM categories
                ORDER BY created_at ASC, rowid ASC
            """)
            return [_category_from_row(row) for row in cursor.fetchall()]

    def get_category(self, category_id: str) -> Optional[Dict[str, Any]]:
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(
                f"SELECT {_CATEGORY_COLUMNS} FROM categories WHERE id = ?",
                (category_id,),
            )
            row = cursor.fetchone()
            return _category_from_row(row) if row else None

    def find_category_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        """Case-insensitive lookup on the trimmed category name."""
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(
                f"""
                SELECT {_CATEGORY_COLUMNS} FROM categories
                WHERE lower(trim(name)) = lower(trim(?))
                ORDER BY created_at ASC
                LIMIT 1
                """,
                (name,),
            )
            row = cursor.fetchone()
            return _category_from_row(row) if row else None

    def create_category(self, name: str) -> Dict[str, Any]:
        """Insert a category and return the stored row."""
        category = {
            "id": str(uuid.uuid4()),
            "name": name,
            "created_at": self._get_current_time_str(),
        }
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(
                "INSERT INTO categories (id, name, created_at) VALUES (?, ?, ?)",
                (category["id"], category["name"], category["created_at"]),
            )
        return category

    def rename_category(self, category_id: str, name: str) -> Optional[Dict[str, Any]]:
        """Rename a category. Returns the updated row, or None if not found."""
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(
                "UPDATE categories SET name = ? WHERE id = ?",
                (name, category_id),
            )
            if cursor.rowcount == 0:
                return None
            return self.get_category(category_id)

    def delete_category(self, category_id: str) -> Dict[str, Any]:
        """
        Delete a category. Referencing tasks become uncategorized via ON DELETE SET NULL.

        Args:
            category_id: ID of the category to delete

        Returns:
            Dict with success status and the number of tasks left uncategorized
        """
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute("SELECT name FROM categories WHERE id = ?", (category_id,))
            row = cursor.fetchone()
            if not row:
                return {"success": False, "error": f"Category {category_id} not found"}

            category_name = row[0]
            cursor.execute("SELECT COUNT(*) FROM tasks WHERE category_id = ?", (category_id,))
            task_count = cursor.fetchone()[0] or 0

            cursor.execute("DELETE FROM categories WHERE id = ?", (category_id,))
            if cursor.rowcount == 0:
                return {"success": False, "error": f"Category {category_id} not found or already deleted"}

            return {
                "success": True,
                "category_id": category_id,
                "category_name": category_name,
                "uncategorized_tasks": task_count,
                "message": f"Deleted category '{category_name}', {task_count} tasks now uncategorized",
            }

    # Tasks

    def list_tasks(self) -> List[Dict[str, Any]]:
        """Return every live task, newest first."""
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(f"""
                SELECT {_TASK_COLUMNS} FROM tasks
                WHERE is_deleted = 0
                ORDER BY created_at DESC, rowid DESC
            """)
            return [_task_from_row(row) for row in cursor.fetchall()]

    def list_tasks_by_category(self, category_id: Optional[str]) -> List[Dict[str, Any]]:
        """
        Return live tasks in one category, newest first.

        Args:
            category_id: Category to list, or None for uncategorized tasks
        """
        with self._connection_lock:
            cursor = self._connection.cursor()
            if category_id:
                cursor.execute(f"""
                    SELECT {_TASK_COLUMNS} FROM tasks
                    WHERE is_deleted = 0 AND category_id = ?
                    ORDER BY created_at DESC, rowid DESC
                """, (category_id,))
            else:
                cursor.execute(f"""
                    SELECT {_TASK_COLUMNS} FROM tasks
                    WHERE is_deleted = 0 AND category_id IS NULL
                    ORDER BY created_at DESC, rowid DESC
                """)
            return [_task_from_row(row) for row in cursor.fetchall()]

    def list_deleted_tasks(self) -> List[Dict[str, Any]]:
        """Return the trash, most recently deleted first."""
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(f"""
                SELECT {_TASK_COLUMNS} FROM tasks
                WHERE is_deleted = 1
                ORDER BY deleted_at DESC, rowid DESC
            """)
            return [_task_from_row(row) for row in cursor.fetchall()]

    def get_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        """Get a single task by ID, including soft-deleted tasks."""
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(f"SELECT {_TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,))
            row = cursor.fetchone()
            return _task_from_row(row) if row else None

    def find_task_by_title(self, title: str, category_id: Optional[str]) -> Optional[Dict[str, Any]]:
        """Oldest live task with this exact title in the category (None = uncategorized)."""
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(f"""
                SELECT {_TASK_COLUMNS} FROM tasks
                WHERE is_deleted = 0 AND title = ? AND category_id IS ?
                ORDER BY created_at ASC, rowid ASC
                LIMIT 1
            """, (title, category_id))
            row = cursor.fetchone()
            return _task_from_row(row) if row else None

    @contextmanager
    def transaction(self):
        """Group several operations into one transaction, rolled back on error."""
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute("BEGIN")
            try:
                yield cursor
                cursor.execute("COMMIT")
            except Exception:
                cursor.execute("ROLLBACK")
                raise

    def create_task(
        self,
        title: Optional[str],
        content: Optional[str],
        category_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Insert a task and return the stored row.

        Raises:
            sqlite3.IntegrityError: If category_id does not reference a category
        """
        task_id = str(uuid.uuid4())
        current_time_str = self._get_current_time_str()
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(
                """
                INSERT INTO tasks (id, title, content, category_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (task_id, title, content, category_id, current_time_str, current_time_str),
            )
            return self.get_task(task_id)

    def update_task(
        self,
        task_id: str,
        title: Optional[str],
        content: Optional[str],
        category_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Replace a live task's title, content and category.

        Returns:
            Updated task, or None if the task is missing or in the trash
        """
        current_time_str = self._get_current_time_str()
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(
                """
                UPDATE tasks
                SET title = ?, content = ?, category_id = ?, updated_at = ?
                WHERE id = ? AND is_deleted = 0
                """,
                (title, content, category_id, current_time_str, task_id),
            )
            if cursor.rowcount == 0:
                return None
            return self.get_task(task_id)

    def soft_delete_task(self, task_id: str) -> bool:
        """Move a live task to the trash. False if missing or already deleted."""
        current_time_str = self._get_current_time_str()
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(
                """
                UPDATE tasks
                SET is_deleted = 1, deleted_at = ?, updated_at = ?
                WHERE id = ? AND is_deleted = 0
                """,
                (current_time_str, current_time_str, task_id),
            )
            return cursor.rowcount > 0

    def restore_task(self, task_id: str) -> bool:
        """Bring a task back from the trash. False if missing or not deleted."""
        current_time_str = self._get_current_time_str()
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(
                """
                UPDATE tasks
                SET is_deleted = 0, deleted_at = NULL, updated_at = ?
                WHERE id = ? AND is_deleted = 1
                """,
                (current_time_str, task_id),
            )
            return cursor.rowcount > 0

    def purge_task(self, task_id: str) -> bool:
        """Permanently delete a task that is already in the trash."""
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(
                "DELETE FROM tasks WHERE id = ? AND is_deleted = 1",
                (task_id,),
            )
            return cursor.rowcount > 0

    def purge_deleted_before(self, cutoff: str) -> int:
        """
        Permanently delete trash entries deleted before the cutoff.

        Args:
            cutoff: ISO timestamp; tasks with deleted_at < cutoff are removed

        Returns:
            Number of tasks removed
        """
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute(
                "DELETE FROM tasks WHERE is_deleted = 1 AND deleted_at < ?",
                (cutoff,),
            )
            return cursor.rowcount

    def count_tasks(self) -> Dict[str, int]:
        """Return live and trashed task counts."""
        with self._connection_lock:
            cursor = self._connection.cursor()
            cursor.execute("""
                SELECT
                    COALESCE(SUM(CASE WHEN is_deleted = 0 THEN 1 ELSE 0 END), 0),
                    COALESCE(SUM(CASE WHEN is_deleted = 1 THEN 1 ELSE 0 END), 0)
                FROM tasks
            """)
            live, trashed = cursor.fetchone()
            return {"live": live, "trashed": trashed}

    def ping(self) -> None:
        """Touch both tables; raises sqlite3.Error if the database is unusable."""
        with self._connection_lock:
            if self._connection is None:
                raise sqlite3.ProgrammingError("Database connection is closed")
            cursor = self._connection.cursor()
            cursor.execute("SELECT 1 FROM categories LIMIT 1")
            cursor.execute("SELECT 1 FROM tasks LIMIT 1")

    def close(self):
        """Close database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def initialize_fresh(self) -> None:
        """Reinitialize with a clean slate, dropping all existing tables first."""
        if self._connection:
            self.close()
        self._initialize_database(drop_existing=True)
