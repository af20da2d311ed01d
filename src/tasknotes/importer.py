"""
YAML Notes Importer

Imports categories and their tasks from a YAML file in a single transaction.
Categories are matched by name (case-insensitive) and reused; tasks are
matched by exact title within their category and have their content
replaced, otherwise they are created.

Expected layout::

    categories:
      - name: Work
        tasks:
          - title: Quarterly report
            content: "<p>Draft outline</p>"
    tasks:            # uncategorized
      - title: Groceries
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .database import NoteDatabase, DEFAULT_TASK_TITLE
from .richtext import sanitize_html

logger = logging.getLogger(__name__)


def _import_tasks(
    db: NoteDatabase,
    tasks: Any,
    category_id: Optional[str],
    stats: Dict[str, Any],
) -> None:
    if tasks is None:
        return
    if not isinstance(tasks, list):
        raise ValueError("YAML 'tasks' must be a list")

    for task_data in tasks:
        if isinstance(task_data, str):
            task_data = {"title": task_data}
        if not isinstance(task_data, dict):
            stats["errors"].append(f"Skipped task entry that is not a mapping: {task_data!r}")
            continue

        title = str(task_data.get("title") or "").strip() or DEFAULT_TASK_TITLE
        content = sanitize_html(task_data.get("content"))

        existing = db.find_task_by_title(title, category_id)
        if existing:
            db.update_task(existing["id"], title, content, category_id)
            stats["tasks_updated"] += 1
        else:
            db.create_task(title, content, category_id)
            stats["tasks_created"] += 1


def import_notes(db: NoteDatabase, yaml_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Import categories and tasks from parsed YAML.

    Args:
        db: NoteDatabase instance
        yaml_data: Parsed YAML structure

    Returns:
        Dict with import statistics

    Raises:
        ValueError: For malformed YAML structure
        sqlite3.Error: For database operation failures
    """
    if not isinstance(yaml_data, dict):
        raise ValueError("Notes file must contain a YAML dictionary")

    stats: Dict[str, Any] = {
        "categories_created": 0,
        "categories_existing": 0,
        "tasks_created": 0,
        "tasks_updated": 0,
        "errors": [],
    }

    categories = yaml_data.get("categories") or []
    if not isinstance(categories, list):
        raise ValueError("YAML 'categories' must be a list")

    with db.transaction():
        for category_data in categories:
            if isinstance(category_data, str):
                category_data = {"name": category_data}
            if not isinstance(category_data, dict):
                stats["errors"].append(f"Skipped category entry that is not a mapping: {category_data!r}")
                continue
            name = str(category_data.get("name") or "").strip()
            if not name:
                stats["errors"].append("Skipped category without a name")
                continue

            category = db.find_category_by_name(name)
            if category:
                stats["categories_existing"] += 1
            else:
                category = db.create_category(name)
                stats["categories_created"] += 1

            _import_tasks(db, category_data.get("tasks"), category["id"], stats)

        _import_tasks(db, yaml_data.get("tasks"), None, stats)

    logger.info(
        f"Imported {stats['categories_created']} new categories, "
        f"{stats['tasks_created']} new tasks, {stats['tasks_updated']} updated tasks"
    )
    return stats


def load_notes_yaml(file_path: str) -> Dict[str, Any]:
    """
    Load and validate a notes YAML file.

    Raises:
        ValueError: If the file is missing, unparseable or not a dictionary
    """
    path = Path(file_path)
    if not path.exists():
        raise ValueError(f"Notes file not found: {file_path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {file_path}: {e}")
    if not isinstance(data, dict):
        raise ValueError("Notes file must contain a YAML dictionary")
    return data


def import_notes_from_file(db: NoteDatabase, file_path: str) -> Dict[str, Any]:
    """Load a YAML file and import it. See import_notes."""
    return import_notes(db, load_notes_yaml(file_path))
