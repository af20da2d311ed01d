"""
Shared fixtures for Task Notes tests.

Provides an isolated temporary database per test, an actions facade over
it, a small seeded data set, and a FastAPI TestClient bound to the same
database.
"""

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

project_root = Path(__file__).parent.parent.parent / "src"
sys.path.insert(0, str(project_root))

from tasknotes import api
from tasknotes.actions import NoteActions
from tasknotes.database import NoteDatabase
from tasknotes.drafts import DraftStore
from tasknotes.models import TaskInput


@pytest.fixture
def db(tmp_path):
    """Fresh database file for each test."""
    database = NoteDatabase(str(tmp_path / "test_notes.db"))
    yield database
    database.close()


@pytest.fixture
def actions(db):
    return NoteActions(db)


@pytest.fixture
def seeded(actions):
    """Two categories with tasks plus one uncategorized task."""
    work = actions.create_category("Work")
    home = actions.create_category("Home")
    report = actions.create_task(TaskInput(
        title="Quarterly report", content="<p>Outline sections</p>", category_id=work["id"]
    ))
    standup = actions.create_task(TaskInput(
        title="Standup notes", content="<ul><li>blocked on review</li></ul>", category_id=work["id"]
    ))
    groceries = actions.create_task(TaskInput(
        title="Groceries", content="<p>milk, eggs</p>", category_id=home["id"]
    ))
    loose = actions.create_task(TaskInput(title="Loose idea", content="<p>try a new layout</p>"))
    return {
        "work": work,
        "home": home,
        "report": report,
        "standup": standup,
        "groceries": groceries,
        "loose": loose,
    }


@pytest.fixture
def drafts(tmp_path):
    return DraftStore(tmp_path / "drafts" / "drafts.json")


@pytest.fixture
def client(db):
    """TestClient with the API bound to the test database."""
    api.init_app_state(db)
    with TestClient(api.app) as test_client:
        yield test_client
    api.db_instance = None
    api.actions_instance = None
