"""
Tests for the task edit modal: draft recovery, validation, explicit save and
debounced autosave of existing tasks.
"""

import asyncio
from unittest.mock import patch

import pytest

from tasknotes.board import TaskBoard
from tasknotes.drafts import NEW_TASK_KEY
from tasknotes.editor import EMPTY_TASK_ERROR, TaskEditor


@pytest.fixture
def board(actions, seeded):
    board = TaskBoard(actions)
    board.load()
    return board


@pytest.fixture
def editor(board, drafts):
    return TaskEditor(board, drafts, autosave_delay=0.02)


class TestOpenAndDrafts:

    def test_open_new_task_uses_current_category(self, editor, board, seeded):
        board.select_category(seeded["home"]["id"])
        editor.open()

        assert editor.is_open
        assert not editor.is_editing
        assert editor.key == NEW_TASK_KEY
        assert editor.category_id == seeded["home"]["id"]
        assert editor.autosaver is None

    def test_open_existing_task(self, editor, seeded):
        editor.open(seeded["report"])
        assert editor.is_editing
        assert editor.title == "Quarterly report"
        assert editor.content == "<p>Outline sections</p>"
        assert editor.category_id == seeded["work"]["id"]
        assert editor.draft_recovered is False

    def test_new_task_draft_is_recovered(self, editor, drafts):
        editor.open()
        editor.edit(title="Half written", content="<p>so far</p>")
        editor.close()

        editor.open()
        assert editor.draft_recovered is True
        assert editor.title == "Half written"
        assert editor.content == "<p>so far</p>"

    def test_existing_task_draft_overrides_stored_copy(self, editor, drafts, seeded):
        drafts.save(seeded["loose"]["id"], "Unsaved title", "<p>unsaved</p>", None)

        editor.open(seeded["loose"])

        assert editor.draft_recovered is True
        assert editor.title == "Unsaved title"

    def test_close_with_discard(self, editor, drafts):
        editor.open()
        editor.edit(title="Throwaway")
        editor.close(discard=True)
        assert drafts.load(NEW_TASK_KEY) is None

    def test_edit_requires_open_editor(self, editor):
        with pytest.raises(RuntimeError):
            editor.edit(title="x")

    def test_edit_can_clear_category(self, editor, board, seeded):
        board.select_category(seeded["work"]["id"])
        editor.open()
        editor.edit(category_id="")
        assert editor.category_id is None


class TestValidationAndSave:

    @pytest.mark.asyncio
    async def test_empty_task_is_rejected(self, editor):
        editor.open()
        editor.edit(title="   ", content="<p></p>")

        assert await editor.save() is None
        assert editor.error == EMPTY_TASK_ERROR
        assert editor.is_open

    @pytest.mark.asyncio
    async def test_content_only_is_enough(self, editor, board):
        editor.open()
        editor.edit(content="<p>just a body</p>")

        task = await editor.save()

        assert task["title"] == "Untitled Task"
        assert board.tasks[0]["id"] == task["id"]

    @pytest.mark.asyncio
    async def test_save_new_task_clears_draft_and_closes(self, editor, drafts):
        editor.open()
        editor.edit(title="Fresh idea")

        task = await editor.save()

        assert task["title"] == "Fresh idea"
        assert not editor.is_open
        assert drafts.load(NEW_TASK_KEY) is None

    @pytest.mark.asyncio
    async def test_save_existing_task(self, editor, actions, drafts, seeded):
        editor.open(seeded["groceries"])
        editor.edit(content="<p>milk, eggs, bread</p>")

        task = await editor.save()

        assert task["content"] == "<p>milk, eggs, bread</p>"
        assert actions.get_task(seeded["groceries"]["id"])["content"] == "<p>milk, eggs, bread</p>"
        assert drafts.load(seeded["groceries"]["id"]) is None

    @pytest.mark.asyncio
    async def test_save_long_title(self, editor, actions):
        title = "x" * 501
        editor.open()
        editor.edit(title=title)

        task = await editor.save()

        assert task is not None
        assert actions.get_task(task["id"])["title"] == title

    @pytest.mark.asyncio
    async def test_save_supersedes_pending_autosave(self, editor, actions, seeded):
        editor.open(seeded["report"])
        editor.edit(title="Edited then saved")

        with patch.object(actions, "update_task", wraps=actions.update_task) as update:
            await editor.save()
            await asyncio.sleep(0.1)

        assert update.call_count == 1

    @pytest.mark.asyncio
    async def test_failed_save_keeps_modal_and_draft(self, editor, actions, drafts):
        editor.open()
        editor.edit(title="Will fail")

        with patch.object(actions, "create_task", return_value=None):
            assert await editor.save() is None

        assert editor.error == "Failed to create task."
        assert editor.is_open
        assert drafts.load(NEW_TASK_KEY).title == "Will fail"

    @pytest.mark.asyncio
    async def test_delete(self, editor, board, drafts, seeded):
        editor.open(seeded["loose"])
        editor.edit(title="changed")

        assert editor.delete() is True
        assert not editor.is_open
        assert board.tasks == []
        assert drafts.load(seeded["loose"]["id"]) is None

    def test_delete_new_task_is_noop(self, editor):
        editor.open()
        assert editor.delete() is False


class TestAutosave:

    @pytest.mark.asyncio
    async def test_edits_are_autosaved_once(self, editor, actions, drafts, seeded):
        task_id = seeded["report"]["id"]
        editor.open(seeded["report"])

        with patch.object(actions, "update_task", wraps=actions.update_task) as update:
            editor.edit(title="Q3")
            editor.edit(title="Q3 report")
            editor.edit(title="Q3 report final")
            await asyncio.sleep(0.1)

        assert update.call_count == 1
        assert actions.get_task(task_id)["title"] == "Q3 report final"
        assert drafts.load(task_id) is None
        assert editor.is_open

    @pytest.mark.asyncio
    async def test_autosave_updates_board(self, editor, board, seeded):
        editor.open(seeded["loose"])
        editor.edit(title="Sharper idea")
        await asyncio.sleep(0.1)
        assert board.tasks[0]["title"] == "Sharper idea"

    @pytest.mark.asyncio
    async def test_new_tasks_are_not_autosaved(self, editor, actions):
        editor.open()
        with patch.object(actions, "create_task") as create:
            editor.edit(title="Local only")
            await asyncio.sleep(0.1)
        create.assert_not_called()

    @pytest.mark.asyncio
    async def test_blank_edit_is_not_autosaved(self, editor, actions, seeded):
        editor.open(seeded["loose"])
        with patch.object(actions, "update_task") as update:
            editor.edit(title="", content="<p></p>")
            await asyncio.sleep(0.1)
        update.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_autosave_keeps_draft(self, editor, actions, drafts, seeded):
        task_id = seeded["loose"]["id"]
        editor.open(seeded["loose"])
        autosaver = editor.autosaver

        with patch.object(actions, "update_task", return_value=None):
            editor.edit(title="Offline edit")
            await asyncio.sleep(0.1)

        assert isinstance(autosaver.last_error, RuntimeError)
        assert drafts.load(task_id).title == "Offline edit"


class TestLabels:

    def test_updated_label_hidden_when_unchanged(self, editor, seeded):
        task = dict(seeded["loose"], created_at="2026-10-06T15:04:00+00:00",
                    updated_at="2026-10-06T15:04:30+00:00")
        editor.open(task)
        assert editor.created_label
        assert editor.updated_label == ""

    def test_updated_label_shown_after_change(self, editor, seeded):
        task = dict(seeded["loose"], created_at="2026-10-06T15:04:00+00:00",
                    updated_at="2026-10-08T09:00:00+00:00")
        editor.open(task)
        assert editor.updated_label
        assert editor.updated_label != editor.created_label

    def test_labels_empty_for_new_task(self, editor):
        editor.open()
        assert editor.created_label == ""
        assert editor.updated_label == ""
