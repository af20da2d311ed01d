"""Tests for the local draft store and the autosave debounce timer."""

import asyncio
import json

import pytest

from tasknotes.config import reset_settings
from tasknotes.drafts import Autosaver, DraftStore, NEW_TASK_KEY, draft_key


class TestDraftStore:

    def test_missing_draft(self, drafts):
        assert drafts.load("nothing") is None
        assert drafts.keys() == []

    def test_save_and_load(self, drafts):
        drafts.save("task-1", "Title", "<p>body</p>", "cat-1")

        draft = drafts.load("task-1")
        assert draft.title == "Title"
        assert draft.content == "<p>body</p>"
        assert draft.category_id == "cat-1"
        assert draft.saved_at

    def test_file_is_created_with_parents(self, drafts):
        drafts.save(NEW_TASK_KEY, "", "<p>x</p>")
        assert drafts.path.exists()
        assert NEW_TASK_KEY in json.loads(drafts.path.read_text(encoding="utf-8"))

    def test_later_save_overwrites(self, drafts):
        drafts.save("task-1", "v1", "")
        drafts.save("task-1", "v2", "")
        assert drafts.load("task-1").title == "v2"
        assert drafts.keys() == ["task-1"]

    def test_discard(self, drafts):
        drafts.save("a", "A", "")
        drafts.save("b", "B", "")
        assert drafts.discard("a") is True
        assert drafts.discard("a") is False
        assert drafts.keys() == ["b"]

    def test_survives_new_instance(self, drafts):
        drafts.save("task-1", "Kept", "")
        assert DraftStore(drafts.path).load("task-1").title == "Kept"

    def test_corrupt_file_is_ignored(self, drafts, caplog):
        drafts.path.parent.mkdir(parents=True, exist_ok=True)
        drafts.path.write_text("{not json", encoding="utf-8")

        assert drafts.load("task-1") is None
        assert "unreadable draft file" in caplog.text

        drafts.save("task-1", "Fresh", "")
        assert drafts.load("task-1").title == "Fresh"

    def test_malformed_entry_is_ignored(self, drafts):
        drafts.path.parent.mkdir(parents=True, exist_ok=True)
        drafts.path.write_text(json.dumps({"task-1": {"title": 5}}), encoding="utf-8")
        assert drafts.load("task-1") is None

    def test_draft_key(self):
        assert draft_key("abc") == "abc"
        assert draft_key(None) == NEW_TASK_KEY


class TestAutosaver:

    @pytest.mark.asyncio
    async def test_debounces_to_single_save(self):
        calls = []

        async def save():
            calls.append(1)

        saver = Autosaver(save, delay=0.05)
        for _ in range(5):
            saver.schedule()
            await asyncio.sleep(0.01)

        assert saver.pending
        await asyncio.sleep(0.15)

        assert calls == [1]
        assert saver.save_count == 1
        assert not saver.pending

    @pytest.mark.asyncio
    async def test_flush_runs_pending_save_now(self):
        calls = []

        async def save():
            calls.append(1)

        saver = Autosaver(save, delay=10)
        saver.schedule()

        assert await saver.flush() is True
        assert calls == [1]
        assert await saver.flush() is False

    @pytest.mark.asyncio
    async def test_cancel_drops_pending_save(self):
        calls = []

        async def save():
            calls.append(1)

        saver = Autosaver(save, delay=0.02)
        saver.schedule()
        saver.cancel()
        await asyncio.sleep(0.05)

        assert calls == []
        assert not saver.pending

    @pytest.mark.asyncio
    async def test_failure_is_recorded(self, caplog):
        async def save():
            raise RuntimeError("offline")

        saver = Autosaver(save, delay=0.01)
        saver.schedule()
        await asyncio.sleep(0.05)

        assert isinstance(saver.last_error, RuntimeError)
        assert saver.save_count == 0
        assert "Autosave failed" in caplog.text

    @pytest.mark.asyncio
    async def test_flush_waits_for_in_flight_save(self):
        started = asyncio.Event()
        release = asyncio.Event()
        finished = []

        async def save():
            started.set()
            await release.wait()
            finished.append(1)

        saver = Autosaver(save, delay=0)
        saver.schedule()
        await started.wait()

        flush = asyncio.ensure_future(saver.flush())
        await asyncio.sleep(0)
        assert not flush.done()

        release.set()
        assert await flush is False
        assert finished == [1]

    @pytest.mark.asyncio
    async def test_flush_waits_for_later_overlapping_save(self):
        gates = [asyncio.Event(), asyncio.Event()]
        started = []
        finished = []

        async def save():
            index = len(started)
            started.append(index)
            await gates[index].wait()
            finished.append(index)

        saver = Autosaver(save, delay=0)
        saver.schedule()
        await asyncio.sleep(0.01)
        saver.schedule()
        await asyncio.sleep(0.01)
        assert started == [0, 1]

        gates[0].set()
        await asyncio.sleep(0.01)
        assert finished == [0]

        flush = asyncio.ensure_future(saver.flush())
        await asyncio.sleep(0.01)
        assert not flush.done()

        gates[1].set()
        await flush
        assert finished == [0, 1]


def test_default_path_comes_from_settings(tmp_path, monkeypatch):
    monkeypatch.setenv("TASKNOTES_DRAFTS_PATH", str(tmp_path / "env_drafts.json"))
    reset_settings()
    try:
        store = DraftStore()
        store.save("task-1", "From env", "")
        assert (tmp_path / "env_drafts.json").exists()
    finally:
        reset_settings()
