"""Tests for debounced autosave."""

import asyncio

import pytest
from dataclasses import replace
from unittest.mock import MagicMock


@pytest.fixture
def persistence():
    mock = MagicMock()
    mock.save_novel.return_value = 7
    return mock


@pytest.fixture
def autosave(store, persistence):
    from workflow.autosave import AutosaveCoordinator
    coordinator = AutosaveCoordinator(store, persistence, debounce_seconds=0.05).start()
    yield coordinator
    coordinator.stop()


class TestDebounce:
    @pytest.mark.asyncio
    async def test_burst_of_updates_saves_once(self, autosave, store, persistence):
        for i in range(20):
            store.update_chapter(1, content="word " * i)
        assert autosave.pending

        await asyncio.sleep(0.2)

        persistence.save_novel.assert_called_once()
        saved = persistence.save_novel.call_args.args[0]
        assert saved.get_chapter(1).content == "word " * 19
        assert autosave.save_count == 1
        assert not autosave.pending

    @pytest.mark.asyncio
    async def test_quiet_period_restarts_timer(self, autosave, store, persistence):
        store.update_chapter(1, content="a")
        await asyncio.sleep(0.03)
        store.update_chapter(1, content="ab")
        await asyncio.sleep(0.03)
        persistence.save_novel.assert_not_called()

        await asyncio.sleep(0.1)
        assert persistence.save_novel.call_count == 1

    @pytest.mark.asyncio
    async def test_separate_pauses_save_separately(self, autosave, store, persistence):
        store.update_chapter(1, content="a")
        await asyncio.sleep(0.15)
        store.update_chapter(1, content="ab")
        await asyncio.sleep(0.15)
        assert persistence.save_novel.call_count == 2

    @pytest.mark.asyncio
    async def test_id_written_back_without_rescheduling(self, autosave, store, persistence):
        store.update_chapter(1, content="a")
        await asyncio.sleep(0.2)

        doc = store.snapshot()
        assert doc.id == 7
        assert doc.last_saved is not None
        assert not autosave.pending
        assert persistence.save_novel.call_count == 1

    @pytest.mark.asyncio
    async def test_untitled_document_not_saved(self, autosave, store, persistence):
        store.update(lambda d: replace(d, settings=replace(d.settings, title="  ")))
        await asyncio.sleep(0.2)
        persistence.save_novel.assert_not_called()

    @pytest.mark.asyncio
    async def test_background_failure_is_logged_not_raised(self, autosave, store, persistence, caplog):
        from config.exceptions import PersistenceError
        persistence.save_novel.side_effect = PersistenceError("disk full")

        store.update_chapter(1, content="a")
        await asyncio.sleep(0.2)

        assert "Autosave failed" in caplog.text
        assert autosave.save_count == 0

    @pytest.mark.asyncio
    async def test_stop_drops_pending_write(self, autosave, store, persistence):
        store.update_chapter(1, content="a")
        autosave.stop()
        await asyncio.sleep(0.15)
        persistence.save_novel.assert_not_called()

    def test_update_without_loop_is_ignored(self, autosave, store, persistence):
        store.update_chapter(1, content="a")
        assert not autosave.pending


class TestManualSave:
    @pytest.mark.asyncio
    async def test_save_now_writes_immediately(self, autosave, store, persistence):
        store.update_chapter(1, content="a")

        novel_id = await autosave.save_now()

        assert novel_id == 7
        assert not autosave.pending
        await asyncio.sleep(0.15)
        persistence.save_novel.assert_called_once()

    @pytest.mark.asyncio
    async def test_save_now_raises_failure(self, autosave, persistence):
        from config.exceptions import PersistenceError
        persistence.save_novel.side_effect = PersistenceError("disk full")
        with pytest.raises(PersistenceError, match="disk full"):
            await autosave.save_now()

    @pytest.mark.asyncio
    async def test_save_now_untitled_returns_none(self, store, persistence):
        from models.novel import NovelSettings
        from workflow.autosave import AutosaveCoordinator
        store.reset(NovelSettings())
        coordinator = AutosaveCoordinator(store, persistence)
        assert await coordinator.save_now() is None
        persistence.save_novel.assert_not_called()

    @pytest.mark.asyncio
    async def test_flush_runs_pending_write(self, autosave, store, persistence):
        store.update_chapter(1, content="a")
        await autosave.flush()
        persistence.save_novel.assert_called_once()
        assert not autosave.pending

    @pytest.mark.asyncio
    async def test_existing_id_kept(self, autosave, store, persistence):
        store.update(lambda d: replace(d, id=3))
        await autosave.save_now()
        assert store.snapshot().id == 3


class TestWithDatabase:
    @pytest.mark.asyncio
    async def test_saved_document_loads_back(self, store, db):
        from workflow.autosave import AutosaveCoordinator
        coordinator = AutosaveCoordinator(store, db)
        store.update_chapter(1, content="The lamp burned.", is_done=True)

        novel_id = await coordinator.save_now()

        loaded = db.load_novel(novel_id)
        assert loaded.get_chapter(1).content == "The lamp burned."
        assert store.snapshot().id == novel_id
