"""Tests for graph routing conditions and progress callbacks."""

import io

import pytest


class TestRouteAfterStream:
    def test_continues_to_extend(self):
        from workflow.conditions import route_after_stream
        assert route_after_stream({"content": "text"}) == "extend"

    def test_empty_initial_stream_still_extends(self):
        from workflow.conditions import route_after_stream
        assert route_after_stream({"content": ""}) == "extend"

    def test_cancelled_ends(self):
        from workflow.conditions import route_after_stream
        assert route_after_stream({"cancelled": True}) == "__end__"


class TestRouteAfterExtend:
    def test_under_target_still_summarized(self):
        from workflow.conditions import route_after_extend
        assert route_after_extend({"reached_target": False}) == "summarize"

    def test_cancelled_ends(self):
        from workflow.conditions import route_after_extend
        assert route_after_extend({"cancelled": True, "reached_target": True}) == "__end__"


class TestRouteAfterSummarize:
    def test_finalizes(self):
        from workflow.conditions import route_after_summarize
        assert route_after_summarize({}) == "finalize"

    def test_cancelled_ends(self):
        from workflow.conditions import route_after_summarize
        assert route_after_summarize({"cancelled": True}) == "__end__"


def _result(**kwargs):
    from models.enums import GenerationPhase
    from workflow.chapter_graph import ChapterResult
    defaults = dict(chapter_id=1, phase=GenerationPhase.DONE, word_count=2900, target_words=3000)
    defaults.update(kwargs)
    return ChapterResult(**defaults)


class TestChapterResult:
    def test_flags(self):
        from models.enums import GenerationPhase
        assert _result().is_done
        assert not _result().cancelled
        assert _result(phase=GenerationPhase.ABORTED).cancelled


class TestCallbacks:
    def test_null_callback_satisfies_protocol(self):
        from workflow.callbacks import GenerationCallback, LoggingCallback, NullCallback, RichProgressCallback
        for cb in (NullCallback(), LoggingCallback(), RichProgressCallback()):
            assert isinstance(cb, GenerationCallback)

    def test_logging_callback(self, caplog):
        import logging
        from workflow.callbacks import LoggingCallback
        cb = LoggingCallback()
        with caplog.at_level(logging.INFO, logger="workflow.callbacks"):
            cb.on_batch_step(2, 3, 2, "generated")
            cb.on_chapter_complete(1, _result())
            cb.on_error(None, "boom")
        assert "Batch 2/3: chapter 2 generated" in caplog.text
        assert "Chapter 1 done (2900/3000 words)" in caplog.text
        assert "boom" in caplog.text

    def test_rich_callback_without_start_is_silent(self):
        from workflow.callbacks import RichProgressCallback
        cb = RichProgressCallback()
        cb.on_fragment(1, "text", 1, 10)
        cb.on_batch_step(1, 3, 1, "started")
        cb.on_chapter_complete(1, _result())
        cb.on_error(1, "boom")
        assert cb.errors == ["boom"]

    def test_rich_callback_renders(self):
        from rich.console import Console
        from workflow.callbacks import RichProgressCallback
        buffer = io.StringIO()
        cb = RichProgressCallback(Console(file=buffer, force_terminal=False, width=100), total_chapters=3)
        cb.start()
        try:
            cb.on_batch_step(1, 3, 1, "started")
            cb.on_fragment(1, "text", 1500, 50)
            cb.on_chapter_complete(1, _result(reached_target=True))
            cb.on_batch_step(1, 3, 1, "generated")
            cb.on_error(None, "Auto-generation paused")
        finally:
            cb.stop()

        output = buffer.getvalue()
        assert "Chapter 1: 2900/3000 words" in output
        assert "Auto-generation paused" in output
        assert "Chapter None" not in output
