"""LangGraph StateGraph generating one chapter: stream, extend, summarize, finalize."""

import logging
from dataclasses import dataclass
from typing import Optional

from langchain_core.runnables import RunnableConfig
from langgraph.graph import StateGraph, END

from agents.writer_agent import WriterAgent
from config.exceptions import ChapterStateError
from config.settings import Settings
from models.enums import GenerationPhase, NovelType
from models.novel import NovelSettings
from tools.text_utils import count_words, progress_percent
from workflow.callbacks import GenerationCallback, NullCallback
from workflow.cancellation import CancellationToken
from workflow.conditions import (
    route_after_stream,
    route_after_extend,
    route_after_summarize,
)
from workflow.context import CONTENT_SEPARATOR, ChapterContext, build_context
from workflow.extension import extend_to_target
from workflow.retry import classify_error
from workflow.state import ChapterGenerationState
from workflow.store import NovelStore
from workflow.stream import consume_stream

logger = logging.getLogger(__name__)


def resolve_target_words(novel: NovelSettings, settings: Settings) -> int:
    """Word target for one chapter.

    Explicit per-chapter target first; short-form books aim the single
    chapter at the whole book; otherwise the book total is spread over the
    chapters, floored at ``min_chapter_words``.
    """
    if novel.target_chapter_word_count:
        return novel.target_chapter_word_count
    if novel.novel_type == NovelType.SHORT:
        return novel.target_word_count or settings.short_story_words
    if novel.target_word_count and novel.chapter_count:
        return max(settings.min_chapter_words, novel.target_word_count // novel.chapter_count)
    return settings.default_chapter_words


@dataclass(frozen=True)
class ChapterResult:
    """Outcome of one chapter run.

    ``reached_target`` is False when the extension loop hit its cap first;
    such a chapter is still done.
    """
    chapter_id: int
    phase: GenerationPhase
    content: str = ""
    word_count: int = 0
    target_words: int = 0
    iterations: int = 0
    reached_target: bool = False
    summary_updated: bool = False

    @property
    def is_done(self) -> bool:
        return self.phase == GenerationPhase.DONE

    @property
    def cancelled(self) -> bool:
        return self.phase == GenerationPhase.ABORTED


def _token(config: RunnableConfig) -> CancellationToken:
    return config["configurable"]["token"]


class ChapterGenerator:
    """Generates a single chapter as one cancellable unit of work.

    Phases: idle -> streaming_initial -> extending -> summarizing -> done,
    with ``aborted`` on cancellation and ``failed`` on backend errors.
    Partial content is written to the store after every fragment and is
    never rolled back.
    """

    def __init__(
        self,
        store: NovelStore,
        writer: WriterAgent,
        settings: Settings,
        callback: Optional[GenerationCallback] = None,
    ):
        self.store = store
        self.writer = writer
        self.settings = settings
        self.callback = callback or NullCallback()
        self._app = self._build_graph()

    def _build_graph(self):
        graph = StateGraph(ChapterGenerationState)

        graph.add_node("stream_initial", self._stream_initial)
        graph.add_node("extend", self._extend)
        graph.add_node("summarize", self._summarize)
        graph.add_node("finalize", self._finalize)

        graph.set_entry_point("stream_initial")

        graph.add_conditional_edges(
            "stream_initial",
            route_after_stream,
            {"extend": "extend", "__end__": END},
        )
        graph.add_conditional_edges(
            "extend",
            route_after_extend,
            {"summarize": "summarize", "__end__": END},
        )
        graph.add_conditional_edges(
            "summarize",
            route_after_summarize,
            {"finalize": "finalize", "__end__": END},
        )
        graph.add_edge("finalize", END)

        return graph.compile()

    # ---- Public entry point ----

    async def run(
        self,
        chapter_id: int,
        token: CancellationToken,
        *,
        force: bool = False,
        context: Optional[ChapterContext] = None,
    ) -> ChapterResult:
        """Generate ``chapter_id``.

        Args:
            chapter_id: Chapter to write.
            token: Cancellation token of the enclosing operation.
            force: Rewrite a done chapter from scratch.
            context: Prebuilt context (batch runs); built from the store otherwise.

        Returns:
            A :class:`ChapterResult`; cancellation yields phase ``aborted``.

        Raises:
            ChapterStateError: If the chapter is done or generating and
                ``force`` is not set.
            LLMError: If streaming fails. Partial content stays on the chapter.
        """
        chapter = self.store.get_chapter(chapter_id)
        if chapter.is_generating:
            raise ChapterStateError(chapter_id, f"Chapter {chapter_id} is already generating")
        if chapter.is_done and not force:
            raise ChapterStateError(chapter_id, f"Chapter {chapter_id} is already done")

        doc = self.store.snapshot()
        if context is None:
            context = build_context(doc.chapters, chapter_id, self.settings.context_max_chars)
        target = resolve_target_words(doc.settings, self.settings)

        if force:
            self.store.update_chapter(
                chapter_id, content="", is_done=False, is_generating=True, consistency_analysis=None,
            )
        else:
            self.store.update_chapter(chapter_id, is_generating=True, consistency_analysis=None)
        self.store.select_chapter(chapter_id)

        initial: ChapterGenerationState = {
            "chapter_id": chapter_id,
            "title": chapter.title,
            "force": force,
            "summaries": context.summaries,
            "previous_content": context.previous_content,
            "target_words": target,
            "content": "",
            "summary": chapter.summary,
            "iterations": 0,
            "phase": GenerationPhase.IDLE.value,
            "cancelled": False,
        }
        logger.info(
            "Chapter %d: generation started (target %d words%s)",
            chapter_id, target, ", rewrite" if force else "",
        )

        try:
            final = await self._app.ainvoke(initial, config={"configurable": {"token": token}})
        except Exception as exc:
            logger.error(
                "Chapter %d failed (%s): %s", chapter_id, classify_error(exc).value, exc,
            )
            raise
        finally:
            self._clear_generating(chapter_id)

        phase = GenerationPhase(final.get("phase", GenerationPhase.IDLE.value))
        if final.get("cancelled"):
            phase = GenerationPhase.ABORTED
            logger.info("Chapter %d: generation cancelled", chapter_id)

        content = final.get("content", "")
        result = ChapterResult(
            chapter_id=chapter_id,
            phase=phase,
            content=content,
            word_count=final.get("word_count", count_words(content)),
            target_words=target,
            iterations=final.get("iterations", 0),
            reached_target=final.get("reached_target", False),
            summary_updated=final.get("summary_updated", False),
        )
        self.callback.on_chapter_complete(chapter_id, result)
        return result

    async def continue_chapter(self, chapter_id: int, token: CancellationToken) -> ChapterResult:
        """Append one user-requested continuation to a chapter with prose.

        No extension loop and no summary refresh: the chapter keeps its done
        flag and summary. Text streamed before a cancel or failure is kept.

        Raises:
            ChapterStateError: If the chapter is generating or has no content.
            LLMError: If streaming fails.
        """
        chapter = self.store.get_chapter(chapter_id)
        if chapter.is_generating:
            raise ChapterStateError(chapter_id, f"Chapter {chapter_id} is already generating")
        if not chapter.content:
            raise ChapterStateError(chapter_id, f"Chapter {chapter_id} has no content to continue")

        doc = self.store.snapshot()
        target = resolve_target_words(doc.settings, self.settings)
        self.store.update_chapter(chapter_id, is_generating=True, is_done=False, consistency_analysis=None)
        self.store.select_chapter(chapter_id)
        try:
            fragments = self.writer.stream_continuation(
                doc.settings, chapter.title, chapter.content, doc.characters,
                token=token, on_usage=self.store.add_usage,
            )
            streamed = await consume_stream(
                fragments, token, self._publish(chapter_id, target),
                prefix=f"{chapter.content}{CONTENT_SEPARATOR}",
            )
        except Exception as exc:
            logger.error("Chapter %d continuation failed (%s): %s", chapter_id, classify_error(exc).value, exc)
            raise
        finally:
            self.store.update_chapter(chapter_id, is_generating=False, is_done=chapter.is_done)

        content = streamed.text if streamed.fragments else chapter.content
        words = count_words(content)
        result = ChapterResult(
            chapter_id=chapter_id,
            phase=GenerationPhase.ABORTED if streamed.cancelled else GenerationPhase.DONE,
            content=content,
            word_count=words,
            target_words=target,
            iterations=1,
            reached_target=words >= target,
        )
        logger.info("Chapter %d continued: %d words (%d fragments)", chapter_id, words, streamed.fragments)
        self.callback.on_chapter_complete(chapter_id, result)
        return result

    # ---- Graph nodes ----

    def _publish(self, chapter_id: int, target: int):
        def on_update(text: str) -> None:
            self.store.update_chapter(chapter_id, content=text)
            words = count_words(text)
            self.callback.on_fragment(chapter_id, text, words, progress_percent(words, target))
        return on_update

    async def _stream_initial(self, state: ChapterGenerationState, config: RunnableConfig) -> dict:
        token = _token(config)
        chapter_id = state["chapter_id"]
        if token.cancelled:
            return {"cancelled": True, "phase": GenerationPhase.ABORTED.value}

        doc = self.store.snapshot()
        fragments = self.writer.stream_chapter(
            doc.settings,
            doc.get_chapter(chapter_id),
            state.get("summaries", ""),
            state.get("previous_content", ""),
            doc.characters,
            token=token,
            on_usage=self.store.add_usage,
        )
        result = await consume_stream(
            fragments, token, self._publish(chapter_id, state["target_words"]),
        )
        logger.debug("Chapter %d: initial stream %d fragments", chapter_id, result.fragments)
        return {
            "content": result.text,
            "word_count": count_words(result.text),
            "cancelled": result.cancelled,
            "phase": GenerationPhase.STREAMING_INITIAL.value,
        }

    async def _extend(self, state: ChapterGenerationState, config: RunnableConfig) -> dict:
        token = _token(config)
        chapter_id = state["chapter_id"]
        novel = self.store.snapshot().settings

        def continuation(title: str, content: str, target: int):
            return self.writer.stream_extension(
                novel, title, content, target, token=token, on_usage=self.store.add_usage,
            )

        result = await extend_to_target(
            state.get("content", ""),
            state.get("title", ""),
            state["target_words"],
            backend_stream=continuation,
            token=token,
            on_update=self._publish(chapter_id, state["target_words"]),
            max_loops=self.settings.extension_max_loops,
        )
        return {
            "content": result.content,
            "word_count": result.word_count,
            "iterations": result.iterations,
            "reached_target": result.reached_target,
            "cancelled": result.cancelled,
            "phase": GenerationPhase.EXTENDING.value,
        }

    async def _summarize(self, state: ChapterGenerationState, config: RunnableConfig) -> dict:
        token = _token(config)
        if token.cancelled:
            return {"cancelled": True}

        update = {"phase": GenerationPhase.SUMMARIZING.value}
        try:
            summary = await self.writer.summarize(state.get("content", ""), on_usage=self.store.add_usage)
        except Exception as e:
            logger.warning(
                "Chapter %d: summary refresh failed, keeping previous summary: %s",
                state["chapter_id"], e,
            )
            summary = ""
        if summary:
            update["summary"] = summary
            update["summary_updated"] = True
        update["cancelled"] = token.cancelled
        return update

    async def _finalize(self, state: ChapterGenerationState) -> dict:
        chapter_id = state["chapter_id"]
        self.store.update_chapter(
            chapter_id,
            content=state.get("content", ""),
            summary=state.get("summary", ""),
            is_generating=False,
            is_done=True,
        )
        logger.info(
            "Chapter %d done: %d/%d words after %d extension passes",
            chapter_id, state.get("word_count", 0), state["target_words"], state.get("iterations", 0),
        )
        return {"phase": GenerationPhase.DONE.value}

    def _clear_generating(self, chapter_id: int) -> None:
        chapter = self.store.snapshot().get_chapter(chapter_id)
        if chapter is not None and chapter.is_generating:
            self.store.update_chapter(chapter_id, is_generating=False)
