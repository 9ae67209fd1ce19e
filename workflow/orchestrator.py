"""Orchestrator facade: the entry points a UI drives (plan, write, auto, review, stop)."""

import logging
from dataclasses import replace
from typing import Awaitable, Callable, Optional, TypeVar

from agents.consistency_agent import ConsistencyAgent, is_consistent
from agents.grammar_agent import GrammarAgent
from agents.planner_agent import PlannerAgent
from agents.writer_agent import WriterAgent
from config.exceptions import ChapterStateError, GenerationCancelled, WorkflowStateError
from config.settings import Settings
from models.chapter import Chapter, GrammarIssue
from models.enums import GenerationPhase, NovelStatus
from models.novel import NovelSettings
from workflow.batch import BatchResult, BatchSequencer
from workflow.callbacks import GenerationCallback, NullCallback
from workflow.cancellation import OperationGuard, gather_cancellable
from workflow.chapter_graph import ChapterGenerator, ChapterResult
from workflow.retry import RetryPolicy
from workflow.store import NovelStore
from workflow.stream import GenerationBackend

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NovelOrchestrator:
    """Runs user-initiated operations against one :class:`NovelStore`.

    At most one operation is active. Generation-class operations (planning,
    one chapter, a continuation, or a batch run) cancel the previous one.
    Review and repair calls are refused while another operation runs, so
    their results never land on text that is still being written.
    Failures are reported once through ``callback.on_error`` and never
    raised out of these entry points.
    """

    def __init__(
        self,
        store: NovelStore,
        backend: GenerationBackend,
        settings: Settings,
        callback: Optional[GenerationCallback] = None,
    ):
        self.store = store
        self.settings = settings
        self.callback = callback or NullCallback()
        self.guard = OperationGuard()
        self.last_error: Optional[BaseException] = None

        self.writer = WriterAgent(backend, settings)
        self.planner = PlannerAgent(backend, settings)
        self.consistency = ConsistencyAgent(backend, settings)
        self.grammar = GrammarAgent(backend, settings)
        self.generator = ChapterGenerator(store, self.writer, settings, self.callback)
        # Single chapters share the batch classification but never retry
        self.single_policy = RetryPolicy.from_settings(settings, max_retries=0)
        self.batch = BatchSequencer(
            store, self.generator, settings,
            RetryPolicy.from_settings(settings), self.callback,
        )

    def stop(self) -> bool:
        """Cancel the active operation. Returns False if nothing was running."""
        stopped = self.guard.cancel()
        if stopped:
            logger.info("Stop requested")
        return stopped

    def create_new(self, settings: Optional[NovelSettings] = None) -> None:
        """Abandon the current document and start an empty one."""
        self.guard.cancel("document replaced")
        self.store.reset(settings)

    def _fail(self, chapter_id: Optional[int], exc: BaseException, message: Optional[str] = None) -> None:
        self.last_error = exc
        self.callback.on_error(chapter_id, message or str(exc))

    # ---- Planning ----

    async def plan_outline(self) -> bool:
        """Generate the outline and the cast concurrently.

        Both calls must succeed; the first failure or a stop cancels the
        other call. Status goes idle -> planning -> ready, and
        back to idle on failure or cancellation.
        """
        token = self.guard.begin()
        novel = self.store.snapshot().settings
        self.store.set_status(NovelStatus.PLANNING)
        try:
            chapters, characters = await gather_cancellable(
                token,
                self.planner.generate_outline(novel, on_usage=self.store.add_usage),
                self.planner.generate_characters(novel, on_usage=self.store.add_usage),
            )
            token.raise_if_cancelled()
            if not chapters:
                raise WorkflowStateError("Outline contained no chapters")
            self.store.update(lambda doc: replace(
                doc,
                chapters=tuple(chapters),
                characters=tuple(characters),
                status=NovelStatus.READY,
                current_chapter_id=chapters[0].id,
            ))
            return True
        except GenerationCancelled:
            logger.info("Planning cancelled")
            self.store.set_status(NovelStatus.IDLE)
            return False
        except Exception as exc:
            logger.error("Planning failed: %s", exc)
            self.store.set_status(NovelStatus.IDLE)
            self._fail(None, exc, f"Outline generation failed: {exc}")
            return False
        finally:
            self.guard.end(token)
            self.callback.on_operation_complete("plan_outline")

    # ---- Generation ----

    async def generate_chapter(self, chapter_id: int, force: bool = False) -> ChapterResult:
        """Generate one chapter. ``force`` rewrites a done chapter from scratch."""
        token = self.guard.begin()
        try:
            return await self.single_policy.run(
                lambda attempt: self.generator.run(chapter_id, token, force=force),
                token,
            )
        except GenerationCancelled:
            return self._chapter_outcome(chapter_id, GenerationPhase.ABORTED)
        except Exception as exc:
            self._fail(chapter_id, exc)
            return self._chapter_outcome(chapter_id, GenerationPhase.FAILED)
        finally:
            self.guard.end(token)
            self.callback.on_operation_complete("generate_chapter")

    async def force_rewrite(self, chapter_id: int) -> ChapterResult:
        return await self.generate_chapter(chapter_id, force=True)

    async def auto_generate(self) -> BatchResult:
        """Generate every pending chapter in order."""
        doc = self.store.snapshot()
        if doc.status != NovelStatus.READY or not doc.chapters:
            exc = WorkflowStateError("Plan an outline before generating chapters")
            self._fail(None, exc)
            self.callback.on_operation_complete("auto_generate")
            return BatchResult(error=exc)

        token = self.guard.begin()
        try:
            result = await self.batch.run(token)
        finally:
            self.guard.end(token)

        if result.halted:
            self._fail(
                result.failed_chapter_id, result.error,
                f"Auto-generation paused at chapter {result.failed_chapter_id}: {result.error}",
            )
        self.callback.on_operation_complete("auto_generate")
        return result

    def _chapter_outcome(self, chapter_id: int, phase: GenerationPhase) -> ChapterResult:
        chapter = self.store.snapshot().get_chapter(chapter_id)
        content = chapter.content if chapter else ""
        return ChapterResult(chapter_id=chapter_id, phase=phase, content=content)

    async def continue_chapter(self, chapter_id: int) -> ChapterResult:
        """Stream the next scene onto a chapter that already has prose."""
        token = self.guard.begin()
        try:
            return await self.generator.continue_chapter(chapter_id, token)
        except GenerationCancelled:
            return self._chapter_outcome(chapter_id, GenerationPhase.ABORTED)
        except Exception as exc:
            self._fail(chapter_id, exc, f"Continuing chapter {chapter_id} failed: {exc}")
            return self._chapter_outcome(chapter_id, GenerationPhase.FAILED)
        finally:
            self.guard.end(token)
            self.callback.on_operation_complete("continue_chapter")

    def delete_chapter(self, chapter_id: int) -> bool:
        """Remove a chapter from the outline. Refused while an operation runs."""
        busy = self._busy_reason(chapter_id)
        if busy:
            self._fail(chapter_id, WorkflowStateError(busy))
            return False
        try:
            self.store.remove_chapter(chapter_id)
        except ChapterStateError as exc:
            self._fail(chapter_id, exc)
            return False
        return True

    # ---- Review and repair ----

    def _busy_reason(self, chapter_id: Optional[int]) -> Optional[str]:
        if self.guard.active:
            return "Another operation is running; stop it first"
        if chapter_id is not None:
            chapter = self.store.snapshot().get_chapter(chapter_id)
            if chapter is not None and chapter.is_generating:
                return f"Chapter {chapter_id} is being generated"
        return None

    def _chapter_with_content(self, chapter_id: int) -> Optional[Chapter]:
        chapter = self.store.snapshot().get_chapter(chapter_id)
        if chapter is None or not chapter.content:
            self._fail(chapter_id, WorkflowStateError(f"Chapter {chapter_id} has no content"))
            return None
        return chapter

    async def _exclusive(self, chapter_id: Optional[int], label: str, call: Callable[[], Awaitable[T]]) -> Optional[T]:
        """Run one backend call as the active operation.

        Returns None when the call is refused, fails or is cancelled. A result
        is only returned while the operation still owns the guard, so callers
        can apply it before yielding to the event loop.
        """
        busy = self._busy_reason(chapter_id)
        if busy:
            self._fail(chapter_id, WorkflowStateError(busy))
            return None

        token = self.guard.begin()
        try:
            (result,) = await gather_cancellable(token, call())
            token.raise_if_cancelled()
            return result
        except GenerationCancelled:
            logger.info("%s cancelled", label)
            return None
        except Exception as exc:
            logger.error("%s failed: %s", label, exc)
            self._fail(chapter_id, exc, f"{label} failed: {exc}")
            return None
        finally:
            self.guard.end(token)

    async def check_consistency(self, chapter_id: int) -> Optional[str]:
        """Analyse one chapter against the cast. Returns the analysis text."""
        try:
            chapter = self._chapter_with_content(chapter_id)
            if chapter is None:
                return None
            doc = self.store.snapshot()
            analysis = await self._exclusive(
                chapter_id, "Consistency check",
                lambda: self.consistency.check_chapter(
                    chapter.content, doc.characters, doc.settings, on_usage=self.store.add_usage,
                ),
            )
            if analysis is not None:
                self.store.update_chapter(chapter_id, consistency_analysis=analysis)
            return analysis
        finally:
            self.callback.on_operation_complete("check_consistency")

    async def fix_consistency(self, chapter_id: int) -> bool:
        """Rewrite a chapter to resolve its last analysis. Returns True if changed."""
        try:
            chapter = self.store.snapshot().get_chapter(chapter_id)
            if chapter is None or not chapter.consistency_analysis:
                self._fail(chapter_id, WorkflowStateError(f"Chapter {chapter_id} has not been checked"))
                return False
            if is_consistent(chapter.consistency_analysis):
                return False
            doc = self.store.snapshot()
            fixed = await self._exclusive(
                chapter_id, "Consistency fix",
                lambda: self.consistency.fix_chapter(
                    chapter.content, doc.characters, chapter.consistency_analysis,
                    doc.settings, on_usage=self.store.add_usage,
                ),
            )
            if fixed is None:
                return False
            self.store.update_chapter(chapter_id, content=fixed, consistency_analysis=None)
            return True
        finally:
            self.callback.on_operation_complete("fix_consistency")

    async def check_grammar(self, chapter_id: int) -> Optional[list[GrammarIssue]]:
        """Proofread one chapter. Returns the suggested corrections."""
        try:
            chapter = self._chapter_with_content(chapter_id)
            if chapter is None:
                return None
            novel = self.store.snapshot().settings
            return await self._exclusive(
                chapter_id, "Grammar check",
                lambda: self.grammar.check_grammar(chapter.content, novel, on_usage=self.store.add_usage),
            )
        finally:
            self.callback.on_operation_complete("check_grammar")

    async def fix_grammar(self, chapter_id: int) -> bool:
        """Correct grammar and spelling in place. Returns True if the text changed."""
        try:
            chapter = self._chapter_with_content(chapter_id)
            if chapter is None:
                return False
            novel = self.store.snapshot().settings
            corrected = await self._exclusive(
                chapter_id, "Grammar correction",
                lambda: self.grammar.correct(chapter.content, novel, on_usage=self.store.add_usage),
            )
            if corrected is None or corrected == chapter.content:
                return False
            self.store.update_chapter(chapter_id, content=corrected)
            return True
        finally:
            self.callback.on_operation_complete("fix_grammar")

    async def analyze_coherence(self) -> Optional[str]:
        """Whole-book coherence review, stored as the document's consistency report."""
        try:
            doc = self.store.snapshot()
            if not doc.chapters:
                self._fail(None, WorkflowStateError("Plan an outline before analysing coherence"))
                return None
            report = await self._exclusive(
                None, "Coherence analysis",
                lambda: self.consistency.analyze_coherence(
                    doc.chapters, doc.characters, doc.settings, on_usage=self.store.add_usage,
                ),
            )
            if report is not None:
                self.store.update(lambda d: replace(d, consistency_report=report))
            return report
        finally:
            self.callback.on_operation_complete("analyze_coherence")
