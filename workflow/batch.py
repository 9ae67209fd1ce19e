"""Batch sequencer: auto-generate every pending chapter in id order."""

import logging
from dataclasses import dataclass
from typing import Optional

from config.exceptions import GenerationCancelled
from config.settings import Settings
from models.chapter import SAFETY_SKIP_MARKER
from models.enums import BatchStepStatus
from workflow.callbacks import GenerationCallback, NullCallback
from workflow.cancellation import CancellationToken
from workflow.chapter_graph import ChapterGenerator, ChapterResult
from workflow.context import CONTENT_SEPARATOR, RollingContext
from workflow.retry import ErrorKind, RetryPolicy, classify_error
from workflow.store import NovelStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchResult:
    generated: tuple[int, ...] = ()
    skipped: tuple[int, ...] = ()
    failed_chapter_id: Optional[int] = None
    error: Optional[BaseException] = None
    cancelled: bool = False

    @property
    def halted(self) -> bool:
        return self.failed_chapter_id is not None


class BatchSequencer:
    """Drives :class:`ChapterGenerator` across all pending chapters.

    Done chapters are folded into a rolling context instead of being
    regenerated. Rate-limit and network failures are retried by the
    policy; content-policy refusals mark the chapter done with
    ``SAFETY_SKIP_MARKER`` and the run moves on; anything else halts the
    run and leaves later chapters untouched.
    """

    def __init__(
        self,
        store: NovelStore,
        generator: ChapterGenerator,
        settings: Settings,
        policy: Optional[RetryPolicy] = None,
        callback: Optional[GenerationCallback] = None,
    ):
        self.store = store
        self.generator = generator
        self.settings = settings
        self.policy = policy or RetryPolicy.from_settings(settings)
        self.callback = callback or NullCallback()

    async def run(self, token: CancellationToken) -> BatchResult:
        chapter_ids = [c.id for c in self.store.snapshot().chapters]
        total = len(chapter_ids)
        rolling = RollingContext(self.settings.context_max_chars)
        generated: list[int] = []
        skipped: list[int] = []
        attempted_any = False

        def finish(**kwargs) -> BatchResult:
            return BatchResult(generated=tuple(generated), skipped=tuple(skipped), **kwargs)

        logger.info("Batch run started: %d chapters", total)
        for index, chapter_id in enumerate(chapter_ids, start=1):
            if token.cancelled:
                return self._cancelled(finish)

            chapter = self.store.get_chapter(chapter_id)
            if chapter.is_done:
                if rolling.fold(chapter):
                    self.callback.on_batch_step(index, total, chapter_id, BatchStepStatus.FOLDED.value)
                continue

            if attempted_any and not await token.sleep(self.settings.inter_chapter_delay):
                return self._cancelled(finish)
            attempted_any = True

            self.callback.on_batch_step(index, total, chapter_id, BatchStepStatus.STARTED.value)
            context = rolling.snapshot()

            def on_retry(exc, kind, retry, delay, _index=index, _chapter_id=chapter_id):
                self.callback.on_batch_step(_index, total, _chapter_id, BatchStepStatus.RETRYING.value)

            try:
                result: ChapterResult = await self.policy.run(
                    lambda attempt: self.generator.run(chapter_id, token, context=context),
                    token,
                    on_retry=on_retry,
                )
            except GenerationCancelled:
                return self._cancelled(finish)
            except Exception as exc:
                kind = classify_error(exc)
                if kind is ErrorKind.CONTENT_POLICY:
                    self._skip(chapter_id)
                    skipped.append(chapter_id)
                    rolling.fold(self.store.get_chapter(chapter_id))
                    self.callback.on_batch_step(index, total, chapter_id, BatchStepStatus.SKIPPED.value)
                    continue
                if kind is ErrorKind.CANCELLED:
                    return self._cancelled(finish)

                logger.error("Batch run halted at chapter %d (%s): %s", chapter_id, kind.value, exc)
                self.callback.on_batch_step(index, total, chapter_id, BatchStepStatus.FAILED.value)
                return finish(failed_chapter_id=chapter_id, error=exc)

            if result.cancelled:
                return self._cancelled(finish)

            generated.append(chapter_id)
            rolling.fold(self.store.get_chapter(chapter_id))
            self.callback.on_batch_step(index, total, chapter_id, BatchStepStatus.GENERATED.value)

        logger.info(
            "Batch run finished: %d generated, %d skipped", len(generated), len(skipped),
        )
        return finish()

    def _skip(self, chapter_id: int) -> None:
        chapter = self.store.get_chapter(chapter_id)
        content = f"{chapter.content}{CONTENT_SEPARATOR}{SAFETY_SKIP_MARKER}"
        self.store.update_chapter(chapter_id, content=content, is_generating=False, is_done=True)
        logger.warning("Chapter %d skipped: rejected by content policy", chapter_id)

    @staticmethod
    def _cancelled(finish) -> BatchResult:
        logger.info("Batch run cancelled")
        return finish(cancelled=True)
