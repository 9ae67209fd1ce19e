"""Generation progress callbacks for monitoring and real-time reporting."""

import logging
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from workflow.chapter_graph import ChapterResult

logger = logging.getLogger(__name__)


@runtime_checkable
class GenerationCallback(Protocol):
    """Protocol for generation progress callbacks.

    Implement this protocol to render streaming prose and progress.
    """

    def on_fragment(self, chapter_id: int, text: str, word_count: int, percent: int) -> None:
        """Called after every streamed fragment with the whole accumulated text."""
        ...

    def on_chapter_complete(self, chapter_id: int, result: "ChapterResult") -> None:
        """Called when a chapter finishes (done, skipped or aborted)."""
        ...

    def on_batch_step(self, index: int, total: int, chapter_id: int, status: str) -> None:
        """Called for every step of an auto-generate run."""
        ...

    def on_error(self, chapter_id: Optional[int], message: str) -> None:
        """Called once per failed operation."""
        ...

    def on_operation_complete(self, name: str) -> None:
        """Called when a user-initiated operation ends, whatever the outcome."""
        ...


class NullCallback:
    """Callback that ignores every event."""

    def on_fragment(self, chapter_id: int, text: str, word_count: int, percent: int) -> None:
        pass

    def on_chapter_complete(self, chapter_id: int, result: "ChapterResult") -> None:
        pass

    def on_batch_step(self, index: int, total: int, chapter_id: int, status: str) -> None:
        pass

    def on_error(self, chapter_id: Optional[int], message: str) -> None:
        pass

    def on_operation_complete(self, name: str) -> None:
        pass


class LoggingCallback(NullCallback):
    """Lightweight callback that logs progress to the standard logger."""

    def on_fragment(self, chapter_id: int, text: str, word_count: int, percent: int) -> None:
        logger.debug("Chapter %d: %d words (%d%%)", chapter_id, word_count, percent)

    def on_chapter_complete(self, chapter_id: int, result: "ChapterResult") -> None:
        logger.info(
            "Chapter %d %s (%d/%d words)",
            chapter_id, result.phase.value, result.word_count, result.target_words,
        )

    def on_batch_step(self, index: int, total: int, chapter_id: int, status: str) -> None:
        logger.info("Batch %d/%d: chapter %d %s", index, total, chapter_id, status)

    def on_error(self, chapter_id: Optional[int], message: str) -> None:
        logger.error("Generation error (chapter %s): %s", chapter_id, message)

    def on_operation_complete(self, name: str) -> None:
        logger.info("Operation complete: %s", name)


class RichProgressCallback(NullCallback):
    """Progress callback that renders a Rich live progress display in the terminal."""

    _STATUS_LABELS: dict[str, str] = {
        "folded": "already written",
        "started": "writing",
        "retrying": "retrying",
        "generated": "done",
        "skipped": "skipped (content policy)",
        "failed": "failed",
    }

    def __init__(self, console=None, total_chapters: int = 0):
        """
        Args:
            console: Rich Console instance. Creates one if not provided.
            total_chapters: Chapters in the run (for the batch bar maximum).
        """
        self._console = console
        self._total = total_chapters
        self._progress = None
        self._batch_task_id = None
        self._chapter_task_id = None
        self.errors: list[str] = []

    def start(self):
        """Start the progress display. Call before running the operation."""
        from rich.console import Console
        from rich.progress import (
            Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn,
        )

        console = self._console or Console()
        self._console = console

        self._progress = Progress(
            SpinnerColumn("dots"),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        )
        self._progress.start()

        if self._total > 0:
            self._batch_task_id = self._progress.add_task("Waiting...", total=self._total)
        self._chapter_task_id = self._progress.add_task("[dim]Starting...[/]", total=100)

    def stop(self):
        """Stop the progress display."""
        if self._progress:
            self._progress.stop()
            self._progress = None

    def on_fragment(self, chapter_id: int, text: str, word_count: int, percent: int) -> None:
        if not self._progress:
            return
        self._progress.update(
            self._chapter_task_id,
            description=f"Chapter {chapter_id} · {word_count} words",
            completed=percent,
        )

    def on_chapter_complete(self, chapter_id: int, result: "ChapterResult") -> None:
        if not self._progress:
            return
        self._progress.update(self._chapter_task_id, completed=100 if result.is_done else None)
        marker = "[green]✓[/]" if result.reached_target else "[yellow]~[/]"
        self._progress.console.print(
            f"  {marker} Chapter {chapter_id}: {result.word_count}/{result.target_words} words"
        )

    def on_batch_step(self, index: int, total: int, chapter_id: int, status: str) -> None:
        if not self._progress or self._batch_task_id is None:
            return
        label = self._STATUS_LABELS.get(status, status)
        finished = status in ("folded", "generated", "skipped")
        self._progress.update(
            self._batch_task_id,
            description=f"Chapter {chapter_id} ({index}/{total}) {label}",
            completed=index if finished else index - 1,
        )
        if status == "started":
            self._progress.reset(self._chapter_task_id, description=f"Chapter {chapter_id}", total=100)

    def on_error(self, chapter_id: Optional[int], message: str) -> None:
        self.errors.append(message)
        if self._progress:
            where = f"Chapter {chapter_id}: " if chapter_id is not None else ""
            self._progress.console.print(f"  [red]✗ {where}{message}[/]")
