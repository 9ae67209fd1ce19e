"""Bounded prior-chapter context fed into every chapter request."""

from dataclasses import dataclass
from typing import Iterable

from models.chapter import Chapter

CONTENT_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class ChapterContext:
    """Plot history for one request.

    ``summaries`` holds one ``"Chapter {id}: {summary}"`` line per earlier
    done chapter; ``previous_content`` is the most recent raw prose, cut
    from the front to fit the character budget.
    """
    summaries: str = ""
    previous_content: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.summaries and not self.previous_content


def summary_line(chapter: Chapter) -> str:
    return f"Chapter {chapter.id}: {chapter.summary}"


def tail_slice(text: str, max_chars: int) -> str:
    """Keep the last ``max_chars`` characters of ``text``."""
    if max_chars <= 0:
        return ""
    return text if len(text) <= max_chars else text[-max_chars:]


def build_context(chapters: Iterable[Chapter], chapter_id: int, max_chars: int) -> ChapterContext:
    """Context for ``chapter_id`` from the done chapters strictly before it."""
    earlier = sorted(
        (c for c in chapters if c.id < chapter_id and c.is_done),
        key=lambda c: c.id,
    )
    summaries = "\n".join(summary_line(c) for c in earlier)
    joined = CONTENT_SEPARATOR.join(c.content for c in earlier if c.content)
    return ChapterContext(summaries=summaries, previous_content=tail_slice(joined, max_chars))


class RollingContext:
    """Incremental form of :func:`build_context` used across a batch run.

    Chapters must be folded in ascending id order. Folding the same id twice
    is a no-op.
    """

    def __init__(self, max_chars: int):
        self.max_chars = max_chars
        self._folded: set[int] = set()
        self._summary_lines: list[str] = []
        self._tail = ""

    def __contains__(self, chapter_id: int) -> bool:
        return chapter_id in self._folded

    def fold(self, chapter: Chapter) -> bool:
        """Add a done chapter. Returns False if it was already folded."""
        if chapter.id in self._folded:
            return False
        self._folded.add(chapter.id)
        self._summary_lines.append(summary_line(chapter))
        if chapter.content:
            joined = f"{self._tail}{CONTENT_SEPARATOR}{chapter.content}" if self._tail else chapter.content
            self._tail = tail_slice(joined, self.max_chars)
        return True

    def snapshot(self) -> ChapterContext:
        return ChapterContext(summaries="\n".join(self._summary_lines), previous_content=self._tail)
