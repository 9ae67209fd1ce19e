"""Single-writer state container for the novel document."""

import logging
from dataclasses import replace
from typing import Callable, Optional

from config.exceptions import ChapterStateError
from models.chapter import Chapter
from models.enums import NovelStatus
from models.novel import NovelDocument, NovelSettings

logger = logging.getLogger(__name__)

Listener = Callable[[NovelDocument], None]


class NovelStore:
    """Holds the current :class:`NovelDocument` and notifies subscribers.

    Every change goes through :meth:`update`, which applies a pure function
    to the current value and swaps in the result as a whole. Listeners see
    each new snapshot synchronously, in subscription order.
    """

    def __init__(self, document: Optional[NovelDocument] = None):
        self._document = document or NovelDocument()
        self._listeners: list[Listener] = []

    def snapshot(self) -> NovelDocument:
        return self._document

    def update(self, fn: Callable[[NovelDocument], NovelDocument]) -> NovelDocument:
        new = fn(self._document)
        if new is self._document:
            return new
        self._document = new
        for listener in list(self._listeners):
            listener(new)
        return new

    def replace(self, document: NovelDocument) -> NovelDocument:
        return self.update(lambda _: document)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ---- Convenience updates ----

    def get_chapter(self, chapter_id: int) -> Chapter:
        chapter = self._document.get_chapter(chapter_id)
        if chapter is None:
            raise ChapterStateError(chapter_id, f"Chapter {chapter_id} does not exist")
        return chapter

    def update_chapter(self, chapter_id: int, **changes) -> Chapter:
        """Replace fields of one chapter. Returns the updated chapter."""
        def apply(doc: NovelDocument) -> NovelDocument:
            chapter = doc.get_chapter(chapter_id)
            if chapter is None:
                raise ChapterStateError(chapter_id, f"Chapter {chapter_id} does not exist")
            return doc.with_chapter(replace(chapter, **changes))

        return self.update(apply).get_chapter(chapter_id)

    def remove_chapter(self, chapter_id: int) -> None:
        """Drop a chapter from the outline. Remaining ids are not renumbered.

        A selection on the removed chapter moves to the next one, or to the
        last chapter when it was the final one.
        """
        def apply(doc: NovelDocument) -> NovelDocument:
            if doc.get_chapter(chapter_id) is None:
                raise ChapterStateError(chapter_id, f"Chapter {chapter_id} does not exist")
            chapters = tuple(c for c in doc.chapters if c.id != chapter_id)
            current = doc.current_chapter_id
            if current == chapter_id:
                later = [c.id for c in chapters if c.id > chapter_id]
                current = later[0] if later else (chapters[-1].id if chapters else None)
            return replace(doc, chapters=chapters, current_chapter_id=current)

        self.update(apply)
        logger.info("Chapter %d removed", chapter_id)

    def add_usage(self, input_tokens: int, output_tokens: int) -> None:
        if input_tokens or output_tokens:
            self.update(lambda doc: replace(doc, usage=doc.usage.add(input_tokens, output_tokens)))

    def set_status(self, status: NovelStatus) -> None:
        self.update(lambda doc: doc if doc.status == status else replace(doc, status=status))

    def select_chapter(self, chapter_id: Optional[int]) -> None:
        self.update(
            lambda doc: doc if doc.current_chapter_id == chapter_id
            else replace(doc, current_chapter_id=chapter_id)
        )

    def reset(self, settings: Optional[NovelSettings] = None) -> NovelDocument:
        """Start a fresh document. Usage counters go back to zero."""
        logger.info("Document reset")
        return self.replace(NovelDocument(settings=settings or NovelSettings()))
