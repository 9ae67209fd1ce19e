"""Debounced persistence of the evolving novel document."""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from models.database import Database
from models.novel import NovelDocument
from workflow.store import NovelStore

logger = logging.getLogger(__name__)


class AutosaveCoordinator:
    """Writes the document once it has been quiet for ``debounce_seconds``.

    Every store update restarts the timer, so token-by-token streaming
    produces one write per pause rather than one per fragment. Documents
    without a title are never written. Background failures are logged;
    :meth:`save_now` raises them.
    """

    def __init__(self, store: NovelStore, persistence: Database, debounce_seconds: float = 3.0):
        self.store = store
        self.persistence = persistence
        self.debounce_seconds = debounce_seconds
        self.save_count = 0
        self._pending: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._writing_back = False

    def start(self) -> "AutosaveCoordinator":
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self._on_change)
        return self

    def stop(self) -> None:
        """Unsubscribe and drop any pending write."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._cancel_pending()

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    # ---- Triggers ----

    def _on_change(self, doc: NovelDocument) -> None:
        if self._writing_back:
            return
        self._cancel_pending()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, autosave not scheduled")
            return
        self._pending = loop.create_task(self._debounced())

    async def _debounced(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        # A mutation during the write schedules a new timer without cancelling this write
        self._pending = None
        try:
            await self._save(self.store.snapshot())
        except Exception as e:
            logger.warning("Autosave failed: %s", e)

    async def save_now(self) -> Optional[int]:
        """Write immediately, cancelling any pending debounced write.

        Returns:
            The document id, or None for an untitled document.

        Raises:
            PersistenceError: If the write fails.
        """
        self._cancel_pending()
        return await self._save(self.store.snapshot())

    async def flush(self) -> None:
        """Run a pending debounced write now (failures are logged)."""
        if not self.pending:
            return
        self._cancel_pending()
        try:
            await self._save(self.store.snapshot())
        except Exception as e:
            logger.warning("Autosave failed: %s", e)

    # ---- Internals ----

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _save(self, doc: NovelDocument) -> Optional[int]:
        if not doc.title.strip():
            logger.debug("Save skipped: document has no title")
            return None

        novel_id = await asyncio.to_thread(self.persistence.save_novel, doc)
        self.save_count += 1
        saved_at = datetime.now()

        self._writing_back = True
        try:
            self.store.update(
                lambda d: replace(d, id=d.id if d.id is not None else novel_id, last_saved=saved_at)
            )
        finally:
            self._writing_back = False

        logger.debug("Novel %d saved", novel_id)
        return novel_id
