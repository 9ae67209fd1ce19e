"""Shared pytest fixtures for the novelloom test suite."""

import pytest
from unittest.mock import MagicMock


class FakeBackend:
    """Scripted stand-in for the generation backend.

    Each ``generate()`` call consumes the next entry of ``streams``. An entry
    is either an exception (raised when the stream is iterated) or a list of
    items: strings are yielded as fragments, exceptions are raised at that
    point, and callables are invoked (e.g. to cancel a token mid-stream).
    ``complete()`` consumes ``completions`` the same way, falling back to
    ``summary``.
    """

    def __init__(self, streams=None, completions=None, json_responses=None, summary="A fresh summary."):
        self.streams = list(streams or [])
        self.completions = list(completions or [])
        self.json_responses = list(json_responses or [])
        self.summary = summary
        self.usage = (10, 20)
        self.generate_prompts: list[str] = []
        self.complete_prompts: list[str] = []
        self.closed_streams = 0

    async def generate(self, system_prompt, user_prompt, token=None, model=None, on_usage=None):
        self.generate_prompts.append(user_prompt)
        script = self.streams.pop(0) if self.streams else []
        try:
            if isinstance(script, BaseException):
                raise script
            for item in script:
                if isinstance(item, BaseException):
                    raise item
                if callable(item):
                    item()
                    continue
                yield item
            if on_usage:
                on_usage(*self.usage)
        finally:
            self.closed_streams += 1

    async def complete(self, system_prompt, user_prompt, model=None, on_usage=None):
        self.complete_prompts.append(user_prompt)
        response = self.completions.pop(0) if self.completions else self.summary
        if isinstance(response, BaseException):
            raise response
        if on_usage:
            on_usage(*self.usage)
        return response

    async def complete_json(self, system_prompt, user_prompt, model=None, on_usage=None):
        self.complete_prompts.append(user_prompt)
        response = self.json_responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        if on_usage:
            on_usage(*self.usage)
        return response


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite database path."""
    return tmp_path / "test_novels.db"


@pytest.fixture
def db(tmp_db_path):
    """Return an initialized Database instance backed by a temp file."""
    from models.database import Database
    return Database(tmp_db_path)


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path):
    """Return Settings with paths in tmp_path and all delays set to zero."""
    from config.settings import Settings
    return Settings(
        _env_file=None,
        sqlite_db_path=tmp_path / "novels.db",
        log_dir=tmp_path / "logs",
        inter_chapter_delay=0,
        rate_limit_backoff=0,
        network_backoff=0,
        autosave_debounce=0.01,
    )


# ---------------------------------------------------------------------------
# Backend / callback fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def backend():
    """Return an empty FakeBackend; tests fill in its scripts."""
    return FakeBackend()


@pytest.fixture
def callback():
    """Return a MagicMock recording every GenerationCallback event."""
    return MagicMock()


# ---------------------------------------------------------------------------
# Sample data fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def novel_settings():
    """Return NovelSettings with a small 30-word chapter target."""
    from models.novel import NovelSettings
    return NovelSettings(
        title="The Salt Lighthouse",
        premise="A keeper hears the sea speak",
        genre="fantasy",
        chapter_count=3,
        target_word_count=90,
        target_chapter_word_count=30,
    )


@pytest.fixture
def sample_document(novel_settings):
    """Return a ready three-chapter document with nothing written yet."""
    from models.chapter import Chapter
    from models.character import Character
    from models.enums import NovelStatus
    from models.novel import NovelDocument
    return NovelDocument(
        settings=novel_settings,
        chapters=(
            Chapter(id=1, title="The Keeper", summary="Mara takes the post."),
            Chapter(id=2, title="The Voice", summary="The sea speaks."),
            Chapter(id=3, title="The Door", summary="A door opens."),
        ),
        characters=(Character(name="Mara", role="protagonist", description="A stubborn keeper"),),
        status=NovelStatus.READY,
    )


@pytest.fixture
def store(sample_document):
    """Return a NovelStore holding the sample document."""
    from workflow.store import NovelStore
    return NovelStore(sample_document)


@pytest.fixture
def token():
    from workflow.cancellation import CancellationToken
    return CancellationToken()


@pytest.fixture
def generator(store, backend, settings, callback):
    """Return a ChapterGenerator wired to the fake backend."""
    from agents.writer_agent import WriterAgent
    from workflow.chapter_graph import ChapterGenerator
    return ChapterGenerator(store, WriterAgent(backend, settings), settings, callback)
