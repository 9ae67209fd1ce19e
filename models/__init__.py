"""Models package: document dataclasses, enums, and the SQLite store."""

from models.database import Database
from models.novel import NovelDocument, NovelSettings, UsageStats
from models.chapter import Chapter, GrammarIssue, SAFETY_SKIP_MARKER
from models.character import Character
from models.enums import (
    NovelStatus,
    NovelType,
    Language,
    GenerationPhase,
    BatchStepStatus,
)

__all__ = [
    "Database",
    "NovelDocument",
    "NovelSettings",
    "UsageStats",
    "Chapter",
    "GrammarIssue",
    "SAFETY_SKIP_MARKER",
    "Character",
    "NovelStatus",
    "NovelType",
    "Language",
    "GenerationPhase",
    "BatchStepStatus",
]
