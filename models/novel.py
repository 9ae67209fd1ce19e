"""Novel document data model."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from models.chapter import Chapter
from models.character import Character
from models.enums import Language, NovelStatus, NovelType
from tools.text_utils import count_words

_MANUSCRIPT_SEPARATOR = "\n" + "-" * 50 + "\n\n"


@dataclass(frozen=True)
class NovelSettings:
    """Style, length and story parameters for one document."""
    title: str = ""
    premise: str = ""
    genre: str = ""
    language: Language = Language.EN
    novel_type: NovelType = NovelType.LONG
    target_word_count: int = 60000
    target_chapter_word_count: Optional[int] = None
    chapter_count: int = 20
    writing_tone: str = "Neutral"
    writing_style: str = "Moderate"
    narrative_perspective: str = "Third Person Limited"
    pacing: str = "Moderate"
    world_setting: str = ""


@dataclass(frozen=True)
class UsageStats:
    """Accumulated backend usage. Only ever grows, except on create-new."""
    input_tokens: int = 0
    output_tokens: int = 0

    def add(self, input_tokens: int, output_tokens: int) -> "UsageStats":
        return UsageStats(
            input_tokens=self.input_tokens + max(0, input_tokens),
            output_tokens=self.output_tokens + max(0, output_tokens),
        )


@dataclass(frozen=True)
class NovelDocument:
    """The whole mutable document, replaced as one value on every update."""
    id: Optional[int] = None
    settings: NovelSettings = field(default_factory=NovelSettings)
    chapters: tuple[Chapter, ...] = ()
    characters: tuple[Character, ...] = ()
    current_chapter_id: Optional[int] = None
    status: NovelStatus = NovelStatus.IDLE
    usage: UsageStats = field(default_factory=UsageStats)
    consistency_report: Optional[str] = None
    last_saved: Optional[datetime] = None

    def __post_init__(self):
        # Chapters are kept in identifier order regardless of insertion order
        ordered = tuple(sorted(self.chapters, key=lambda c: c.id))
        if ordered != self.chapters:
            object.__setattr__(self, "chapters", ordered)
        ids = [c.id for c in ordered]
        if len(ids) != len(set(ids)):
            raise ValueError("Chapter ids must be unique")

    @property
    def title(self) -> str:
        return self.settings.title

    def get_chapter(self, chapter_id: int) -> Optional[Chapter]:
        for chapter in self.chapters:
            if chapter.id == chapter_id:
                return chapter
        return None

    def with_chapter(self, chapter: Chapter) -> "NovelDocument":
        """Return a copy with ``chapter`` replacing the one with the same id."""
        chapters = tuple(chapter if c.id == chapter.id else c for c in self.chapters)
        return replace(self, chapters=chapters)

    def pending_chapters(self) -> list[Chapter]:
        return [c for c in self.chapters if not c.is_done]

    def total_words(self) -> int:
        return sum(count_words(c.content) for c in self.chapters)

    def to_manuscript(self) -> str:
        """Plain-text export of the whole book."""
        def heading(chapter: Chapter) -> str:
            if self.settings.language == Language.ZH:
                return f"第 {chapter.id} 章 {chapter.title}"
            return f"Chapter {chapter.id} {chapter.title}"

        body = _MANUSCRIPT_SEPARATOR.join(
            f"{heading(c)}\n\n{c.content}\n" for c in self.chapters
        )
        return f"Title: {self.title}\n\n{body}"
