"""Writer Agent: chapter prose, length extensions, continuations and chapter summaries."""

import logging
from typing import TYPE_CHECKING, AsyncIterator, Callable, Optional

from agents.base_agent import (
    BaseAgent,
    format_characters,
    language_instruction,
    style_instruction,
)
from config.settings import Settings
from models.chapter import Chapter
from models.character import Character
from models.novel import NovelSettings
from tools.agent_sdk_client import AgentSDKClient
from tools.text_utils import count_words, get_chapter_ending

if TYPE_CHECKING:
    from workflow.cancellation import CancellationToken

logger = logging.getLogger(__name__)

UsageCallback = Callable[[int, int], None]


class WriterAgent(BaseAgent):
    """Builds writing prompts and opens backend streams for chapter prose."""

    def __init__(
        self,
        llm_client: Optional[AgentSDKClient] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(llm_client, settings)
        self._template = self._load_prompt("writer")

    @property
    def system_prompt(self) -> str:
        return self._extract_section(self._template, "System Prompt")

    def build_chapter_prompt(
        self,
        novel: NovelSettings,
        chapter: Chapter,
        summaries: str,
        previous_content: str,
        characters: tuple[Character, ...] = (),
    ) -> str:
        section = self._extract_section(self._template, "Chapter Instructions")
        return section.format(
            chapter_id=chapter.id,
            language=language_instruction(novel),
            premise=novel.premise or "(none)",
            genre=novel.genre or "(unspecified)",
            style=style_instruction(novel),
            summaries=summaries or "(this is the opening chapter)",
            previous_content=previous_content or "(none)",
            chapter_title=chapter.title,
            chapter_summary=chapter.summary or "(free)",
            characters=format_characters(characters),
        )

    def build_extension_prompt(
        self,
        novel: NovelSettings,
        title: str,
        content: str,
        target_words: int,
    ) -> str:
        section = self._extract_section(self._template, "Extension Instructions")
        return section.format(
            chapter_title=title,
            current_words=count_words(content),
            target_words=target_words,
            content_tail=get_chapter_ending(content, self.settings.extension_tail_chars),
            language=language_instruction(novel),
        )

    def stream_chapter(
        self,
        novel: NovelSettings,
        chapter: Chapter,
        summaries: str,
        previous_content: str,
        characters: tuple[Character, ...] = (),
        token: Optional["CancellationToken"] = None,
        on_usage: Optional[UsageCallback] = None,
    ) -> AsyncIterator[str]:
        """Open the initial prose stream for ``chapter``."""
        prompt = self.build_chapter_prompt(novel, chapter, summaries, previous_content, characters)
        logger.info("Streaming chapter %d '%s'", chapter.id, chapter.title)
        return self.llm.generate(
            self.system_prompt, prompt, token=token,
            model=self.settings.llm_model_writing, on_usage=on_usage,
        )

    def stream_extension(
        self,
        novel: NovelSettings,
        title: str,
        content: str,
        target_words: int,
        token: Optional["CancellationToken"] = None,
        on_usage: Optional[UsageCallback] = None,
    ) -> AsyncIterator[str]:
        """Open a "keep writing" stream continuing ``content``."""
        prompt = self.build_extension_prompt(novel, title, content, target_words)
        return self.llm.generate(
            self.system_prompt, prompt, token=token,
            model=self.settings.llm_model_writing, on_usage=on_usage,
        )

    def build_continuation_prompt(
        self,
        novel: NovelSettings,
        title: str,
        content: str,
        characters: tuple[Character, ...] = (),
    ) -> str:
        section = self._extract_section(self._template, "Continue Instructions")
        return section.format(
            chapter_title=title,
            language=language_instruction(novel),
            style=style_instruction(novel),
            characters=format_characters(characters),
            content_tail=get_chapter_ending(content, self.settings.extension_tail_chars),
        )

    def stream_continuation(
        self,
        novel: NovelSettings,
        title: str,
        content: str,
        characters: tuple[Character, ...] = (),
        token: Optional["CancellationToken"] = None,
        on_usage: Optional[UsageCallback] = None,
    ) -> AsyncIterator[str]:
        """Open a user-requested "write the next scene" stream after ``content``."""
        prompt = self.build_continuation_prompt(novel, title, content, characters)
        logger.info("Continuing '%s' from %d words", title, count_words(content))
        return self.llm.generate(
            self.system_prompt, prompt, token=token,
            model=self.settings.llm_model_writing, on_usage=on_usage,
        )

    async def summarize(self, content: str, on_usage: Optional[UsageCallback] = None) -> str:
        """Summarize finished chapter content in a few sentences.

        Raises:
            LLMError: If the backend call fails.
        """
        section = self._extract_section(self._template, "Summary Instructions")
        prompt = section.format(content=content[:self.settings.summary_input_chars])
        summary = await self.llm.complete(
            self.system_prompt, prompt,
            model=self.settings.llm_model_summary, on_usage=on_usage,
        )
        return summary.strip()
