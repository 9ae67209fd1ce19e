"""Consistency Agent: checks chapter prose against the cast and repairs it."""

import logging
from typing import Iterable, Optional

from agents.base_agent import BaseAgent, format_characters, language_instruction
from config.settings import Settings
from models.chapter import Chapter
from models.character import Character
from models.novel import NovelSettings
from tools.agent_sdk_client import AgentSDKClient

logger = logging.getLogger(__name__)

CONSISTENT = "Consistent"


def is_consistent(analysis: Optional[str]) -> bool:
    """True when an analysis reports no issues."""
    if not analysis:
        return False
    return analysis.strip().rstrip(".").lower() == CONSISTENT.lower()


class ConsistencyAgent(BaseAgent):
    """Continuity review of single chapters and of the whole book."""

    def __init__(
        self,
        llm_client: Optional[AgentSDKClient] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(llm_client, settings)
        self._template = self._load_prompt("consistency")

    def _system_prompt(self, novel: NovelSettings) -> str:
        return self._extract_section(self._template, "System Prompt") + "\n" + language_instruction(novel)

    async def check_chapter(
        self,
        content: str,
        characters: Iterable[Character],
        novel: NovelSettings,
        on_usage=None,
    ) -> str:
        """Return the analysis text, ``"Consistent"`` when nothing is wrong."""
        section = self._extract_section(self._template, "Check Instructions")
        prompt = section.format(
            characters=format_characters(characters),
            content=content[:self.settings.consistency_input_chars],
        )
        analysis = (await self.llm.complete(
            self._system_prompt(novel), prompt,
            model=self.settings.llm_model_planning, on_usage=on_usage,
        )).strip()
        logger.info("Consistency check: %s", "clean" if is_consistent(analysis) else "issues found")
        return analysis or CONSISTENT

    async def fix_chapter(
        self,
        content: str,
        characters: Iterable[Character],
        analysis: str,
        novel: NovelSettings,
        on_usage=None,
    ) -> str:
        """Rewrite ``content`` so the issues in ``analysis`` are resolved.

        An empty reply keeps the original content.
        """
        section = self._extract_section(self._template, "Fix Instructions")
        prompt = section.format(
            characters=format_characters(characters),
            analysis=analysis,
            content=content,
        )
        fixed = (await self.llm.complete(
            self._system_prompt(novel), prompt,
            model=self.settings.llm_model_writing, on_usage=on_usage,
        )).strip()
        if not fixed:
            logger.warning("Consistency fix returned no content, keeping original")
            return content
        return fixed

    def build_sequence(self, chapters: Iterable[Chapter]) -> str:
        """One block per chapter: volume, title, summary and an opening snippet."""
        blocks = []
        for c in chapters:
            lines = [
                f"[Chapter {c.id}] (Volume: {c.volume_title or '1'})",
                f"Title: {c.title}",
                f"Summary: {c.summary or 'Content not generated yet'}",
            ]
            if c.content:
                lines.append(f"Snippet: {c.content[:self.settings.coherence_snippet_chars]}...")
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)

    async def analyze_coherence(
        self,
        chapters: Iterable[Chapter],
        characters: Iterable[Character],
        novel: NovelSettings,
        on_usage=None,
    ) -> str:
        """Whole-book coherence report over the outline and opening snippets.

        Raises:
            LLMError: If the backend call fails.
        """
        section = self._extract_section(self._template, "Coherence Instructions")
        prompt = section.format(
            title=novel.title,
            premise=novel.premise or "(none)",
            characters=format_characters(characters),
            sequence=self.build_sequence(chapters),
        )
        report = (await self.llm.complete(
            self._system_prompt(novel), prompt,
            model=self.settings.llm_model_planning, on_usage=on_usage,
        )).strip()
        return report or "Analysis failed."
