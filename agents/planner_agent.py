"""Planner Agent: chapter outline and character cast for a new novel."""

import logging
from typing import Optional

from agents.base_agent import BaseAgent, language_instruction
from config.exceptions import LLMResponseParseError
from config.settings import Settings
from models.chapter import Chapter
from models.character import Character
from models.novel import NovelSettings
from tools.agent_sdk_client import AgentSDKClient
from tools.json_parsing import extract_list

logger = logging.getLogger(__name__)


def _optional_int(value) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _outline_to_chapters(items: list[dict], chapter_count: int) -> list[Chapter]:
    """Turn outline entries into empty chapters with unique ascending ids.

    Missing or duplicate ids fall back to the entry's position.
    """
    chapters: dict[int, Chapter] = {}
    for position, item in enumerate(items, start=1):
        chapter_id = _optional_int(item.get("id")) or position
        if chapter_id in chapters:
            chapter_id = position
        if chapter_id in chapters:
            continue
        chapters[chapter_id] = Chapter(
            id=chapter_id,
            title=str(item.get("title") or f"Chapter {chapter_id}"),
            summary=str(item.get("summary") or ""),
            volume_id=_optional_int(item.get("volume_id")),
            volume_title=item.get("volume_title") or None,
        )
    ordered = [chapters[k] for k in sorted(chapters)]
    if chapter_count > 0:
        ordered = ordered[:chapter_count]
    return ordered


class PlannerAgent(BaseAgent):
    """Requests the outline and the cast as JSON from the backend."""

    def __init__(
        self,
        llm_client: Optional[AgentSDKClient] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(llm_client, settings)
        self._template = self._load_prompt("planner")

    @property
    def system_prompt(self) -> str:
        return self._extract_section(self._template, "System Prompt")

    async def generate_outline(self, novel: NovelSettings, on_usage=None) -> list[Chapter]:
        """Plan the chapter outline.

        Returns:
            Empty, not-done chapters sorted by id.

        Raises:
            LLMError: If the backend call fails.
            LLMResponseParseError: If no chapters can be read from the reply.
        """
        section = self._extract_section(self._template, "Outline Instructions")
        prompt = section.format(
            language=language_instruction(novel),
            title=novel.title,
            premise=novel.premise or "(none)",
            genre=novel.genre or "(unspecified)",
            novel_type=novel.novel_type.value,
            chapter_count=novel.chapter_count,
            world_setting=novel.world_setting or "(none)",
        )

        logger.info("Planning outline for '%s' (%d chapters)", novel.title, novel.chapter_count)
        payload = await self.llm.complete_json(
            self.system_prompt, prompt,
            model=self.settings.llm_model_planning, on_usage=on_usage,
        )
        chapters = _outline_to_chapters(extract_list(payload, "chapters"), novel.chapter_count)
        if not chapters:
            raise LLMResponseParseError("Outline response contained no chapters", raw_response=str(payload))

        logger.info("Outline planned: %d chapters", len(chapters))
        return chapters

    async def generate_characters(self, novel: NovelSettings, on_usage=None) -> list[Character]:
        """Design the main cast.

        Raises:
            LLMError: If the backend call fails.
        """
        section = self._extract_section(self._template, "Character Instructions")
        prompt = section.format(
            language=language_instruction(novel),
            title=novel.title,
            premise=novel.premise or "(none)",
            genre=novel.genre or "(unspecified)",
            world_setting=novel.world_setting or "(none)",
        )

        payload = await self.llm.complete_json(
            self.system_prompt, prompt,
            model=self.settings.llm_model_planning, on_usage=on_usage,
        )
        characters = [
            Character.from_dict(item)
            for item in extract_list(payload, "characters")
            if item.get("name")
        ]
        logger.info("Cast designed: %d characters", len(characters))
        return characters
