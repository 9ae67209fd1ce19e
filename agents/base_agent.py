"""Base agent class with common prompt utilities."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional

from config.settings import Settings
from models.character import Character
from models.enums import Language
from models.novel import NovelSettings
from tools.agent_sdk_client import AgentSDKClient

logger = logging.getLogger(__name__)

_PROMPTS_DIR = Path(__file__).parent.parent / "config" / "prompts"

_LANGUAGE_INSTRUCTIONS = {
    Language.ZH: "OUTPUT LANGUAGE: Chinese (Simplified).",
    Language.EN: "OUTPUT LANGUAGE: English.",
}


@lru_cache(maxsize=32)
def _read_prompt_file(path: str) -> str:
    """Read and cache a prompt file by absolute path string."""
    return Path(path).read_text(encoding="utf-8")


def language_instruction(novel: NovelSettings) -> str:
    return _LANGUAGE_INSTRUCTIONS.get(novel.language, _LANGUAGE_INSTRUCTIONS[Language.EN])


def style_instruction(novel: NovelSettings) -> str:
    """Comma-joined style knobs, skipping the ones left blank."""
    parts = [novel.writing_style, novel.narrative_perspective, novel.writing_tone, novel.pacing]
    return ", ".join(p for p in parts if p) or "natural"


def format_characters(characters: Iterable[Character]) -> str:
    lines = [f"- {c.name} ({c.role}): {c.description}" for c in characters]
    return "\n".join(lines) or "(none)"


class BaseAgent:
    """Base class for all agents driving the generation backend.

    ``llm_client`` is any object with the backend surface of
    ``AgentSDKClient`` (``generate``, ``complete``, ``complete_json``).
    """

    def __init__(
        self,
        llm_client: Optional[AgentSDKClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or Settings()
        self.llm = llm_client or AgentSDKClient(self.settings)

    def _load_prompt(self, template_name: str) -> str:
        """Load a prompt template from config/prompts/ (cached after first read).

        Args:
            template_name: Filename without extension, e.g. 'writer'.

        Returns:
            The prompt template text.
        """
        path = _PROMPTS_DIR / f"{template_name}.md"
        if not path.exists():
            raise FileNotFoundError(f"Prompt template not found: {path}")
        return _read_prompt_file(str(path))

    def _extract_section(self, template: str, section_header: str) -> str:
        """Extract a specific section from a prompt template.

        Sections are delimited by '## ' headers in the markdown.
        """
        lines = template.split("\n")
        capturing = False
        result = []
        for line in lines:
            if line.strip().startswith("## ") and section_header in line:
                capturing = True
                continue
            elif line.strip().startswith("## ") and capturing:
                break
            elif capturing:
                result.append(line)
        return "\n".join(result).strip()
