"""Grammar Agent: proofreading suggestions and direct correction of chapter prose."""

import logging
from typing import Optional

from agents.base_agent import BaseAgent, language_instruction
from config.settings import Settings
from models.chapter import GrammarIssue
from models.novel import NovelSettings
from tools.agent_sdk_client import AgentSDKClient
from tools.json_parsing import extract_list

logger = logging.getLogger(__name__)


class GrammarAgent(BaseAgent):
    """Checks and corrects the opening ``grammar_input_chars`` of a text.

    Longer texts are handled in their first window only; the rest is passed
    through untouched.
    """

    def __init__(
        self,
        llm_client: Optional[AgentSDKClient] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(llm_client, settings)
        self._template = self._load_prompt("grammar")

    def _system_prompt(self, novel: NovelSettings) -> str:
        return self._extract_section(self._template, "System Prompt") + "\n" + language_instruction(novel)

    def _split(self, content: str) -> tuple[str, str]:
        limit = self.settings.grammar_input_chars
        return content[:limit], content[limit:]

    async def check_grammar(self, content: str, novel: NovelSettings, on_usage=None) -> list[GrammarIssue]:
        """List suggested corrections; an empty list means the text is clean.

        Raises:
            LLMError: If the backend call fails.
            LLMResponseParseError: If the reply is not JSON.
        """
        head, _ = self._split(content)
        section = self._extract_section(self._template, "Check Instructions")
        payload = await self.llm.complete_json(
            self._system_prompt(novel), section.format(content=head),
            model=self.settings.llm_model_summary, on_usage=on_usage,
        )
        issues = [
            issue for issue in (GrammarIssue.from_dict(item) for item in extract_list(payload, "issues"))
            if issue is not None
        ]
        logger.info("Grammar check: %d issues", len(issues))
        return issues

    async def correct(self, content: str, novel: NovelSettings, on_usage=None) -> str:
        """Return ``content`` with its checked window corrected.

        An empty reply keeps the original text.
        """
        head, rest = self._split(content)
        section = self._extract_section(self._template, "Correct Instructions")
        corrected = (await self.llm.complete(
            self._system_prompt(novel), section.format(content=head),
            model=self.settings.llm_model_summary, on_usage=on_usage,
        )).strip()
        if not corrected:
            logger.warning("Grammar correction returned no content, keeping original")
            return content
        # Keep the whitespace that separated the window from the untouched remainder
        trailing = head[len(head.rstrip()):]
        return corrected + trailing + rest
