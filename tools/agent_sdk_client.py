"""Claude Agent SDK adapter: the streaming text-generation backend."""

import logging
import os
import re
from typing import TYPE_CHECKING, AsyncIterator, Callable, Optional

from claude_agent_sdk import (
    query,
    ClaudeAgentOptions,
    ResultMessage,
    AssistantMessage,
)

from config.exceptions import (
    LLMError,
    LLMContentPolicyError,
    LLMNetworkError,
    LLMRateLimitError,
    LLMResponseParseError,
    LLMTimeoutError,
)
from config.settings import Settings
from tools.json_parsing import parse_json_response

if TYPE_CHECKING:
    from workflow.cancellation import CancellationToken

logger = logging.getLogger(__name__)

# Allow launching Agent SDK even when running inside a Claude Code session.
# The SDK checks for this env var and refuses to start if set.
os.environ.pop("CLAUDECODE", None)

UsageCallback = Callable[[int, int], None]

# Patterns (matched case-insensitively) used to classify backend failures.
# Status codes must stand alone so "1500 tokens" is not read as HTTP 500.
RATE_LIMIT_MARKERS = re.compile(r"\b429\b|quota|resource_exhausted|rate[ _]limit", re.IGNORECASE)
CONTENT_POLICY_MARKERS = re.compile(
    r"content[ _]safety|inappropriate content|data_inspection_failed|safety|content[ _]policy",
    re.IGNORECASE,
)
NETWORK_MARKERS = re.compile(
    r"\b50[0-4]\b|overloaded|server_error|failed to fetch|fetch failed|networkerror"
    r"|connection (?:reset|refused|aborted|closed|error)|econn(?:reset|refused)|timed out|timeout",
    re.IGNORECASE,
)

# AssistantMessage.error values reported by the SDK
_MESSAGE_ERRORS = {
    "rate_limit": LLMRateLimitError,
    "server_error": LLMNetworkError,
}


def has_marker(message: str, markers: re.Pattern) -> bool:
    return markers.search(message) is not None


def error_from_message(message: str) -> LLMError:
    """Build the most specific LLMError for a raw backend failure message."""
    if has_marker(message, CONTENT_POLICY_MARKERS):
        return LLMContentPolicyError(message)
    if has_marker(message, RATE_LIMIT_MARKERS):
        return LLMRateLimitError(message)
    if "timed out" in message.lower() or "timeout" in message.lower():
        return LLMTimeoutError(message)
    if has_marker(message, NETWORK_MARKERS):
        return LLMNetworkError(message)
    return LLMError(message)


def _wrap_error(e: Exception) -> LLMError:
    if isinstance(e, LLMError):
        return e
    err = error_from_message(f"Agent SDK query failed: {e}")
    err.__cause__ = e
    return err


def _report_usage(message: ResultMessage, on_usage: Optional[UsageCallback]) -> None:
    usage = getattr(message, "usage", None) or {}
    input_tokens = int(usage.get("input_tokens", 0) or 0)
    output_tokens = int(usage.get("output_tokens", 0) or 0)
    logger.debug(
        "AgentSDK usage: in=%d out=%d cost=$%s",
        input_tokens, output_tokens, getattr(message, "total_cost_usd", None),
    )
    if on_usage and (input_tokens or output_tokens):
        on_usage(input_tokens, output_tokens)


def _partial_text(message) -> Optional[str]:
    """Text delta carried by a partial stream event, if any."""
    event = getattr(message, "event", None)
    if not isinstance(event, dict) or event.get("type") != "content_block_delta":
        return None
    delta = event.get("delta") or {}
    if delta.get("type") == "text_delta":
        return delta.get("text") or None
    return None


def _assistant_text(message: AssistantMessage) -> str:
    error = getattr(message, "error", None)
    if error:
        raise _MESSAGE_ERRORS.get(error, LLMError)(f"Backend reported error: {error}")
    parts = []
    for block in message.content:
        text = getattr(block, "text", None)
        if text:
            parts.append(text)
    return "".join(parts)


class AgentSDKClient:
    """Claude Agent SDK wrapper exposing ``generate`` (streaming) and ``complete``.

    Uses claude_agent_sdk.query() for all calls. Authentication is handled
    automatically by the Claude Code CLI. Every failure leaves this class as
    a classified LLMError subclass.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.total_calls = 0

    def _options(self, system_prompt: str, model: str, partial: bool = False) -> ClaudeAgentOptions:
        kwargs = {
            "system_prompt": system_prompt,
            "model": model,
            "max_turns": 1,
        }
        if partial:
            kwargs["include_partial_messages"] = True
        return ClaudeAgentOptions(**kwargs)

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        token: Optional["CancellationToken"] = None,
        model: Optional[str] = None,
        on_usage: Optional[UsageCallback] = None,
    ) -> AsyncIterator[str]:
        """Stream text fragments for one request.

        Stops quietly once ``token`` is cancelled. The underlying query
        generator is always closed here, in the calling task, so its anyio
        cancel scope is exited where it was entered.

        Raises:
            LLMError: (or a subclass) if the backend fails.
        """
        model = model or self.settings.llm_model_writing
        partial = self.settings.llm_stream_partial
        self.total_calls += 1
        logger.debug("AgentSDK stream: model=%s, partial=%s", model, partial)

        stream = query(prompt=user_prompt, options=self._options(system_prompt, model, partial))
        streamed_partial = False
        try:
            async for message in stream:
                if token is not None and token.cancelled:
                    logger.debug("AgentSDK stream cancelled")
                    return
                if isinstance(message, ResultMessage):
                    if message.is_error:
                        raise error_from_message(message.result or "Backend returned an error result")
                    _report_usage(message, on_usage)
                    continue
                if isinstance(message, AssistantMessage):
                    text = _assistant_text(message)
                    # With partial messages on, the full message repeats the deltas
                    if text and not streamed_partial:
                        yield text
                    continue
                delta = _partial_text(message)
                if delta:
                    streamed_partial = True
                    yield delta
        except LLMError:
            raise
        except Exception as e:
            raise _wrap_error(e) from e
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: Optional[str] = None,
        on_usage: Optional[UsageCallback] = None,
    ) -> str:
        """Send a request and return the whole text result.

        Raises:
            LLMError: (or a subclass) if the query fails.
        """
        model = model or self.settings.llm_model_planning
        self.total_calls += 1
        logger.debug("AgentSDK call: model=%s", model)

        result_text = ""
        fallback_text = ""
        try:
            # Exhaust the generator fully: exiting early from inside query()
            # trips its anyio cancel scope.
            async for message in query(
                prompt=user_prompt,
                options=self._options(system_prompt, model),
            ):
                if isinstance(message, ResultMessage):
                    if message.is_error:
                        raise error_from_message(message.result or "Backend returned an error result")
                    result_text = message.result or ""
                    _report_usage(message, on_usage)
                elif isinstance(message, AssistantMessage) and not fallback_text:
                    fallback_text = _assistant_text(message)
        except LLMError:
            raise
        except Exception as e:
            raise _wrap_error(e) from e

        result_text = result_text or fallback_text
        if not result_text:
            logger.warning("AgentSDK returned no content")
        return result_text

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        model: Optional[str] = None,
        on_usage: Optional[UsageCallback] = None,
    ):
        """Send a request and parse the response as JSON.

        Raises:
            LLMResponseParseError: If response cannot be parsed as JSON.
        """
        text = await self.complete(system_prompt, user_prompt, model, on_usage)
        try:
            return parse_json_response(text)
        except ValueError as e:
            raise LLMResponseParseError(str(e), raw_response=text) from e
