"""Stream consumer: accumulates backend fragments and publishes progress."""

import logging
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING, Any, AsyncIterator, Callable, Optional, Protocol, runtime_checkable,
)

if TYPE_CHECKING:
    from workflow.cancellation import CancellationToken

logger = logging.getLogger(__name__)

UsageCallback = Callable[[int, int], None]
UpdateCallback = Callable[[str], None]


@runtime_checkable
class GenerationBackend(Protocol):
    """What the orchestration core needs from a text-generation service.

    ``tools.agent_sdk_client.AgentSDKClient`` is the production
    implementation; tests script their own.
    """

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        token: Optional["CancellationToken"] = None,
        model: Optional[str] = None,
        on_usage: Optional[UsageCallback] = None,
    ) -> AsyncIterator[str]:
        """Lazy, finite, non-restartable sequence of text fragments."""
        ...

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: Optional[str] = None,
        on_usage: Optional[UsageCallback] = None,
    ) -> str:
        ...

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        model: Optional[str] = None,
        on_usage: Optional[UsageCallback] = None,
    ) -> Any:
        ...


@dataclass(frozen=True)
class StreamResult:
    text: str
    cancelled: bool = False
    fragments: int = 0


async def _close(fragments: AsyncIterator[str]) -> None:
    aclose = getattr(fragments, "aclose", None)
    if aclose is not None:
        await aclose()


async def consume_stream(
    fragments: AsyncIterator[str],
    token: "CancellationToken",
    on_update: Optional[UpdateCallback] = None,
    prefix: str = "",
) -> StreamResult:
    """Drain ``fragments`` into a buffer that starts as ``prefix``.

    ``on_update`` receives the whole accumulated text after every fragment.
    Fragments arriving after ``token`` is cancelled are dropped and the
    stream is closed; that is a normal return with ``cancelled=True``.
    Backend errors propagate unchanged.
    """
    text = prefix
    count = 0
    try:
        async for fragment in fragments:
            if token.cancelled:
                break
            if not fragment:
                continue
            text += fragment
            count += 1
            if on_update is not None:
                on_update(text)
    finally:
        await _close(fragments)

    if token.cancelled:
        logger.debug("Stream stopped by cancellation after %d fragments", count)
    return StreamResult(text=text, cancelled=token.cancelled, fragments=count)
