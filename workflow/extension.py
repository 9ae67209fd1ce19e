"""Extension loop: keep asking the backend to continue until a length target."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncIterator, Callable, Optional

from tools.text_utils import count_words
from workflow.context import CONTENT_SEPARATOR
from workflow.stream import UpdateCallback, consume_stream

if TYPE_CHECKING:
    from workflow.cancellation import CancellationToken

logger = logging.getLogger(__name__)

DEFAULT_MAX_LOOPS = 5

# (title, current_content, target_words) -> continuation fragments
ContinuationStream = Callable[[str, str, int], AsyncIterator[str]]


@dataclass(frozen=True)
class ExtensionResult:
    content: str
    word_count: int
    iterations: int
    reached_target: bool
    cancelled: bool = False


async def extend_to_target(
    content: str,
    title: str,
    target_words: int,
    *,
    backend_stream: ContinuationStream,
    token: "CancellationToken",
    on_update: Optional[UpdateCallback] = None,
    max_loops: int = DEFAULT_MAX_LOOPS,
) -> ExtensionResult:
    """Extend ``content`` until it has ``target_words`` or ``max_loops`` calls ran.

    Each continuation is joined with a paragraph break. A continuation that
    yields nothing leaves the content untouched, so the result is never
    shorter than the input. Hitting the loop cap is not an error.

    Raises:
        LLMError: Whatever the continuation stream raises.
    """
    word_count = count_words(content)
    iterations = 0

    while word_count < target_words and iterations < max_loops:
        if token.cancelled:
            break
        iterations += 1
        logger.info(
            "Extending '%s': %d/%d words (pass %d/%d)",
            title, word_count, target_words, iterations, max_loops,
        )

        prefix = f"{content}{CONTENT_SEPARATOR}" if content else ""
        result = await consume_stream(
            backend_stream(title, content, target_words),
            token,
            on_update,
            prefix=prefix,
        )
        if result.fragments:
            content = result.text
            word_count = count_words(content)
        if result.cancelled:
            break

    reached = word_count >= target_words
    if not reached and not token.cancelled:
        logger.warning(
            "'%s' stopped at %d/%d words after %d extension passes",
            title, word_count, target_words, iterations,
        )
    return ExtensionResult(
        content=content,
        word_count=word_count,
        iterations=iterations,
        reached_target=reached,
        cancelled=token.cancelled,
    )
