"""Error classification and the retry/backoff policy shared by all generation paths."""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, TypeVar

from config.exceptions import (
    GenerationCancelled,
    LLMContentPolicyError,
    LLMNetworkError,
    LLMRateLimitError,
    LLMResponseParseError,
    LLMTimeoutError,
)
from config.settings import Settings
from tools.agent_sdk_client import (
    CONTENT_POLICY_MARKERS,
    NETWORK_MARKERS,
    RATE_LIMIT_MARKERS,
    has_marker,
)

if TYPE_CHECKING:
    from workflow.cancellation import CancellationToken

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(str, Enum):
    CANCELLED = "cancelled"
    CONTENT_POLICY = "content_policy"
    RATE_LIMITED = "rate_limited"
    TRANSIENT_NETWORK = "transient_network"
    OTHER = "other"


_RETRYABLE = frozenset({ErrorKind.RATE_LIMITED, ErrorKind.TRANSIENT_NETWORK})


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception to an :class:`ErrorKind`.

    Typed backend errors win; anything else is classified by markers in
    its message.
    """
    if isinstance(exc, (GenerationCancelled, asyncio.CancelledError)):
        return ErrorKind.CANCELLED
    if isinstance(exc, LLMContentPolicyError):
        return ErrorKind.CONTENT_POLICY
    if isinstance(exc, LLMRateLimitError):
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, (LLMNetworkError, LLMTimeoutError, ConnectionError, TimeoutError)):
        return ErrorKind.TRANSIENT_NETWORK
    if isinstance(exc, LLMResponseParseError):
        return ErrorKind.OTHER

    message = str(exc)
    if has_marker(message, CONTENT_POLICY_MARKERS):
        return ErrorKind.CONTENT_POLICY
    if has_marker(message, RATE_LIMIT_MARKERS):
        return ErrorKind.RATE_LIMITED
    if has_marker(message, NETWORK_MARKERS):
        return ErrorKind.TRANSIENT_NETWORK
    return ErrorKind.OTHER


# (error, kind, retry_number, delay_seconds)
RetryCallback = Callable[[BaseException, ErrorKind, int, float], None]


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry, and how long to wait, per error class.

    Only rate-limit and transient-network errors are retried. The backoff
    is fixed per class.
    """
    max_retries: int = 1
    rate_limit_backoff: float = 60.0
    network_backoff: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings, max_retries: Optional[int] = None) -> "RetryPolicy":
        return cls(
            max_retries=settings.batch_max_retries if max_retries is None else max_retries,
            rate_limit_backoff=settings.rate_limit_backoff,
            network_backoff=settings.network_backoff,
        )

    def is_retryable(self, kind: ErrorKind) -> bool:
        return kind in _RETRYABLE

    def backoff_for(self, kind: ErrorKind, attempt: int = 0) -> float:
        if kind is ErrorKind.RATE_LIMITED:
            return self.rate_limit_backoff
        if kind is ErrorKind.TRANSIENT_NETWORK:
            return self.network_backoff
        return 0.0

    async def run(
        self,
        operation: Callable[[int], Awaitable[T]],
        token: "CancellationToken",
        on_retry: Optional[RetryCallback] = None,
    ) -> T:
        """Await ``operation(attempt)`` until it succeeds or the budget is spent.

        Raises:
            GenerationCancelled: If the token is cancelled before an attempt
                or during a backoff.
            Exception: The last error, when it is not retryable or no
                retries are left.
        """
        attempt = 0
        while True:
            token.raise_if_cancelled()
            try:
                return await operation(attempt)
            except Exception as exc:
                kind = classify_error(exc)
                if not self.is_retryable(kind) or attempt >= self.max_retries:
                    raise
                delay = self.backoff_for(kind, attempt)
                attempt += 1
                logger.warning(
                    "%s error, retry %d/%d in %.0fs: %s",
                    kind.value, attempt, self.max_retries, delay, exc,
                )
                if on_retry is not None:
                    on_retry(exc, kind, attempt, delay)
                if not await token.sleep(delay):
                    raise GenerationCancelled() from exc
