"""Custom exception hierarchy for the generation pipeline."""

from typing import Optional


class NovelAgentError(Exception):
    """Base exception for all novelloom errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# ---- LLM Errors ----

class LLMError(NovelAgentError):
    """Base exception for generation backend errors."""


class LLMRateLimitError(LLMError):
    """Backend rate limit or quota exceeded."""

    def __init__(self, message: str = "API rate limit exceeded", retry_after: Optional[float] = None):
        details = {}
        if retry_after is not None:
            details["retry_after"] = retry_after
        super().__init__(message, details)
        self.retry_after = retry_after


class LLMTimeoutError(LLMError):
    """Backend request timed out."""


class LLMNetworkError(LLMError):
    """Transient network or server-side failure (connection reset, 5xx, overloaded)."""


class LLMContentPolicyError(LLMError):
    """Backend refused the request on safety/content-policy grounds."""


class LLMResponseParseError(LLMError):
    """Failed to parse backend response."""

    def __init__(self, message: str = "Failed to parse LLM response", raw_response: str = ""):
        details = {"raw_response": raw_response[:200]} if raw_response else {}
        super().__init__(message, details)
        self.raw_response = raw_response


# ---- Persistence Errors ----

class DatabaseError(NovelAgentError):
    """Database operation failed."""


class PersistenceError(DatabaseError):
    """Saving or loading a novel document failed."""


# ---- Workflow Errors ----

class WorkflowError(NovelAgentError):
    """Base exception for generation orchestration errors."""


class WorkflowStateError(WorkflowError):
    """Invalid or missing document state for the requested operation."""


class ChapterStateError(WorkflowStateError):
    """Chapter is not in a state that allows the requested operation."""

    def __init__(self, chapter_id: int, message: str = ""):
        super().__init__(
            message or f"Chapter {chapter_id} cannot be generated in its current state",
            {"chapter_id": chapter_id},
        )
        self.chapter_id = chapter_id


class ChapterGenerationError(WorkflowError):
    """Generation of one chapter failed; raised once to the caller."""

    def __init__(self, chapter_id: int, kind: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"Generation stopped at chapter {chapter_id}: {cause}" if cause else
            f"Generation stopped at chapter {chapter_id}",
            {"chapter_id": chapter_id, "kind": kind},
        )
        self.chapter_id = chapter_id
        self.kind = kind
        self.cause = cause


class GenerationCancelled(WorkflowError):
    """The active operation was cancelled by the user. Not a failure."""

    def __init__(self, message: str = "Generation cancelled"):
        super().__init__(message)


# ---- Validation Errors ----

class ValidationError(NovelAgentError):
    """Input validation failed."""


class InvalidConfigError(ValidationError):
    """Configuration value is invalid."""
