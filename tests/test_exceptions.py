"""Tests for the custom exception hierarchy."""

import pytest
from config.exceptions import (
    NovelAgentError,
    LLMError,
    LLMRateLimitError,
    LLMTimeoutError,
    LLMNetworkError,
    LLMContentPolicyError,
    LLMResponseParseError,
    DatabaseError,
    PersistenceError,
    WorkflowError,
    WorkflowStateError,
    ChapterStateError,
    ChapterGenerationError,
    GenerationCancelled,
    ValidationError,
    InvalidConfigError,
)


class TestExceptionHierarchy:
    def test_all_inherit_from_novel_agent_error(self):
        leaf_classes = [
            LLMError, LLMRateLimitError, LLMTimeoutError, LLMNetworkError,
            LLMContentPolicyError, LLMResponseParseError,
            DatabaseError, PersistenceError,
            WorkflowError, WorkflowStateError, ChapterStateError,
            ChapterGenerationError, GenerationCancelled,
            ValidationError, InvalidConfigError,
        ]
        for cls in leaf_classes:
            assert issubclass(cls, NovelAgentError), f"{cls.__name__} must inherit NovelAgentError"

    def test_llm_subclasses(self):
        for cls in (LLMRateLimitError, LLMTimeoutError, LLMNetworkError,
                    LLMContentPolicyError, LLMResponseParseError):
            assert issubclass(cls, LLMError)

    def test_persistence_is_database_error(self):
        assert issubclass(PersistenceError, DatabaseError)

    def test_workflow_subclasses(self):
        assert issubclass(ChapterStateError, WorkflowStateError)
        assert issubclass(GenerationCancelled, WorkflowError)
        assert not issubclass(GenerationCancelled, LLMError)


class TestExceptionDetails:
    def test_str_without_details(self):
        assert str(NovelAgentError("boom")) == "boom"

    def test_str_with_details(self):
        err = NovelAgentError("boom", {"chapter_id": 3})
        assert str(err) == "boom (chapter_id=3)"

    def test_rate_limit_retry_after(self):
        err = LLMRateLimitError(retry_after=60.0)
        assert err.retry_after == 60.0
        assert "retry_after=60.0" in str(err)

    def test_rate_limit_default_message(self):
        assert LLMRateLimitError().message == "API rate limit exceeded"

    def test_parse_error_truncates_raw_response(self):
        err = LLMResponseParseError(raw_response="x" * 500)
        assert err.raw_response == "x" * 500
        assert len(err.details["raw_response"]) == 200

    def test_chapter_state_error_default_message(self):
        err = ChapterStateError(4)
        assert err.chapter_id == 4
        assert "Chapter 4" in err.message

    def test_chapter_generation_error_keeps_cause(self):
        cause = LLMError("invalid key")
        err = ChapterGenerationError(2, "other", cause)
        assert err.cause is cause
        assert err.kind == "other"
        assert "chapter 2" in err.message

    def test_generation_cancelled_message(self):
        assert str(GenerationCancelled()) == "Generation cancelled"

    def test_can_be_caught_as_base(self):
        with pytest.raises(NovelAgentError):
            raise LLMContentPolicyError("refused")
