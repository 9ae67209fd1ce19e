"""Configuration settings loaded from .env file."""

from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings, loaded from .env file.

    Authentication for the generation backend is handled by the Claude
    Agent SDK (via the Claude Code CLI), so no API key lives here.
    Timing values are in seconds.
    """

    # LLM models, one per call family
    llm_model_writing: str = "claude-opus-4-6"    # chapter stream + extension
    llm_model_summary: str = "claude-haiku-4-5"   # chapter re-summarization
    llm_model_planning: str = "claude-opus-4-6"   # outline, cast, consistency
    llm_stream_partial: bool = True               # token-level deltas while streaming

    # Database
    sqlite_db_path: Path = Path("./data/novels.db")

    # Context window
    context_max_chars: int = 12000
    extension_tail_chars: int = 2000
    summary_input_chars: int = 10000
    consistency_input_chars: int = 8000
    grammar_input_chars: int = 5000
    coherence_snippet_chars: int = 200

    # Length targets (words, or characters for CJK text)
    default_chapter_words: int = 3000
    min_chapter_words: int = 1500
    short_story_words: int = 5000
    extension_max_loops: int = 5

    # Batch pacing and retry
    inter_chapter_delay: float = 5.0
    rate_limit_backoff: float = 60.0
    network_backoff: float = 10.0
    batch_max_retries: int = 1

    # Autosave
    autosave_debounce: float = 3.0

    # Logging
    log_dir: Path = Path("./data/logs")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @field_validator("extension_max_loops", "batch_max_retries")
    @classmethod
    def validate_non_negative_counts(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Loop and retry counts must be non-negative")
        return v

    @field_validator(
        "context_max_chars", "extension_tail_chars",
        "summary_input_chars", "consistency_input_chars",
        "grammar_input_chars", "coherence_snippet_chars",
    )
    @classmethod
    def validate_char_budgets(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Character budget must be >= 1")
        return v

    @field_validator("inter_chapter_delay", "rate_limit_backoff", "network_backoff", "autosave_debounce")
    @classmethod
    def validate_delays(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Delay must be non-negative")
        return v

    @field_validator("sqlite_db_path", "log_dir")
    @classmethod
    def ensure_parent_dirs(cls, v: Path) -> Path:
        v.parent.mkdir(parents=True, exist_ok=True)
        return v

    @model_validator(mode="after")
    def validate_word_targets(self) -> "Settings":
        if self.min_chapter_words > self.default_chapter_words:
            raise ValueError(
                f"min_chapter_words ({self.min_chapter_words}) must not exceed "
                f"default_chapter_words ({self.default_chapter_words})"
            )
        return self


_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
