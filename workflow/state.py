"""LangGraph state for the single-chapter generation graph."""

from typing import TypedDict


class ChapterGenerationState(TypedDict, total=False):
    """State carried between the chapter graph nodes.

    Fields are grouped logically:
    - Identity: chapter_id, title, force
    - Context: summaries, previous_content
    - Length: target_words, word_count, iterations, reached_target
    - Output: content, summary, summary_updated
    - Control: phase, cancelled

    Live objects (cancellation token) travel in the run config, not here.
    """

    # Identity
    chapter_id: int
    title: str
    force: bool

    # Context (built from chapters strictly before chapter_id)
    summaries: str
    previous_content: str

    # Length tracking
    target_words: int
    word_count: int
    iterations: int
    reached_target: bool

    # Output
    content: str
    summary: str
    summary_updated: bool

    # Control flow
    phase: str  # GenerationPhase value
    cancelled: bool
