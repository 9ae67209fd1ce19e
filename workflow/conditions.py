"""Conditional routing functions for the chapter generation graph."""

from workflow.state import ChapterGenerationState


def route_after_stream(state: ChapterGenerationState) -> str:
    """Route after the initial stream: cancelled -> end, otherwise extend."""
    if state.get("cancelled"):
        return "__end__"
    return "extend"


def route_after_extend(state: ChapterGenerationState) -> str:
    """Route after the extension loop: cancelled -> end, otherwise summarize.

    An under-length chapter still goes on to be summarized; the loop cap
    is a soft limit.
    """
    if state.get("cancelled"):
        return "__end__"
    return "summarize"


def route_after_summarize(state: ChapterGenerationState) -> str:
    """Route after summarization: cancelled -> end, otherwise finalize."""
    if state.get("cancelled"):
        return "__end__"
    return "finalize"
