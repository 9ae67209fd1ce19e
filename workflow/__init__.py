"""Workflow package: chapter graph, batch sequencer, cancellation, state and autosave."""

from workflow.cancellation import CancellationToken, OperationGuard
from workflow.store import NovelStore
from workflow.context import ChapterContext, RollingContext, build_context
from workflow.stream import GenerationBackend, StreamResult, consume_stream
from workflow.extension import ExtensionResult, extend_to_target
from workflow.retry import ErrorKind, RetryPolicy, classify_error
from workflow.state import ChapterGenerationState
from workflow.conditions import (
    route_after_stream,
    route_after_extend,
    route_after_summarize,
)
from workflow.callbacks import (
    GenerationCallback,
    NullCallback,
    LoggingCallback,
    RichProgressCallback,
)
from workflow.chapter_graph import ChapterGenerator, ChapterResult, resolve_target_words
from workflow.batch import BatchResult, BatchSequencer
from workflow.autosave import AutosaveCoordinator
from workflow.orchestrator import NovelOrchestrator

__all__ = [
    "CancellationToken",
    "OperationGuard",
    "NovelStore",
    "ChapterContext",
    "RollingContext",
    "build_context",
    "GenerationBackend",
    "StreamResult",
    "consume_stream",
    "ExtensionResult",
    "extend_to_target",
    "ErrorKind",
    "RetryPolicy",
    "classify_error",
    "ChapterGenerationState",
    "route_after_stream",
    "route_after_extend",
    "route_after_summarize",
    "GenerationCallback",
    "NullCallback",
    "LoggingCallback",
    "RichProgressCallback",
    "ChapterGenerator",
    "ChapterResult",
    "resolve_target_words",
    "BatchResult",
    "BatchSequencer",
    "AutosaveCoordinator",
    "NovelOrchestrator",
]
