"""Enumerations for document and generation status tracking."""

from enum import Enum


class NovelStatus(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    READY = "ready"


class NovelType(str, Enum):
    LONG = "long"
    SHORT = "short"


class Language(str, Enum):
    ZH = "zh"
    EN = "en"


class GenerationPhase(str, Enum):
    IDLE = "idle"
    STREAMING_INITIAL = "streaming_initial"
    EXTENDING = "extending"
    SUMMARIZING = "summarizing"
    DONE = "done"
    ABORTED = "aborted"
    FAILED = "failed"


class BatchStepStatus(str, Enum):
    FOLDED = "folded"        # already done, added to context
    STARTED = "started"
    RETRYING = "retrying"
    GENERATED = "generated"
    SKIPPED = "skipped"      # content-policy rejection, flagged
    FAILED = "failed"
