"""Chapter data model."""

from dataclasses import dataclass
from typing import Optional

# Appended to a chapter's content when the backend refuses it during a batch run
SAFETY_SKIP_MARKER = "[Skipped Safety]"


@dataclass(frozen=True)
class Chapter:
    """One chapter of the manuscript.

    ``id`` is the sequence position and defines document order.
    ``is_generating`` and ``is_done`` are never both set.
    """
    id: int
    title: str = ""
    summary: str = ""
    content: str = ""
    is_generating: bool = False
    is_done: bool = False
    volume_id: Optional[int] = None
    volume_title: Optional[str] = None
    consistency_analysis: Optional[str] = None

    def __post_init__(self):
        if self.is_generating and self.is_done:
            raise ValueError(f"Chapter {self.id} cannot be generating and done at once")


@dataclass(frozen=True)
class GrammarIssue:
    """One correction suggested by a grammar check of chapter prose."""
    original: str
    suggestion: str
    explanation: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> Optional["GrammarIssue"]:
        """Build an issue from backend JSON; None when there is nothing to replace."""
        original = str(data.get("original") or "").strip()
        if not original:
            return None
        return cls(
            original=original,
            suggestion=str(data.get("suggestion") or ""),
            explanation=str(data.get("explanation") or ""),
        )
