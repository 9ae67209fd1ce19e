"""Text utilities: locale-aware word counting, progress and tail slicing."""

import re

_WHITESPACE_RE = re.compile(r"\s")
_NON_ASCII_RE = re.compile(r"[^\x00-\x7F]")


def is_cjk_dominant(text: str) -> bool:
    """True when more than half of the characters are non-ASCII."""
    if not text:
        return False
    return len(_NON_ASCII_RE.findall(text)) > len(text) * 0.5


def count_words(text: str) -> int:
    """Estimate the length of ``text`` in words.

    CJK-dominant text has no word delimiters, so each non-whitespace
    character counts as one word. Everything else counts
    whitespace-delimited tokens.
    """
    if not text:
        return 0
    if is_cjk_dominant(text):
        return count_total_chars(text)
    return len(text.split())


def progress_percent(word_count: int, target: int) -> int:
    """Progress towards ``target`` as an integer percentage capped at 100."""
    if target <= 0:
        return 0
    return min(100, round(word_count / target * 100))


def count_total_chars(text: str) -> int:
    """Count all non-whitespace characters including punctuation."""
    return len(_WHITESPACE_RE.sub("", text))


def get_chapter_ending(content: str, char_limit: int = 500) -> str:
    """Return the last ``char_limit`` characters of a chapter."""
    if not content:
        return ""
    if len(content) <= char_limit:
        return content
    return content[-char_limit:]
