"""Tools package: Agent SDK client, text utilities, and JSON parsing."""

from tools.agent_sdk_client import AgentSDKClient, error_from_message
from tools.json_parsing import parse_json_response, extract_list
from tools.text_utils import (
    count_words,
    progress_percent,
    is_cjk_dominant,
    count_total_chars,
    get_chapter_ending,
)

__all__ = [
    "AgentSDKClient",
    "error_from_message",
    "parse_json_response",
    "extract_list",
    "count_words",
    "progress_percent",
    "is_cjk_dominant",
    "count_total_chars",
    "get_chapter_ending",
]
