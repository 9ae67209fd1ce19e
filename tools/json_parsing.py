"""JSON extraction from free-form backend responses."""

import json
import re

# Precompiled regex for JSON extraction
_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

# Lenient decoder that allows control characters (raw newlines, tabs) inside
# JSON strings; models frequently produce these instead of proper \n escapes.
_LENIENT_DECODER = json.JSONDecoder(strict=False)

# Trailing commas before a closing bracket, e.g. [1, 2,]
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def _try_loads(text: str):
    """Try parsing JSON strictly, then leniently, then with trailing commas removed."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    try:
        return _LENIENT_DECODER.decode(text)
    except json.JSONDecodeError:
        pass
    repaired = _TRAILING_COMMA_RE.sub(r"\1", text)
    return _LENIENT_DECODER.decode(repaired)


def _candidates(text: str):
    """Yield substrings of ``text`` that may hold the JSON payload, best first."""
    yield text
    match = _JSON_FENCE_RE.search(text)
    if match:
        yield match.group(1).strip()
    for start_char, end_char in [("{", "}"), ("[", "]")]:
        start = text.find(start_char)
        end = text.rfind(end_char)
        if start != -1 and end != -1 and end > start:
            yield text[start:end + 1]


def parse_json_response(text: str):
    """Extract and parse JSON from a backend response.

    Handles markdown code fences, prose around the payload, unescaped
    newlines inside strings and trailing commas.

    Returns:
        The decoded value (dict or list).

    Raises:
        ValueError: If no JSON payload can be recovered.
    """
    text = (text or "").strip()
    for candidate in _candidates(text):
        try:
            return _try_loads(candidate)
        except json.JSONDecodeError:
            continue
    raise ValueError(f"Failed to parse JSON from LLM response: {text[:200]}...")


def extract_list(payload, key: str) -> list:
    """Pull a list of objects out of a decoded payload.

    Accepts ``{key: [...]}``, a bare list, or a dict whose only list value
    is the one wanted. Non-dict entries are dropped.
    """
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict):
        items = payload.get(key)
        if items is None:
            lists = [v for v in payload.values() if isinstance(v, list)]
            items = lists[0] if len(lists) == 1 else []
    else:
        items = []
    return [item for item in items if isinstance(item, dict)]
