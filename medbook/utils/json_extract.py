"""Extract JSON objects from LLM output.

Models asked for "JSON only" still wrap answers in markdown fences or
add a sentence of explanation. The extraction service only needs the
first well-formed JSON object in the response.
"""

import json
import re

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL | re.IGNORECASE)


def find_balanced_object(text: str, start: int = 0) -> str | None:
    """Find the first balanced ``{...}`` that parses as JSON.

    Scans for matching braces, ignoring braces inside string literals.
    When a balanced candidate is not valid JSON the scan continues at the
    next opening brace.

    Args:
        text: Text to search
        start: Index to start scanning from

    Returns:
        Extracted JSON string if found, else None
    """
    open_idx = text.find("{", start)
    while open_idx != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(open_idx, len(text)):
            c = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif c == "\\":
                    escaped = True
                elif c == '"':
                    in_string = False
                continue
            if c == '"':
                in_string = True
            elif c == "{":
                depth += 1
            elif c == "}":
                depth -= 1
                if depth == 0:
                    candidate = text[open_idx : i + 1]
                    try:
                        json.loads(candidate)
                        return candidate
                    except json.JSONDecodeError:
                        break
        open_idx = text.find("{", open_idx + 1)

    return None


def extract_json_object(text: str | None) -> dict | None:
    """Extract the first JSON object from an LLM response.

    Extraction order:
    1. Parse as raw JSON
    2. Parse the contents of a ```json ... ``` (or bare ```) block
    3. Scan for the first balanced {...} that parses

    Args:
        text: Raw LLM response

    Returns:
        Parsed dict, or None if no JSON object was found

    Examples:
        >>> extract_json_object('{"time": "14:00"}')
        {'time': '14:00'}

        >>> extract_json_object('Sure! ```json\\n{"intent": "book"}\\n```')
        {'intent': 'book'}
    """
    if not text:
        return None

    text = text.strip()

    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    for match in _FENCED_BLOCK.finditer(text):
        try:
            parsed = json.loads(match.group(1).strip())
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    candidate = find_balanced_object(text)
    if candidate:
        return json.loads(candidate)

    return None


__all__ = ["extract_json_object", "find_balanced_object"]
