"""
Helpers for pulling JSON out of free-form model output.
"""
import json
import re
from typing import Any, Dict

_FENCE_RE = re.compile(r"```[a-zA-Z]*")


def strip_code_fences(text: str) -> str:
    """Remove ``` and ```json style fence markers, keeping the content."""
    return _FENCE_RE.sub("", text or "").strip()


def find_balanced_object(text: str) -> str:
    """
    Return the first balanced ``{...}`` span in text.

    Braces inside JSON strings are ignored.

    Raises:
        ValueError: if there is no opening brace or it is never closed
    """
    start = text.find("{")
    if start == -1:
        raise ValueError("no JSON object in response")

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    raise ValueError("unbalanced JSON object in response")


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Parse the first JSON object found in a model response.

    Raises:
        ValueError: if no object can be found or it does not parse
    """
    span = find_balanced_object(strip_code_fences(text))
    try:
        result = json.loads(span)
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JSON: {e.msg}") from e
    if not isinstance(result, dict):
        raise ValueError("response JSON is not an object")
    return result
