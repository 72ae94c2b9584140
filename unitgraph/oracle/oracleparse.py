"""JSON extraction and shape normalisation for Oracle responses.

The Oracle answers in free text that is supposed to be JSON. Models often
wrap it in Markdown fences or add a sentence around it, so extraction is
lenient about the envelope and strict about the content: anything that
cannot be turned into the expected top-level shape is a parse failure.
"""

import json
import re
from typing import Any, Dict, List, Optional

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def extract_json(text: str) -> Any:
    """Parse JSON out of a model response.

    Strategy:
      1. Strip surrounding Markdown code fences
      2. Parse the whole text
      3. Otherwise parse the span from the first '{' or '[' to the last
         matching '}' or ']'

    Args:
        text: Raw response text

    Returns:
        Parsed JSON value

    Raises:
        ValueError: If no valid JSON can be recovered

    Examples:
        >>> extract_json('```json\\n{"groupName": "Flow Rate"}\\n```')
        {'groupName': 'Flow Rate'}

        >>> extract_json('Here you go: [1, 2]')
        [1, 2]
    """
    if not text or not text.strip():
        raise ValueError("empty response")

    cleaned = _FENCE_RE.sub("", text.strip()).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    starts = [i for i in (cleaned.find("{"), cleaned.find("[")) if i != -1]
    if starts:
        start = min(starts)
        closer = "}" if cleaned[start] == "{" else "]"
        end = cleaned.rfind(closer)
        if end > start:
            try:
                return json.loads(cleaned[start:end + 1])
            except json.JSONDecodeError as e:
                raise ValueError(f"invalid JSON: {e}") from e

    raise ValueError(f"no JSON found in response: {cleaned[:80]!r}")


def as_group_name(value: Any) -> Optional[str]:
    """Normalise a classification answer to a non-empty group name.

    Examples:
        >>> as_group_name({"groupName": "  Pressure "})
        'Pressure'
        >>> as_group_name({"groupName": ""}) is None
        True
    """
    if isinstance(value, dict):
        value = value.get("groupName")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def as_record_list(value: Any) -> Optional[List[Dict[str, Any]]]:
    """Normalise a list answer to a list of JSON objects.

    A single object wrapping exactly one list (``{"conversions": [...]}``) is
    unwrapped. Non-object list items are dropped here; field-level checks are
    left to the caller.

    Examples:
        >>> as_record_list([{"a": 1}, "junk"])
        [{'a': 1}]
        >>> as_record_list({"results": [{"a": 1}]})
        [{'a': 1}]
        >>> as_record_list("nope") is None
        True
    """
    if isinstance(value, dict):
        lists = [v for v in value.values() if isinstance(v, list)]
        if len(lists) != 1:
            return None
        value = lists[0]
    if not isinstance(value, list):
        return None
    return [item for item in value if isinstance(item, dict)]


__all__ = [
    "extract_json",
    "as_group_name",
    "as_record_list",
]
