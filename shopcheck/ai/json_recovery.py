"""Defensive parsing of JSON embedded in free-text LLM responses.

Parsing runs in stages: strip markdown fences, strict parse, then extract
the first bracketed object/array substring, then fall back to a caller
supplied default.
"""

import json
import logging
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


def strip_code_fences(text: Optional[str]) -> str:
    """Remove markdown code-fence wrappers and surrounding whitespace."""
    if not text:
        return ""
    return _FENCE_RE.sub("", text).strip()


def parse_json_response(
    text: Optional[str],
    expected: type = dict,
    default: Any = None,
) -> Any:
    """
    Parse a JSON value of the expected type out of an LLM response.

    Args:
        text: Raw response text
        expected: dict or list
        default: Returned when nothing usable can be recovered

    Returns:
        Parsed value, or default
    """
    cleaned = strip_code_fences(text)
    if not cleaned:
        return default

    try:
        value = json.loads(cleaned)
        if isinstance(value, expected):
            return value
        logger.debug(f"LLM JSON has type {type(value).__name__}, expected {expected.__name__}")
    except json.JSONDecodeError as e:
        logger.debug(f"Strict JSON parse failed: {e}")

    pattern = _ARRAY_RE if expected is list else _OBJECT_RE
    match = pattern.search(cleaned)
    if match:
        try:
            value = json.loads(match.group(0))
            if isinstance(value, expected):
                return value
        except json.JSONDecodeError as e:
            logger.debug(f"Bracketed JSON recovery failed: {e}")

    logger.warning(f"Could not recover JSON from LLM response: {cleaned[:200]}")
    return default
