"""
JSON recovery for free-form model output.

Summarizer output comes with no structural guarantee. recover_json() runs an
ordered list of parse steps and stops at the first one that yields an object.
"""

import json
import logging
import re
from typing import Callable, Optional, Tuple

logger = logging.getLogger(__name__)

CODE_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)\s*```", re.DOTALL)
TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def _loads_object(text: Optional[str]) -> Optional[dict]:
    """json.loads that only accepts a JSON object."""
    if not text:
        return None
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def extract_balanced_object(text: str) -> Optional[str]:
    """
    Return the first balanced {...} substring, found by depth counting.

    Braces inside JSON string literals are ignored.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for pos in range(start, len(text)):
            char = text[pos]
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
                    return text[start:pos + 1]
        # Unbalanced from this brace; try the next opening brace
        start = text.find("{", start + 1)
    return None


def strip_code_fences(text: str) -> Optional[str]:
    match = CODE_FENCE_RE.search(text)
    return match.group(1) if match else None


def strip_trailing_commas(text: str) -> str:
    return TRAILING_COMMA_RE.sub(r"\1", text)


def _parse_direct(text: str) -> Optional[dict]:
    return _loads_object(text.strip())


def _parse_fenced(text: str) -> Optional[dict]:
    return _loads_object(strip_code_fences(text))


def _parse_balanced(text: str) -> Optional[dict]:
    return _loads_object(extract_balanced_object(text))


def _parse_without_trailing_commas(text: str) -> Optional[dict]:
    candidate = extract_balanced_object(strip_trailing_commas(text))
    return _loads_object(candidate or strip_trailing_commas(text))


# Ordered parse attempts: (name, step)
PARSE_STEPS: Tuple[Tuple[str, Callable[[str], Optional[dict]]], ...] = (
    ("direct", _parse_direct),
    ("code_fence", _parse_fenced),
    ("balanced_braces", _parse_balanced),
    ("trailing_commas", _parse_without_trailing_commas),
)


def recover_json(raw: Optional[str]) -> Optional[dict]:
    """
    Recover a JSON object from raw model output.

    Args:
        raw: Raw summarizer text

    Returns:
        Parsed dict from the first step that succeeds, or None if all fail
    """
    if not raw or not raw.strip():
        return None

    for name, step in PARSE_STEPS:
        data = step(raw)
        if data is not None:
            logger.debug(f"Recovered JSON object with step '{name}'")
            return data

    logger.debug("All JSON recovery steps failed")
    return None
