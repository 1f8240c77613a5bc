"""
Tolerant JSON parsing for model output.

Models wrap JSON in code fences, use smart quotes, leave trailing commas or
emit single-quoted pseudo-JSON. parse_ai_json tries progressively looser
repairs and only gives up when none of them yields valid JSON.
"""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r'```(?:json|JSON)?')
_TRAILING_COMMA_RE = re.compile(r',\s*([}\]])')
_SINGLE_QUOTED_RE = re.compile(r"'([^']*)'")
_SPAN_RE = re.compile(r'(\{[\s\S]*\}|\[[\s\S]*\])')


class AIJSONError(ValueError):
    """Model output could not be parsed as JSON by any repair stage."""


def normalize_json_text(text: str) -> str:
    """Strip code fences, normalize smart quotes and drop trailing commas."""
    clean = _FENCE_RE.sub('', text).strip()
    clean = clean.replace('“', '"').replace('”', '"')
    clean = clean.replace('‘', "'").replace('’', "'")
    clean = _TRAILING_COMMA_RE.sub(r'\1', clean)
    return clean


def _first_balanced_span(text: str):
    """Return the first balanced {...} or [...] span, ignoring brackets inside strings."""
    start = None
    stack = []
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"' and start is not None:
            in_string = True
        elif ch in '{[':
            if start is None:
                start = i
            stack.append('}' if ch == '{' else ']')
        elif ch in '}]' and stack:
            if ch != stack[-1]:
                return None
            stack.pop()
            if not stack:
                return text[start:i + 1]
    return None


def parse_ai_json(text: str) -> Any:
    """
    Parse model output as JSON.

    Stages: strict parse → normalized (fences, smart quotes, trailing commas)
    → single quotes coerced to double → first balanced {...}/[...] span.
    Raises AIJSONError when every stage fails.
    """
    if text is None:
        raise AIJSONError("No text to parse")

    try:
        return json.loads(text)
    except ValueError:
        pass

    clean = normalize_json_text(text)
    try:
        return json.loads(clean)
    except ValueError:
        pass

    double_quoted = _SINGLE_QUOTED_RE.sub(r'"\1"', clean)
    try:
        return json.loads(double_quoted)
    except ValueError:
        pass

    for candidate in (clean, double_quoted):
        span = _first_balanced_span(candidate)
        if span is None:
            match = _SPAN_RE.search(candidate)
            span = match.group(0) if match else None
        if span is None:
            continue
        try:
            return json.loads(_TRAILING_COMMA_RE.sub(r'\1', span))
        except ValueError:
            continue

    logger.debug(f"parse_ai_json: giving up on {text[:120]!r}")
    raise AIJSONError("No valid JSON found in model output")
