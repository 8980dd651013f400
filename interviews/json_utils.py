from __future__ import annotations

import json
import re
from typing import Any, Callable, Dict, List

_FENCE_REGEX = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_TRAILING_COMMA_REGEX = re.compile(r",\s*([}\]])")
_SMART_QUOTES = str.maketrans({"“": '"', "”": '"', "‘": "'", "’": "'"})


def _unfence(text: str) -> str:
    match = _FENCE_REGEX.search(text)
    return match.group(1).strip() if match else text


def _outer_object(text: str) -> str:
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        return text[start : end + 1]
    return text


def _close_truncated(text: str) -> str:
    # Heuristic: braces inside string values can throw the counts off.
    missing_curly = text.count("{") - text.count("}")
    missing_square = text.count("[") - text.count("]")
    return text + "]" * max(0, missing_square) + "}" * max(0, missing_curly)


_REPAIRS: List[Callable[[str], str]] = [
    _unfence,
    _outer_object,
    lambda t: t.translate(_SMART_QUOTES),
    lambda t: _TRAILING_COMMA_REGEX.sub(r"\1", t),
    _close_truncated,
]


def coerce_json_object(text: str) -> Dict[str, Any]:
    """
    Best-effort parse of model output into a JSON object. Each repair step
    (code fences, surrounding prose, smart quotes, trailing commas, truncated
    brackets) is applied cumulatively and the first candidate that parses to
    a dict wins. Raises ValueError when none does.
    """
    candidate = (text or "").strip()
    candidates = [candidate]
    for repair in _REPAIRS:
        candidate = repair(candidate)
        if candidate not in candidates:
            candidates.append(candidate)

    for item in candidates:
        try:
            data = json.loads(item)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    raise ValueError("Failed to parse JSON object from model output.")
