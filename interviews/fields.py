from __future__ import annotations

import re
from typing import Mapping, Optional, Sequence


SKIPPED = "__SKIPPED__"
MAX_FIELD_ATTEMPTS = 3

EMAIL_REGEX = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
PHONE_REGEX = re.compile(r"\+?[0-9][0-9\s().-]{6,}[0-9]")
URL_REGEX = re.compile(r"https?://[^\s]+", re.IGNORECASE)
_FREE_TEXT_PUNCTUATION = re.compile(r"[.!?,;:]")

NAME_FIELDS = frozenset({"name", "fullName"})
ORGANISATION_FIELDS = frozenset({"company", "role"})


def is_collected(value: Optional[str]) -> bool:
    return bool(value and value.strip() and value != SKIPPED)


def next_missing_field(
    fields: Sequence[str],
    profile: Mapping[str, str],
    attempts: Mapping[str, int],
    max_attempts: int = MAX_FIELD_ATTEMPTS,
) -> Optional[str]:
    """
    First field in declaration order that is neither collected, skipped nor
    out of attempts. Later fields are never asked while an earlier one is open.
    """
    for name in fields:
        value = profile.get(name)
        if is_collected(value) or value == SKIPPED:
            continue
        if attempts.get(name, 0) >= max_attempts:
            continue
        return name
    return None


def _free_text(raw: str, max_length: int) -> Optional[str]:
    cleaned = _FREE_TEXT_PUNCTUATION.sub("", raw).strip()
    if 1 < len(cleaned) < max_length:
        return cleaned
    return None


def extract_field_value(field: str, text: str) -> Optional[str]:
    """
    Pull a value for `field` out of a free-form reply, or None when the reply
    does not contain one. Unknown field kinds accept the reply verbatim.
    """
    raw = (text or "").strip()
    if not raw:
        return None

    if field == "email":
        match = EMAIL_REGEX.search(raw)
        return match.group(0) if match else None
    if field == "phone":
        match = PHONE_REGEX.search(raw)
        return re.sub(r"\s+", " ", match.group(0)).strip() if match else None
    if field == "linkedin":
        match = URL_REGEX.search(raw)
        return match.group(0) if match else None
    if field in NAME_FIELDS:
        return _free_text(raw, 60)
    if field in ORGANISATION_FIELDS:
        return _free_text(raw, 120)
    return raw
