from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Sequence

from .anchors import mentions_anchors
from .models import TransitionMode


BRIDGE_MIN_WORDS = 5
SNIPPET_MAX_WORDS = 6

_SNIPPET_PUNCTUATION = re.compile(r"[?!.,;:()\[\]{}\"'`]")


@dataclass(frozen=True)
class TransitionDecision:
    mode: TransitionMode
    snippet: Optional[str] = None


CLEAN_PIVOT = TransitionDecision(TransitionMode.CLEAN_PIVOT)


def short_snippet(text: str, max_words: int = SNIPPET_MAX_WORDS) -> str:
    collapsed = re.sub(r"\s+", " ", text or "")
    cleaned = _SNIPPET_PUNCTUATION.sub("", collapsed).strip()
    return " ".join(cleaned.split()[:max_words])


def decide_transition(answer: str, upcoming_roots: Sequence[str]) -> TransitionDecision:
    """
    Bridge from the respondent's answer only when it organically foreshadowed
    the upcoming topic; otherwise pivot cleanly without a snippet.
    """
    words = (answer or "").split()
    if len(words) >= BRIDGE_MIN_WORDS and mentions_anchors(answer, upcoming_roots):
        return TransitionDecision(TransitionMode.BRIDGE, short_snippet(answer, SNIPPET_MAX_WORDS))
    return CLEAN_PIVOT
