"""
Stateless checklist for a single assistant turn.

Every check is an independent boolean; checks that do not apply to the
turn's phase are left out of the checklist so they neither help nor hurt
the score.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence, Set

from .anchors import build_message_anchors, build_topic_anchors, mentions_anchors
from .config import get_float
from .lexicon import get_lexicon
from .models import Phase, TurnEvaluation


BRIEF_ANSWER_MAX_WORDS = 4
TOPIC_PHASES = (Phase.SCAN, Phase.DEEP)

_WORD_REGEX = re.compile(r"[^\W_]+")


def normalize_text(text: Optional[str]) -> str:
    return " ".join((text or "").lower().split())


def word_count(text: Optional[str]) -> int:
    return len(normalize_text(text).split())


def token_set(text: Optional[str]) -> Set[str]:
    return set(_WORD_REGEX.findall(normalize_text(text)))


def jaccard_similarity(a: Optional[str], b: Optional[str]) -> float:
    left, right = token_set(a), token_set(b)
    if not left and not right:
        return 1.0
    return len(left & right) / len(left | right)


def is_closing_turn(phase: Phase, text: str, language: str) -> bool:
    """
    A genuine closing turn: spoken during DATA_COLLECTION, uses closing
    language and asks nothing.
    """
    if phase is not Phase.DATA_COLLECTION or "?" in (text or ""):
        return False
    return bool(get_lexicon(language).closing.search(text or ""))


def evaluate_turn(
    *,
    phase: Phase,
    topic_label: str,
    user_response: str,
    assistant_response: str,
    previous_assistant_response: Optional[str],
    language: str,
    topic_roots: Optional[Sequence[str]] = None,
    similarity_threshold: Optional[float] = None,
) -> TurnEvaluation:
    lexicon = get_lexicon(language)
    text = assistant_response or ""
    if similarity_threshold is None:
        similarity_threshold = get_float("evaluation", "similarity_threshold", 0.8)

    checks: Dict[str, bool] = {}
    closing = is_closing_turn(phase, text, language)
    checks["single_question"] = text.count("?") == 1 or closing
    checks["avoids_closure"] = closing or not lexicon.closure.search(text)
    checks["avoids_premature_contact"] = phase is Phase.DATA_COLLECTION or not lexicon.contact_request.search(text)

    if phase in TOPIC_PHASES:
        if topic_roots is None:
            topic_roots = build_topic_anchors(topic_label, (), language).anchor_roots
        user_roots = build_message_anchors(user_response, language).anchor_roots
        checks["references_context"] = (
            mentions_anchors(text, topic_roots)
            or mentions_anchors(text, user_roots)
            or bool(lexicon.bridge.search(text))
        )

        if previous_assistant_response:
            similarity = jaccard_similarity(text, previous_assistant_response)
            checks["non_repetitive"] = similarity < similarity_threshold
        else:
            checks["non_repetitive"] = True

        user_words = word_count(user_response)
        if 0 < user_words <= BRIEF_ANSWER_MAX_WORDS:
            checks["probing_when_user_is_brief"] = bool(lexicon.specific_probe.search(text))
        else:
            checks["probing_when_user_is_brief"] = True

    if phase is Phase.DEEP_OFFER:
        checks["deep_offer_intent"] = bool(lexicon.continuation.search(text))

    issues: List[str] = [lexicon.issue(name) for name, ok in checks.items() if not ok]
    passed_count = sum(1 for ok in checks.values() if ok)
    score = round(passed_count / len(checks) * 100)
    return TurnEvaluation(passed=not issues, score=score, checks=checks, issues=issues)
