"""
Whole-transcript semantic flow evaluation.

Each assistant turn is scored on the single-turn checklist plus
conversation-level checks (did it understand the reply, did it respect its
meaning, did it read consent correctly, did it transition coherently).
Transition turns that fail coherence take an extra penalty.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Dict, List, Optional, Sequence

from .anchors import anchor_overlap
from .config import get_int
from .intents import classify_intent, is_confusion
from .lexicon import Lexicon, get_lexicon
from .models import Intent, Phase, TranscriptEvaluation, TranscriptTurnEvaluation, Turn
from .turn_evaluator import TOPIC_PHASES, evaluate_turn, normalize_text, word_count


logger = logging.getLogger(__name__)

# Base checks that are waived on a transition the respondent did not foreshadow.
_WAIVED_ON_COLD_TRANSITION = ("references_context", "probing_when_user_is_brief")

_NUMBER_REGEX_TEMPLATE = r"\b\d{{1,{digits}}}\b"


def _is_interesting(user_text: str, lexicon: Lexicon) -> bool:
    text = normalize_text(user_text)
    if not text:
        return False
    min_words = get_int("evaluation", "interesting_min_words", 12)
    max_digits = max(1, get_int("evaluation", "interesting_max_number_digits", 4))
    has_numbers = re.search(_NUMBER_REGEX_TEMPLATE.format(digits=max_digits), text) is not None
    return word_count(text) >= min_words or has_numbers or bool(lexicon.specificity.search(text))


def _consent_interpretation(
    lexicon: Lexicon,
    previous_assistant: Optional[Turn],
    previous_user: Optional[Turn],
    assistant_text: str,
) -> Optional[bool]:
    """
    None when the previous assistant turn was not a consent question.
    """
    if previous_assistant is None or previous_user is None:
        return None
    if not lexicon.consent_ask.search(previous_assistant.content):
        return None

    asks_field = bool(lexicon.field_ask.search(assistant_text))
    asks_consent_again = bool(lexicon.consent_ask.search(assistant_text))
    closes = bool(lexicon.closing.search(assistant_text)) or "INTERVIEW_COMPLETED" in assistant_text.upper()

    intent = classify_intent(previous_user.content, lexicon.code)
    if intent is Intent.ACCEPT:
        return asks_field and not asks_consent_again
    if intent is Intent.REFUSE:
        return closes or (not asks_field and not asks_consent_again)
    return True


def evaluate_transcript(
    turns: Sequence[Turn],
    language: str = "en",
    transition_penalty: Optional[int] = None,
    top_issues: Optional[int] = None,
) -> TranscriptEvaluation:
    """
    Score a transcript. Total: any transcript, including an empty one, yields
    a well-formed result (score 0 when there is no assistant turn).
    """
    lexicon = get_lexicon(language)
    if transition_penalty is None:
        transition_penalty = get_int("evaluation", "transition_penalty", 8)
    if top_issues is None:
        top_issues = get_int("evaluation", "top_issues", 10)

    results: List[TranscriptTurnEvaluation] = []
    transition_turns = transition_failures = 0
    consent_turns = consent_failures = 0

    previous_user: Optional[Turn] = None
    previous_assistant: Optional[Turn] = None

    for index, turn in enumerate(turns or ()):
        if turn.role == "user":
            previous_user = turn
            continue

        phase = turn.phase or Phase.SCAN
        if phase is Phase.DONE:
            phase = Phase.DATA_COLLECTION
        text = turn.content or ""
        user_text = previous_user.content if previous_user else ""
        topic_label = (turn.topic_label or "").strip()
        previous_label = ((previous_assistant.topic_label if previous_assistant else "") or "").strip()
        is_transition = bool(topic_label and previous_label and topic_label != previous_label)
        in_topic_phase = phase in TOPIC_PHASES

        base = evaluate_turn(
            phase=phase,
            topic_label=topic_label,
            user_response=user_text,
            assistant_response=text,
            previous_assistant_response=previous_assistant.content if previous_assistant else None,
            language=language,
        )

        user_overlap = anchor_overlap(user_text, text, language)
        user_touches_topic = bool(topic_label) and anchor_overlap(topic_label, user_text, language)
        uses_echo = bool(lexicon.echo_bridge.search(text))
        is_generic = bool(lexicon.generic_question.search(text))
        has_probe = bool(lexicon.probe.search(text))
        has_bridge = bool(lexicon.bridge.search(text))
        has_pivot = bool(lexicon.natural_pivot.search(text))
        interesting = _is_interesting(user_text, lexicon)

        consent = _consent_interpretation(lexicon, previous_assistant, previous_user, text)
        if consent is not None:
            consent_turns += 1

        checks: Dict[str, bool] = dict(base.checks)
        if is_transition and not user_touches_topic:
            for name in _WAIVED_ON_COLD_TRANSITION:
                if name in checks:
                    checks[name] = True

        if not in_topic_phase or not user_text:
            semantic_understanding = True
        else:
            semantic_understanding = user_overlap or (has_bridge and has_probe) or (is_transition and has_pivot)

        if not in_topic_phase:
            engagement = True
        elif is_transition:
            engagement = not is_generic and (has_probe or has_pivot)
        else:
            engagement = has_probe and not is_generic

        if is_transition:
            if user_touches_topic:
                coherent = not uses_echo and (has_bridge or has_pivot)
            else:
                coherent = not uses_echo and has_pivot and not is_generic
        else:
            coherent = True

        checks["semantic_understanding"] = semantic_understanding
        checks["meaning_respect"] = not uses_echo
        checks["consent_interpretation"] = consent is not False
        checks["non_generic"] = checks.get("non_repetitive", True) and not is_generic
        checks["engagement_quality"] = engagement
        checks["interesting_signal_capture"] = (
            not in_topic_phase
            or not interesting
            or (is_transition and not user_touches_topic)
            or (has_probe and (user_overlap or has_bridge))
        )
        checks["transition_coherence"] = coherent

        issues = [lexicon.issue(name) for name, ok in checks.items() if not ok]
        if is_confusion(user_text, language) and uses_echo:
            issues.append(lexicon.issue("confusion_echo"))
        issues = list(dict.fromkeys(issues))

        passed_count = sum(1 for ok in checks.values() if ok)
        score = round(passed_count / len(checks) * 100)
        if is_transition and not coherent:
            score = max(0, score - transition_penalty)

        if is_transition:
            transition_turns += 1
            if not coherent:
                transition_failures += 1
        if consent is False:
            consent_failures += 1

        results.append(
            TranscriptTurnEvaluation(
                turn_index=index,
                topic_label=topic_label,
                phase=phase,
                passed=not issues,
                score=score,
                is_transition=is_transition,
                checks=checks,
                issues=issues,
            )
        )
        previous_assistant = turn

    evaluated = len(results)
    failed = sum(1 for r in results if not r.passed)
    average = round(sum(r.score for r in results) / evaluated) if evaluated else 0

    counts = Counter(issue for r in results for issue in r.issues)
    ranked = sorted(counts.items(), key=lambda item: -item[1])[: max(0, top_issues)]

    logger.debug("Evaluated %d assistant turns: score=%d failed=%d", evaluated, average, failed)
    return TranscriptEvaluation(
        passed=evaluated > 0 and failed == 0,
        score=average,
        evaluated_turns=evaluated,
        failed_turns=failed,
        transition_turns=transition_turns,
        transition_failures=transition_failures,
        consent_turns=consent_turns,
        consent_failures=consent_failures,
        issues=[f"{issue} ({count})" for issue, count in ranked],
        turns=results,
    )
