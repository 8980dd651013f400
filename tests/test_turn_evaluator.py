import pytest

from interviews.lexicon import get_lexicon
from interviews.models import Phase
from interviews.turn_evaluator import evaluate_turn, is_closing_turn, jaccard_similarity


TOPIC = "Process automation"
DETAILED_ANSWER = "We automated invoice approvals last year across the finance team"


def _evaluate(assistant: str, *, phase: Phase = Phase.SCAN, user: str = DETAILED_ANSWER, previous=None, language="en"):
    return evaluate_turn(
        phase=phase,
        topic_label=TOPIC,
        user_response=user,
        assistant_response=assistant,
        previous_assistant_response=previous,
        language=language,
    )


def test_good_topic_turn_passes_every_check() -> None:
    result = _evaluate("Interesting, can you share one practical example about process automation?")

    assert result.passed
    assert result.score == 100
    assert result.issues == []
    assert set(result.checks) == {
        "single_question",
        "avoids_closure",
        "avoids_premature_contact",
        "references_context",
        "non_repetitive",
        "probing_when_user_is_brief",
    }


def test_two_questions_fail_single_question() -> None:
    result = _evaluate("How did process automation start? Who owns it now?")

    assert not result.checks["single_question"]
    assert result.score == 83
    assert result.issues == ["Must ask exactly one question per turn."]


def test_contact_request_only_allowed_in_data_collection() -> None:
    scan = _evaluate("Can you share your email about process automation?")
    assert not scan.checks["avoids_premature_contact"]

    data = _evaluate("What is your email address?", phase=Phase.DATA_COLLECTION)
    assert data.passed
    assert set(data.checks) == {"single_question", "avoids_closure", "avoids_premature_contact"}


def test_closing_turn_needs_no_question_mark() -> None:
    text = "Thank you for your time. Interview completed."
    assert is_closing_turn(Phase.DATA_COLLECTION, text, "en")
    assert not is_closing_turn(Phase.SCAN, text, "en")
    assert _evaluate(text, phase=Phase.DATA_COLLECTION).passed


def test_farewell_in_topic_phase_fails_closure_check() -> None:
    result = _evaluate("Goodbye and have a great day, any last word on process automation?")
    assert not result.checks["avoids_closure"]


@pytest.mark.parametrize(
    "text,language",
    [
        ("Goodbye and have a great day! What is your email address?", "en"),
        ("Arrivederci e buona giornata! Mi lascia la sua email?", "it"),
    ],
)
def test_farewell_in_field_question_fails_closure_check(text: str, language: str) -> None:
    result = _evaluate(text, phase=Phase.DATA_COLLECTION, language=language)
    assert not result.checks["avoids_closure"]
    assert get_lexicon(language).issue("avoids_closure") in result.issues


def test_genuine_farewell_passes_closure_check() -> None:
    result = _evaluate("Thank you for your time, goodbye and have a great day.", phase=Phase.DATA_COLLECTION)
    assert result.checks["avoids_closure"]
    assert result.checks["single_question"]


def test_near_duplicate_of_previous_question_fails() -> None:
    text = "Can you share one practical example about process automation?"
    result = _evaluate(text, previous=text)
    assert not result.checks["non_repetitive"]


def test_brief_answer_requires_specific_probe() -> None:
    generic = _evaluate("What do you think about process automation?", user="cost savings")
    probing = _evaluate("Can you share a concrete example about process automation?", user="cost savings")

    assert not generic.checks["probing_when_user_is_brief"]
    assert probing.checks["probing_when_user_is_brief"]


def test_missing_context_reference_is_flagged() -> None:
    result = _evaluate("How many people work there?", user="We hired three analysts")
    assert not result.checks["references_context"]


def test_deep_offer_turn_must_offer_to_continue() -> None:
    offer = _evaluate("Would you like to continue with a few more questions?", phase=Phase.DEEP_OFFER)
    topic = _evaluate("What else about process automation?", phase=Phase.DEEP_OFFER)

    assert offer.passed
    assert "references_context" not in offer.checks
    assert not topic.checks["deep_offer_intent"]


def test_italian_turn_uses_italian_issues() -> None:
    good = evaluate_turn(
        phase=Phase.SCAN,
        topic_label="Gestione del cambiamento",
        user_response="stiamo formando i team sui nuovi processi digitali",
        assistant_response="Interessante, puoi farmi un esempio concreto sulla gestione del cambiamento?",
        previous_assistant_response=None,
        language="it",
    )
    bad = evaluate_turn(
        phase=Phase.SCAN,
        topic_label="Gestione del cambiamento",
        user_response="ok",
        assistant_response="Perche? Come?",
        previous_assistant_response=None,
        language="it",
    )

    assert good.passed
    assert "Deve porre una sola domanda per turno." in bad.issues


@pytest.mark.parametrize(
    "assistant,user,phase",
    [
        ("Interesting, can you share an example about process automation?", DETAILED_ANSWER, Phase.SCAN),
        ("Why? How? When?", "ok", Phase.DEEP),
        ("Goodbye, send me your email and phone number", "", Phase.SCAN),
        ("Shall we stop here?", "no", Phase.DEEP_OFFER),
        ("", "", Phase.DATA_COLLECTION),
    ],
)
def test_score_is_bounded_and_perfect_only_when_all_checks_pass(assistant, user, phase) -> None:
    result = _evaluate(assistant, user=user, phase=phase)
    assert 0 <= result.score <= 100
    assert (result.score == 100) == all(result.checks.values())
    assert result.passed == all(result.checks.values())


def test_jaccard_similarity() -> None:
    assert jaccard_similarity("a b", "b a") == 1.0
    assert jaccard_similarity("", "") == 1.0
    assert jaccard_similarity("alpha beta", "gamma delta") == 0.0
    assert jaccard_similarity("alpha beta", "alpha gamma") == pytest.approx(1 / 3)
