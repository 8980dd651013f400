from interviews.flow_evaluator import evaluate_transcript
from interviews.lexicon import get_lexicon
from interviews.models import Phase, Turn


EN = get_lexicon("en")


def a(content: str, phase: Phase, topic: str) -> Turn:
    return Turn(role="assistant", content=content, phase=phase, topic_label=topic)


def u(content: str) -> Turn:
    return Turn(role="user", content=content)


GOOD_TRANSCRIPT = [
    a("To start, can you share one practical example of process automation in your team?", Phase.SCAN, "Process automation"),
    u("We automated invoice approvals last year and cut the cycle time for the finance team by 40 percent"),
    a("Interesting, what impact did the invoice approvals change have on the finance team?", Phase.SCAN, "Process automation"),
    u("Mostly data quality issues between the finance and procurement systems slowed us down"),
    a(
        "You mentioned data quality issues, regarding data governance, who owns the fixes and can you give an example?",
        Phase.SCAN,
        "Data governance",
    ),
    u("yes"),
    a("Before closing, may I ask your contact details so we can stay in touch?", Phase.DATA_COLLECTION, "Data governance"),
    u("yes sure"),
    a("What is your email address?", Phase.DATA_COLLECTION, "Data governance"),
    u("mario@example.com"),
    a("Perfect, thank you. Interview completed.", Phase.DATA_COLLECTION, "Data governance"),
]


def test_empty_transcript_is_a_zero_result() -> None:
    for turns in ([], [u("hello")]):
        result = evaluate_transcript(turns, "en")
        assert result.score == 0
        assert not result.passed
        assert result.evaluated_turns == 0
        assert result.issues == []


def test_well_run_interview_passes() -> None:
    result = evaluate_transcript(GOOD_TRANSCRIPT, "en")

    assert result.passed
    assert result.score == 100
    assert result.evaluated_turns == 6
    assert result.failed_turns == 0
    assert result.transition_turns == 1
    assert result.transition_failures == 0
    assert result.consent_turns == 1
    assert result.consent_failures == 0
    assert [t.turn_index for t in result.turns] == [0, 2, 4, 6, 8, 10]
    assert result.turns[2].is_transition


def test_echo_transition_is_penalized() -> None:
    turns = [
        a("Can you share an example of process automation?", Phase.SCAN, "Process automation"),
        u("We automated invoice approvals with a small team"),
        a('You said "invoice approvals", what do you think about data governance?', Phase.SCAN, "Data governance"),
    ]
    result = evaluate_transcript(turns, "en")
    transition = result.turns[1]

    assert transition.is_transition
    assert not transition.checks["transition_coherence"]
    assert not transition.checks["meaning_respect"]
    assert not transition.checks["non_generic"]
    # 9 of 13 checks pass (69), minus the transition penalty.
    assert transition.score == 61
    assert result.transition_failures == 1
    assert not result.passed
    assert f"{EN.issue('meaning_respect')} (1)" in result.issues


def test_cold_transition_waives_context_checks() -> None:
    turns = [
        a("Can you share an example of process automation?", Phase.SCAN, "Process automation"),
        u("fine"),
        a("Regarding team training, how do new hires learn the tools?", Phase.SCAN, "Team training"),
    ]
    result = evaluate_transcript(turns, "en")
    transition = result.turns[1]

    assert transition.checks["references_context"]
    assert transition.checks["probing_when_user_is_brief"]
    assert transition.checks["transition_coherence"]


def test_field_question_after_refusal_is_a_consent_failure() -> None:
    turns = [
        a("Before closing, may I ask your contact details?", Phase.DATA_COLLECTION, "Team training"),
        u("no"),
        a("What is your email address?", Phase.DATA_COLLECTION, "Team training"),
    ]
    result = evaluate_transcript(turns, "en")

    assert result.consent_turns == 1
    assert result.consent_failures == 1
    assert not result.turns[1].checks["consent_interpretation"]


def test_field_question_after_negated_acceptance_is_a_consent_failure() -> None:
    turns = [
        a("Before closing, may I ask your contact details?", Phase.DATA_COLLECTION, "Team training"),
        u("No, I'm not sure, let's stop here"),
        a("What is your email address?", Phase.DATA_COLLECTION, "Team training"),
    ]
    result = evaluate_transcript(turns, "en")

    assert result.consent_failures == 1
    assert not result.turns[1].checks["consent_interpretation"]


def test_asking_consent_again_after_acceptance_is_a_failure() -> None:
    turns = [
        a("Before closing, may I ask your contact details?", Phase.DATA_COLLECTION, "Team training"),
        u("sure"),
        a("Just to confirm, may I ask for your contact details?", Phase.DATA_COLLECTION, "Team training"),
    ]
    assert evaluate_transcript(turns, "en").consent_failures == 1


def test_closing_after_refusal_is_consistent() -> None:
    turns = [
        a("Before closing, may I ask your contact details?", Phase.DATA_COLLECTION, "Team training"),
        u("no thanks"),
        a("Thank you for your time. Interview completed.", Phase.DATA_COLLECTION, "Team training"),
    ]
    result = evaluate_transcript(turns, "en")
    assert result.consent_failures == 0
    assert result.passed


def test_echo_after_confusion_adds_confusion_issue() -> None:
    turns = [
        a("Can you share an example of process automation?", Phase.SCAN, "Process automation"),
        u("I don't understand"),
        a('You said "understand", can you give an example of process automation?', Phase.SCAN, "Process automation"),
    ]
    result = evaluate_transcript(turns, "en")
    assert EN.issue("confusion_echo") in result.turns[1].issues


def test_top_issues_are_limited_and_counted() -> None:
    turns = []
    for _ in range(3):
        turns += [a("Why? How?", Phase.SCAN, "Process automation"), u("ok")]
    result = evaluate_transcript(turns, "en", top_issues=1)

    assert len(result.issues) == 1
    assert result.issues[0] == f"{EN.issue('single_question')} (3)"


def test_italian_transcript_reports_italian_issues() -> None:
    turns = [
        a("Puoi farmi un esempio di gestione del cambiamento? E poi?", Phase.SCAN, "Gestione del cambiamento"),
    ]
    result = evaluate_transcript(turns, "it")
    assert "Deve porre una sola domanda per turno. (1)" in result.issues
