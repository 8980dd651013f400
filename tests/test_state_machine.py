import pytest

from interviews.errors import InterviewConfigError, InvalidTransitionError
from interviews.fields import SKIPPED
from interviews.models import ActionKind, Phase, TransitionMode
from interviews.state_machine import (
    CLOSE_AFTER_REPLY,
    CLOSE_COLLECTED,
    CLOSE_NO_DATA,
    InterviewStateMachine,
)

from .conftest import make_bot


def _answer(machine: InterviewStateMachine, reply: str, seconds: float = 10):
    action = machine.next_action()
    machine.apply_user_reply(reply, seconds)
    return action


def _finish_topics(machine: InterviewStateMachine, seconds: float = 10) -> list:
    actions = []
    for _ in range(50):
        if machine.phase not in (Phase.SCAN, Phase.DEEP):
            break
        actions.append(_answer(machine, "We rely on manual spreadsheets today", seconds))
    return actions


def test_initial_state(bot) -> None:
    machine = InterviewStateMachine(bot)
    assert machine.phase is Phase.SCAN
    assert machine.state.topic_index == 0
    assert machine.state.turn_in_topic == 0
    assert machine.remaining_seconds == 180


def test_bridge_then_clean_pivot_between_topics(bot) -> None:
    machine = InterviewStateMachine(bot)

    first = _answer(machine, "We use data governance boards to review every automation change", 30)
    assert first.kind is ActionKind.ASK_TOPIC
    assert first.topic.label == "Process automation"
    assert first.transition_mode is None

    second = _answer(machine, "ok", 30)
    assert second.topic.label == "Data governance"
    assert second.transition_mode is TransitionMode.BRIDGE
    assert second.transition_snippet == "We use data governance boards to"

    third = machine.next_action()
    assert third.topic.label == "Team training"
    assert third.transition_mode is TransitionMode.CLEAN_PIVOT
    assert third.transition_snippet is None


def test_scan_with_time_left_enters_deep_with_clean_pivot(bot) -> None:
    machine = InterviewStateMachine(bot)
    for _ in range(3):
        _answer(machine, "Budget planning is mostly manual", 30)

    assert machine.phase is Phase.DEEP
    action = machine.next_action()
    assert action.phase is Phase.DEEP
    assert action.topic.label == "Process automation"
    assert action.transition_mode is TransitionMode.CLEAN_PIVOT
    assert action.entering_deep

    machine.apply_user_reply("More detail", 10)
    assert not machine.next_action().entering_deep


def test_deep_runs_two_turns_per_topic_then_data_collection(bot) -> None:
    machine = InterviewStateMachine(bot)
    actions = _finish_topics(machine)

    deep = [a for a in actions if a.phase is Phase.DEEP]
    assert [a.topic.label for a in deep] == [t.label for t in bot.topics for _ in range(2)]
    assert machine.phase is Phase.DATA_COLLECTION
    assert machine.state.topic_index == 2
    assert machine.state.consent_given is None


def test_no_time_left_after_scan_offers_deep(bot) -> None:
    machine = InterviewStateMachine(bot)
    for _ in range(3):
        _answer(machine, "Long enough answer here", 60)

    assert machine.phase is Phase.DEEP_OFFER
    offer = machine.next_action()
    assert offer.kind is ActionKind.ASK_DEEP_OFFER
    machine.apply_user_reply("yes continue", 5)

    assert machine.phase is Phase.DEEP
    assert machine.state.deep_accepted is True
    assert machine.next_action().entering_deep


def test_deep_offer_refusal_goes_to_data_collection(bot) -> None:
    machine = InterviewStateMachine(bot)
    for _ in range(3):
        _answer(machine, "Long enough answer here", 60)

    _answer(machine, "no thanks", 5)
    assert machine.phase is Phase.DATA_COLLECTION
    assert machine.state.deep_accepted is False


def test_negated_continue_declines_deep_offer(bot) -> None:
    machine = InterviewStateMachine(bot)
    for _ in range(3):
        _answer(machine, "Long enough answer here", 60)

    _answer(machine, "No, I don't want to continue", 5)
    assert machine.phase is Phase.DATA_COLLECTION
    assert machine.state.deep_accepted is False


def test_deep_offer_is_asked_at_most_twice(bot) -> None:
    machine = InterviewStateMachine(bot)
    for _ in range(3):
        _answer(machine, "Long enough answer here", 60)

    _answer(machine, "hmm, maybe", 5)
    assert machine.phase is Phase.DEEP_OFFER
    _answer(machine, "hard to say", 5)
    assert machine.phase is Phase.DATA_COLLECTION
    assert machine.state.deep_offer_count == 2


def test_full_collection_flow(bot) -> None:
    machine = InterviewStateMachine(bot)
    _finish_topics(machine)

    consent = _answer(machine, "yes sure")
    assert consent.kind is ActionKind.ASK_CONSENT
    assert machine.state.consent_given is True

    name = _answer(machine, "Mario Rossi")
    assert (name.kind, name.field) == (ActionKind.ASK_FIELD, "name")
    email = _answer(machine, "mario.rossi@example.com")
    assert email.field == "email"

    assert machine.is_done
    assert machine.state.profile == {"name": "Mario Rossi", "email": "mario.rossi@example.com"}
    close = machine.next_action()
    assert close.kind is ActionKind.FINAL_CLOSE
    assert close.close_reason == CLOSE_AFTER_REPLY
    assert machine.next_action() is None


def test_consent_refusal_closes_immediately(bot) -> None:
    machine = InterviewStateMachine(bot)
    _finish_topics(machine)

    _answer(machine, "no")
    assert machine.is_done
    assert machine.state.consent_given is False
    assert machine.state.data_collection_refused
    assert machine.consent_resolved

    close = machine.next_action()
    assert close.kind is ActionKind.FINAL_CLOSE
    assert machine.next_action() is None
    with pytest.raises(InvalidTransitionError):
        machine.apply_user_reply("wait, my email is a@b.co")


def test_unsure_refusal_is_not_read_as_consent(bot) -> None:
    machine = InterviewStateMachine(bot)
    _finish_topics(machine)

    _answer(machine, "No, I'm not sure")
    assert machine.is_done
    assert machine.state.consent_given is False
    assert machine.state.profile == {}
    assert machine.next_action().kind is ActionKind.FINAL_CLOSE


def test_repeated_neutral_consent_resolves_as_refusal(bot) -> None:
    machine = InterviewStateMachine(bot)
    _finish_topics(machine)

    for _ in range(2):
        _answer(machine, "what for?")
        assert machine.phase is Phase.DATA_COLLECTION
        assert machine.state.consent_given is None
    _answer(machine, "what for?")

    assert machine.is_done
    assert machine.state.consent_given is False


def test_field_is_skipped_after_three_failed_attempts() -> None:
    machine = InterviewStateMachine(make_bot(fields=["email", "name"]))
    _finish_topics(machine)
    _answer(machine, "ok")

    asked = [_answer(machine, "not now") for _ in range(3)]
    assert [a.field for a in asked] == ["email"] * 3
    assert machine.state.profile["email"] == SKIPPED
    assert machine.next_action().field == "name"


def test_skip_reply_marks_field_skipped_at_once() -> None:
    machine = InterviewStateMachine(make_bot(fields=["phone", "name"]))
    _finish_topics(machine)
    _answer(machine, "sure")

    _answer(machine, "I'd rather not say")
    assert machine.state.profile["phone"] == SKIPPED
    action = machine.next_action()
    assert action.field == "name"


def test_no_data_collection_closes_without_asking() -> None:
    machine = InterviewStateMachine(make_bot(collect_data=False))
    _finish_topics(machine)

    close = machine.next_action()
    assert close.kind is ActionKind.FINAL_CLOSE
    assert close.close_reason == CLOSE_NO_DATA
    assert machine.is_done
    assert machine.next_action() is None


def test_empty_field_list_closes_without_consent() -> None:
    machine = InterviewStateMachine(make_bot(fields=[]))
    _finish_topics(machine)
    assert machine.next_action().close_reason == CLOSE_NO_DATA


def test_all_fields_prefilled_closes_as_collected(bot) -> None:
    machine = InterviewStateMachine(bot)
    _finish_topics(machine)
    _answer(machine, "yes")
    machine.state.profile.update({"name": "Mario", "email": "m@x.io"})

    close = machine.next_action()
    assert close.close_reason == CLOSE_COLLECTED
    assert machine.is_done


def test_reply_without_question_is_rejected(bot) -> None:
    machine = InterviewStateMachine(bot)
    with pytest.raises(InvalidTransitionError):
        machine.apply_user_reply("hello")
    with pytest.raises(ValueError):
        machine.apply_user_reply("hello", -1)


def test_empty_plan_is_a_configuration_error(bot) -> None:
    with pytest.raises(InterviewConfigError):
        InterviewStateMachine(bot, plan=[])


def test_italian_consent_refusal() -> None:
    machine = InterviewStateMachine(make_bot(language="it"))
    _finish_topics(machine)
    _answer(machine, "preferisco non lasciare i miei dati")
    assert machine.is_done
    assert machine.state.consent_given is False
