"""
Phase state machine for one interview conversation.

    SCAN -> DEEP -> DATA_COLLECTION -> DONE
      \\                ^
       -> DEEP_OFFER ---+   (ACCEPT re-enters DEEP)

The assistant side calls `next_action()` to learn what to ask; the
respondent's answer goes back through `apply_user_reply()`, which dispatches
on (phase, action kind) through an explicit handler table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .errors import InterviewConfigError, InvalidTransitionError
from .fields import MAX_FIELD_ATTEMPTS, SKIPPED, extract_field_value, is_collected, next_missing_field
from .intents import classify_intent, is_skip_reply
from .models import ActionKind, BotConfig, Intent, Phase, TopicPlan, TransitionMode
from .planner import build_topic_plan
from .transitions import CLEAN_PIVOT, TransitionDecision, decide_transition


logger = logging.getLogger(__name__)

MAX_DEEP_OFFERS = 2
MAX_CONSENT_ASKS = 3

# Closing reasons carried by FINAL_CLOSE actions.
CLOSE_NO_DATA = "no_data"
CLOSE_COLLECTED = "collected"
CLOSE_AFTER_REPLY = "after_reply"


@dataclass
class ConversationState:
    phase: Phase = Phase.SCAN
    topic_index: int = 0
    turn_in_topic: int = 0
    effective_seconds: float = 0.0
    consent_given: Optional[bool] = None
    deep_accepted: Optional[bool] = None
    data_collection_refused: bool = False
    profile: Dict[str, str] = field(default_factory=dict)
    field_attempts: Dict[str, int] = field(default_factory=dict)
    deep_offer_count: int = 0
    consent_ask_count: int = 0
    pending_transition: Optional[TransitionDecision] = None
    last_asked_field: Optional[str] = None
    send_final_close: bool = False


@dataclass(frozen=True)
class AssistantAction:
    """
    What the assistant must say next. `phase` is the phase the turn is tagged
    with in the transcript (closing turns are tagged DATA_COLLECTION).
    """

    kind: ActionKind
    phase: Phase
    topic: TopicPlan
    transition_mode: Optional[TransitionMode] = None
    transition_snippet: Optional[str] = None
    field: Optional[str] = None
    close_reason: Optional[str] = None
    entering_deep: bool = False


Handler = Callable[[str], None]


class InterviewStateMachine:
    def __init__(self, bot: BotConfig, plan: Optional[List[TopicPlan]] = None) -> None:
        self.bot = bot
        self.plan: List[TopicPlan] = plan if plan is not None else build_topic_plan(
            bot.topics, bot.language, bot.planned_duration_sec
        )
        if not self.plan:
            raise InterviewConfigError("Cannot run an interview without topics.")
        self.planned_duration_sec = bot.planned_duration_sec
        self.state = ConversationState()
        self._pending_action: Optional[AssistantAction] = None
        self._deep_entry = False
        self._handlers: Dict[Tuple[Phase, ActionKind], Handler] = {
            (Phase.SCAN, ActionKind.ASK_TOPIC): self._on_topic_reply,
            (Phase.DEEP, ActionKind.ASK_TOPIC): self._on_topic_reply,
            (Phase.DEEP_OFFER, ActionKind.ASK_DEEP_OFFER): self._on_deep_offer_reply,
            (Phase.DATA_COLLECTION, ActionKind.ASK_CONSENT): self._on_consent_reply,
            (Phase.DATA_COLLECTION, ActionKind.ASK_FIELD): self._on_field_reply,
        }

    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def is_done(self) -> bool:
        return self.state.phase is Phase.DONE

    @property
    def current_topic(self) -> TopicPlan:
        index = max(0, min(len(self.plan) - 1, self.state.topic_index))
        return self.plan[index]

    @property
    def remaining_seconds(self) -> float:
        return self.planned_duration_sec - self.state.effective_seconds

    @property
    def collects_data(self) -> bool:
        return self.bot.collect_data and bool(self.bot.data_fields)

    @property
    def consent_resolved(self) -> bool:
        return self.state.consent_given is True or self.state.data_collection_refused

    # ------------------------------------------------------------------
    # Assistant side
    # ------------------------------------------------------------------

    def next_action(self) -> Optional[AssistantAction]:
        """
        Decide the next assistant turn. Returns None once the conversation is
        DONE and nothing is left to say.
        """
        state = self.state
        if state.phase is Phase.DONE:
            if not state.send_final_close:
                return None
            state.send_final_close = False
            return self._close(CLOSE_AFTER_REPLY)

        if state.phase in (Phase.SCAN, Phase.DEEP):
            action = self._ask_topic()
        elif state.phase is Phase.DEEP_OFFER:
            state.deep_offer_count += 1
            action = AssistantAction(ActionKind.ASK_DEEP_OFFER, Phase.DEEP_OFFER, self.current_topic)
        else:
            action = self._data_collection_action()

        self._pending_action = action if action.kind is not ActionKind.FINAL_CLOSE else None
        return action

    def _ask_topic(self) -> AssistantAction:
        state = self.state
        transition = state.pending_transition
        state.pending_transition = None
        entering_deep = self._deep_entry
        self._deep_entry = False
        return AssistantAction(
            ActionKind.ASK_TOPIC,
            state.phase,
            self.current_topic,
            transition_mode=transition.mode if transition else None,
            transition_snippet=transition.snippet if transition else None,
            entering_deep=entering_deep,
        )

    def _data_collection_action(self) -> AssistantAction:
        state = self.state
        if not self.collects_data or state.data_collection_refused:
            state.phase = Phase.DONE
            state.send_final_close = False
            return self._close(CLOSE_NO_DATA)

        if state.consent_given is not True:
            state.consent_ask_count += 1
            return AssistantAction(ActionKind.ASK_CONSENT, Phase.DATA_COLLECTION, self.current_topic)

        missing = next_missing_field(self.bot.data_fields, state.profile, state.field_attempts, MAX_FIELD_ATTEMPTS)
        if missing is None:
            state.phase = Phase.DONE
            state.send_final_close = False
            return self._close(CLOSE_COLLECTED)

        state.last_asked_field = missing
        state.field_attempts[missing] = state.field_attempts.get(missing, 0) + 1
        return AssistantAction(
            ActionKind.ASK_FIELD,
            Phase.DATA_COLLECTION,
            self.current_topic,
            field=missing,
        )

    def _close(self, reason: str) -> AssistantAction:
        logger.debug("Closing interview (%s)", reason)
        return AssistantAction(
            ActionKind.FINAL_CLOSE,
            Phase.DATA_COLLECTION,
            self.current_topic,
            close_reason=reason,
        )

    # ------------------------------------------------------------------
    # Respondent side
    # ------------------------------------------------------------------

    def apply_user_reply(self, text: str, seconds: float = 0.0) -> Phase:
        """
        Feed the respondent's answer to the pending question and return the
        resulting phase.
        """
        if self.state.phase is Phase.DONE:
            raise InvalidTransitionError("Conversation is already DONE; no reply can be applied.")
        if seconds < 0:
            raise ValueError("Elapsed seconds cannot be negative.")
        action = self._pending_action
        if action is None:
            raise InvalidTransitionError("No assistant question is awaiting a reply.")

        handler = self._handlers.get((self.state.phase, action.kind))
        if handler is None:
            raise InvalidTransitionError(
                f"No transition for {action.kind.value} in phase {self.state.phase.value}."
            )
        self._pending_action = None
        self.state.effective_seconds += seconds
        handler(text or "")
        return self.state.phase

    def _on_topic_reply(self, text: str) -> None:
        state = self.state
        topic = self.current_topic
        limit = topic.scan_max_turns if state.phase is Phase.SCAN else topic.deep_max_turns
        state.turn_in_topic += 1
        if state.turn_in_topic < limit:
            return

        if state.topic_index + 1 < len(self.plan):
            upcoming = self.plan[state.topic_index + 1]
            decision = decide_transition(text, upcoming.anchor_roots)
            state.pending_transition = decision
            state.topic_index += 1
            state.turn_in_topic = 0
            logger.debug("Topic -> %s (%s)", upcoming.label, decision.mode.value)
            return

        if state.phase is Phase.SCAN:
            if self.remaining_seconds > 0:
                self._enter_deep()
            else:
                state.phase = Phase.DEEP_OFFER
                state.deep_accepted = None
                state.turn_in_topic = 0
            return

        self._enter_data_collection()

    def _on_deep_offer_reply(self, text: str) -> None:
        state = self.state
        intent = classify_intent(text, self.bot.language)
        if intent is Intent.ACCEPT:
            state.deep_accepted = True
            self._enter_deep()
        elif intent is Intent.REFUSE or state.deep_offer_count >= MAX_DEEP_OFFERS:
            state.deep_accepted = False
            self._enter_data_collection()

    def _on_consent_reply(self, text: str) -> None:
        state = self.state
        intent = classify_intent(text, self.bot.language)
        if intent is Intent.NEUTRAL and state.consent_ask_count >= MAX_CONSENT_ASKS:
            intent = Intent.REFUSE
        if intent is Intent.ACCEPT:
            state.consent_given = True
        elif intent is Intent.REFUSE:
            state.consent_given = False
            state.data_collection_refused = True
            state.phase = Phase.DONE
            state.send_final_close = True

    def _on_field_reply(self, text: str) -> None:
        state = self.state
        name = state.last_asked_field
        if name is None:
            raise InvalidTransitionError("Field reply received without an asked field.")

        if is_skip_reply(text, self.bot.language):
            self._store(name, SKIPPED)
        else:
            value = extract_field_value(name, text)
            if value:
                self._store(name, value)
            elif state.field_attempts.get(name, 0) >= MAX_FIELD_ATTEMPTS:
                self._store(name, SKIPPED)

        if next_missing_field(self.bot.data_fields, state.profile, state.field_attempts, MAX_FIELD_ATTEMPTS) is None:
            state.phase = Phase.DONE
            state.send_final_close = True

    # ------------------------------------------------------------------

    def _store(self, name: str, value: str) -> None:
        if is_collected(self.state.profile.get(name)):
            return
        self.state.profile[name] = value

    def _enter_deep(self) -> None:
        state = self.state
        state.phase = Phase.DEEP
        state.topic_index = 0
        state.turn_in_topic = 0
        state.pending_transition = CLEAN_PIVOT
        self._deep_entry = True
        logger.debug("Entering DEEP with %.0fs left", self.remaining_seconds)

    def _enter_data_collection(self) -> None:
        state = self.state
        state.phase = Phase.DATA_COLLECTION
        state.topic_index = max(0, len(self.plan) - 1)
        state.turn_in_topic = 0
        state.consent_given = None
        logger.debug("Entering DATA_COLLECTION after %.0fs", state.effective_seconds)
