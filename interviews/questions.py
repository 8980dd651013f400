"""
Assistant-side phrasing: deterministic templates and an LLM-backed generator
that falls back to them.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

from .config import get_float, get_int, get_temperature_for_agent
from .errors import GenerationError
from .intents import is_confusion
from .json_utils import coerce_json_object
from .lexicon import get_lexicon
from .llm import TextGenerator
from .models import ActionKind, Phase, TransitionMode
from .prompts import render_prompt
from .state_machine import CLOSE_AFTER_REPLY, CLOSE_COLLECTED, CLOSE_NO_DATA, AssistantAction


logger = logging.getLogger(__name__)


class QuestionGenerator(Protocol):
    async def generate(self, action: AssistantAction, *, last_user: str, last_assistant: str) -> str: ...


_TEMPLATES: Dict[str, Dict[str, object]] = {
    "en": {
        "probes": (
            "what impact do you see on {topic} in concrete terms",
            "can you share one practical example about {topic}",
            "in what way does this affect {topic}",
        ),
        "bridge": 'Interesting point on "{snippet}". Regarding {topic}, {probe}?',
        "bridge_no_snippet": "Interesting point. Regarding {topic}, {probe}?",
        "clean_pivot": "Regarding {topic}, {probe}?",
        "plain": "I see. On {topic}, {probe}?",
        "deep_entry": "Let's go a little deeper. ",
        "clarify": "Let me put it more simply. Regarding {topic}, can you share one practical example from your work?",
        "deep_offer": "We still have a bit of time: would you like to continue with a few deeper questions?",
        "consent": "Before closing, may I ask your contact details so we can stay in touch?",
        "fields": {
            "name": "Can you share your full name?",
            "fullName": "Can you share your full name?",
            "email": "What is your email address?",
            "phone": "What is your phone number?",
            "company": "What is your company name?",
            "role": "What is your current role?",
            "linkedin": "Can you share your LinkedIn profile URL?",
        },
        "field_generic": "Can you provide your {field}?",
        "close": {
            CLOSE_NO_DATA: "Thank you for your contribution. We can close the interview here.",
            CLOSE_COLLECTED: "Perfect, thank you. Interview completed.",
            CLOSE_AFTER_REPLY: "Thank you for your time. Interview completed.",
        },
    },
    "it": {
        "probes": (
            "quale impatto concreto vedi su {topic}",
            "puoi farmi un esempio pratico legato a {topic}",
            "in che modo questo influenza {topic}",
        ),
        "bridge": 'Interessante il punto su "{snippet}". Riguardo a {topic}, {probe}?',
        "bridge_no_snippet": "Interessante il tuo punto. Riguardo a {topic}, {probe}?",
        "clean_pivot": "Riguardo a {topic}, {probe}?",
        "plain": "Capisco. Su {topic}, {probe}?",
        "deep_entry": "Approfondiamo un po' di piu. ",
        "clarify": "Provo a dirlo in modo piu semplice. Riguardo a {topic}, puoi farmi un esempio pratico dal tuo lavoro?",
        "deep_offer": "Abbiamo ancora poco tempo: ti va di continuare con qualche domanda piu approfondita?",
        "consent": "Prima di salutarci, posso chiederti i tuoi dati di contatto per restare in contatto?",
        "fields": {
            "name": "Mi dici il tuo nome e cognome?",
            "fullName": "Mi dici il tuo nome e cognome?",
            "email": "Qual e il tuo indirizzo email?",
            "phone": "Qual e il tuo numero di telefono?",
            "company": "Qual e il nome della tua azienda?",
            "role": "Qual e il tuo ruolo attuale?",
            "linkedin": "Mi condividi il tuo profilo LinkedIn?",
        },
        "field_generic": "Puoi indicarmi {field}?",
        "close": {
            CLOSE_NO_DATA: "Grazie per il contributo. Chiudiamo qui l intervista.",
            CLOSE_COLLECTED: "Perfetto, grazie. Intervista conclusa.",
            CLOSE_AFTER_REPLY: "Grazie per il tempo condiviso. Intervista conclusa.",
        },
    },
}


def _templates(language: str) -> Dict[str, object]:
    return _TEMPLATES.get(get_lexicon(language).code, _TEMPLATES["en"])


def ensure_single_question(text: Optional[str]) -> Optional[str]:
    """
    Collapse whitespace and cut everything after the first question mark.
    Returns None when the text asks nothing.
    """
    collapsed = " ".join((text or "").split()).strip().strip('"')
    cut = collapsed.find("?")
    if cut == -1:
        return None
    return collapsed[: cut + 1].strip()


@dataclass
class TemplateQuestionGenerator:
    language: str = "en"

    def render(self, action: AssistantAction, last_user: str = "") -> str:
        t = _templates(self.language)
        if action.kind is ActionKind.ASK_TOPIC:
            return self._topic_question(t, action, last_user)
        if action.kind is ActionKind.ASK_DEEP_OFFER:
            return str(t["deep_offer"])
        if action.kind is ActionKind.ASK_CONSENT:
            return str(t["consent"])
        if action.kind is ActionKind.ASK_FIELD:
            fields = t["fields"]
            return fields.get(action.field) or str(t["field_generic"]).format(field=action.field)
        closes = t["close"]
        return closes.get(action.close_reason) or closes[CLOSE_AFTER_REPLY]

    async def generate(self, action: AssistantAction, *, last_user: str = "", last_assistant: str = "") -> str:
        return self.render(action, last_user)

    def _topic_question(self, t: Dict[str, object], action: AssistantAction, last_user: str) -> str:
        topic = action.topic.label
        if last_user and is_confusion(last_user, self.language) and action.transition_mode is None:
            return str(t["clarify"]).format(topic=topic)

        probes = t["probes"]
        probe = probes[len(last_user or "") % len(probes)].format(topic=topic)
        if action.transition_mode is TransitionMode.BRIDGE:
            key = "bridge" if action.transition_snippet else "bridge_no_snippet"
            text = str(t[key]).format(snippet=action.transition_snippet, topic=topic, probe=probe)
        elif action.transition_mode is TransitionMode.CLEAN_PIVOT:
            text = str(t["clean_pivot"]).format(topic=topic, probe=probe)
        else:
            text = str(t["plain"]).format(topic=topic, probe=probe)

        if action.entering_deep:
            text = str(t["deep_entry"]) + text
        return text


@dataclass
class LLMQuestionGenerator:
    """
    Phrases each assistant turn with a text generator and falls back to the
    templates on timeout, error, or empty/malformed output.

    Consecutive failures are counted; once `max_consecutive_failures` is
    reached a GenerationError is raised so the caller can abort the run.
    """

    generator: TextGenerator
    language: str = "en"
    timeout_sec: Optional[float] = None
    max_consecutive_failures: Optional[int] = None
    temperature: Optional[float] = None
    fallback: Optional[TemplateQuestionGenerator] = None
    consecutive_failures: int = field(default=0, init=False)
    fallbacks_used: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        if self.timeout_sec is None:
            self.timeout_sec = get_float("simulation", "generation_timeout_sec", 20.0)
        if self.max_consecutive_failures is None:
            self.max_consecutive_failures = get_int("simulation", "max_consecutive_failures", 3)
        if self.temperature is None:
            self.temperature = get_temperature_for_agent("question_generator", 0.3)
        if self.fallback is None:
            self.fallback = TemplateQuestionGenerator(self.language)

    async def generate(self, action: AssistantAction, *, last_user: str = "", last_assistant: str = "") -> str:
        if action.kind is ActionKind.FINAL_CLOSE:
            return self.fallback.render(action, last_user)

        prompt = self.build_prompt(action, last_user=last_user, last_assistant=last_assistant)
        question: Optional[str] = None
        reason = "empty or malformed output"
        try:
            raw = await asyncio.wait_for(
                self.generator.generate(prompt, self.temperature),
                timeout=self.timeout_sec,
            )
            question = self.parse(action, raw)
        except asyncio.TimeoutError:
            reason = f"timed out after {self.timeout_sec:.1f}s"
        except Exception as exc:
            reason = f"{type(exc).__name__}: {exc}"

        if question:
            self.consecutive_failures = 0
            return question

        self.consecutive_failures += 1
        self.fallbacks_used += 1
        logger.warning(
            "Question generation failed for %s (%s); using template (%d/%d)",
            action.kind.value,
            reason,
            self.consecutive_failures,
            self.max_consecutive_failures,
        )
        if self.consecutive_failures >= self.max_consecutive_failures:
            raise GenerationError(
                f"Question generation failed {self.consecutive_failures} times in a row: {reason}"
            )
        return self.fallback.render(action, last_user)

    def parse(self, action: AssistantAction, raw: str) -> Optional[str]:
        if not raw or not raw.strip():
            return None
        if action.kind is not ActionKind.ASK_TOPIC:
            return ensure_single_question(raw)

        try:
            data = coerce_json_object(raw)
        except ValueError:
            return ensure_single_question(raw)
        question = ensure_single_question(str(data.get("question") or ""))
        if not question:
            return None
        acknowledgment = " ".join(str(data.get("acknowledgment") or "").split())
        if acknowledgment and "?" not in acknowledgment:
            return f"{acknowledgment} {question}"
        return question

    def build_prompt(self, action: AssistantAction, *, last_user: str, last_assistant: str) -> str:
        language = get_lexicon(self.language).code
        if action.kind is ActionKind.ASK_DEEP_OFFER:
            return render_prompt(
                "question_generator",
                "deep_offer",
                "Language: {language}\nAsk only whether the user wants a few more in-depth questions (yes/no).",
                language=language,
            )
        if action.kind is ActionKind.ASK_CONSENT:
            return render_prompt(
                "question_generator",
                "consent",
                "Language: {language}\nAsk only for consent to collect contact details (yes/no).",
                language=language,
                last_user=last_user,
            )
        if action.kind is ActionKind.ASK_FIELD:
            return render_prompt(
                "question_generator",
                "field",
                "Language: {language}\nAsk only for this field: {field}.",
                language=language,
                last_user=last_user,
                field=action.field,
            )

        if action.transition_mode is TransitionMode.BRIDGE:
            transition = render_prompt(
                "question_generator", "bridge_instruction", snippet=action.transition_snippet or ""
            )
        elif action.transition_mode is TransitionMode.CLEAN_PIVOT:
            transition = render_prompt("question_generator", "pivot_instruction")
        else:
            transition = render_prompt("question_generator", "no_transition_instruction")

        if not last_user:
            task = render_prompt("question_generator", "first_turn_task")
        elif is_confusion(last_user, self.language):
            task = render_prompt("question_generator", "confusion_task")
        else:
            task = render_prompt("question_generator", "follow_up_task")
        if action.entering_deep:
            task = f"{task}\n{render_prompt('question_generator', 'deep_entry_note')}"

        intent_key = "deep_intent" if action.phase is Phase.DEEP else "scan_intent"
        return render_prompt(
            "question_generator",
            "topic_turn",
            "Language: {language}\nTopic: {topic}\n{task}\nReturn JSON with keys acknowledgment and question.",
            language=language,
            phase=action.phase.value,
            topic=action.topic.label,
            phase_intent=render_prompt("question_generator", intent_key),
            transition_instruction=transition,
            last_user=last_user,
            last_assistant=last_assistant,
            task=task,
        )
