from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

from .config import get_float, get_int, get_temperature_for_agent
from .errors import GenerationError
from .lexicon import get_lexicon
from .llm import TextGenerator
from .models import ActionKind, Persona, TopicPlan
from .prompts import render_prompt
from .rng import SimulationRandom
from .state_machine import AssistantAction


logger = logging.getLogger(__name__)


class Respondent(Protocol):
    async def reply(self, action: AssistantAction, question: str) -> str: ...


def estimate_turn_seconds(text: str, rng: SimulationRandom) -> int:
    """
    Simulated talk time for one exchange: a fixed overhead, ~1.8s per word of
    the answer and up to 10s of jitter, clamped to [6, 55].
    """
    words = len((text or "").split())
    base = 8 + words * 1.8 + round(rng.random() * 10)
    return max(6, min(55, round(base)))


_REPLIES: Dict[str, Dict[str, object]] = {
    "en": {
        "confused": "i do not understand the question",
        "short": ("reliability", "governance", "gradual adoption", "team impact", "training"),
        "detailed": (
            "In our context {keyword} is crucial: we are improving processes, metrics, "
            "and ownership with concrete examples across operational teams."
        ),
        "consent_refuse": "i prefer not to share my details",
        "consent_accept": "yes sure",
        "deep_refuse": "i prefer to conclude",
        "deep_accept": "yes continue",
        "skip": "i prefer not to say",
        "frustrated": "you are repeating the question",
        "company_role": "{company}, I am the {role}",
        "fallback": "ok",
    },
    "it": {
        "confused": "non capisco bene la domanda",
        "short": ("affidabilita", "governance", "adozione graduale", "impatto sul team", "formazione"),
        "detailed": (
            "Nel nostro contesto {keyword} e importante: stiamo lavorando su processi piu chiari, "
            "metriche e responsabilita condivise, con esempi concreti nei team operativi."
        ),
        "consent_refuse": "preferisco non lasciare i miei dati",
        "consent_accept": "si va bene",
        "deep_refuse": "preferisco concludere",
        "deep_accept": "si continuiamo",
        "skip": "preferisco non dirlo",
        "frustrated": "stai ripetendo la domanda",
        "company_role": "{company} e sono {role}",
        "fallback": "ok",
    },
}

LINKEDIN_PLACEHOLDER = "https://linkedin.com/in/sim-user"
COMPANY_ROLE_COMBO_CHANCE = 0.35


@dataclass
class ScriptedRespondent:
    """
    Deterministic synthetic respondent driven by persona probabilities and
    the run's seeded RNG.
    """

    persona: Persona
    language: str
    rng: SimulationRandom

    def __post_init__(self) -> None:
        self._replies = _REPLIES.get(get_lexicon(self.language).code, _REPLIES["en"])

    async def reply(self, action: AssistantAction, question: str = "") -> str:
        return self.answer(action)

    def answer(self, action: AssistantAction) -> str:
        if action.kind is ActionKind.ASK_TOPIC:
            return self.topic_answer(action.topic)
        if action.kind is ActionKind.ASK_CONSENT:
            if self.rng.chance(self.persona.refuse_consent_chance):
                return str(self._replies["consent_refuse"])
            return str(self._replies["consent_accept"])
        if action.kind is ActionKind.ASK_DEEP_OFFER:
            if self.rng.chance(self.persona.refuse_deep_offer_chance):
                return str(self._replies["deep_refuse"])
            return str(self._replies["deep_accept"])
        if action.kind is ActionKind.ASK_FIELD and action.field:
            return self.field_answer(action.field)
        return str(self._replies["fallback"])

    def confused(self) -> str:
        return str(self._replies["confused"])

    def topic_answer(self, topic: TopicPlan) -> str:
        r = self._replies
        if self.rng.chance(self.persona.confusion_chance):
            return self.confused()
        if self.rng.chance(self.persona.brevity):
            return self.rng.pick(r["short"])
        return str(r["detailed"]).format(keyword=topic.label.lower())

    def field_answer(self, name: str) -> str:
        r = self._replies
        values = self.persona.values
        if self.rng.chance(self.persona.skip_field_chance):
            return str(r["skip"])
        if self.rng.chance(self.persona.frustration_chance):
            return str(r["frustrated"])
        if name in ("company", "role") and self.rng.chance(COMPANY_ROLE_COMBO_CHANCE):
            return str(r["company_role"]).format(
                company=values.get("company", ""), role=values.get("role", "")
            ).strip()
        if name == "fullName":
            return values.get("fullName") or values.get("name") or str(r["fallback"])
        if name == "linkedin":
            return values.get("linkedin") or LINKEDIN_PLACEHOLDER
        return values.get(name) or str(r["fallback"])


@dataclass
class LLMRespondent:
    """
    Live-model respondent: topic answers come from the text generator in the
    persona's style; yes/no and field replies stay scripted so the control
    flow remains reproducible.

    A failed generation falls back to the scripted answer, but only up to
    `max_consecutive_failures` in a row; past that a GenerationError aborts
    the run.
    """

    generator: TextGenerator
    persona: Persona
    language: str
    rng: SimulationRandom
    timeout_sec: Optional[float] = None
    max_consecutive_failures: Optional[int] = None
    temperature: Optional[float] = None
    scripted: Optional[ScriptedRespondent] = field(default=None, init=False)
    consecutive_failures: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        if self.timeout_sec is None:
            self.timeout_sec = get_float("simulation", "generation_timeout_sec", 20.0)
        if self.max_consecutive_failures is None:
            self.max_consecutive_failures = get_int("simulation", "max_consecutive_failures", 3)
        if self.temperature is None:
            self.temperature = get_temperature_for_agent("respondent", 0.45)
        self.scripted = ScriptedRespondent(self.persona, self.language, self.rng)

    async def reply(self, action: AssistantAction, question: str = "") -> str:
        if action.kind is not ActionKind.ASK_TOPIC:
            return self.scripted.answer(action)
        if self.rng.chance(self.persona.confusion_chance):
            return self.scripted.confused()

        brief = self.rng.chance(self.persona.brevity)
        prompt = render_prompt(
            "respondent",
            "topic_answer",
            "Answer the interview question as {persona} in {language}: {question}",
            language=get_lexicon(self.language).code,
            persona=self.persona.name,
            style=self.persona.style,
            detail_bias=self.persona.detail_bias,
            question=question,
            detail_instruction="" if brief else "with one concrete detail from your work",
            length_instruction="at most 6 words" if brief else "between 12 and 30 words",
        )
        reason = "empty output"
        text = ""
        try:
            raw = await asyncio.wait_for(self.generator.generate(prompt, self.temperature), timeout=self.timeout_sec)
            text = " ".join((raw or "").split()).strip().strip('"')
        except asyncio.TimeoutError:
            reason = f"timed out after {self.timeout_sec:.1f}s"
        except Exception as exc:
            reason = f"{type(exc).__name__}: {exc}"

        if text:
            self.consecutive_failures = 0
            return text

        self.consecutive_failures += 1
        logger.warning(
            "Respondent generation failed (%s); using scripted answer (%d/%d)",
            reason,
            self.consecutive_failures,
            self.max_consecutive_failures,
        )
        if self.consecutive_failures >= self.max_consecutive_failures:
            raise GenerationError(
                f"Respondent generation failed {self.consecutive_failures} times in a row: {reason}"
            )
        return self.scripted.topic_answer(action.topic)
