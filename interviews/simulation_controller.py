from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Set

from tqdm.asyncio import tqdm as async_tqdm

from .config import get_float, get_int
from .errors import GenerationError, InterviewConfigError
from .fields import is_collected
from .flow_evaluator import evaluate_transcript
from .judge import TranscriptJudge
from .llm import TextGenerator
from .models import (
    ActionKind,
    BotConfig,
    Persona,
    Phase,
    SimulationMetrics,
    SimulationRun,
    TopicPlan,
    TranscriptEvaluation,
    Turn,
)
from .planner import build_topic_plan
from .questions import LLMQuestionGenerator, QuestionGenerator, TemplateQuestionGenerator
from .respondent import LLMRespondent, Respondent, ScriptedRespondent, estimate_turn_seconds
from .rng import SimulationRandom
from .state_machine import AssistantAction, InterviewStateMachine


logger = logging.getLogger(__name__)

PERSONA_STRATEGIES = ("weighted", "round_robin")


@dataclass
class RunTracker:
    """
    Flow-policy bookkeeping collected while a run is driven.
    """

    covered: Dict[str, None] = field(default_factory=dict)
    covered_before_data: Dict[str, None] = field(default_factory=dict)
    topic_order: List[int] = field(default_factory=list)
    data_started: bool = False
    collected_fields: Set[str] = field(default_factory=set)
    deep_offer_while_time_left: int = 0
    repeated_field_after_collected: int = 0

    def record(self, action: AssistantAction, remaining_seconds: float) -> None:
        if action.kind is ActionKind.ASK_TOPIC:
            self.covered[action.topic.label] = None
            if not self.data_started:
                self.covered_before_data[action.topic.label] = None
            self.topic_order.append(action.topic.order_index)
        elif action.kind is ActionKind.ASK_DEEP_OFFER:
            if remaining_seconds > 0:
                self.deep_offer_while_time_left += 1
        else:
            self.data_started = True
            if action.kind is ActionKind.ASK_FIELD and action.field in self.collected_fields:
                self.repeated_field_after_collected += 1

    def observe_profile(self, profile: Mapping[str, str]) -> None:
        self.collected_fields.update(name for name, value in profile.items() if is_collected(value))

    @property
    def backward_topic_jumps(self) -> int:
        return sum(1 for prev, cur in zip(self.topic_order, self.topic_order[1:]) if cur < prev)


@dataclass
class SimulationController:
    """
    Drives simulated interviews: state machine on one side, a persona-driven
    respondent on the other, then scores every finished transcript.

    Runs share no mutable state, so `run_batch` may execute them concurrently;
    each run draws from its own RNG stream derived from (seed, run index).
    """

    bot: BotConfig
    personas: List[Persona]
    seed: Optional[int] = None
    max_steps: Optional[int] = None
    persona_strategy: str = "weighted"
    generator: Optional[TextGenerator] = None
    respondent_generator: Optional[TextGenerator] = None
    judge: Optional[TranscriptJudge] = None
    generation_timeout_sec: Optional[float] = None
    max_consecutive_failures: Optional[int] = None
    min_quality_score: Optional[int] = None
    max_transition_failures: Optional[int] = None
    max_consent_failures: Optional[int] = None
    ended_too_early_utilization: Optional[float] = None

    def __post_init__(self) -> None:
        if self.seed is None:
            self.seed = get_int("simulation", "seed", 42)
        if self.max_steps is None:
            self.max_steps = get_int("simulation", "max_steps", 80)
        if self.generation_timeout_sec is None:
            self.generation_timeout_sec = get_float("simulation", "generation_timeout_sec", 20.0)
        if self.max_consecutive_failures is None:
            self.max_consecutive_failures = get_int("simulation", "max_consecutive_failures", 3)
        if self.min_quality_score is None:
            self.min_quality_score = get_int("simulation", "min_quality_score", 80)
        if self.max_transition_failures is None:
            self.max_transition_failures = get_int("simulation", "max_transition_failures", 2)
        if self.max_consent_failures is None:
            self.max_consent_failures = get_int("simulation", "max_consent_failures", 0)
        if self.ended_too_early_utilization is None:
            self.ended_too_early_utilization = get_float("simulation", "ended_too_early_utilization", 0.7)
        if not self.personas:
            raise InterviewConfigError("At least one persona is required.")
        if self.persona_strategy not in PERSONA_STRATEGIES:
            raise InterviewConfigError(
                f"Unknown persona strategy {self.persona_strategy!r}; expected one of {PERSONA_STRATEGIES}."
            )
        self.plan: List[TopicPlan] = build_topic_plan(
            self.bot.topics, self.bot.language, self.bot.planned_duration_sec
        )

    def pick_persona(self, run: int, rng: SimulationRandom) -> Persona:
        if self.persona_strategy == "round_robin":
            return self.personas[(run - 1) % len(self.personas)]
        return rng.pick(self.personas, [p.weight for p in self.personas])

    def _question_generator(self) -> QuestionGenerator:
        if self.generator is None:
            return TemplateQuestionGenerator(self.bot.language)
        return LLMQuestionGenerator(
            generator=self.generator,
            language=self.bot.language,
            timeout_sec=self.generation_timeout_sec,
            max_consecutive_failures=self.max_consecutive_failures,
        )

    def _respondent(self, persona: Persona, rng: SimulationRandom) -> Respondent:
        if self.respondent_generator is None:
            return ScriptedRespondent(persona, self.bot.language, rng)
        return LLMRespondent(
            generator=self.respondent_generator,
            persona=persona,
            language=self.bot.language,
            rng=rng,
            timeout_sec=self.generation_timeout_sec,
            max_consecutive_failures=self.max_consecutive_failures,
        )

    async def run_single(self, run: int) -> SimulationRun:
        """
        Drive one conversation until DONE or the step ceiling, then evaluate it.
        A run that never reaches DONE is reported with completed=False.
        """
        rng = SimulationRandom.for_run(self.seed, run)
        persona = self.pick_persona(run, rng)
        machine = InterviewStateMachine(self.bot, self.plan)
        questions = self._question_generator()
        respondent = self._respondent(persona, rng)
        tracker = RunTracker()
        transcript: List[Turn] = []
        error: Optional[str] = None
        last_user = ""
        last_assistant = ""

        async def speak(action: AssistantAction) -> str:
            tracker.record(action, machine.remaining_seconds)
            text = await questions.generate(action, last_user=last_user, last_assistant=last_assistant)
            transcript.append(Turn(role="assistant", content=text, phase=action.phase, topic_label=action.topic.label))
            return text

        try:
            for _ in range(self.max_steps):
                action = machine.next_action()
                if action is None:
                    break
                last_assistant = await speak(action)
                if action.kind is ActionKind.FINAL_CLOSE:
                    break

                reply = await respondent.reply(action, last_assistant)
                transcript.append(Turn(role="user", content=reply))
                last_user = reply
                machine.apply_user_reply(reply, estimate_turn_seconds(reply, rng))
                tracker.observe_profile(machine.state.profile)

            # The step ceiling can fall right after the reply that finished the interview.
            if machine.is_done:
                closing = machine.next_action()
                if closing is not None:
                    await speak(closing)
        except GenerationError as exc:
            error = str(exc)
            logger.warning("Run %d aborted: %s", run, error)

        completed = machine.is_done and error is None
        if not completed and error is None:
            logger.info("Run %d hit the step ceiling (%d) in phase %s", run, self.max_steps, machine.phase.value)

        evaluation = evaluate_transcript(transcript, self.bot.language)
        metrics = self._metrics(machine, tracker, transcript)
        flow_pass = (
            metrics.deep_offer_while_time_left == 0
            and not metrics.early_data_collection
            and metrics.repeated_field_after_collected == 0
            and not metrics.completion_without_consent_resolution
        )
        quality_pass = self._quality_pass(evaluation)

        llm_judge = None
        if self.judge is not None:
            try:
                llm_judge = await self.judge.evaluate(transcript, self.bot.language)
            except Exception as exc:
                logger.warning("Judge failed on run %d: %s", run, exc)

        return SimulationRun(
            run=run,
            persona=persona.name,
            transcript=transcript,
            evaluation=evaluation,
            metrics=metrics,
            completed=completed,
            error=error,
            flow_pass=flow_pass,
            quality_pass=quality_pass,
            overall_pass=flow_pass and quality_pass and error is None,
            llm_judge=llm_judge,
        )

    def _quality_pass(self, evaluation: TranscriptEvaluation) -> bool:
        return (
            evaluation.score >= self.min_quality_score
            and evaluation.transition_failures <= self.max_transition_failures
            and evaluation.consent_failures <= self.max_consent_failures
        )

    def _metrics(
        self,
        machine: InterviewStateMachine,
        tracker: RunTracker,
        transcript: List[Turn],
    ) -> SimulationMetrics:
        expected = len(self.plan)
        planned = machine.planned_duration_sec
        effective = machine.state.effective_seconds
        coverage_before = len(tracker.covered_before_data) / expected if expected else 0.0
        reached_data = any(t.role == "assistant" and t.phase is Phase.DATA_COLLECTION for t in transcript)
        utilization = effective / planned if planned > 0 else 0.0
        return SimulationMetrics(
            deep_offer_while_time_left=tracker.deep_offer_while_time_left,
            early_data_collection=coverage_before < 1 and reached_data,
            repeated_field_after_collected=tracker.repeated_field_after_collected,
            completion_without_consent_resolution=(
                machine.collects_data and machine.is_done and not machine.consent_resolved
            ),
            backward_topic_jumps=tracker.backward_topic_jumps,
            covered_topics=len(tracker.covered),
            expected_topics=expected,
            coverage_rate=len(tracker.covered) / expected if expected else 0.0,
            coverage_before_data_rate=coverage_before,
            planned_duration_sec=planned,
            effective_duration_sec=int(effective),
            time_utilization=utilization,
            ended_too_early=machine.is_done and utilization < self.ended_too_early_utilization,
        )

    async def run_batch(
        self,
        runs: int,
        max_concurrent: Optional[int] = None,
        progress: bool = False,
    ) -> List[SimulationRun]:
        """
        Execute runs 1..N concurrently (bounded by a semaphore) and return them
        ordered by run index.
        """
        if max_concurrent is None:
            max_concurrent = get_int("simulation", "max_concurrent", 4)
        semaphore = asyncio.Semaphore(max(1, max_concurrent))

        async def run_one(index: int) -> SimulationRun:
            async with semaphore:
                return await self.run_single(index)

        tasks = [run_one(i) for i in range(1, runs + 1)]
        results: List[SimulationRun] = []
        if progress:
            for coro in async_tqdm(asyncio.as_completed(tasks), total=len(tasks), desc="Simulating"):
                results.append(await coro)
        else:
            results = list(await asyncio.gather(*tasks))

        results.sort(key=lambda r: r.run)
        return results
