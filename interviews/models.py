from __future__ import annotations

from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Phase(str, Enum):
    SCAN = "SCAN"
    DEEP = "DEEP"
    DEEP_OFFER = "DEEP_OFFER"
    DATA_COLLECTION = "DATA_COLLECTION"
    DONE = "DONE"


class TransitionMode(str, Enum):
    BRIDGE = "bridge"
    CLEAN_PIVOT = "clean_pivot"


class Intent(str, Enum):
    ACCEPT = "ACCEPT"
    REFUSE = "REFUSE"
    NEUTRAL = "NEUTRAL"


class ActionKind(str, Enum):
    ASK_TOPIC = "ASK_TOPIC"
    ASK_DEEP_OFFER = "ASK_DEEP_OFFER"
    ASK_CONSENT = "ASK_CONSENT"
    ASK_FIELD = "ASK_FIELD"
    FINAL_CLOSE = "FINAL_CLOSE"


class TopicDescriptor(BaseModel):
    """
    One interview topic as declared in the bot configuration.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    order_index: int = 0
    max_turns: Optional[int] = Field(
        None,
        ge=1,
        description="Explicit cap on SCAN turns; the time-derived cap still applies.",
    )
    sub_goals: List[str] = Field(default_factory=list)


class TopicPlan(BaseModel):
    """
    Per-topic turn budget derived once from the topic list and planned duration.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    order_index: int
    scan_max_turns: int = Field(..., ge=1)
    deep_max_turns: int = Field(..., ge=1)
    anchor_roots: List[str] = Field(default_factory=list)


class BotConfig(BaseModel):
    """
    The slice of bot configuration the interview engine consumes.
    """

    id: str
    name: str = ""
    language: str
    max_duration_mins: float = Field(10, gt=0)
    collect_data: bool = False
    data_fields: List[str] = Field(
        default_factory=list,
        description="Required contact fields, asked in declaration order.",
    )
    topics: List[TopicDescriptor] = Field(default_factory=list)

    @field_validator("language")
    @classmethod
    def _language_required(cls, value: str) -> str:
        value = (value or "").strip().lower()
        if not value:
            raise ValueError("Bot language is required.")
        return value

    @field_validator("data_fields", mode="before")
    @classmethod
    def _normalize_fields(cls, value: object) -> List[str]:
        if not isinstance(value, list):
            return []
        seen: List[str] = []
        for item in value:
            field = item.strip() if isinstance(item, str) else ""
            if field and field not in seen:
                seen.append(field)
        return seen

    @model_validator(mode="after")
    def _topics_required(self) -> "BotConfig":
        if not self.topics:
            raise ValueError(f"Bot {self.id!r} has no topics configured.")
        return self

    @property
    def planned_duration_sec(self) -> int:
        return max(60, int(self.max_duration_mins * 60))


class Turn(BaseModel):
    """
    Single transcript entry. Assistant turns carry the phase and topic
    label that were active when they were spoken.
    """

    role: Literal["assistant", "user"]
    content: str
    phase: Optional[Phase] = None
    topic_label: Optional[str] = None


class Persona(BaseModel):
    """
    Behavioural profile of a synthetic respondent.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    brevity: float = Field(0.5, ge=0.0, le=1.0, description="Chance of a short generic answer.")
    confusion_chance: float = Field(0.0, ge=0.0, le=1.0)
    refuse_deep_offer_chance: float = Field(0.0, ge=0.0, le=1.0)
    refuse_consent_chance: float = Field(0.0, ge=0.0, le=1.0)
    skip_field_chance: float = Field(0.0, ge=0.0, le=1.0)
    frustration_chance: float = Field(0.0, ge=0.0, le=1.0)
    weight: float = Field(1.0, gt=0.0, description="Relative weight for weighted persona sampling.")
    style: str = ""
    values: Dict[str, str] = Field(default_factory=dict)

    @property
    def detail_bias(self) -> float:
        return round(1.0 - self.brevity, 2)


class TurnEvaluation(BaseModel):
    """
    Checklist result for one assistant turn.
    """

    passed: bool
    score: int = Field(..., ge=0, le=100)
    checks: Dict[str, bool] = Field(default_factory=dict)
    issues: List[str] = Field(default_factory=list)


class TranscriptTurnEvaluation(BaseModel):
    turn_index: int
    topic_label: str = ""
    phase: Phase
    passed: bool
    score: int = Field(..., ge=0, le=100)
    is_transition: bool = False
    checks: Dict[str, bool] = Field(default_factory=dict)
    issues: List[str] = Field(default_factory=list)


class TranscriptEvaluation(BaseModel):
    """
    Whole-transcript quality result. Rebuilt from the transcript every time.
    """

    passed: bool
    score: int = Field(..., ge=0, le=100)
    evaluated_turns: int = 0
    failed_turns: int = 0
    transition_turns: int = 0
    transition_failures: int = 0
    consent_turns: int = 0
    consent_failures: int = 0
    issues: List[str] = Field(default_factory=list)
    turns: List[TranscriptTurnEvaluation] = Field(default_factory=list)


class JudgeReport(BaseModel):
    score: int = Field(0, ge=0, le=100)
    passed: bool = False
    strengths: List[str] = Field(default_factory=list)
    issues: List[str] = Field(default_factory=list)


class SimulationMetrics(BaseModel):
    deep_offer_while_time_left: int = 0
    early_data_collection: bool = False
    repeated_field_after_collected: int = 0
    completion_without_consent_resolution: bool = False
    backward_topic_jumps: int = 0
    covered_topics: int = 0
    expected_topics: int = 0
    coverage_rate: float = 0.0
    coverage_before_data_rate: float = 0.0
    planned_duration_sec: int = 0
    effective_duration_sec: int = 0
    time_utilization: float = 0.0
    ended_too_early: bool = False


class SimulationRun(BaseModel):
    """
    Outcome of one simulated conversation.
    """

    run: int
    persona: str
    transcript: List[Turn] = Field(default_factory=list)
    evaluation: TranscriptEvaluation
    metrics: SimulationMetrics
    completed: bool = Field(
        False,
        description="False when the run hit the step ceiling or aborted before DONE.",
    )
    error: Optional[str] = None
    flow_pass: bool = False
    quality_pass: bool = False
    overall_pass: bool = False
    llm_judge: Optional[JudgeReport] = None


class BatchSummary(BaseModel):
    """
    Aggregate statistics over a batch of simulated runs.
    """

    runs: int = 0
    completed_runs: int = 0
    errored_runs: int = 0
    flow_passes: int = 0
    quality_passes: int = 0
    overall_passes: int = 0
    flow_pass_rate: float = 0.0
    quality_pass_rate: float = 0.0
    overall_pass_rate: float = 0.0
    avg_score: float = 0.0
    avg_transition_failures: float = 0.0
    avg_consent_failures: float = 0.0
    avg_coverage_rate: float = 0.0
    avg_coverage_before_data_rate: float = 0.0
    avg_time_utilization: float = 0.0
    deep_offer_while_time_left_total: int = 0
    early_data_collection_runs: int = 0
    repeated_field_runs: int = 0
    completion_without_consent_runs: int = 0
    ended_too_early_runs: int = 0
    persona_counts: Dict[str, int] = Field(default_factory=dict)
    top_issues: List[str] = Field(default_factory=list)
