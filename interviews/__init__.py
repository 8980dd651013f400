"""
Interviews: phase-driven interview flow, quality evaluation and simulation.

Modules map directly onto the architecture:

- `anchors` → topic label / sub-goals → anchor tokens and roots
- `planner` → topics + planned duration → per-topic SCAN/DEEP turn budgets
- `state_machine` → SCAN → DEEP → DEEP_OFFER → DATA_COLLECTION → DONE, with consent and field sub-flow
- `turn_evaluator` / `flow_evaluator` → assistant turn or whole transcript → checklist score and issues
- `simulation_controller` → bot + personas + seed → reproducible batch of scored transcripts
"""

from .models import BotConfig, Persona, Phase, TopicDescriptor, TopicPlan, Turn
from .anchors import build_topic_anchors
from .planner import build_topic_plan
from .state_machine import InterviewStateMachine
from .turn_evaluator import evaluate_turn
from .flow_evaluator import evaluate_transcript
from .simulation_controller import SimulationController

__all__ = [
    "BotConfig",
    "Persona",
    "Phase",
    "TopicDescriptor",
    "TopicPlan",
    "Turn",
    "build_topic_anchors",
    "build_topic_plan",
    "InterviewStateMachine",
    "evaluate_turn",
    "evaluate_transcript",
    "SimulationController",
]
