import asyncio
import os

import pytest

from interviews.judge import TranscriptJudge
from interviews.llm import LiteLLMGenerator
from interviews.personas import load_personas
from interviews.simulation_controller import SimulationController

from .conftest import make_bot


_HAS_KEY = bool(os.environ.get("OPENAI_API_KEY") or os.environ.get("GEMINI_API_KEY"))


@pytest.mark.skipif(
    not _HAS_KEY, reason="Requires LLM API key (OPENAI_API_KEY or GEMINI_API_KEY)"
)
def test_llm_batch_smoke() -> None:
    controller = SimulationController(
        bot=make_bot(minutes=3, collect_data=False),
        personas=load_personas(),
        seed=3,
        generator=LiteLLMGenerator("question_generator"),
        respondent_generator=LiteLLMGenerator("respondent"),
        judge=TranscriptJudge(),
    )
    runs = asyncio.run(controller.run_batch(2, max_concurrent=2))

    assert len(runs) == 2
    for run in runs:
        assert run.transcript
        assert 0 <= run.evaluation.score <= 100
        if run.llm_judge is not None:
            assert 0 <= run.llm_judge.score <= 100
