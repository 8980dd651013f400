import asyncio

from rich.console import Console

from interviews.models import (
    Phase,
    SimulationMetrics,
    SimulationRun,
    TranscriptEvaluation,
    TranscriptTurnEvaluation,
    Turn,
)
from interviews.reporting import (
    SAMPLE_MAX_CHARS,
    format_turn,
    print_report,
    render_markdown,
    select_samples,
    summarize_runs,
)
from interviews.simulation_controller import SimulationController

from .conftest import make_bot, make_persona


def _run(run: int, score: int, flow: bool = True, quality: bool = True, persona: str = "p", issues=()) -> SimulationRun:
    turns = [
        TranscriptTurnEvaluation(turn_index=0, phase=Phase.SCAN, passed=not issues, score=score, issues=list(issues))
    ]
    return SimulationRun(
        run=run,
        persona=persona,
        evaluation=TranscriptEvaluation(passed=not issues, score=score, turns=turns),
        metrics=SimulationMetrics(coverage_rate=1.0, time_utilization=0.5),
        completed=True,
        flow_pass=flow,
        quality_pass=quality,
        overall_pass=flow and quality,
    )


def test_summarize_runs_counts_and_averages() -> None:
    runs = [
        _run(1, 100, persona="a"),
        _run(2, 60, quality=False, persona="b", issues=["Too generic.", "Echo."]),
        _run(3, 80, flow=False, persona="a", issues=["Too generic."]),
    ]
    summary = summarize_runs(runs)

    assert summary.runs == 3
    assert summary.overall_passes == 1
    assert summary.flow_passes == 2
    assert summary.quality_pass_rate == 2 / 3
    assert summary.avg_score == 80
    assert summary.avg_time_utilization == 0.5
    assert summary.persona_counts == {"a": 2, "b": 1}
    assert summary.top_issues == ["Too generic. (2)", "Echo. (1)"]


def test_summarize_empty_batch() -> None:
    summary = summarize_runs([])
    assert summary.runs == 0
    assert summary.overall_pass_rate == 0.0


def test_select_samples_orders_failures_first() -> None:
    runs = [
        _run(1, 95),
        _run(2, 90, flow=False),
        _run(3, 40),
        _run(4, 70, quality=False),
    ]
    worst, best = select_samples(runs, 3)

    assert [r.run for r in worst] == [2, 4, 3]
    assert [r.run for r in best] == [1, 2, 4]
    assert select_samples(runs, 0) == ([], [])


def test_format_turn_clips_long_content() -> None:
    assistant = Turn(role="assistant", content="word " * 100, phase=Phase.DEEP, topic_label="Data governance")
    line = format_turn(assistant)

    assert line.startswith("A [DEEP|Data governance] ")
    assert line.endswith("...")
    assert len(line) == len("A [DEEP|Data governance] ") + SAMPLE_MAX_CHARS
    assert format_turn(Turn(role="user", content="  yes \n sure ")) == "U [-] yes sure"


def test_reports_render_for_a_real_batch() -> None:
    bot = make_bot()
    runs = asyncio.run(SimulationController(bot=bot, personas=[make_persona()]).run_batch(3))

    markdown = render_markdown(bot, runs, samples=1, seed=42)
    assert markdown.startswith("# Interview flow simulation: Test bot")
    assert "| Overall pass rate |" in markdown
    assert "## Worst runs" in markdown
    assert "```text" in markdown

    console = Console(record=True, width=120)
    summary = print_report(console, bot, runs, samples=1)
    output = console.export_text()
    assert summary.runs == 3
    assert "Sample worst runs" in output
    assert "Run #" in output
