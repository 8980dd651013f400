from __future__ import annotations

from collections import Counter
from typing import List, Optional, Sequence, Tuple

from rich.console import Console
from rich.table import Table

from .config import get_int
from .models import BatchSummary, BotConfig, SimulationRun, Turn


SAMPLE_MAX_TURNS = 22
SAMPLE_MAX_CHARS = 220


def _avg(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _pct(value: float) -> str:
    return f"{value * 100:.1f}%"


def summarize_runs(runs: Sequence[SimulationRun], top_issues: Optional[int] = None) -> BatchSummary:
    """
    Aggregate pass rates, averages and policy-violation counts over a batch.
    """
    limit = top_issues if top_issues is not None else get_int("evaluation", "top_issues", 10)
    total = len(runs)
    if total == 0:
        return BatchSummary()

    flow = sum(1 for r in runs if r.flow_pass)
    quality = sum(1 for r in runs if r.quality_pass)
    overall = sum(1 for r in runs if r.overall_pass)

    issues: Counter = Counter()
    for r in runs:
        for turn in r.evaluation.turns:
            issues.update(turn.issues)

    return BatchSummary(
        runs=total,
        completed_runs=sum(1 for r in runs if r.completed),
        errored_runs=sum(1 for r in runs if r.error),
        flow_passes=flow,
        quality_passes=quality,
        overall_passes=overall,
        flow_pass_rate=flow / total,
        quality_pass_rate=quality / total,
        overall_pass_rate=overall / total,
        avg_score=_avg([r.evaluation.score for r in runs]),
        avg_transition_failures=_avg([r.evaluation.transition_failures for r in runs]),
        avg_consent_failures=_avg([r.evaluation.consent_failures for r in runs]),
        avg_coverage_rate=_avg([r.metrics.coverage_rate for r in runs]),
        avg_coverage_before_data_rate=_avg([r.metrics.coverage_before_data_rate for r in runs]),
        avg_time_utilization=_avg([r.metrics.time_utilization for r in runs]),
        deep_offer_while_time_left_total=sum(r.metrics.deep_offer_while_time_left for r in runs),
        early_data_collection_runs=sum(1 for r in runs if r.metrics.early_data_collection),
        repeated_field_runs=sum(1 for r in runs if r.metrics.repeated_field_after_collected > 0),
        completion_without_consent_runs=sum(
            1 for r in runs if r.metrics.completion_without_consent_resolution
        ),
        ended_too_early_runs=sum(1 for r in runs if r.metrics.ended_too_early),
        persona_counts=dict(Counter(r.persona for r in runs)),
        top_issues=[f"{issue} ({count})" for issue, count in issues.most_common(limit)],
    )


def select_samples(runs: Sequence[SimulationRun], n: int) -> Tuple[List[SimulationRun], List[SimulationRun]]:
    """
    Worst runs order failing verdicts first (overall, then flow, then quality)
    and break ties on the lowest score; best runs are simply the top scores.
    """
    n = max(0, n)
    worst = sorted(
        runs,
        key=lambda r: (r.overall_pass, r.flow_pass, r.quality_pass, r.evaluation.score),
    )[:n]
    best = sorted(runs, key=lambda r: r.evaluation.score, reverse=True)[:n]
    return worst, best


def format_turn(turn: Turn) -> str:
    if turn.role == "assistant":
        role = "A"
        phase = f"{turn.phase.value if turn.phase else 'SCAN'}|{turn.topic_label or '-'}"
    else:
        role, phase = "U", "-"
    text = " ".join(turn.content.split())
    if len(text) > SAMPLE_MAX_CHARS:
        text = text[: SAMPLE_MAX_CHARS - 3] + "..."
    return f"{role} [{phase}] {text}"


def run_header(run: SimulationRun) -> List[str]:
    m = run.metrics
    e = run.evaluation
    lines = [
        f"flow_pass={run.flow_pass} quality_pass={run.quality_pass} overall_pass={run.overall_pass}",
        f"score={e.score} failed_turns={e.failed_turns} "
        f"transition_failures={e.transition_failures} consent_failures={e.consent_failures}",
        f"coverage={m.coverage_rate * 100:.0f}% coverage_before_data={m.coverage_before_data_rate * 100:.0f}% "
        f"time_util={m.time_utilization * 100:.0f}% deep_offer_while_time_left={m.deep_offer_while_time_left} "
        f"repeated_field_after_collected={m.repeated_field_after_collected}",
    ]
    if run.error:
        lines.append(f"error={run.error}")
    return lines


def summary_rows(summary: BatchSummary) -> List[Tuple[str, str]]:
    return [
        ("Runs", f"{summary.runs} (completed {summary.completed_runs}, errored {summary.errored_runs})"),
        ("Flow pass rate", f"{summary.flow_passes}/{summary.runs} ({_pct(summary.flow_pass_rate)})"),
        ("Quality pass rate", f"{summary.quality_passes}/{summary.runs} ({_pct(summary.quality_pass_rate)})"),
        ("Overall pass rate", f"{summary.overall_passes}/{summary.runs} ({_pct(summary.overall_pass_rate)})"),
        ("Avg score", f"{summary.avg_score:.1f}"),
        ("Avg transition failures", f"{summary.avg_transition_failures:.2f}"),
        ("Avg consent failures", f"{summary.avg_consent_failures:.2f}"),
        ("Avg topic coverage", _pct(summary.avg_coverage_rate)),
        ("Avg coverage before data collection", _pct(summary.avg_coverage_before_data_rate)),
        ("Avg time utilization", _pct(summary.avg_time_utilization)),
        ("Deep offer while time left (total)", str(summary.deep_offer_while_time_left_total)),
        ("Early data collection runs", str(summary.early_data_collection_runs)),
        ("Repeated field-after-collected runs", str(summary.repeated_field_runs)),
        ("Completion without consent resolution", str(summary.completion_without_consent_runs)),
        ("Ended too early", str(summary.ended_too_early_runs)),
    ]


def summary_table(summary: BatchSummary, title: str = "Interview Flow Simulation") -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for name, value in summary_rows(summary):
        table.add_row(name, value)
    return table


def print_report(console: Console, bot: BotConfig, runs: Sequence[SimulationRun], samples: int) -> BatchSummary:
    summary = summarize_runs(runs)
    console.print(
        f"bot=[bold]{bot.id}[/bold] language={bot.language} topics={len(bot.topics)} "
        f"planned_duration_sec={bot.planned_duration_sec} collect_data={bot.collect_data} "
        f"fields=[{', '.join(bot.data_fields)}]",
        highlight=False,
    )
    console.print(summary_table(summary))
    if summary.persona_counts:
        console.print("Personas: " + ", ".join(f"{k}={v}" for k, v in sorted(summary.persona_counts.items())))
    if summary.top_issues:
        console.print("[bold]Top issues[/bold]")
        for issue in summary.top_issues:
            console.print(f"  - {issue}", markup=False)

    worst, best = select_samples(runs, samples)
    for title, group in (("Sample worst runs", worst), ("Sample best runs", best)):
        if not group:
            continue
        console.rule(title)
        for run in group:
            console.print(f"[bold]Run #{run.run}[/bold] ({run.persona})")
            for line in run_header(run):
                console.print(line, markup=False, highlight=False)
            for turn in run.transcript[:SAMPLE_MAX_TURNS]:
                console.print(format_turn(turn), markup=False, highlight=False)
            console.print()
    return summary


def render_markdown(bot: BotConfig, runs: Sequence[SimulationRun], samples: int, seed: Optional[int] = None) -> str:
    summary = summarize_runs(runs)
    runs_line = f"- runs: {summary.runs}"
    if seed is not None:
        runs_line += f" (seed {seed})"
    lines: List[str] = [
        f"# Interview flow simulation: {bot.name or bot.id}",
        "",
        f"- bot: `{bot.id}` ({bot.language})",
        runs_line,
        f"- topics: {len(bot.topics)}, planned duration: {bot.planned_duration_sec}s",
        f"- collect data: {bot.collect_data} [{', '.join(bot.data_fields)}]",
        "",
        "## Summary",
        "",
        "| Metric | Value |",
        "| --- | --- |",
    ]
    lines += [f"| {name} | {value} |" for name, value in summary_rows(summary)]

    if summary.top_issues:
        lines += ["", "## Top issues", ""]
        lines += [f"- {issue}" for issue in summary.top_issues]

    worst, best = select_samples(runs, samples)
    for title, group in (("Worst runs", worst), ("Best runs", best)):
        if not group:
            continue
        lines += ["", f"## {title}"]
        for run in group:
            lines += ["", f"### Run #{run.run} ({run.persona})", ""]
            lines += [f"- {line}" for line in run_header(run)]
            lines += ["", "```text"]
            lines += [format_turn(turn) for turn in run.transcript[:SAMPLE_MAX_TURNS]]
            lines.append("```")
    return "\n".join(lines) + "\n"
