import asyncio
import json
import logging
import os
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .bots import load_bot_config
from .config import get_int
from .errors import InterviewConfigError
from .flow_evaluator import evaluate_transcript
from .judge import TranscriptJudge
from .llm import LiteLLMGenerator
from .models import Turn
from .personas import load_personas
from .planner import build_topic_plan
from .reporting import print_report, render_markdown
from .simulation_controller import SimulationController


app = typer.Typer(help="Interview flow simulation and quality evaluation CLI")
console = Console()


@app.callback()
def main(
    log_level: str = typer.Option(
        os.environ.get("INTERVIEW_LOG_LEVEL", "WARNING"),
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    ),
):
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


def _fail(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    raise typer.Exit(code=1)


@app.command("simulate")
def simulate(
    bot_file: Path = typer.Argument(..., help="Bot definition (YAML or JSON)."),
    runs: int = typer.Option(get_int("simulation", "runs", 20), min=1, help="Number of simulated conversations."),
    seed: int = typer.Option(get_int("simulation", "seed", 42), help="Base seed; each run derives its own stream."),
    max_steps: int = typer.Option(get_int("simulation", "max_steps", 80), min=1, help="Per-run step ceiling."),
    samples: int = typer.Option(get_int("simulation", "samples", 2), min=0, help="Worst/best transcripts to print."),
    concurrency: int = typer.Option(get_int("simulation", "max_concurrent", 4), min=1, help="Concurrent runs."),
    personas_file: Optional[Path] = typer.Option(None, help="Persona catalogue (YAML). Defaults to the bundled one."),
    persona_strategy: str = typer.Option("weighted", help="weighted | round_robin"),
    llm: bool = typer.Option(False, "--llm", help="Phrase assistant turns with the LLM instead of templates."),
    model: Optional[str] = typer.Option(None, help="Override the question generator model."),
    live_respondent: bool = typer.Option(False, "--live-respondent", help="Generate topic answers with the LLM."),
    judge: bool = typer.Option(False, "--judge", help="Score each transcript with the LLM judge."),
    output_json: Optional[Path] = typer.Option(None, help="Write runs and summary as JSON."),
    output_md: Optional[Path] = typer.Option(None, help="Write a Markdown report."),
):
    """Run a batch of seeded interview simulations against a bot definition."""
    try:
        bot = load_bot_config(bot_file)
        personas = load_personas(personas_file)
        controller = SimulationController(
            bot=bot,
            personas=personas,
            seed=seed,
            max_steps=max_steps,
            persona_strategy=persona_strategy,
            generator=LiteLLMGenerator("question_generator", model=model) if llm else None,
            respondent_generator=LiteLLMGenerator("respondent") if live_respondent else None,
            judge=TranscriptJudge() if judge else None,
        )
    except InterviewConfigError as exc:
        _fail(str(exc))

    results = asyncio.run(controller.run_batch(runs, max_concurrent=concurrency, progress=True))
    summary = print_report(console, bot, results, samples)

    if output_json:
        payload = {
            "bot_id": bot.id,
            "seed": seed,
            "summary": summary.model_dump(mode="json"),
            "runs": [r.model_dump(mode="json") for r in results],
        }
        output_json.parent.mkdir(parents=True, exist_ok=True)
        output_json.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        console.print(Panel.fit(f"JSON report → {output_json}", title="Saved"))
    if output_md:
        output_md.parent.mkdir(parents=True, exist_ok=True)
        output_md.write_text(render_markdown(bot, results, samples, seed=seed), encoding="utf-8")
        console.print(Panel.fit(f"Markdown report → {output_md}", title="Saved"))


@app.command("evaluate")
def evaluate(
    transcript_file: Path = typer.Argument(..., help="JSON list of turns, or an object with a 'transcript' list."),
    language: str = typer.Option("en", help="Transcript language (en, it)."),
    show_turns: bool = typer.Option(False, help="List every evaluated assistant turn."),
):
    """Score a recorded transcript with the flow evaluator."""
    if not transcript_file.exists():
        _fail(f"Transcript file not found: {transcript_file}")
    try:
        data = json.loads(transcript_file.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            data = data.get("transcript", [])
        turns: List[Turn] = TypeAdapter(List[Turn]).validate_python(data)
    except (json.JSONDecodeError, ValidationError) as exc:
        _fail(f"Invalid transcript: {exc}")

    result = evaluate_transcript(turns, language)
    verdict = "[green]PASS[/green]" if result.passed else "[red]FAIL[/red]"
    console.print(
        Panel.fit(
            f"{verdict} score={result.score}\n"
            f"evaluated={result.evaluated_turns} failed={result.failed_turns}\n"
            f"transitions={result.transition_turns} transition_failures={result.transition_failures}\n"
            f"consent_turns={result.consent_turns} consent_failures={result.consent_failures}",
            title="Transcript evaluation",
        )
    )
    for issue in result.issues:
        console.print(f"  - {issue}", markup=False)

    if show_turns:
        table = Table(show_header=True, header_style="bold")
        for column in ("#", "Phase", "Topic", "Score", "Issues"):
            table.add_column(column)
        for t in result.turns:
            table.add_row(str(t.turn_index), t.phase.value, t.topic_label, str(t.score), "; ".join(t.issues))
        console.print(table)


@app.command("plan")
def plan(bot_file: Path = typer.Argument(..., help="Bot definition (YAML or JSON).")):
    """Show the per-topic turn budget derived from a bot definition."""
    try:
        bot = load_bot_config(bot_file)
    except InterviewConfigError as exc:
        _fail(str(exc))

    topics = build_topic_plan(bot.topics, bot.language, bot.planned_duration_sec)
    table = Table(title=f"{bot.id} ({bot.planned_duration_sec}s)", show_header=True, header_style="bold")
    for column in ("#", "Topic", "SCAN turns", "DEEP turns", "Anchor roots"):
        table.add_column(column)
    for t in topics:
        table.add_row(str(t.order_index), t.label, str(t.scan_max_turns), str(t.deep_max_turns), ", ".join(t.anchor_roots))
    console.print(table)


if __name__ == "__main__":
    app()
