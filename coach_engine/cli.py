"""
Command-line interface for the coach decision engine.

Provides commands for:
- Readiness evaluation and fatigue classification from JSON files
- Prescribing and saving a session for a stored athlete
- Guardrail checks and deloads for a planned week
- Memory jobs (weekly summary, monthly traits, cleanup)
- Journal pattern analysis
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from coach_engine.clock import SystemClock
from coach_engine.coach import CoachDecisionEngine, CoachResponse, load_coach_context
from coach_engine.config import settings
from coach_engine.database import init_database
from coach_engine.errors import AthleteNotFoundError
from coach_engine.fatigue import FatigueInputs, FatigueResult, detect_fatigue_type, get_fatigue_explanation
from coach_engine.guardrails import (
    GuardrailResult,
    apply_deload,
    check_guardrails,
    format_guardrail_warnings,
    get_risk_description,
)
from coach_engine.intent import KeywordIntentResolver
from coach_engine.journal import analyze_correlations, compare_last_14_days, detect_all_patterns
from coach_engine.logger import setup_logger
from coach_engine.memory import MemoryEngine, MemoryOverview
from coach_engine.readiness import EvaluationResult, evaluate_pre_training, get_decision_display
from coach_engine.rendering import PrescriptionExporter
from coach_engine.repositories import AthleteRepository
from coach_engine.save_engine import SaveMode
from coach_engine.schemas import (
    AthleteProfile,
    CheckIn,
    DiaryEntry,
    ExplainLevel,
    MetricPoint,
    PlannedWorkout,
    TrainingContext,
)

# Initialize Typer app and Rich console
app = typer.Typer(
    help="Coach Decision Engine - Deterministic readiness, prescription and memory for endurance athletes"
)
console = Console()


@app.callback()
def main(
    log_level: str = typer.Option(settings.log_level, "--log-level", help="Log level"),
):
    setup_logger(log_level, settings.log_file)


# ===== LOADING HELPERS =====


def _load_json(path: Path, what: str):
    try:
        with open(path) as f:
            return json.load(f)
    except Exception as e:
        console.print(f"[red]✗ Failed to load {what}: {e}[/red]")
        raise typer.Exit(1)


def _parse(model, data, what: str):
    try:
        return model.model_validate(data)
    except Exception as e:
        console.print(f"[red]✗ Invalid {what}: {e}[/red]")
        raise typer.Exit(1)


def _parse_list(model, data, what: str) -> list:
    if not isinstance(data, list):
        console.print(f"[red]✗ Invalid {what}: expected a JSON list[/red]")
        raise typer.Exit(1)
    return [_parse(model, item, what) for item in data]


# ===== DISPLAY HELPER FUNCTIONS =====


def _decision_color(score: int) -> str:
    if score >= 75:
        return "green"
    if score >= 50:
        return "yellow"
    return "red"


def _display_evaluation(result: EvaluationResult, detailed: bool = False):
    """
    Display a readiness evaluation with its reasons and adaptations.

    Args:
        result: EvaluationResult from evaluate_pre_training
        detailed: If True, also lists positive and neutral reasons
    """
    color = _decision_color(result.readiness_score)
    console.print(
        f"\n[bold]Readiness: [{color}]{result.readiness_score}/100[/{color}] "
        f"- {get_decision_display(result.decision)}[/bold] "
        f"(confidence {result.confidence}%)\n"
    )
    console.print(Panel(result.explanation, title="Why", border_style=color))

    reasons = result.reasons if detailed else result.negative_reasons
    if reasons:
        table = Table(title="Signals", box=box.ROUNDED)
        table.add_column("Factor", style="cyan")
        table.add_column("Value", justify="right")
        table.add_column("Impact", style="yellow")
        table.add_column("Description")
        for reason in reasons:
            table.add_row(
                reason.factor.replace("_", " ").title(),
                str(reason.value),
                reason.impact.value,
                reason.description,
            )
        console.print(table)

    if result.adaptations:
        console.print("\n[bold]Adaptations:[/bold]")
        for adaptation in result.adaptations:
            console.print(
                f"  • {adaptation.type.value}: {adaptation.original_value} → "
                f"{adaptation.adapted_value} ({adaptation.reason})"
            )


def _display_fatigue(result: FatigueResult, explain_level: ExplainLevel):
    console.print(f"\n[bold]Fatigue: {result.type.value}[/bold] (severity {result.severity}%)")
    console.print(f"  {get_fatigue_explanation(result, explain_level)}")
    for reason in result.reasons:
        console.print(f"  • {reason.reason} [dim](+{reason.weight})[/dim]")


def _display_guardrails(result: GuardrailResult, explain_level: ExplainLevel):
    """
    Display guardrail warnings and proposed duration adjustments.

    Args:
        result: GuardrailResult from check_guardrails
        explain_level: Depth of the warning summary
    """
    color = "green" if result.is_within_limits else "red"
    console.print(
        f"\n[bold]Risk: [{color}]{result.risk_score}[/{color}] "
        f"({get_risk_description(result.risk_score)})[/bold]"
    )
    console.print(f"  {format_guardrail_warnings(result, explain_level)}\n")

    if result.adjustments:
        table = Table(title="Proposed Adjustments", box=box.ROUNDED)
        table.add_column("Workout", style="cyan")
        table.add_column("Date")
        table.add_column("Duration", justify="right", style="yellow")
        table.add_column("Intensity")
        table.add_column("Reason")
        for adj in result.adjustments:
            table.add_row(
                adj.workout_id or "-",
                adj.date,
                f"{adj.original_duration} → {adj.adjusted_duration} min",
                f"{adj.original_intensity.value} → {adj.adjusted_intensity.value}",
                adj.reason,
            )
        console.print(table)


def _display_coach_response(response: CoachResponse):
    if not response.success:
        console.print(f"[red]✗ No session saved ({response.reason})[/red]")
        for warning in response.warnings:
            console.print(f"  ⚠ {warning}")
        return

    if response.saved:
        outcome = "created" if response.created else "updated" if response.updated else "reused"
        console.print(
            f"\n✓ [green]{response.title}[/green] ({response.duration_min} min) "
            f"{outcome} as workout #{response.workout_id}"
        )
    else:
        console.print(f"\n✓ [green]{response.title}[/green] ({response.duration_min} min) not saved")

    for warning in response.warnings:
        console.print(f"  [yellow]⚠ {warning}[/yellow]")

    if response.markdown:
        console.print()
        console.print(Markdown(response.markdown))


def _display_memories(overview: MemoryOverview):
    table = Table(title="Athlete Memories", box=box.ROUNDED)
    table.add_column("ID", justify="right")
    table.add_column("Layer", style="cyan")
    table.add_column("Title")
    table.add_column("Confidence", justify="right", style="yellow")
    table.add_column("Expires")

    for records in (overview.short_term, overview.mid_term, overview.long_term):
        for record in records:
            table.add_row(
                str(record.id),
                record.layer.value,
                record.title,
                f"{record.confidence}%",
                record.expires_at.strftime("%Y-%m-%d") if record.expires_at else "never",
            )

    console.print(table)
    console.print(f"Average confidence: {overview.total_confidence}%")


# ===== CLI COMMANDS =====


@app.command()
def init_db(
    database: str = typer.Option(settings.database_url, "--database", "-d", help="Database URL"),
    profile: Optional[Path] = typer.Option(
        None,
        "--profile",
        "-p",
        help="Athlete profile JSON file to store",
        exists=True,
    ),
):
    """
    Create the database tables and optionally store an athlete profile.
    """
    session = init_database(database)
    console.print(f"✓ Database ready at [cyan]{database}[/cyan]")

    if profile:
        athlete = _parse(AthleteProfile, _load_json(profile, "profile"), "profile")
        AthleteRepository(session).upsert_profile(athlete)
        session.commit()
        console.print(f"✓ Stored athlete [green]{athlete.athlete_id}[/green]")
    session.close()


@app.command()
def readiness(
    check_in: Path = typer.Option(
        ...,
        "--check-in",
        "-c",
        help="Path to check-in JSON file",
        exists=True,
    ),
    training: Optional[Path] = typer.Option(
        None,
        "--training",
        "-t",
        help="Path to training context JSON file (CTL/ATL/TSB, planned session)",
        exists=True,
    ),
    detailed: bool = typer.Option(False, "--detailed", help="Show every signal"),
):
    """
    Evaluate a pre-training check-in and recommend what to do today.
    """
    parsed = _parse(CheckIn, _load_json(check_in, "check-in"), "check-in")
    context = (
        _parse(TrainingContext, _load_json(training, "training context"), "training context")
        if training
        else TrainingContext()
    )

    result = evaluate_pre_training(parsed, context)
    _display_evaluation(result, detailed)


@app.command()
def fatigue(
    inputs: Path = typer.Option(
        ...,
        "--inputs",
        "-i",
        help="Path to fatigue inputs JSON file",
        exists=True,
    ),
    explain: ExplainLevel = typer.Option(ExplainLevel.STANDARD, "--explain", "-e"),
):
    """
    Classify the dominant fatigue type from wellbeing and load signals.
    """
    parsed = _parse(FatigueInputs, _load_json(inputs, "fatigue inputs"), "fatigue inputs")
    _display_fatigue(detect_fatigue_type(parsed), explain)


@app.command()
def prescribe(
    athlete: str = typer.Option(..., "--athlete", "-a", help="Athlete identifier"),
    message: str = typer.Option(..., "--message", "-m", help="Session request, e.g. 'swim 1500m tomorrow'"),
    database: str = typer.Option(settings.database_url, "--database", "-d", help="Database URL"),
    mode: Optional[SaveMode] = typer.Option(None, "--mode", help="Save mode (default from request)"),
    explain: ExplainLevel = typer.Option(ExplainLevel.STANDARD, "--explain", "-e"),
    save: bool = typer.Option(True, "--save/--dry-run", help="Save the session to the calendar"),
    result_template: bool = typer.Option(
        False, "--result-template", help="Append a result-logging block"
    ),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", "-o", help="Also export the prescription to this directory"
    ),
    output_format: str = typer.Option(
        "markdown", "--format", "-f", help="Export format (json or markdown)"
    ),
):
    """
    Prescribe a session from a free-text request and save it idempotently.
    """
    session = init_database(database)
    clock = SystemClock()
    engine = CoachDecisionEngine(session, clock)

    try:
        intent = None
        if not save:
            context = load_coach_context(session, athlete, clock)
            intent = KeywordIntentResolver().resolve(message, context)
            if intent is not None:
                intent = intent.model_copy(update={"add_to_calendar": False})

        response = engine.generate_and_save(
            athlete,
            message=message,
            intent=intent,
            mode=mode,
            explain_level=explain,
            source="cli",
            include_result_template=result_template,
        )
    except AthleteNotFoundError as e:
        console.print(f"[red]✗ {e}. Store a profile with 'init-db --profile'.[/red]")
        raise typer.Exit(1)
    finally:
        session.close()

    _display_coach_response(response)

    if output_dir and response.prescription:
        try:
            exporter = PrescriptionExporter(response.prescription, explain)
            path = exporter.save_to_file(output_dir, output_format)
        except ValueError as e:
            console.print(f"[red]✗ {e}[/red]")
            raise typer.Exit(1)
        console.print(f"\n✓ Exported to [cyan]{path}[/cyan]")

    if not response.success:
        raise typer.Exit(1)


@app.command()
def guardrails(
    week: Path = typer.Option(
        ...,
        "--week",
        "-w",
        help="Path to JSON list of planned workouts",
        exists=True,
    ),
    previous_load: float = typer.Option(
        0.0, "--previous-load", help="Last week's load (TSS, or minutes as fallback)"
    ),
    threshold: float = typer.Option(
        settings.ramp_threshold_percent, "--threshold", help="Ramp threshold (%)"
    ),
    explain: ExplainLevel = typer.Option(ExplainLevel.STANDARD, "--explain", "-e"),
    deload: Optional[float] = typer.Option(
        None, "--deload", help="Also show the week with this deload percentage applied"
    ),
):
    """
    Check a planned week for ramp rate, back-to-back hard days and missing rest.
    """
    planned = _parse_list(PlannedWorkout, _load_json(week, "week"), "planned workout")
    result = check_guardrails(planned, previous_load, threshold=threshold)
    _display_guardrails(result, explain)

    if deload is not None:
        deloaded = apply_deload(planned, deload)
        console.print(f"\n[bold]{deloaded.description}[/bold]")
        for workout in deloaded.adjusted:
            console.print(
                f"  {workout.date}: {workout.title or workout.workout_id or 'workout'} "
                f"{workout.duration_min} min ({workout.intensity.value})"
            )


@app.command()
def memory_weekly(
    athlete: str = typer.Option(..., "--athlete", "-a", help="Athlete identifier"),
    start: datetime = typer.Option(..., "--start", formats=["%Y-%m-%d"], help="Week start"),
    end: datetime = typer.Option(..., "--end", formats=["%Y-%m-%d"], help="Week end"),
    database: str = typer.Option(settings.database_url, "--database", "-d", help="Database URL"),
):
    """
    Summarize a week of check-ins, feedback and journal entries into memories.
    """
    session = init_database(database)
    try:
        result = MemoryEngine(session).generate_weekly_summary(athlete, start.date(), end.date())
    finally:
        session.close()

    console.print(
        f"\n✓ [green]{result.memories_created} created[/green], "
        f"{result.memories_updated} updated"
    )
    for pattern in result.patterns:
        console.print(f"  • {pattern}")


@app.command()
def memory_monthly(
    athlete: str = typer.Option(..., "--athlete", "-a", help="Athlete identifier"),
    start: datetime = typer.Option(..., "--start", formats=["%Y-%m-%d"], help="Month start"),
    end: datetime = typer.Option(..., "--end", formats=["%Y-%m-%d"], help="Month end"),
    database: str = typer.Option(settings.database_url, "--database", "-d", help="Database URL"),
):
    """
    Infer long-term traits from a month of weekly memories.
    """
    session = init_database(database)
    try:
        result = MemoryEngine(session).infer_monthly_traits(athlete, start.date(), end.date())
    finally:
        session.close()

    console.print(
        f"\n✓ [green]{result.traits_inferred} traits inferred[/green], "
        f"{result.traits_updated} updated"
    )
    for trait in result.traits:
        console.print(f"  • {trait}")


@app.command()
def memory_cleanup(
    athlete: str = typer.Option(..., "--athlete", "-a", help="Athlete identifier"),
    database: str = typer.Option(settings.database_url, "--database", "-d", help="Database URL"),
    show: bool = typer.Option(True, "--show/--quiet", help="List remaining memories"),
):
    """
    Delete expired memories and list what is left.
    """
    session = init_database(database)
    try:
        engine = MemoryEngine(session)
        count = engine.cleanup_expired(athlete)
        overview = engine.get_active_memories(athlete)
    finally:
        session.close()

    console.print(f"\n✓ {count} expired memories cleaned up")
    if show:
        _display_memories(overview)


@app.command()
def journal(
    entries: Path = typer.Option(
        ...,
        "--entries",
        "-j",
        help="Path to JSON list of journal entries",
        exists=True,
    ),
    metrics: Optional[Path] = typer.Option(
        None,
        "--metrics",
        "-m",
        help="Path to JSON list of daily training metrics",
        exists=True,
    ),
    today: Optional[datetime] = typer.Option(
        None, "--today", formats=["%Y-%m-%d"], help="Anchor day for the 14-day comparison"
    ),
):
    """
    Detect journal patterns, metric correlations and week-over-week changes.
    """
    parsed = _parse_list(DiaryEntry, _load_json(entries, "journal"), "journal entry")
    points = (
        _parse_list(MetricPoint, _load_json(metrics, "metrics"), "metric point") if metrics else []
    )
    anchor = today.date() if today else SystemClock().now().date()

    insights = detect_all_patterns(parsed)
    if insights:
        console.print("\n[bold]Patterns:[/bold]")
        for insight in insights:
            console.print(f"  [{insight.severity.value}] [cyan]{insight.title}[/cyan]: {insight.message}")
            console.print(f"    → {insight.suggestion}")
    else:
        console.print("\n[green]No concerning patterns detected[/green]")

    correlations = analyze_correlations(parsed, points)
    if correlations:
        console.print("\n[bold]Correlations:[/bold]")
        for correlation in correlations:
            console.print(f"  • {correlation.insight} (r = {correlation.correlation:+.2f})")

    comparisons = compare_last_14_days(parsed, anchor)
    if comparisons:
        table = Table(title="Last 7 Days vs Previous 7", box=box.ROUNDED)
        table.add_column("Metric", style="cyan")
        table.add_column("Current", justify="right")
        table.add_column("Previous", justify="right")
        table.add_column("Change", justify="right", style="yellow")
        table.add_column("")
        for comparison in comparisons:
            table.add_row(
                comparison.metric,
                f"{comparison.current:g}",
                f"{comparison.previous:g}",
                f"{comparison.change_percent:+d}%",
                comparison.emoji,
            )
        console.print(table)


if __name__ == "__main__":
    app()
