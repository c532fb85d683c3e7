"""CLI for the workout plan composer.

Developer CLI that runs the same composition path as the library entry point:
blueprint construction, optional remote generation, local fallback.
"""

import asyncio
import json
from dataclasses import asdict
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import typer
from pydantic import BaseModel
from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table

from fitcompose.config.settings import settings
from fitcompose.core.logger import setup_logger
from fitcompose.domain.blueprint import Blueprint
from fitcompose.domain.models import (
    DailyCheckIn,
    DailyFocus,
    FitnessGoal,
    HealthCondition,
    MuscleGroup,
    SorenessLevel,
    TrainingLevel,
    TrainingStructure,
    UserProfile,
    WorkoutPlan,
)
from fitcompose.planning.blueprint_engine import BlueprintEngine, variation_seed
from fitcompose.planning.errors import NoCompatibleContentError
from fitcompose.planning.events import RecordingEventSink
from fitcompose.planning.hybrid_composer import CompositionOutcome, HybridComposer

console = Console()

app = typer.Typer(
    name="fitcompose",
    help="Workout plan composer - blueprint inspection and plan composition",
    add_completion=False,
)


def _setup_logging(debug: bool = False, log_file: str | None = None) -> None:
    """Set up logging with console and optional file output.

    Args:
        debug: Enable debug logging level
        log_file: Optional log file path
    """
    setup_logger("DEBUG" if debug else settings.log_level, log_file)


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (set, frozenset)):
        return sorted(str(item) for item in value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Cannot serialize {type(value).__name__}")


def blueprint_to_dict(blueprint: Blueprint) -> dict[str, Any]:
    return json.loads(json.dumps(asdict(blueprint), default=_json_default))


def _emit(payload: dict[str, Any], output_file: str | None) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output_file:
        Path(output_file).write_text(text, encoding="utf-8")
        console.print(f"[green]Wrote {output_file}[/green]")
    else:
        console.print(JSON(text))


def _build_inputs(
    goal: FitnessGoal,
    level: TrainingLevel,
    structure: TrainingStructure,
    focus: DailyFocus,
    soreness: SorenessLevel,
    sore_areas: list[MuscleGroup],
    health: list[HealthCondition],
    energy: int,
    user_id: str,
) -> tuple[UserProfile, DailyCheckIn]:
    profile = UserProfile(
        user_id=user_id,
        goal=goal,
        level=level,
        structure=structure,
        health_conditions=health,
    )
    check_in = DailyCheckIn(focus=focus, soreness=soreness, sore_areas=sore_areas, energy_level=energy)
    return profile, check_in


def _print_plan_summary(plan: WorkoutPlan) -> None:
    table = Table(title=f"{plan.title} ({plan.duration_minutes} min, {plan.intensity.value})")
    table.add_column("Phase")
    table.add_column("Item")
    table.add_column("Prescription")
    for phase in plan.phases:
        for activity in phase.activities:
            table.add_row(phase.title, activity.title, f"{activity.duration_minutes} min")
        for item in phase.exercises:
            table.add_row(phase.title, item.exercise.name, f"{item.sets} x {item.reps.display} / {item.rest_seconds}s")
    console.print(table)


async def _compose_async(
    profile: UserProfile,
    check_in: DailyCheckIn,
    local_only: bool,
    catalog: str | None,
    events: RecordingEventSink,
) -> CompositionOutcome:
    config = settings.model_copy(update={"catalog_path": catalog}) if catalog else settings
    composer = HybridComposer.from_settings(config, events=events)
    if local_only:
        composer.client = None
    try:
        return await composer.compose(profile, check_in)
    finally:
        if composer.client is not None:
            await composer.client.aclose()


@app.command()
def blueprint(
    goal: FitnessGoal = typer.Option(FitnessGoal.HYPERTROPHY, "--goal", help="Training goal"),
    level: TrainingLevel = typer.Option(TrainingLevel.INTERMEDIATE, "--level", help="Training level"),
    structure: TrainingStructure = typer.Option(TrainingStructure.FULL_GYM, "--structure", help="Available equipment"),
    focus: DailyFocus = typer.Option(DailyFocus.UPPER, "--focus", help="Today's focus"),
    soreness: SorenessLevel = typer.Option(SorenessLevel.NONE, "--soreness", help="Reported soreness"),
    sore: list[MuscleGroup] = typer.Option([], "--sore", help="Sore muscle group (repeatable)"),
    health: list[HealthCondition] = typer.Option([], "--health", help="Health condition (repeatable)"),
    energy: int = typer.Option(7, "--energy", min=1, max=10, help="Energy level 1-10"),
    output_file: str | None = typer.Option(None, "--output", "-o", help="Write JSON to this file"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    """Print the blueprint that would drive today's composition."""
    _setup_logging(debug)
    profile, check_in = _build_inputs(goal, level, structure, focus, soreness, sore, health, energy, "cli-user")
    seed = variation_seed(profile, check_in, datetime.now(UTC))
    result = BlueprintEngine().generate_blueprint(profile, check_in, seed)
    _emit(blueprint_to_dict(result), output_file)


@app.command()
def compose(
    goal: FitnessGoal = typer.Option(FitnessGoal.HYPERTROPHY, "--goal", help="Training goal"),
    level: TrainingLevel = typer.Option(TrainingLevel.INTERMEDIATE, "--level", help="Training level"),
    structure: TrainingStructure = typer.Option(TrainingStructure.FULL_GYM, "--structure", help="Available equipment"),
    focus: DailyFocus = typer.Option(DailyFocus.UPPER, "--focus", help="Today's focus"),
    soreness: SorenessLevel = typer.Option(SorenessLevel.NONE, "--soreness", help="Reported soreness"),
    sore: list[MuscleGroup] = typer.Option([], "--sore", help="Sore muscle group (repeatable)"),
    health: list[HealthCondition] = typer.Option([], "--health", help="Health condition (repeatable)"),
    energy: int = typer.Option(7, "--energy", min=1, max=10, help="Energy level 1-10"),
    user_id: str = typer.Option("cli-user", "--user-id", help="User id for the daily quota"),
    local_only: bool = typer.Option(False, "--local-only", help="Skip remote generation"),
    catalog: str | None = typer.Option(None, "--catalog", help="Block catalog JSON file"),
    output_file: str | None = typer.Option(None, "--output", "-o", help="Write plan JSON to this file"),
    summary: bool = typer.Option(False, "--summary", help="Print a table instead of JSON"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
    log_file: str | None = typer.Option(None, "--log-file", help="Also log to this file"),
) -> None:
    """Compose today's workout plan."""
    _setup_logging(debug, log_file)
    profile, check_in = _build_inputs(goal, level, structure, focus, soreness, sore, health, energy, user_id)
    events = RecordingEventSink()

    try:
        outcome = asyncio.run(_compose_async(profile, check_in, local_only, catalog, events))
    except NoCompatibleContentError as e:
        console.print(f"[red]Error:[/red] {e}", style="bold red")
        raise typer.Exit(1) from e

    plan = outcome.plan
    if debug:
        trace = " -> ".join(state.value for state in outcome.states)
        console.print(
            Panel(
                f"source={plan.source} attempts={outcome.attempts} fallback={outcome.fallback_reason}\n"
                f"states: {trace}\nevents: {', '.join(events.names()) or '-'}",
                title="Composition trace",
            )
        )

    if summary and not output_file:
        _print_plan_summary(plan)
    else:
        _emit(plan.model_dump(mode="json"), output_file)


if __name__ == "__main__":
    app()
