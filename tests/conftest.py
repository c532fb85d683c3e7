"""Root conftest for all tests.

Shared fixtures: the bundled seed catalog, profiles, check-ins, a fixed
clock and builders for plans and generator responses.
"""

import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from fitcompose.domain.blueprint import Blueprint
from fitcompose.domain.models import (
    DailyCheckIn,
    DailyFocus,
    ExercisePrescription,
    FitnessGoal,
    IntRange,
    PhaseKind,
    TrainingLevel,
    TrainingStructure,
    UserProfile,
    WorkoutBlock,
    WorkoutExercise,
    WorkoutIntensity,
    WorkoutPlan,
    WorkoutPlanPhase,
)
from fitcompose.planning.catalog import CatalogIndex
from fitcompose.providers import SEED_CATALOG_PATH, parse_blocks

FIXED_NOW = datetime(2026, 3, 10, 9, 30, tzinfo=UTC)


class FakeClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture(scope="session")
def seed_blocks() -> list[WorkoutBlock]:
    return parse_blocks(json.loads(SEED_CATALOG_PATH.read_text(encoding="utf-8")))


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def beginner_profile() -> UserProfile:
    return UserProfile(
        user_id="user-1",
        goal=FitnessGoal.HYPERTROPHY,
        level=TrainingLevel.BEGINNER,
        structure=TrainingStructure.BODYWEIGHT,
    )


@pytest.fixture
def gym_profile() -> UserProfile:
    return UserProfile(
        user_id="user-2",
        goal=FitnessGoal.HYPERTROPHY,
        level=TrainingLevel.INTERMEDIATE,
        structure=TrainingStructure.FULL_GYM,
    )


@pytest.fixture
def upper_check_in() -> DailyCheckIn:
    return DailyCheckIn(focus=DailyFocus.UPPER)


@pytest.fixture
def make_plan() -> Callable[..., WorkoutPlan]:
    """Build a history plan holding the given exercises in a single phase."""

    def _make(exercises: list[WorkoutExercise], plan_id: str = "history-1") -> WorkoutPlan:
        return WorkoutPlan(
            id=plan_id,
            title="Earlier session",
            focus=DailyFocus.UPPER,
            duration_minutes=45,
            intensity=WorkoutIntensity.MODERATE,
            created_at=FIXED_NOW - timedelta(days=1),
            phases=[
                WorkoutPlanPhase(
                    kind=PhaseKind.STRENGTH,
                    title="Main Strength",
                    items=[
                        ExercisePrescription(exercise=exercise, sets=3, reps=IntRange.of(8, 12), rest_seconds=90)
                        for exercise in exercises
                    ],
                )
            ],
        )

    return _make


@pytest.fixture
def make_response() -> Callable[..., bytes]:
    """Build a chat-completion body whose workout satisfies a blueprint.

    ``offset`` shifts the slice of usable catalog exercises so two
    responses for the same blueprint can share nothing.
    """

    def _make(blueprint: Blueprint, blocks: list[WorkoutBlock], offset: int = 0) -> bytes:
        usable = CatalogIndex(blocks, blueprint.equipment_constraints, blueprint.avoid_muscles).exercises[offset:]
        phases = []
        cursor = 0
        for block in blueprint.blocks:
            chosen = usable[cursor : cursor + block.exercise_count]
            cursor += block.exercise_count
            phase: dict = {
                "kind": block.phase_kind.value,
                "exercises": [
                    {
                        "name": exercise.name,
                        "muscleGroup": exercise.main_muscle.value,
                        "sets": block.sets_range.upper,
                        "reps": block.reps_range.display,
                        "restSeconds": block.rest_seconds,
                    }
                    for exercise in chosen
                ],
            }
            if block.guided_activity is not None:
                phase["activity"] = {
                    "kind": block.guided_activity.kind.value,
                    "title": block.guided_activity.title,
                    "durationMinutes": block.guided_activity.duration_minutes,
                }
            phases.append(phase)

        content = json.dumps({"title": blueprint.title, "phases": phases})
        envelope = {
            "id": "chatcmpl-test",
            "model": "gpt-4o-mini",
            "choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
        }
        return json.dumps(envelope).encode("utf-8")

    return _make
