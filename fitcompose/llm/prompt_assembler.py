"""Prompt assembly for remote workout generation.

Builds the system and user messages from a blueprint, a seeded sample of the
catalog, recent history and the feedback adjustment, plus the cache key that
identifies the request content.
"""

import hashlib
from collections import defaultdict
from dataclasses import dataclass, field, replace
from typing import Any

from loguru import logger

from fitcompose.domain.blueprint import Blueprint
from fitcompose.domain.models import (
    DailyCheckIn,
    FitnessGoal,
    HealthCondition,
    IntensityAdjustment,
    MuscleGroup,
    UserProfile,
    WorkoutBlock,
    WorkoutExercise,
    WorkoutPlan,
)
from fitcompose.llm.schemas import WORKOUT_JSON_SCHEMA
from fitcompose.planning.seeded_random import SeededRandomGenerator

MAX_CATALOG_BLOCKS = 30
MAX_EXERCISES_PER_BLOCK = 12
DEFAULT_PROHIBITED_WINDOW = 3

_GOAL_DESCRIPTIONS: dict[FitnessGoal, str] = {
    FitnessGoal.HYPERTROPHY: "muscle hypertrophy and strength development",
    FitnessGoal.WEIGHT_LOSS: "weight loss and fat reduction",
    FitnessGoal.PERFORMANCE: "athletic performance and functional development",
    FitnessGoal.CONDITIONING: "general physical conditioning",
    FitnessGoal.ENDURANCE: "cardiovascular endurance",
}

_GOAL_GUIDELINES: dict[FitnessGoal, str] = {
    FitnessGoal.HYPERTROPHY: """- Prioritize multi-joint exercises
- High intensity, low-medium volume
- Long rest periods for neural recovery
- Sets: 3-5, Reps: 4-10, RPE: 7-9
- Progressive overload focus""",
    FitnessGoal.WEIGHT_LOSS: """- Full body circuits with high density
- Short intervals (30-60s)
- Moderate volume, RPE 6-8
- Sets: 3-4, Reps: 10-18
- Focus on total energy expenditure
- Include light cardio at the end""",
    FitnessGoal.PERFORMANCE: """- Explosive and functional movements
- Quality over quantity
- Adequate recovery between sets
- Sets: 3-4, Reps: 5-8, RPE: 7
- Varied stimulus""",
    FitnessGoal.CONDITIONING: """- Balanced strength and endurance
- Moderate intensity, RPE 6-7
- Full body preferred
- Sets: 3-4, Reps: 10-15
- Rest: 45-90s""",
    FitnessGoal.ENDURANCE: """- High volume, controlled intensity
- Short rest (20-45s)
- Focus on cardio and technique
- Sets: 2-4, Reps: 15-25
- Zone 2 priority for cardio""",
}

SYSTEM_PROMPT_TEMPLATE = """You are an expert personal trainer specializing in {goal_description}.

## PRIMARY GOAL
{goal}

{guidelines}

## TASK
Generate a complete workout using ONLY exercises from the provided catalog.

## MANDATORY RULES
1. Use ONLY exercise names from the catalog (do NOT invent names)
2. Use ONLY allowed equipment: {allowed_equipment}
3. Respect the blueprint: each phase must have the EXACT number of exercises and the correct kind
4. Prioritize safety: avoid exercises that aggravate health limitations
5. Avoid repetition based on workout history (when provided)
6. Each exercise appears ONLY ONCE in the entire workout (no duplicates across phases)
7. Use the EXACT exercise names as written in the catalog

## JSON FORMAT (respond with valid JSON only)
{schema}
"""


@dataclass(frozen=True)
class WorkoutPrompt:
    system_message: str
    user_message: str
    cache_key: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def with_correction(self, repeated: list[str], issues: list[str]) -> "WorkoutPrompt":
        """Return a copy whose user message asks the generator to fix a rejected draft."""
        lines = ["", "## CORRECTION REQUIRED", "Your previous workout was rejected."]
        if repeated:
            lines.append("These exercises were repeated from recent workouts and must be replaced:")
            lines.extend(f"- {name}" for name in repeated)
        if issues:
            lines.append("Problems found:")
            lines.extend(f"- {issue}" for issue in issues)
        lines.append("Return a corrected workout as JSON only.")
        return replace(self, user_message=self.user_message + "\n".join(lines))


def history_fingerprint(recent_plans: list[WorkoutPlan]) -> str:
    if not recent_plans:
        return "none"
    digest = hashlib.sha256("|".join(plan.id for plan in recent_plans).encode("utf-8")).hexdigest()
    return digest[:16]


def compute_cache_key(
    blueprint: Blueprint,
    profile: UserProfile,
    check_in: DailyCheckIn,
    feedback: IntensityAdjustment,
    recent_plans: list[WorkoutPlan],
) -> str:
    """Stable hash over everything that changes the generation request.

    Any change in history or feedback produces a new key, so a cached
    response never carries a stale diversity context.
    """
    material = "|".join(
        [
            str(blueprint.variation_seed),
            profile.goal.value,
            profile.structure.value,
            profile.level.value,
            check_in.focus.value,
            str(check_in.energy_level),
            check_in.soreness.value,
            blueprint.version,
            feedback.fingerprint,
            history_fingerprint(recent_plans),
        ]
    )
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


def prohibited_exercises(recent_plans: list[WorkoutPlan], window: int = DEFAULT_PROHIBITED_WINDOW) -> list[str]:
    names = {name for plan in recent_plans[:window] for name in plan.exercise_names()}
    return sorted(names)


class PromptAssembler:
    def __init__(self, prohibited_window: int = DEFAULT_PROHIBITED_WINDOW):
        self.prohibited_window = prohibited_window

    def assemble(
        self,
        blueprint: Blueprint,
        blocks: list[WorkoutBlock],
        profile: UserProfile,
        check_in: DailyCheckIn,
        recent_plans: list[WorkoutPlan],
        feedback: IntensityAdjustment,
    ) -> WorkoutPrompt:
        catalog_by_muscle = self._sample_catalog(blueprint, blocks)
        prohibited = prohibited_exercises(recent_plans, self.prohibited_window)

        system_message = SYSTEM_PROMPT_TEMPLATE.format(
            goal_description=_GOAL_DESCRIPTIONS[profile.goal],
            goal=profile.goal.value.upper(),
            guidelines=_GOAL_GUIDELINES[profile.goal],
            allowed_equipment=", ".join(sorted(e.value for e in blueprint.equipment_constraints.allowed)),
            schema=WORKOUT_JSON_SCHEMA,
        )
        sections = [
            self._profile_section(profile),
            self._check_in_section(check_in),
            self._blueprint_section(blueprint),
        ]
        if not feedback.is_neutral and feedback.recommendation:
            sections.append(f"## RECENT FEEDBACK\n{feedback.recommendation}")
        sections.append(self._variation_section(prohibited, min(len(recent_plans), self.prohibited_window)))
        sections.append(self._catalog_section(catalog_by_muscle))
        sections.append("Return ONLY the JSON workout.")
        user_message = "\n\n".join(sections)

        cache_key = compute_cache_key(blueprint, profile, check_in, feedback, recent_plans)
        exercise_count = sum(len(exercises) for exercises in catalog_by_muscle.values())
        logger.debug(
            "prompt_assembler: Prompt assembled",
            cache_key=cache_key[:12],
            catalog_exercises=exercise_count,
            muscle_groups=len(catalog_by_muscle),
            prohibited=len(prohibited),
        )
        return WorkoutPrompt(
            system_message=system_message,
            user_message=user_message,
            cache_key=cache_key,
            metadata={
                "catalog_exercises": exercise_count,
                "prohibited_exercises": prohibited,
                "seed": blueprint.variation_seed,
            },
        )

    @staticmethod
    def _sample_catalog(blueprint: Blueprint, blocks: list[WorkoutBlock]) -> dict[MuscleGroup, list[WorkoutExercise]]:
        """Seeded sample of compatible blocks, grouped by muscle and sorted by muscle name."""
        allowed = blueprint.equipment_constraints.allowed
        compatible = [block for block in blocks if any(option in allowed for option in block.equipment_options)]

        generator = SeededRandomGenerator(blueprint.variation_seed)
        selected = generator.shuffle(compatible)[:MAX_CATALOG_BLOCKS]

        grouped: dict[MuscleGroup, list[WorkoutExercise]] = defaultdict(list)
        seen: set[str] = set()
        for block in selected:
            for exercise in generator.shuffle(block.exercises)[:MAX_EXERCISES_PER_BLOCK]:
                if exercise.id in seen or exercise.equipment not in allowed:
                    continue
                if exercise.main_muscle in blueprint.avoid_muscles:
                    continue
                seen.add(exercise.id)
                grouped[exercise.main_muscle].append(exercise)
        return {muscle: grouped[muscle] for muscle in sorted(grouped, key=lambda m: m.value)}

    @staticmethod
    def _profile_section(profile: UserProfile) -> str:
        conditions = [c.value for c in profile.health_conditions if c != HealthCondition.NONE]
        return (
            "## USER PROFILE\n"
            f"PRIMARY GOAL: {profile.goal.value.upper()}\n"
            f"Level: {profile.level.value} | Equipment: {profile.structure.value} | "
            f"Frequency: {profile.weekly_frequency}x/week\n"
            f"Health conditions: {', '.join(conditions) if conditions else 'none reported'}"
        )

    @staticmethod
    def _check_in_section(check_in: DailyCheckIn) -> str:
        lines = [
            "## TODAY'S STATE",
            f"Focus: {check_in.focus.value} | DOMS: {check_in.soreness.value} | Energy: {check_in.energy_level}/10",
        ]
        if check_in.sore_areas:
            lines.append(f"Sore areas: {', '.join(area.value for area in check_in.sore_areas)}")
        lines.append("Adaptation rule: if energy <= 3 or DOMS is strong, keep the workout conservative and prioritize technique.")
        return "\n".join(lines)

    @staticmethod
    def _blueprint_section(blueprint: Blueprint) -> str:
        lines = [
            "## WORKOUT STRUCTURE (MANDATORY)",
            f"Title: {blueprint.title} | Intensity: {blueprint.intensity.value} | Duration: ~{blueprint.estimated_duration_minutes}min",
            f"Recovery mode: {'YES (reduce intensity)' if blueprint.is_recovery_mode else 'NO'}",
            f"Phases (create EXACTLY {len(blueprint.blocks)} phases):",
        ]
        for position, block in enumerate(blueprint.blocks, start=1):
            lines.append("")
            lines.append(f"Phase {position}: {block.title} (kind: {block.phase_kind.value})")
            lines.append(f"- EXERCISES: {block.exercise_count} (required)")
            if block.exercise_count:
                lines.append(
                    f"- Sets: {block.sets_range.display} | Reps: {block.reps_range.display} | "
                    f"Rest: {block.rest_seconds}s | RPE: {block.rpe_target}"
                )
            if block.target_muscles:
                lines.append(f"- Target muscles: {', '.join(m.value for m in block.target_muscles)}")
            if block.avoid_muscles:
                lines.append(f"- AVOID: {', '.join(m.value for m in block.avoid_muscles)}")
            if block.guided_activity:
                activity = block.guided_activity
                lines.append(f"- Activity: {activity.kind.value}, {activity.duration_minutes} min")
        if blueprint.equipment_constraints.avoid_high_impact:
            lines.append("")
            lines.append("Do NOT include jumping, plyometric or other high-impact exercises.")
        return "\n".join(lines)

    @staticmethod
    def _variation_section(prohibited: list[str], window: int) -> str:
        lines = [
            "## VARIATION REQUIREMENTS",
            "Create a UNIQUE workout with MAXIMUM VARIETY.",
            "- Select DIFFERENT exercises from the catalog each time",
            "- Mix compound and isolation movements",
        ]
        if prohibited:
            lines.append("")
            lines.append(f"## PROHIBITED EXERCISES (from last {window} workouts)")
            lines.append("DO NOT USE any of these exercises, select alternatives:")
            lines.extend(f"- {name}" for name in prohibited)
        return "\n".join(lines)

    @staticmethod
    def _catalog_section(catalog: dict[MuscleGroup, list[WorkoutExercise]]) -> str:
        lines = [
            "## AVAILABLE EXERCISES (use ONLY these)",
            "Use EXACTLY these exercise names. Any exercise not in this list will be REJECTED.",
        ]
        for muscle, exercises in catalog.items():
            lines.append("")
            lines.append(f"### {muscle.value}")
            lines.extend(f"- {exercise.name} ({exercise.equipment.value})" for exercise in exercises)
        total = sum(len(exercises) for exercises in catalog.values())
        lines.append("")
        lines.append(f"Total: {total} exercises available")
        return "\n".join(lines)
