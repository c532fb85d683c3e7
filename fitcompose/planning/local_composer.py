"""Local fallback composer.

Rule-based plan assembly straight from the catalog. No network access, and
fully deterministic for a given (blocks, profile, check-in, blueprint, now).
"""

import uuid
from collections.abc import Callable
from datetime import datetime

from loguru import logger

from fitcompose.domain.blueprint import Blueprint, BlueprintBlock
from fitcompose.domain.models import (
    ActivityPrescription,
    DailyCheckIn,
    DailyFocus,
    ExercisePrescription,
    FitnessGoal,
    IntensityAdjustment,
    TrainingLevel,
    UserProfile,
    WorkoutBlock,
    WorkoutExercise,
    WorkoutPlan,
    WorkoutPlanPhase,
)
from fitcompose.planning import rules
from fitcompose.planning.blueprint_engine import BlueprintEngine, variation_seed
from fitcompose.planning.catalog import is_usable
from fitcompose.planning.errors import NoCompatibleContentError
from fitcompose.planning.seeded_random import SeededRandomGenerator
from fitcompose.storage.response_cache import utc_now

TOP_CANDIDATE_SHARE = 0.6


def compatibility_score(block: WorkoutBlock, profile: UserProfile, check_in: DailyCheckIn) -> int:
    score = 0
    if block.group == check_in.focus:
        score += 10
    if block.group == DailyFocus.FULL_BODY:
        score += 5
    if block.group in rules.related_focuses(check_in.focus):
        score += 3

    if block.level == profile.level:
        score += 3
    elif profile.level == TrainingLevel.ADVANCED and block.level == TrainingLevel.INTERMEDIATE:
        score += 2

    preferred = rules.preferred_equipment(profile.structure)
    if any(option in preferred for option in block.equipment_options):
        score += 2

    if profile.goal == FitnessGoal.HYPERTROPHY and block.suggested_sets.average >= 3:
        score += 2
    elif profile.goal in (FitnessGoal.WEIGHT_LOSS, FitnessGoal.CONDITIONING) and block.suggested_reps.average >= 12:
        score += 2
    return score


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


class LocalFallbackComposer:
    def __init__(self, engine: BlueprintEngine | None = None, clock: Callable[[], datetime] = utc_now):
        self.engine = engine or BlueprintEngine()
        self._clock = clock

    def compose(
        self,
        blocks: list[WorkoutBlock],
        profile: UserProfile,
        check_in: DailyCheckIn,
        blueprint: Blueprint | None = None,
        feedback: IntensityAdjustment | None = None,
        now: datetime | None = None,
    ) -> WorkoutPlan:
        """Assemble a plan that fills every blueprint phase from the catalog.

        Raises:
            NoCompatibleContentError: No catalog exercise passes the equipment,
                avoid-muscle and impact filters.
        """
        created_at = now or self._clock()
        if blueprint is None:
            blueprint = self.engine.generate_blueprint(profile, check_in, variation_seed(profile, check_in, created_at))
        adjustment = feedback or IntensityAdjustment.neutral()
        generator = SeededRandomGenerator(blueprint.variation_seed)

        candidates = self._candidate_blocks(blocks, profile, check_in)
        ordered = self._order_candidates(candidates, profile, check_in, generator)
        candidate_ids = {block.id for block in candidates}
        reserve = [block for block in blocks if block.id not in candidate_ids and block.matches(profile, check_in)]
        pool = self._exercise_pool(ordered, reserve, blueprint, generator)
        if not pool:
            raise NoCompatibleContentError(
                f"No catalog exercise fits structure={profile.structure.value} focus={check_in.focus.value}"
            )

        used_ids: set[str] = set()
        phases: list[WorkoutPlanPhase] = []
        for block in blueprint.blocks:
            phase = self._build_phase(block, pool, used_ids, adjustment, blueprint.is_recovery_mode)
            if phase is not None:
                phases.append(phase)

        ids = [p.exercise.id for phase in phases for p in phase.exercises]
        if not ids:
            raise NoCompatibleContentError("Catalog produced a plan without exercises")

        plan = WorkoutPlan(
            id=str(uuid.uuid5(uuid.NAMESPACE_URL, f"fitcompose:local:{blueprint.variation_seed}:{','.join(ids)}")),
            title=blueprint.title,
            focus=blueprint.focus,
            duration_minutes=blueprint.estimated_duration_minutes,
            intensity=blueprint.intensity,
            created_at=created_at,
            phases=phases,
            notes="Recovery session: keep every set well short of failure." if blueprint.is_recovery_mode else None,
            source="local",
        )
        logger.info(
            "local_composer: Plan composed",
            plan_id=plan.id,
            phases=len(plan.phases),
            exercises=len(ids),
            required=blueprint.total_exercise_count,
        )
        return plan

    @staticmethod
    def _candidate_blocks(blocks: list[WorkoutBlock], profile: UserProfile, check_in: DailyCheckIn) -> list[WorkoutBlock]:
        compatible = [block for block in blocks if block.matches(profile, check_in)]
        targets = rules.focus_targets(check_in.focus)

        focused = [block for block in compatible if block.group in targets]
        if focused:
            return focused

        full_body = [block for block in compatible if block.group == DailyFocus.FULL_BODY]
        if full_body:
            logger.warning("local_composer: No block for focus, relaxing to full body", focus=check_in.focus.value)
            return full_body

        logger.warning("local_composer: No focus or full-body block, using any compatible block", focus=check_in.focus.value)
        return compatible

    @staticmethod
    def _order_candidates(
        candidates: list[WorkoutBlock],
        profile: UserProfile,
        check_in: DailyCheckIn,
        generator: SeededRandomGenerator,
    ) -> list[WorkoutBlock]:
        """Shuffle the top-scoring share of candidates; the rest follow by score."""
        scored = sorted(candidates, key=lambda block: compatibility_score(block, profile, check_in), reverse=True)
        top_count = max(1, int(len(scored) * TOP_CANDIDATE_SHARE)) if scored else 0
        return generator.shuffle(scored[:top_count]) + scored[top_count:]

    @staticmethod
    def _exercise_pool(
        ordered: list[WorkoutBlock],
        reserve: list[WorkoutBlock],
        blueprint: Blueprint,
        generator: SeededRandomGenerator,
    ) -> list[WorkoutExercise]:
        """Usable exercises, shuffled candidate blocks first, then reserve blocks in catalog order."""
        constraints = blueprint.equipment_constraints
        avoid = blueprint.avoid_muscles
        pool: list[WorkoutExercise] = []
        seen: set[str] = set()

        for block in ordered:
            for exercise in generator.shuffle(block.exercises):
                if exercise.id not in seen and is_usable(exercise, constraints, avoid):
                    seen.add(exercise.id)
                    pool.append(exercise)

        for block in reserve:
            for exercise in block.exercises:
                if exercise.id not in seen and is_usable(exercise, constraints, avoid):
                    seen.add(exercise.id)
                    pool.append(exercise)
        return pool

    @staticmethod
    def _build_phase(
        block: BlueprintBlock,
        pool: list[WorkoutExercise],
        used_ids: set[str],
        adjustment: IntensityAdjustment,
        recovery_mode: bool,
    ) -> WorkoutPlanPhase | None:
        items: list[ExercisePrescription | ActivityPrescription] = []
        if block.guided_activity is not None:
            activity = block.guided_activity
            items.append(
                ActivityPrescription(
                    kind=activity.kind,
                    title=activity.title,
                    duration_minutes=activity.duration_minutes,
                    notes=activity.notes,
                )
            )

        targets = set(block.target_muscles)
        preferred = [e for e in pool if e.main_muscle in targets and e.id not in used_ids]
        others = [e for e in pool if e.main_muscle not in targets and e.id not in used_ids]
        chosen = (preferred + others)[: block.exercise_count]

        if len(chosen) < block.exercise_count:
            logger.warning(
                "local_composer: Catalog too small to fill phase",
                phase=block.phase_kind.value,
                required=block.exercise_count,
                available=len(chosen),
            )

        sets = max(1, _round_half_up((block.sets_range.lower + block.sets_range.upper) / 2 * adjustment.volume_multiplier))
        rest = max(0, block.rest_seconds + adjustment.rest_delta_seconds)
        for exercise in chosen:
            used_ids.add(exercise.id)
            items.append(
                ExercisePrescription(
                    exercise=exercise,
                    sets=sets,
                    reps=block.reps_range,
                    rest_seconds=rest,
                    tip=exercise.instructions[0] if exercise.instructions else None,
                )
            )

        if not items:
            return None

        rpe = min(max(block.rpe_target + adjustment.rpe_delta, 1), 10)
        if recovery_mode:
            rpe = min(rpe, rules.RECOVERY_MAX_RPE)
        return WorkoutPlanPhase(kind=block.phase_kind, title=block.title, rpe_target=rpe, items=items)
