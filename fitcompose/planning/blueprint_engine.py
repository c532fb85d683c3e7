"""Blueprint engine.

Pure transformation from (profile, check-in, seed) to a Blueprint. No catalog
or network access. The variation seed is supplied by the caller; see
``variation_seed`` for the default derivation.
"""

import hashlib
from datetime import datetime

from loguru import logger

from fitcompose.domain.blueprint import (
    BLUEPRINT_VERSION,
    Blueprint,
    BlueprintBlock,
    EquipmentConstraints,
    GuidedActivitySpec,
)
from fitcompose.domain.models import (
    ActivityKind,
    DailyCheckIn,
    DailyFocus,
    IntRange,
    MuscleGroup,
    PhaseKind,
    SorenessLevel,
    TrainingLevel,
    TrainingStructure,
    UserProfile,
)
from fitcompose.planning import rules
from fitcompose.planning.rules import DomsAdjustment, SessionType

_BASE_MINUTES: dict[TrainingStructure, int] = {
    TrainingStructure.BODYWEIGHT: 30,
    TrainingStructure.HOME_DUMBBELLS: 35,
    TrainingStructure.BASIC_GYM: 45,
    TrainingStructure.FULL_GYM: 55,
}

_LEVEL_MINUTES: dict[TrainingLevel, int] = {
    TrainingLevel.BEGINNER: -5,
    TrainingLevel.INTERMEDIATE: 0,
    TrainingLevel.ADVANCED: 5,
}

# (main, accessory) exercise counts per level
_COUNTS: dict[SessionType, dict[TrainingLevel, tuple[int, int]]] = {
    SessionType.STRENGTH: {TrainingLevel.BEGINNER: (4, 2), TrainingLevel.INTERMEDIATE: (5, 3), TrainingLevel.ADVANCED: (6, 3)},
    SessionType.PERFORMANCE: {TrainingLevel.BEGINNER: (3, 2), TrainingLevel.INTERMEDIATE: (4, 3), TrainingLevel.ADVANCED: (5, 3)},
    SessionType.WEIGHT_LOSS: {TrainingLevel.BEGINNER: (5, 2), TrainingLevel.INTERMEDIATE: (6, 3), TrainingLevel.ADVANCED: (7, 3)},
    SessionType.CONDITIONING: {TrainingLevel.BEGINNER: (4, 2), TrainingLevel.INTERMEDIATE: (5, 3), TrainingLevel.ADVANCED: (6, 3)},
    SessionType.ENDURANCE: {TrainingLevel.BEGINNER: (4, 2), TrainingLevel.INTERMEDIATE: (5, 3), TrainingLevel.ADVANCED: (6, 3)},
}

# level -> (sets, reps, rest) for the main strength phase
_STRENGTH_BY_LEVEL: dict[TrainingLevel, tuple[tuple[int, int], tuple[int, int], int]] = {
    TrainingLevel.BEGINNER: ((3, 3), (8, 12), 90),
    TrainingLevel.INTERMEDIATE: ((3, 4), (6, 10), 120),
    TrainingLevel.ADVANCED: ((4, 5), (4, 8), 180),
}


def variation_seed(profile: UserProfile, check_in: DailyCheckIn, at: datetime, salt: str = "") -> int:
    """Derive the 64-bit variation seed for a composition call.

    Same inputs within the same clock hour give the same seed, so repeated
    calls hit the response cache; the next hour yields a new seed. ``salt``
    lets a caller mix in a random component.
    """
    iso = at.isocalendar()
    material = "|".join(
        [
            BLUEPRINT_VERSION,
            profile.goal.value,
            profile.structure.value,
            profile.level.value,
            check_in.focus.value,
            check_in.soreness.value,
            str(iso.weekday),
            str(iso.week),
            str(at.hour),
            salt,
        ]
    )
    digest = hashlib.sha256(material.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def _scaled(lower: int, upper: int, multiplier: float) -> IntRange:
    adjusted_lower = max(1, int(lower * multiplier))
    adjusted_upper = max(adjusted_lower, int(upper * multiplier))
    return IntRange.of(adjusted_lower, adjusted_upper)


class BlueprintEngine:
    """Builds the phase structure for a session."""

    def generate_blueprint(self, profile: UserProfile, check_in: DailyCheckIn, seed: int) -> Blueprint:
        session_type = rules.session_type_for(profile.goal)
        doms = rules.doms_adjustment_for(check_in.soreness)
        avoid = self._avoid_muscles(profile, check_in)

        blocks = [self._warmup_block(check_in.focus, doms)]
        blocks.extend(self._main_blocks(session_type, check_in.focus, profile.level, doms))
        blocks.append(self._aerobic_block(session_type, doms))
        blocks = [self._with_avoid_list(block, avoid) for block in blocks]

        blueprint = Blueprint(
            title=rules.session_title(check_in.focus, profile.goal, check_in.soreness),
            goal=profile.goal,
            focus=check_in.focus,
            intensity=rules.intensity_for(profile.level, check_in.soreness, profile.goal),
            is_recovery_mode=check_in.soreness == SorenessLevel.STRONG,
            variation_seed=seed,
            equipment_constraints=EquipmentConstraints.from_structure(
                profile.structure,
                avoid_high_impact=rules.forbids_high_impact(profile.health_conditions, doms),
            ),
            blocks=tuple(blocks),
            estimated_duration_minutes=self._estimate_duration(blocks, profile),
            avoid_muscles=frozenset(avoid),
        )
        logger.debug(
            "blueprint_engine: Blueprint generated",
            title=blueprint.title,
            session_type=session_type.value,
            seed=seed,
            phases=[block.phase_kind.value for block in blueprint.blocks],
            total_exercises=blueprint.total_exercise_count,
        )
        return blueprint

    @staticmethod
    def _avoid_muscles(profile: UserProfile, check_in: DailyCheckIn) -> set[MuscleGroup]:
        avoid = rules.health_avoid_muscles(profile.health_conditions)
        if check_in.soreness in (SorenessLevel.MODERATE, SorenessLevel.STRONG):
            avoid.update(check_in.sore_areas)
        return avoid

    @staticmethod
    def _with_avoid_list(block: BlueprintBlock, avoid: set[MuscleGroup]) -> BlueprintBlock:
        if not avoid:
            return block
        targets = tuple(muscle for muscle in block.target_muscles if muscle not in avoid)
        return BlueprintBlock(
            phase_kind=block.phase_kind,
            title=block.title,
            exercise_count=block.exercise_count,
            sets_range=block.sets_range,
            reps_range=block.reps_range,
            rest_seconds=block.rest_seconds,
            rpe_target=block.rpe_target,
            target_muscles=targets,
            avoid_muscles=tuple(sorted(avoid)),
            guided_activity=block.guided_activity,
        )

    @staticmethod
    def _warmup_block(focus: DailyFocus, doms: DomsAdjustment) -> BlueprintBlock:
        reduced = doms.intensity_reduction
        return BlueprintBlock(
            phase_kind=PhaseKind.WARMUP,
            title="Warm-up",
            exercise_count=1 if reduced else 2,
            sets_range=IntRange.of(1, 1),
            reps_range=IntRange.of(8, 12),
            rest_seconds=40 if reduced else 25,
            rpe_target=5 if reduced else 6,
            target_muscles=rules.muscle_priority(focus).primary,
            guided_activity=GuidedActivitySpec(
                kind=ActivityKind.MOBILITY,
                title="Joint mobility",
                duration_minutes=8 if reduced else 6,
            ),
        )

    def _main_blocks(
        self,
        session_type: SessionType,
        focus: DailyFocus,
        level: TrainingLevel,
        doms: DomsAdjustment,
    ) -> list[BlueprintBlock]:
        primary = rules.muscle_priority(focus).primary
        secondary = rules.muscle_priority(focus).secondary
        main_count, accessory_count = _COUNTS[session_type][level]
        extra_rest = doms.extra_rest_seconds

        if session_type == SessionType.STRENGTH:
            (sets_lo, sets_hi), (reps_lo, reps_hi), rest = _STRENGTH_BY_LEVEL[level]
            return [
                BlueprintBlock(
                    phase_kind=PhaseKind.STRENGTH,
                    title="Main Strength",
                    exercise_count=main_count,
                    sets_range=_scaled(sets_lo, sets_hi, doms.volume_multiplier),
                    reps_range=IntRange.of(reps_lo, reps_hi),
                    rest_seconds=rest + extra_rest,
                    rpe_target=7 if doms.avoid_muscle_failure else 8,
                    target_muscles=primary,
                ),
                BlueprintBlock(
                    phase_kind=PhaseKind.ACCESSORY,
                    title="Accessories",
                    exercise_count=accessory_count,
                    sets_range=IntRange.of(2, 3),
                    reps_range=IntRange.of(10, 15),
                    rest_seconds=60 + extra_rest,
                    rpe_target=6,
                    target_muscles=secondary,
                ),
            ]

        if session_type == SessionType.PERFORMANCE:
            return [
                BlueprintBlock(
                    phase_kind=PhaseKind.STRENGTH,
                    title="Athletic Performance",
                    exercise_count=main_count,
                    sets_range=IntRange.of(3, 4),
                    reps_range=IntRange.of(5, 8),
                    rest_seconds=90 + extra_rest,
                    rpe_target=7,
                    target_muscles=primary,
                ),
                BlueprintBlock(
                    phase_kind=PhaseKind.CONDITIONING,
                    title="Functional Conditioning",
                    exercise_count=accessory_count,
                    sets_range=IntRange.of(2, 3),
                    reps_range=IntRange.of(10, 15),
                    rest_seconds=45,
                    rpe_target=7,
                    target_muscles=(MuscleGroup.FULL_BODY,),
                ),
            ]

        if session_type == SessionType.WEIGHT_LOSS:
            return [
                BlueprintBlock(
                    phase_kind=PhaseKind.STRENGTH,
                    title="Metabolic Circuit",
                    exercise_count=main_count,
                    sets_range=_scaled(3, 4, doms.volume_multiplier),
                    reps_range=IntRange.of(12, 18),
                    rest_seconds=30 + extra_rest,
                    rpe_target=6 if doms.intensity_reduction else 7,
                    target_muscles=primary,
                ),
                BlueprintBlock(
                    phase_kind=PhaseKind.ACCESSORY,
                    title="Finishers",
                    exercise_count=accessory_count,
                    sets_range=IntRange.of(2, 3),
                    reps_range=IntRange.of(15, 20),
                    rest_seconds=20,
                    rpe_target=6,
                    target_muscles=secondary,
                ),
            ]

        if session_type == SessionType.CONDITIONING:
            return [
                BlueprintBlock(
                    phase_kind=PhaseKind.STRENGTH,
                    title="Strength & Conditioning",
                    exercise_count=main_count,
                    sets_range=IntRange.of(3, 4),
                    reps_range=IntRange.of(10, 15),
                    rest_seconds=60 + extra_rest,
                    rpe_target=6,
                    target_muscles=primary,
                ),
                BlueprintBlock(
                    phase_kind=PhaseKind.ACCESSORY,
                    title="Functional Accessories",
                    exercise_count=accessory_count,
                    sets_range=IntRange.of(2, 3),
                    reps_range=IntRange.of(12, 18),
                    rest_seconds=45,
                    rpe_target=5,
                    target_muscles=secondary,
                ),
            ]

        return [
            BlueprintBlock(
                phase_kind=PhaseKind.STRENGTH,
                title="Muscular Endurance",
                exercise_count=main_count,
                sets_range=IntRange.of(2, 3),
                reps_range=IntRange.of(15, 25),
                rest_seconds=30 + extra_rest,
                rpe_target=6,
                target_muscles=primary,
            ),
            BlueprintBlock(
                phase_kind=PhaseKind.ACCESSORY,
                title="Complementary Work",
                exercise_count=accessory_count,
                sets_range=IntRange.of(2, 3),
                reps_range=IntRange.of(15, 20),
                rest_seconds=20,
                rpe_target=5,
                target_muscles=secondary,
            ),
        ]

    @staticmethod
    def _aerobic_block(session_type: SessionType, doms: DomsAdjustment) -> BlueprintBlock:
        reduced = doms.intensity_reduction
        if session_type == SessionType.WEIGHT_LOSS:
            activity = GuidedActivitySpec(ActivityKind.AEROBIC_INTERVALS, "Light Interval Cardio", 10 if reduced else 15)
        elif session_type in (SessionType.CONDITIONING, SessionType.ENDURANCE):
            activity = GuidedActivitySpec(ActivityKind.AEROBIC_ZONE2, "Zone 2 Cardio", 12 if reduced else 18)
        elif session_type == SessionType.PERFORMANCE:
            activity = GuidedActivitySpec(ActivityKind.AEROBIC_INTERVALS, "Interval Conditioning", 10)
        else:
            activity = GuidedActivitySpec(ActivityKind.BREATHING, "Cool-down Breathing", 5)

        return BlueprintBlock(
            phase_kind=PhaseKind.AEROBIC,
            title=activity.title,
            exercise_count=0,
            sets_range=IntRange.of(0, 0),
            reps_range=IntRange.of(0, 0),
            rest_seconds=0,
            rpe_target=6,
            target_muscles=(MuscleGroup.CARDIO_SYSTEM,),
            guided_activity=activity,
        )

    @staticmethod
    def _estimate_duration(blocks: list[BlueprintBlock], profile: UserProfile) -> int:
        guided = sum(block.guided_activity.duration_minutes for block in blocks if block.guided_activity)
        return max(20, _BASE_MINUTES[profile.structure] + _LEVEL_MINUTES[profile.level] + guided)
