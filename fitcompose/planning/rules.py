"""Session rules.

Rule tables shared by the blueprint engine and the local composer: goal to
session type, soreness to DOMS adjustment, focus to muscle priorities,
intensity and title derivation.
"""

from dataclasses import dataclass
from enum import StrEnum

from fitcompose.domain.models import (
    DailyFocus,
    EquipmentType,
    FitnessGoal,
    HealthCondition,
    MuscleGroup,
    SorenessLevel,
    TrainingLevel,
    TrainingStructure,
    WorkoutIntensity,
)


class SessionType(StrEnum):
    STRENGTH = "strength"
    PERFORMANCE = "performance"
    WEIGHT_LOSS = "weightLoss"
    CONDITIONING = "conditioning"
    ENDURANCE = "endurance"


@dataclass(frozen=True)
class DomsAdjustment:
    """Soreness-driven throttle.

    Attributes:
        volume_multiplier: Scales set counts
        intensity_reduction: Shortens warmup and guided work
        avoid_plyometrics: Forbids jumping/high-impact exercises
        avoid_muscle_failure: Caps RPE below failure
        extra_rest_seconds: Added to main-phase rest
    """

    volume_multiplier: float
    intensity_reduction: bool
    avoid_plyometrics: bool
    avoid_muscle_failure: bool
    extra_rest_seconds: int


@dataclass(frozen=True)
class MusclePriority:
    primary: tuple[MuscleGroup, ...]
    secondary: tuple[MuscleGroup, ...]


_SESSION_TYPES: dict[FitnessGoal, SessionType] = {
    FitnessGoal.HYPERTROPHY: SessionType.STRENGTH,
    FitnessGoal.PERFORMANCE: SessionType.PERFORMANCE,
    FitnessGoal.WEIGHT_LOSS: SessionType.WEIGHT_LOSS,
    FitnessGoal.CONDITIONING: SessionType.CONDITIONING,
    FitnessGoal.ENDURANCE: SessionType.ENDURANCE,
}

_NO_ADJUSTMENT = DomsAdjustment(1.0, False, False, False, 0)

_DOMS_ADJUSTMENTS: dict[SorenessLevel, DomsAdjustment] = {
    SorenessLevel.NONE: _NO_ADJUSTMENT,
    SorenessLevel.LIGHT: _NO_ADJUSTMENT,
    SorenessLevel.MODERATE: DomsAdjustment(0.9, False, False, True, 15),
    SorenessLevel.STRONG: DomsAdjustment(0.7, True, True, True, 30),
}

_PRIORITIES: dict[DailyFocus, MusclePriority] = {
    DailyFocus.UPPER: MusclePriority(
        primary=(MuscleGroup.CHEST, MuscleGroup.BACK, MuscleGroup.SHOULDERS),
        secondary=(MuscleGroup.BICEPS, MuscleGroup.TRICEPS, MuscleGroup.ARMS),
    ),
    DailyFocus.LOWER: MusclePriority(
        primary=(MuscleGroup.QUADS, MuscleGroup.QUADRICEPS, MuscleGroup.GLUTES, MuscleGroup.HAMSTRINGS),
        secondary=(MuscleGroup.CALVES, MuscleGroup.CORE),
    ),
    DailyFocus.FULL_BODY: MusclePriority(
        primary=(MuscleGroup.CHEST, MuscleGroup.BACK, MuscleGroup.QUADS, MuscleGroup.QUADRICEPS),
        secondary=(MuscleGroup.SHOULDERS, MuscleGroup.CORE, MuscleGroup.GLUTES),
    ),
    DailyFocus.CARDIO: MusclePriority(
        primary=(MuscleGroup.CARDIO_SYSTEM, MuscleGroup.FULL_BODY),
        secondary=(MuscleGroup.CORE, MuscleGroup.GLUTES),
    ),
    DailyFocus.CORE: MusclePriority(
        primary=(MuscleGroup.CORE,),
        secondary=(MuscleGroup.GLUTES, MuscleGroup.BACK),
    ),
    DailyFocus.SURPRISE: MusclePriority(
        primary=(MuscleGroup.FULL_BODY,),
        secondary=(MuscleGroup.CORE,),
    ),
}

_RELATED_FOCUSES: dict[DailyFocus, tuple[DailyFocus, ...]] = {
    DailyFocus.UPPER: (DailyFocus.FULL_BODY,),
    DailyFocus.LOWER: (DailyFocus.FULL_BODY, DailyFocus.CARDIO),
    DailyFocus.FULL_BODY: (DailyFocus.UPPER, DailyFocus.LOWER),
    DailyFocus.CARDIO: (DailyFocus.FULL_BODY, DailyFocus.LOWER),
    DailyFocus.CORE: (DailyFocus.FULL_BODY,),
    DailyFocus.SURPRISE: tuple(DailyFocus),
}

_PREFERRED_EQUIPMENT: dict[TrainingStructure, tuple[EquipmentType, ...]] = {
    TrainingStructure.BODYWEIGHT: (EquipmentType.BODYWEIGHT,),
    TrainingStructure.HOME_DUMBBELLS: (EquipmentType.DUMBBELL, EquipmentType.BODYWEIGHT, EquipmentType.KETTLEBELL),
    TrainingStructure.BASIC_GYM: (
        EquipmentType.MACHINE,
        EquipmentType.DUMBBELL,
        EquipmentType.CABLE,
        EquipmentType.BODYWEIGHT,
    ),
    TrainingStructure.FULL_GYM: (
        EquipmentType.BARBELL,
        EquipmentType.MACHINE,
        EquipmentType.DUMBBELL,
        EquipmentType.CABLE,
        EquipmentType.BODYWEIGHT,
        EquipmentType.PULLUP_BAR,
    ),
}

_HEALTH_AVOID_MUSCLES: dict[HealthCondition, tuple[MuscleGroup, ...]] = {
    HealthCondition.LOWER_BACK_PAIN: (MuscleGroup.LOWER_BACK,),
    HealthCondition.SHOULDER: (MuscleGroup.SHOULDERS,),
}

_TITLE_PREFIXES: dict[DailyFocus, str] = {
    DailyFocus.UPPER: "Upper",
    DailyFocus.LOWER: "Lower",
    DailyFocus.FULL_BODY: "Full Body",
    DailyFocus.CARDIO: "Cardio",
    DailyFocus.CORE: "Core",
    DailyFocus.SURPRISE: "Mix",
}

_TITLE_SUFFIXES: dict[SessionType, str] = {
    SessionType.STRENGTH: "Strength",
    SessionType.PERFORMANCE: "Performance",
    SessionType.WEIGHT_LOSS: "Fat Burn",
    SessionType.CONDITIONING: "Conditioning",
    SessionType.ENDURANCE: "Endurance",
}

HIGH_IMPACT_MARKERS: tuple[str, ...] = ("jump", "salto", "plio", "burpee")

RECOVERY_MAX_RPE = 7


def session_type_for(goal: FitnessGoal) -> SessionType:
    return _SESSION_TYPES[goal]


def doms_adjustment_for(soreness: SorenessLevel) -> DomsAdjustment:
    return _DOMS_ADJUSTMENTS[soreness]


def muscle_priority(focus: DailyFocus) -> MusclePriority:
    return _PRIORITIES[focus]


def related_focuses(focus: DailyFocus) -> tuple[DailyFocus, ...]:
    return _RELATED_FOCUSES[focus]


def focus_targets(focus: DailyFocus) -> tuple[DailyFocus, ...]:
    """Block groups that satisfy a daily focus; surprise accepts every group."""
    if focus == DailyFocus.SURPRISE:
        return (DailyFocus.FULL_BODY, DailyFocus.UPPER, DailyFocus.LOWER, DailyFocus.CARDIO, DailyFocus.CORE)
    return (focus,)


def preferred_equipment(structure: TrainingStructure) -> tuple[EquipmentType, ...]:
    return _PREFERRED_EQUIPMENT[structure]


def health_avoid_muscles(conditions: list[HealthCondition]) -> set[MuscleGroup]:
    avoid: set[MuscleGroup] = set()
    for condition in conditions:
        avoid.update(_HEALTH_AVOID_MUSCLES.get(condition, ()))
    return avoid


def forbids_high_impact(conditions: list[HealthCondition], doms: DomsAdjustment) -> bool:
    return doms.avoid_plyometrics or HealthCondition.KNEE in conditions


def is_high_impact(exercise_name: str) -> bool:
    name = exercise_name.lower()
    return any(marker in name for marker in HIGH_IMPACT_MARKERS)


def session_title(focus: DailyFocus, goal: FitnessGoal, soreness: SorenessLevel) -> str:
    title = f"{_TITLE_PREFIXES[focus]} {_TITLE_SUFFIXES[session_type_for(goal)]}"
    if soreness == SorenessLevel.STRONG:
        return f"{title} (Recovery)"
    return title


def intensity_for(level: TrainingLevel, soreness: SorenessLevel, goal: FitnessGoal) -> WorkoutIntensity:
    if soreness == SorenessLevel.STRONG:
        return WorkoutIntensity.LOW

    if level == TrainingLevel.ADVANCED and soreness == SorenessLevel.NONE:
        if goal in (FitnessGoal.HYPERTROPHY, FitnessGoal.PERFORMANCE):
            return WorkoutIntensity.HIGH
        return WorkoutIntensity.MODERATE

    if soreness == SorenessLevel.MODERATE:
        return WorkoutIntensity.LOW

    if goal == FitnessGoal.HYPERTROPHY:
        return WorkoutIntensity.MODERATE if level == TrainingLevel.BEGINNER else WorkoutIntensity.HIGH
    return WorkoutIntensity.MODERATE
