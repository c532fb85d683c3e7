"""Blueprint schemas.

A blueprint is the structural contract for one composition call: ordered
phases with exact exercise counts, prescription ranges and muscle targets.
All schemas are frozen dataclasses; a blueprint is never mutated after the
engine emits it.
"""

from dataclasses import dataclass, field

from fitcompose.domain.models import (
    ActivityKind,
    DailyFocus,
    EquipmentType,
    FitnessGoal,
    IntRange,
    MuscleGroup,
    PhaseKind,
    TrainingStructure,
    WorkoutIntensity,
)

BLUEPRINT_VERSION = "1.0.0"

_STRUCTURE_EQUIPMENT: dict[TrainingStructure, frozenset[EquipmentType]] = {
    TrainingStructure.BODYWEIGHT: frozenset({EquipmentType.BODYWEIGHT}),
    TrainingStructure.HOME_DUMBBELLS: frozenset(
        {
            EquipmentType.DUMBBELL,
            EquipmentType.BODYWEIGHT,
            EquipmentType.KETTLEBELL,
            EquipmentType.RESISTANCE_BAND,
        }
    ),
    TrainingStructure.BASIC_GYM: frozenset(
        {
            EquipmentType.MACHINE,
            EquipmentType.DUMBBELL,
            EquipmentType.CABLE,
            EquipmentType.BODYWEIGHT,
            EquipmentType.PULLUP_BAR,
        }
    ),
    TrainingStructure.FULL_GYM: frozenset(EquipmentType),
}


@dataclass(frozen=True)
class EquipmentConstraints:
    """Allowed equipment for a session.

    Attributes:
        allowed: Equipment types a prescription may use
        avoid_high_impact: Whether plyometric/jumping work is forbidden
    """

    allowed: frozenset[EquipmentType]
    avoid_high_impact: bool = False

    @classmethod
    def from_structure(cls, structure: TrainingStructure, avoid_high_impact: bool = False) -> "EquipmentConstraints":
        return cls(allowed=_STRUCTURE_EQUIPMENT[structure], avoid_high_impact=avoid_high_impact)

    def allows(self, equipment: EquipmentType) -> bool:
        return equipment in self.allowed


@dataclass(frozen=True)
class GuidedActivitySpec:
    kind: ActivityKind
    title: str
    duration_minutes: int
    notes: str | None = None


@dataclass(frozen=True)
class BlueprintBlock:
    """One phase of the blueprint.

    Attributes:
        phase_kind: Phase this block produces
        title: Display title of the phase
        exercise_count: Exact number of exercises the phase must contain
        sets_range: Sets per exercise
        reps_range: Reps per set
        rest_seconds: Rest between sets
        rpe_target: Target rate of perceived exertion
        target_muscles: Muscles to prefer when picking exercises
        avoid_muscles: Muscles that must not be trained
        guided_activity: Optional guided activity leading the phase
    """

    phase_kind: PhaseKind
    title: str
    exercise_count: int
    sets_range: IntRange
    reps_range: IntRange
    rest_seconds: int
    rpe_target: int
    target_muscles: tuple[MuscleGroup, ...] = ()
    avoid_muscles: tuple[MuscleGroup, ...] = ()
    guided_activity: GuidedActivitySpec | None = None


@dataclass(frozen=True)
class Blueprint:
    title: str
    goal: FitnessGoal
    focus: DailyFocus
    intensity: WorkoutIntensity
    is_recovery_mode: bool
    variation_seed: int
    equipment_constraints: EquipmentConstraints
    blocks: tuple[BlueprintBlock, ...]
    estimated_duration_minutes: int
    version: str = BLUEPRINT_VERSION
    avoid_muscles: frozenset[MuscleGroup] = field(default_factory=frozenset)

    @property
    def total_exercise_count(self) -> int:
        return sum(block.exercise_count for block in self.blocks)

    def block_for(self, kind: PhaseKind) -> BlueprintBlock | None:
        for block in self.blocks:
            if block.phase_kind == kind:
                return block
        return None
