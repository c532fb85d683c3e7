"""Domain models for workout composition.

Profiles and check-ins are caller-owned inputs; exercises and blocks are
read-only catalog entities; plans are the composed output.
"""

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FitnessGoal(StrEnum):
    HYPERTROPHY = "hypertrophy"
    CONDITIONING = "conditioning"
    ENDURANCE = "endurance"
    WEIGHT_LOSS = "weightLoss"
    PERFORMANCE = "performance"


class TrainingStructure(StrEnum):
    FULL_GYM = "fullGym"
    BASIC_GYM = "basicGym"
    HOME_DUMBBELLS = "homeDumbbells"
    BODYWEIGHT = "bodyweight"


class TrainingLevel(StrEnum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class HealthCondition(StrEnum):
    NONE = "none"
    LOWER_BACK_PAIN = "lowerBackPain"
    KNEE = "knee"
    SHOULDER = "shoulder"
    OTHER = "other"


class DailyFocus(StrEnum):
    UPPER = "upper"
    LOWER = "lower"
    FULL_BODY = "fullBody"
    CARDIO = "cardio"
    CORE = "core"
    SURPRISE = "surprise"


class SorenessLevel(StrEnum):
    NONE = "none"
    LIGHT = "light"
    MODERATE = "moderate"
    STRONG = "strong"


class MuscleGroup(StrEnum):
    CHEST = "chest"
    BACK = "back"
    SHOULDERS = "shoulders"
    ARMS = "arms"
    BICEPS = "biceps"
    TRICEPS = "triceps"
    FOREARMS = "forearms"
    CORE = "core"
    GLUTES = "glutes"
    QUADS = "quads"
    QUADRICEPS = "quadriceps"
    HAMSTRINGS = "hamstrings"
    CALVES = "calves"
    LATS = "lats"
    LOWER_BACK = "lowerBack"
    CARDIO_SYSTEM = "cardioSystem"
    FULL_BODY = "fullBody"


class EquipmentType(StrEnum):
    BARBELL = "barbell"
    DUMBBELL = "dumbbell"
    MACHINE = "machine"
    KETTLEBELL = "kettlebell"
    BODYWEIGHT = "bodyweight"
    RESISTANCE_BAND = "resistanceBand"
    CARDIO_MACHINE = "cardioMachine"
    CABLE = "cable"
    PULLUP_BAR = "pullupBar"


class WorkoutIntensity(StrEnum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class PhaseKind(StrEnum):
    WARMUP = "warmup"
    STRENGTH = "strength"
    ACCESSORY = "accessory"
    CONDITIONING = "conditioning"
    AEROBIC = "aerobic"
    FINISHER = "finisher"
    COOLDOWN = "cooldown"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str | None) -> "PhaseKind":
        """Map a generator-supplied string to a kind, UNKNOWN when unrecognized."""
        if not raw:
            return cls.UNKNOWN
        normalized = raw.strip().lower()
        for kind in cls:
            if kind.value.lower() == normalized:
                return kind
        return cls.UNKNOWN


class ActivityKind(StrEnum):
    MOBILITY = "mobility"
    AEROBIC_ZONE2 = "aerobicZone2"
    AEROBIC_INTERVALS = "aerobicIntervals"
    BREATHING = "breathing"
    COOLDOWN = "cooldown"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str | None) -> "ActivityKind":
        if not raw:
            return cls.UNKNOWN
        normalized = raw.strip().lower()
        for kind in cls:
            if kind.value.lower() == normalized:
                return kind
        return cls.UNKNOWN


class WorkoutRating(StrEnum):
    TOO_EASY = "too_easy"
    ADEQUATE = "adequate"
    TOO_HARD = "too_hard"


class UserProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str = "local-user"
    goal: FitnessGoal
    level: TrainingLevel
    structure: TrainingStructure
    weekly_frequency: int = Field(default=3, ge=1, le=7)
    health_conditions: list[HealthCondition] = Field(default_factory=list)


class DailyCheckIn(BaseModel):
    model_config = ConfigDict(frozen=True)

    focus: DailyFocus
    soreness: SorenessLevel = SorenessLevel.NONE
    sore_areas: list[MuscleGroup] = Field(default_factory=list)
    energy_level: int = Field(default=7, ge=1, le=10)


class IntRange(BaseModel):
    """Inclusive integer range; bounds are normalized so lower <= upper."""

    model_config = ConfigDict(frozen=True)

    lower: int
    upper: int

    @model_validator(mode="before")
    @classmethod
    def _order_bounds(cls, data):
        if isinstance(data, (list, tuple)) and len(data) == 2:
            data = {"lower": data[0], "upper": data[1]}
        if isinstance(data, dict) and "lower" in data and "upper" in data:
            lower, upper = data["lower"], data["upper"]
            if isinstance(lower, int) and isinstance(upper, int) and lower > upper:
                data = {**data, "lower": upper, "upper": lower}
        return data

    @property
    def average(self) -> int:
        return (self.lower + self.upper) // 2

    @property
    def display(self) -> str:
        return str(self.lower) if self.lower == self.upper else f"{self.lower}-{self.upper}"

    @classmethod
    def of(cls, lower: int, upper: int) -> "IntRange":
        return cls(lower=lower, upper=upper)


class ExerciseMedia(BaseModel):
    model_config = ConfigDict(frozen=True)

    image_url: str | None = None
    gif_url: str | None = None


class WorkoutExercise(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    main_muscle: MuscleGroup
    equipment: EquipmentType
    instructions: list[str] = Field(default_factory=list)
    media: ExerciseMedia | None = None


class WorkoutBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    group: DailyFocus
    level: TrainingLevel
    compatible_structures: list[TrainingStructure]
    equipment_options: list[EquipmentType]
    exercises: list[WorkoutExercise]
    suggested_sets: IntRange
    suggested_reps: IntRange
    rest_interval: int = Field(ge=0)

    def is_level_compatible(self, profile_level: TrainingLevel) -> bool:
        # Beginners never get intermediate or advanced blocks.
        if profile_level == TrainingLevel.BEGINNER:
            return self.level == TrainingLevel.BEGINNER
        return True

    def matches(self, profile: UserProfile, check_in: DailyCheckIn) -> bool:
        if profile.structure not in self.compatible_structures:
            return False
        if not self.is_level_compatible(profile.level):
            return False
        if check_in.soreness == SorenessLevel.STRONG and check_in.sore_areas:
            sore = set(check_in.sore_areas)
            if any(exercise.main_muscle in sore for exercise in self.exercises):
                return False
        return True


class ExercisePrescription(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_type: Literal["exercise"] = "exercise"
    exercise: WorkoutExercise
    sets: int = Field(ge=1)
    reps: IntRange
    rest_seconds: int = Field(ge=0)
    tip: str | None = None


class ActivityPrescription(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_type: Literal["activity"] = "activity"
    kind: ActivityKind
    title: str
    duration_minutes: int = Field(ge=0)
    notes: str | None = None


PlanItem = Annotated[ExercisePrescription | ActivityPrescription, Field(discriminator="item_type")]


class WorkoutPlanPhase(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: PhaseKind
    title: str
    rpe_target: int | None = None
    items: list[PlanItem] = Field(default_factory=list)

    @property
    def exercises(self) -> list[ExercisePrescription]:
        return [item for item in self.items if isinstance(item, ExercisePrescription)]

    @property
    def activities(self) -> list[ActivityPrescription]:
        return [item for item in self.items if isinstance(item, ActivityPrescription)]


class WorkoutPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    focus: DailyFocus
    duration_minutes: int = Field(ge=0)
    intensity: WorkoutIntensity
    created_at: datetime
    phases: list[WorkoutPlanPhase]
    notes: str | None = None
    source: Literal["remote", "local"] = "local"

    @property
    def exercises(self) -> list[ExercisePrescription]:
        return [prescription for phase in self.phases for prescription in phase.exercises]

    def exercise_ids(self) -> list[str]:
        return [prescription.exercise.id for prescription in self.exercises]

    def exercise_names(self) -> list[str]:
        return [prescription.exercise.name for prescription in self.exercises]


class IntensityAdjustment(BaseModel):
    """Feedback-derived tweak folded into prompts and local prescriptions."""

    model_config = ConfigDict(frozen=True)

    volume_multiplier: float = Field(default=1.0, gt=0)
    rpe_delta: int = 0
    rest_delta_seconds: int = 0
    recommendation: str = ""

    @property
    def is_neutral(self) -> bool:
        return self.volume_multiplier == 1.0 and self.rpe_delta == 0 and self.rest_delta_seconds == 0

    @property
    def fingerprint(self) -> str:
        return f"v{self.volume_multiplier:.2f}|r{self.rpe_delta}|s{self.rest_delta_seconds}"

    @classmethod
    def neutral(cls) -> "IntensityAdjustment":
        return cls()


class WorkoutFeedback(BaseModel):
    model_config = ConfigDict(frozen=True)

    plan_id: str
    rating: WorkoutRating
    rated_at: datetime
