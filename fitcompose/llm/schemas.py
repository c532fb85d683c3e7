"""Wire schemas for the chat-completions endpoint and the workout JSON it returns."""

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fitcompose.domain.models import IntRange

_REPS_PATTERN = re.compile(r"(\d+)\s*(?:-|–|to|a)?\s*(\d+)?")


class ChatMessage(BaseModel):
    role: str
    content: str | None = None


class ChatChoice(BaseModel):
    index: int = 0
    message: ChatMessage
    finish_reason: str | None = None


class ChatCompletion(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    model: str | None = None
    choices: list[ChatChoice] = Field(default_factory=list)

    @property
    def content(self) -> str | None:
        if not self.choices:
            return None
        return self.choices[0].message.content


class ChatCompletionRequest(BaseModel):
    model: str
    messages: list[ChatMessage]
    max_tokens: int
    temperature: float
    response_format: dict[str, str] = Field(default_factory=lambda: {"type": "json_object"})


def parse_reps(raw: Any, default: IntRange | None = None) -> IntRange:
    """Parse '8-12', '10', 12 or [8, 12] into an IntRange."""
    fallback = default or IntRange.of(10, 12)
    if isinstance(raw, bool) or raw is None:
        return fallback
    if isinstance(raw, int):
        return IntRange.of(raw, raw) if raw > 0 else fallback
    if isinstance(raw, (list, tuple)) and len(raw) == 2 and all(isinstance(v, int) for v in raw):
        return IntRange.of(raw[0], raw[1])
    match = _REPS_PATTERN.search(str(raw))
    if not match:
        return fallback
    lower = int(match.group(1))
    upper = int(match.group(2)) if match.group(2) else lower
    if lower <= 0:
        return fallback
    return IntRange.of(lower, upper)


class GeneratedExercise(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    muscle_group: str | None = Field(default=None, alias="muscleGroup")
    equipment: str | None = None
    sets: int = 3
    reps: IntRange = Field(default_factory=lambda: IntRange.of(10, 12))
    rest_seconds: int = Field(default=60, alias="restSeconds")
    notes: str | None = None

    @field_validator("sets", mode="before")
    @classmethod
    def _lenient_sets(cls, value: Any) -> int:
        try:
            sets = int(value)
        except (TypeError, ValueError):
            return 3
        return sets if sets > 0 else 3

    @field_validator("reps", mode="before")
    @classmethod
    def _lenient_reps(cls, value: Any) -> IntRange:
        if isinstance(value, IntRange):
            return value
        return parse_reps(value)

    @field_validator("rest_seconds", mode="before")
    @classmethod
    def _lenient_rest(cls, value: Any) -> int:
        try:
            rest = int(value)
        except (TypeError, ValueError):
            return 60
        return max(rest, 0)


class GeneratedActivity(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    kind: str
    title: str = ""
    duration_minutes: int = Field(default=0, alias="durationMinutes")
    notes: str | None = None

    @field_validator("duration_minutes", mode="before")
    @classmethod
    def _lenient_duration(cls, value: Any) -> int:
        # 0 means "use the blueprint duration".
        try:
            minutes = int(value)
        except (TypeError, ValueError):
            return 0
        return max(minutes, 0)


class GeneratedPhase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    kind: str | None = None
    exercises: list[GeneratedExercise] = Field(default_factory=list)
    activity: GeneratedActivity | None = None

    @field_validator("exercises", mode="before")
    @classmethod
    def _drop_unnamed(cls, value: Any) -> Any:
        # Entries without a usable name cannot be resolved against the catalog.
        if not isinstance(value, list):
            return []
        return [item for item in value if not isinstance(item, dict) or (isinstance(item.get("name"), str) and item["name"].strip())]

    @field_validator("activity", mode="before")
    @classmethod
    def _drop_kindless_activity(cls, value: Any) -> Any:
        if isinstance(value, dict) and not isinstance(value.get("kind"), str):
            return None
        return value


class GeneratedWorkout(BaseModel):
    """Draft decoded from the generator before assembly into a WorkoutPlan."""

    model_config = ConfigDict(extra="ignore")

    phases: list[GeneratedPhase] = Field(default_factory=list)
    title: str | None = None
    notes: str | None = None

    def exercise_names(self) -> list[str]:
        return [exercise.name for phase in self.phases for exercise in phase.exercises]


WORKOUT_JSON_SCHEMA = """{
  "phases": [
    {
      "kind": "warmup | strength | accessory | conditioning | aerobic | finisher | cooldown",
      "exercises": [
        {"name": "string", "muscleGroup": "string", "equipment": "string", "sets": 3, "reps": "8-12", "restSeconds": 60, "notes": "string"}
      ],
      "activity": {"kind": "mobility | aerobicZone2 | aerobicIntervals | breathing | cooldown", "title": "string", "durationMinutes": 10, "notes": "string"}
    }
  ],
  "title": "string",
  "notes": "string"
}"""
