"""Catalog index and exercise name resolution.

Resolution order for a generator-supplied name:
1. exact id or case-insensitive name
2. normalized name (lower-case, punctuation stripped)
3. unused exercise of the same muscle group, reported as a substitution
Anything else is NotFound and gets dropped by the caller.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass

from fitcompose.domain.blueprint import EquipmentConstraints
from fitcompose.domain.models import MuscleGroup, WorkoutBlock, WorkoutExercise
from fitcompose.planning.rules import is_high_impact

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class Found:
    exercise: WorkoutExercise


@dataclass(frozen=True)
class SubstitutedSameMuscle:
    exercise: WorkoutExercise
    requested_name: str


@dataclass(frozen=True)
class NotFound:
    requested_name: str


LookupResult = Found | SubstitutedSameMuscle | NotFound


def normalize_name(name: str) -> str:
    return _NON_ALNUM.sub(" ", name.lower()).strip()


def is_usable(
    exercise: WorkoutExercise,
    constraints: EquipmentConstraints,
    avoid_muscles: Iterable[MuscleGroup] = (),
) -> bool:
    if not constraints.allows(exercise.equipment):
        return False
    if exercise.main_muscle in set(avoid_muscles):
        return False
    if constraints.avoid_high_impact and is_high_impact(exercise.name):
        return False
    return True


class CatalogIndex:
    """Lookup structure over the usable exercises of a catalog.

    Only exercises that pass the equipment, avoid-muscle and impact filters
    are indexed, so every resolution result satisfies those constraints.
    """

    def __init__(
        self,
        blocks: Iterable[WorkoutBlock],
        constraints: EquipmentConstraints,
        avoid_muscles: Iterable[MuscleGroup] = (),
    ):
        avoid = frozenset(avoid_muscles)
        self._exercises: list[WorkoutExercise] = []
        self._by_id: dict[str, WorkoutExercise] = {}
        self._by_lower_name: dict[str, WorkoutExercise] = {}
        self._by_normalized: dict[str, WorkoutExercise] = {}
        self._all_by_lower_name: dict[str, WorkoutExercise] = {}

        for block in blocks:
            for exercise in block.exercises:
                self._all_by_lower_name.setdefault(exercise.name.strip().lower(), exercise)
                if exercise.id in self._by_id or not is_usable(exercise, constraints, avoid):
                    continue
                self._exercises.append(exercise)
                self._by_id[exercise.id] = exercise
                self._by_lower_name.setdefault(exercise.name.strip().lower(), exercise)
                self._by_normalized.setdefault(normalize_name(exercise.name), exercise)

    @property
    def exercises(self) -> list[WorkoutExercise]:
        return list(self._exercises)

    def __len__(self) -> int:
        return len(self._exercises)

    def lookup(
        self,
        name: str,
        muscle_hint: MuscleGroup | None = None,
        used_ids: set[str] | None = None,
    ) -> LookupResult:
        used = used_ids or set()
        requested = name.strip()
        lowered = requested.lower()
        normalized = normalize_name(requested)

        direct = self._by_id.get(requested) or self._by_lower_name.get(lowered) or self._by_normalized.get(normalized)
        if direct is not None and direct.id not in used:
            return Found(direct)

        muscle = muscle_hint
        if muscle is None:
            known = direct or self._all_by_lower_name.get(lowered)
            muscle = known.main_muscle if known else None
        if muscle is not None:
            for exercise in self._exercises:
                if exercise.main_muscle == muscle and exercise.id not in used:
                    return SubstitutedSameMuscle(exercise, requested)

        return NotFound(requested)
