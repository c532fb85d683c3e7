"""Response and diversity validation.

The remote path decodes the raw generator bytes into a draft, assembles the
draft into a domain WorkoutPlan against the catalog, then validates the
assembled plan. Validation never runs on raw JSON.
"""

import json
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger
from pydantic import ValidationError

from fitcompose.domain.blueprint import Blueprint, BlueprintBlock
from fitcompose.domain.models import (
    ActivityKind,
    ActivityPrescription,
    ExercisePrescription,
    MuscleGroup,
    PhaseKind,
    WorkoutBlock,
    WorkoutPlan,
    WorkoutPlanPhase,
)
from fitcompose.llm.schemas import ChatCompletion, GeneratedPhase, GeneratedWorkout
from fitcompose.planning.catalog import CatalogIndex, NotFound, SubstitutedSameMuscle
from fitcompose.planning.errors import DecodingFailedError, EmptyResponseError, SchemaInvalidError

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)

DEFAULT_MIN_DIVERSITY_RATIO = 0.6


def extract_json(text: str) -> str:
    """Pull the JSON object out of model text.

    Accepts a fenced ```json block or falls back to the outermost braces.
    """
    fenced = _FENCED_JSON.search(text)
    if fenced:
        return fenced.group(1)
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise DecodingFailedError("No JSON object found in generated content")
    return text[start : end + 1]


def _parse_muscle(raw: str | None) -> MuscleGroup | None:
    if not raw:
        return None
    lowered = raw.strip().lower()
    for muscle in MuscleGroup:
        if muscle.value.lower() == lowered:
            return muscle
    return None


@dataclass
class AssemblyResult:
    """Outcome of turning a draft into a domain plan.

    Attributes:
        plan: Assembled plan, empty phases already removed
        shortfalls: Phases that ended with fewer exercises than required
        dropped_names: Generated names that did not resolve against the catalog
        substitutions: (requested, substitute) pairs resolved by muscle group
        skipped_phases: Generated phase kinds that were unknown or not in the blueprint
    """

    plan: WorkoutPlan
    shortfalls: list[str] = field(default_factory=list)
    dropped_names: list[str] = field(default_factory=list)
    substitutions: list[tuple[str, str]] = field(default_factory=list)
    skipped_phases: list[str] = field(default_factory=list)


class ResponseValidator:
    def decode(self, raw: bytes) -> GeneratedWorkout:
        """Decode raw generator bytes into a workout draft.

        Raises:
            EmptyResponseError: No content or no phases
            DecodingFailedError: Body or embedded content is not the expected JSON
        """
        if not raw or not raw.strip():
            raise EmptyResponseError("Generator returned an empty body")

        try:
            envelope = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodingFailedError(f"Response body is not JSON: {e}") from e

        if isinstance(envelope, dict) and "phases" in envelope:
            payload = envelope
        else:
            try:
                completion = ChatCompletion.model_validate(envelope)
            except ValidationError as e:
                raise DecodingFailedError(f"Unexpected completion envelope: {e.error_count()} errors") from e
            content = completion.content
            if content is None or not content.strip():
                raise EmptyResponseError("Completion has no message content")
            try:
                payload = json.loads(extract_json(content))
            except json.JSONDecodeError as e:
                raise DecodingFailedError(f"Generated content is not valid JSON: {e}") from e

        try:
            draft = GeneratedWorkout.model_validate(payload)
        except ValidationError as e:
            raise DecodingFailedError(f"Generated workout does not match the schema: {e.error_count()} errors") from e

        if not draft.phases:
            raise EmptyResponseError("Generated workout has no phases")
        return draft

    def assemble(
        self,
        draft: GeneratedWorkout,
        blueprint: Blueprint,
        blocks: list[WorkoutBlock],
        created_at: datetime,
    ) -> AssemblyResult:
        """Resolve a draft against the catalog in blueprint phase order.

        Unresolved names are dropped, duplicates are never admitted, extra
        exercises beyond a phase's count are trimmed.
        """
        index = CatalogIndex(blocks, blueprint.equipment_constraints, blueprint.avoid_muscles)
        generated: dict[PhaseKind, GeneratedPhase] = {}
        skipped: list[str] = []
        for phase in draft.phases:
            kind = PhaseKind.parse(phase.kind)
            if kind == PhaseKind.UNKNOWN or blueprint.block_for(kind) is None or kind in generated:
                skipped.append(phase.kind or "(missing)")
                continue
            generated[kind] = phase

        used_ids: set[str] = set()
        phases: list[WorkoutPlanPhase] = []
        shortfalls: list[str] = []
        dropped: list[str] = []
        substitutions: list[tuple[str, str]] = []

        for block in blueprint.blocks:
            source = generated.get(block.phase_kind)
            items: list[ExercisePrescription | ActivityPrescription] = []

            activity = self._activity_for(block, source)
            if activity is not None:
                items.append(activity)

            exercise_items: list[ExercisePrescription] = []
            for candidate in source.exercises if source else []:
                if len(exercise_items) >= block.exercise_count:
                    break
                result = index.lookup(candidate.name, _parse_muscle(candidate.muscle_group), used_ids)
                if isinstance(result, NotFound):
                    dropped.append(candidate.name)
                    continue
                if isinstance(result, SubstitutedSameMuscle):
                    substitutions.append((result.requested_name, result.exercise.name))
                exercise = result.exercise
                used_ids.add(exercise.id)
                exercise_items.append(
                    ExercisePrescription(
                        exercise=exercise,
                        sets=min(max(candidate.sets, block.sets_range.lower), max(block.sets_range.upper, 1)),
                        reps=candidate.reps,
                        rest_seconds=candidate.rest_seconds,
                        tip=candidate.notes,
                    )
                )

            if len(exercise_items) < block.exercise_count:
                shortfalls.append(f"{block.phase_kind.value}: {len(exercise_items)}/{block.exercise_count} exercises")

            items.extend(exercise_items)
            if items:
                phases.append(
                    WorkoutPlanPhase(
                        kind=block.phase_kind,
                        title=block.title,
                        rpe_target=block.rpe_target,
                        items=items,
                    )
                )

        ids = [prescription.exercise.id for phase in phases for prescription in phase.exercises]
        plan = WorkoutPlan(
            id=str(uuid.uuid5(uuid.NAMESPACE_URL, f"fitcompose:remote:{blueprint.variation_seed}:{','.join(ids)}")),
            title=blueprint.title,
            focus=blueprint.focus,
            duration_minutes=blueprint.estimated_duration_minutes,
            intensity=blueprint.intensity,
            created_at=created_at,
            phases=phases,
            notes=draft.notes,
            source="remote",
        )

        if dropped or substitutions or skipped:
            logger.debug(
                "response_validator: Draft resolved with corrections",
                dropped=dropped,
                substitutions=substitutions,
                skipped_phases=skipped,
            )
        return AssemblyResult(
            plan=plan,
            shortfalls=shortfalls,
            dropped_names=dropped,
            substitutions=substitutions,
            skipped_phases=skipped,
        )

    @staticmethod
    def _activity_for(block: BlueprintBlock, source: GeneratedPhase | None) -> ActivityPrescription | None:
        spec = block.guided_activity
        if spec is None:
            return None
        if source is not None and source.activity is not None:
            kind = ActivityKind.parse(source.activity.kind)
            if kind != ActivityKind.UNKNOWN:
                return ActivityPrescription(
                    kind=kind,
                    title=source.activity.title or spec.title,
                    duration_minutes=source.activity.duration_minutes or spec.duration_minutes,
                    notes=source.activity.notes,
                )
        return ActivityPrescription(kind=spec.kind, title=spec.title, duration_minutes=spec.duration_minutes, notes=spec.notes)

    def validate_schema(self, assembly: AssemblyResult, blueprint: Blueprint) -> SchemaInvalidError | None:
        """Return the schema error for an assembled plan, or None when it satisfies the blueprint."""
        issues = list(assembly.shortfalls)
        plan = assembly.plan

        ids = plan.exercise_ids()
        if len(ids) != len(set(ids)):
            issues.append("duplicate exercise ids in plan")

        disallowed = [
            p.exercise.name for p in plan.exercises if not blueprint.equipment_constraints.allows(p.exercise.equipment)
        ]
        if disallowed:
            issues.append(f"equipment not allowed: {', '.join(disallowed)}")

        if blueprint.total_exercise_count > 0 and not ids:
            issues.append("plan has no exercises")

        if issues:
            return SchemaInvalidError(issues)
        return None


@dataclass(frozen=True)
class DiversityResult:
    ratio: float
    threshold: float
    repeated: tuple[str, ...] = ()

    @property
    def accepted(self) -> bool:
        return self.ratio >= self.threshold


def _diversity_key(name: str) -> str:
    return name.strip().lower()


class DiversityValidator:
    """Share of a plan's exercises absent from recent plans.

    Names are compared trimmed and case-insensitively. An empty plan or an
    empty history scores 1.0.
    """

    def __init__(self, min_ratio: float = DEFAULT_MIN_DIVERSITY_RATIO):
        self.min_ratio = min_ratio

    def evaluate(self, names: list[str], recent_plans: list[WorkoutPlan]) -> DiversityResult:
        draft = {_diversity_key(name) for name in names if name.strip()}
        seen = {_diversity_key(name) for plan in recent_plans for name in plan.exercise_names()}
        if not draft or not seen:
            return DiversityResult(ratio=1.0, threshold=self.min_ratio)
        repeated = sorted(draft & seen)
        ratio = 1.0 - len(repeated) / len(draft)
        return DiversityResult(ratio=ratio, threshold=self.min_ratio, repeated=tuple(repeated))

    def validate_diversity(self, plan: WorkoutPlan, recent_plans: list[WorkoutPlan], min_ratio: float | None = None) -> bool:
        result = self.evaluate(plan.exercise_names(), recent_plans)
        threshold = self.min_ratio if min_ratio is None else min_ratio
        return result.ratio >= threshold
