"""Collaborator interfaces consumed by the composer, plus simple implementations.

The composer only reads from these: the catalog is shared read-only, history
is a snapshot, feedback is folded into an IntensityAdjustment.
"""

import asyncio
import json
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from loguru import logger
from pydantic import ValidationError

from fitcompose.domain.models import IntensityAdjustment, WorkoutBlock, WorkoutExercise, WorkoutFeedback, WorkoutPlan
from fitcompose.planning.feedback import FeedbackAnalyzer

SEED_CATALOG_PATH = Path(__file__).parent / "data" / "workout_blocks_seed.json"


class CatalogProvider(Protocol):
    async def load_blocks(self) -> list[WorkoutBlock]: ...


class HistoryProvider(Protocol):
    async def recent_plans(self, limit: int) -> list[WorkoutPlan]: ...


class FeedbackProvider(Protocol):
    async def intensity_adjustment(self) -> IntensityAdjustment: ...


def parse_blocks(raw: Any) -> list[WorkoutBlock]:
    """Validate catalog JSON, skipping invalid exercises and blocks.

    A block whose exercises are all invalid is dropped.
    """
    if not isinstance(raw, list):
        logger.warning("catalog: Expected a JSON array of blocks", got=type(raw).__name__)
        return []

    blocks: list[WorkoutBlock] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        exercises: list[WorkoutExercise] = []
        for item in entry.get("exercises") or []:
            try:
                exercises.append(WorkoutExercise.model_validate(item))
            except ValidationError as e:
                logger.warning(
                    "catalog: Skipping invalid exercise",
                    block_id=entry.get("id"),
                    exercise_id=item.get("id") if isinstance(item, dict) else None,
                    errors=e.error_count(),
                )
        if not exercises:
            logger.warning("catalog: Dropping block without valid exercises", block_id=entry.get("id"))
            continue
        try:
            blocks.append(WorkoutBlock.model_validate({**entry, "exercises": exercises}))
        except ValidationError as e:
            logger.warning("catalog: Skipping invalid block", block_id=entry.get("id"), errors=e.error_count())
    return blocks


class JsonCatalogProvider:
    """Loads blocks from a JSON file once and serves the cached list afterwards."""

    def __init__(self, path: Path | str | None = None):
        self.path = Path(path) if path else SEED_CATALOG_PATH
        self._blocks: list[WorkoutBlock] | None = None
        self._lock = asyncio.Lock()

    async def load_blocks(self) -> list[WorkoutBlock]:
        async with self._lock:
            if self._blocks is None:
                text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
                self._blocks = parse_blocks(json.loads(text))
                logger.info(
                    "catalog: Blocks loaded",
                    path=str(self.path),
                    blocks=len(self._blocks),
                    exercises=sum(len(block.exercises) for block in self._blocks),
                )
            return list(self._blocks)


class StaticCatalogProvider:
    def __init__(self, blocks: list[WorkoutBlock]):
        self._blocks = list(blocks)

    async def load_blocks(self) -> list[WorkoutBlock]:
        return list(self._blocks)


class InMemoryHistoryProvider:
    """Plan history, newest first."""

    def __init__(self, plans: list[WorkoutPlan] | None = None):
        self._plans = list(plans or [])

    def record(self, plan: WorkoutPlan) -> None:
        self._plans.insert(0, plan)

    async def recent_plans(self, limit: int) -> list[WorkoutPlan]:
        return list(self._plans[:limit])


class StaticFeedbackProvider:
    def __init__(self, adjustment: IntensityAdjustment | None = None):
        self._adjustment = adjustment or IntensityAdjustment.neutral()

    async def intensity_adjustment(self) -> IntensityAdjustment:
        return self._adjustment


class RatingsFeedbackProvider:
    """Derives the adjustment from stored workout ratings."""

    def __init__(
        self,
        feedback: list[WorkoutFeedback],
        analyzer: FeedbackAnalyzer | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._feedback = list(feedback)
        self._analyzer = analyzer or FeedbackAnalyzer()
        self._clock = clock or (lambda: datetime.now(UTC))

    async def intensity_adjustment(self) -> IntensityAdjustment:
        return self._analyzer.analyze(self._feedback, self._clock())
