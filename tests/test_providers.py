import json
from datetime import timedelta

import pytest

from fitcompose.domain.models import IntensityAdjustment, WorkoutFeedback, WorkoutRating
from fitcompose.planning.feedback import DECREASE_INTENSITY
from fitcompose.providers import (
    InMemoryHistoryProvider,
    JsonCatalogProvider,
    RatingsFeedbackProvider,
    StaticFeedbackProvider,
    parse_blocks,
)

VALID_EXERCISE = {"id": "plank", "name": "Plank", "main_muscle": "core", "equipment": "bodyweight"}


def _block(block_id, exercises, **overrides):
    block = {
        "id": block_id,
        "group": "core",
        "level": "beginner",
        "compatible_structures": ["bodyweight"],
        "equipment_options": ["bodyweight"],
        "exercises": exercises,
        "suggested_sets": [3, 3],
        "suggested_reps": [10, 15],
        "rest_interval": 45,
    }
    block.update(overrides)
    return block


def test_parse_blocks_skips_invalid_entries():
    raw = [
        _block("ok", [VALID_EXERCISE, {"id": "bad", "name": "Bad", "main_muscle": "tail", "equipment": "bodyweight"}]),
        _block("empty", [{"id": "broken"}]),
        _block("bad_level", [VALID_EXERCISE], level="expert"),
        "not a block",
    ]

    blocks = parse_blocks(raw)

    assert [block.id for block in blocks] == ["ok"]
    assert [exercise.id for exercise in blocks[0].exercises] == ["plank"]


def test_parse_blocks_normalizes_reversed_ranges():
    blocks = parse_blocks([_block("reversed", [VALID_EXERCISE], suggested_reps=[15, 10])])

    assert blocks[0].suggested_reps.lower == 10
    assert blocks[0].suggested_reps.upper == 15


def test_parse_blocks_rejects_non_list():
    assert parse_blocks({"blocks": []}) == []


@pytest.mark.asyncio
async def test_seed_catalog_loads():
    blocks = await JsonCatalogProvider().load_blocks()

    assert len(blocks) == 15
    ids = [exercise.id for block in blocks for exercise in block.exercises]
    assert "push_up" in ids
    assert "jump_squat" in ids


@pytest.mark.asyncio
async def test_json_catalog_reads_custom_file(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps([_block("core_block", [VALID_EXERCISE])]), encoding="utf-8")
    provider = JsonCatalogProvider(path)

    first = await provider.load_blocks()
    path.write_text("[]", encoding="utf-8")
    second = await provider.load_blocks()

    assert [block.id for block in first] == ["core_block"]
    assert second == first


@pytest.mark.asyncio
async def test_history_is_newest_first(make_plan, seed_blocks):
    older = make_plan(seed_blocks[0].exercises[:1], plan_id="older")
    newer = make_plan(seed_blocks[1].exercises[:1], plan_id="newer")
    history = InMemoryHistoryProvider([older])
    history.record(newer)

    assert [plan.id for plan in await history.recent_plans(5)] == ["newer", "older"]
    assert [plan.id for plan in await history.recent_plans(1)] == ["newer"]


@pytest.mark.asyncio
async def test_feedback_providers(fixed_now):
    feedback = [
        WorkoutFeedback(plan_id=f"p{i}", rating=WorkoutRating.TOO_HARD, rated_at=fixed_now - timedelta(days=i))
        for i in range(3)
    ]

    assert await RatingsFeedbackProvider(feedback, clock=lambda: fixed_now).intensity_adjustment() == DECREASE_INTENSITY
    assert (await StaticFeedbackProvider().intensity_adjustment()) == IntensityAdjustment.neutral()
