"""Orchestration tests for HybridComposer.

A scripted fake stands in for the remote client; everything else is the
real pipeline over the bundled seed catalog.
"""

import asyncio
import json
from datetime import timedelta

import pytest

from fitcompose.domain.models import ActivityKind, ActivityPrescription, PhaseKind
from fitcompose.planning.blueprint_engine import BlueprintEngine
from fitcompose.planning.errors import (
    ClientRejectedError,
    ConfigurationMissingError,
    DecodingFailedError,
    DiversityRejectedError,
    NetworkTransientError,
    NoCompatibleContentError,
    SchemaInvalidError,
)
from fitcompose.planning.catalog import CatalogIndex
from fitcompose.planning.events import RecordingEventSink
from fitcompose.planning.feedback import INCREASE_INTENSITY
from fitcompose.planning.hybrid_composer import CompositionState, HybridComposer
from fitcompose.planning.local_composer import LocalFallbackComposer
from fitcompose.planning.validation import ResponseValidator
from fitcompose.providers import InMemoryHistoryProvider, StaticCatalogProvider, StaticFeedbackProvider
from fitcompose.storage.usage_limiter import UsageLimiter

SEED = 4242


class ScriptedClient:
    """Returns or raises the scripted outcomes in order and records every call."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def generate(self, prompt, use_cache=True):
        self.calls.append((prompt, use_cache))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def aclose(self):
        return None


class FailingHistory:
    async def recent_plans(self, limit):
        raise RuntimeError("history store offline")


class FailingFeedback:
    async def intensity_adjustment(self):
        raise RuntimeError("ratings store offline")


@pytest.fixture
def blueprint(beginner_profile, upper_check_in):
    return BlueprintEngine().generate_blueprint(beginner_profile, upper_check_in, SEED)


@pytest.fixture
def events():
    return RecordingEventSink()


@pytest.fixture
def limiter():
    return UsageLimiter(daily_limit=1)


@pytest.fixture
def build_composer(clock, events, limiter):
    def _build(client=None, history=None, feedback=None, **kwargs):
        return HybridComposer(
            usage_limiter=limiter,
            client=client,
            history=history,
            feedback=feedback,
            events=events,
            clock=clock,
            seed_factory=lambda profile, check_in, at: SEED,
            **kwargs,
        )

    return _build


@pytest.mark.asyncio
async def test_accepted_remote_plan_registers_usage(
    build_composer, events, limiter, blueprint, seed_blocks, make_response, beginner_profile, upper_check_in, fixed_now
):
    client = ScriptedClient(make_response(blueprint, seed_blocks))
    composer = build_composer(client=client)

    outcome = await composer.compose(beginner_profile, upper_check_in, seed_blocks)

    assert outcome.plan.source == "remote"
    assert outcome.plan.created_at == fixed_now
    assert outcome.used_remote
    assert outcome.attempts == 1
    assert outcome.states == [
        CompositionState.BUILDING_BLUEPRINT,
        CompositionState.ATTEMPTING_REMOTE,
        CompositionState.VALIDATING,
        CompositionState.ACCEPTED,
        CompositionState.DONE,
    ]
    assert events.names() == ["attempt", "accepted"]
    assert client.calls[0][1] is True
    record = await limiter.record_for(beginner_profile.user_id)
    assert record.day == fixed_now.date()
    assert record.count == 1


@pytest.mark.asyncio
async def test_network_failure_falls_back_without_usage(
    build_composer, events, limiter, seed_blocks, beginner_profile, upper_check_in
):
    client = ScriptedClient(NetworkTransientError("connection reset", attempts=3))
    composer = build_composer(client=client)

    outcome = await composer.compose(beginner_profile, upper_check_in, seed_blocks)

    assert outcome.plan.source == "local"
    assert outcome.fallback_reason == "generation_error"
    assert len(client.calls) == 1
    assert events.names() == ["attempt", "fallback"]
    assert isinstance(events.events[-1][1]["error"], NetworkTransientError)
    assert await limiter.record_for(beginner_profile.user_id) is None


@pytest.mark.asyncio
async def test_client_rejection_falls_back_after_single_attempt(
    build_composer, seed_blocks, beginner_profile, upper_check_in
):
    client = ScriptedClient(ClientRejectedError(401, "invalid api key"))

    plan = await build_composer(client=client).compose_plan(beginner_profile, upper_check_in, seed_blocks)

    assert plan.source == "local"
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_diversity_rejection_retries_with_correction(
    build_composer, events, blueprint, seed_blocks, make_response, make_plan, beginner_profile, upper_check_in
):
    usable = CatalogIndex(seed_blocks, blueprint.equipment_constraints, blueprint.avoid_muscles).exercises
    repeated = usable[: blueprint.total_exercise_count]
    history = InMemoryHistoryProvider([make_plan(repeated)])
    first = make_response(blueprint, seed_blocks)
    second = make_response(blueprint, seed_blocks, offset=blueprint.total_exercise_count)

    client = ScriptedClient(first, second)
    outcome = await build_composer(client=client, history=history).compose(beginner_profile, upper_check_in, seed_blocks)

    assert outcome.plan.source == "remote"
    assert outcome.attempts == 2
    assert CompositionState.RETRYING in outcome.states
    assert events.names() == ["attempt", "validation_failure", "attempt", "accepted"]
    assert isinstance(events.events[1][1]["error"], DiversityRejectedError)
    assert [use_cache for _, use_cache in client.calls] == [True, False]
    retry_prompt = client.calls[1][0]
    assert "## CORRECTION REQUIRED" in retry_prompt.user_message
    assert retry_prompt.cache_key == client.calls[0][0].cache_key
    assert set(outcome.plan.exercise_ids()).isdisjoint(exercise.id for exercise in repeated)


@pytest.mark.asyncio
async def test_exhausted_validation_attempts_fall_back(
    build_composer, events, seed_blocks, beginner_profile, upper_check_in
):
    client = ScriptedClient(b"not json", b'{"choices": []}')

    outcome = await build_composer(client=client).compose(beginner_profile, upper_check_in, seed_blocks)

    assert outcome.plan.source == "local"
    assert outcome.fallback_reason == "attempts_exhausted"
    assert len(client.calls) == 2
    assert events.names() == ["attempt", "validation_failure", "attempt", "validation_failure", "fallback"]
    assert isinstance(events.events[1][1]["error"], DecodingFailedError)


@pytest.mark.asyncio
async def test_schema_shortfall_consumes_attempt(
    build_composer, blueprint, seed_blocks, make_response, beginner_profile, upper_check_in
):
    short = b'{"phases": [{"kind": "strength", "exercises": [{"name": "Push-Up"}]}]}'
    client = ScriptedClient(short, make_response(blueprint, seed_blocks))

    outcome = await build_composer(client=client).compose(beginner_profile, upper_check_in, seed_blocks)

    assert outcome.plan.source == "remote"
    assert outcome.attempts == 2
    assert "strength: 1/" in client.calls[1][0].user_message


@pytest.mark.asyncio
async def test_quota_exhausted_skips_remote(
    build_composer, events, limiter, seed_blocks, beginner_profile, upper_check_in, fixed_now
):
    await limiter.register_usage(beginner_profile.user_id, fixed_now.date())
    client = ScriptedClient()

    outcome = await build_composer(client=client).compose(beginner_profile, upper_check_in, seed_blocks)

    assert outcome.plan.source == "local"
    assert outcome.fallback_reason == "quota_exhausted"
    assert client.calls == []
    assert events.names() == ["fallback"]


@pytest.mark.asyncio
async def test_quota_resets_on_next_calendar_day(
    build_composer, limiter, blueprint, seed_blocks, make_response, beginner_profile, upper_check_in, fixed_now
):
    await limiter.register_usage(beginner_profile.user_id, fixed_now.date() - timedelta(days=1))
    client = ScriptedClient(make_response(blueprint, seed_blocks))

    plan = await build_composer(client=client).compose_plan(beginner_profile, upper_check_in, seed_blocks)

    assert plan.source == "remote"


@pytest.mark.asyncio
async def test_missing_client_falls_back(build_composer, events, seed_blocks, beginner_profile, upper_check_in):
    outcome = await build_composer().compose(beginner_profile, upper_check_in, seed_blocks)

    assert outcome.plan.source == "local"
    assert outcome.fallback_reason == "configuration_missing"
    assert isinstance(events.events[0][1]["error"], ConfigurationMissingError)


@pytest.mark.asyncio
async def test_local_fallback_reuses_blueprint(build_composer, blueprint, seed_blocks, beginner_profile, upper_check_in, fixed_now):
    outcome = await build_composer().compose(beginner_profile, upper_check_in, seed_blocks)

    expected = LocalFallbackComposer().compose(
        seed_blocks, beginner_profile, upper_check_in, blueprint=blueprint, now=fixed_now
    )
    assert outcome.blueprint == blueprint
    assert outcome.plan == expected


@pytest.mark.asyncio
async def test_no_compatible_content_propagates(build_composer, beginner_profile, upper_check_in):
    with pytest.raises(NoCompatibleContentError):
        await build_composer().compose_plan(beginner_profile, upper_check_in, [])


@pytest.mark.asyncio
async def test_collaborator_failures_are_tolerated(build_composer, seed_blocks, beginner_profile, upper_check_in):
    composer = build_composer(history=FailingHistory(), feedback=FailingFeedback())

    plan = await composer.compose_plan(beginner_profile, upper_check_in, seed_blocks)

    assert plan.exercises


@pytest.mark.asyncio
async def test_feedback_reaches_local_prescriptions(build_composer, blueprint, seed_blocks, beginner_profile, upper_check_in):
    composer = build_composer(feedback=StaticFeedbackProvider(INCREASE_INTENSITY))

    plan = await composer.compose_plan(beginner_profile, upper_check_in, seed_blocks)

    strength = next(phase for phase in plan.phases if phase.kind == PhaseKind.STRENGTH)
    assert strength.rpe_target == blueprint.block_for(PhaseKind.STRENGTH).rpe_target + 1


@pytest.mark.asyncio
async def test_catalog_provider_used_when_blocks_omitted(build_composer, seed_blocks, beginner_profile, upper_check_in):
    composer = build_composer(catalog=StaticCatalogProvider(seed_blocks))

    plan = await composer.compose_plan(beginner_profile, upper_check_in)

    assert plan.exercises


@pytest.mark.asyncio
async def test_cancellation_is_not_absorbed(build_composer, limiter, seed_blocks, beginner_profile, upper_check_in):
    client = ScriptedClient(asyncio.CancelledError())

    with pytest.raises(asyncio.CancelledError):
        await build_composer(client=client).compose_plan(beginner_profile, upper_check_in, seed_blocks)

    assert await limiter.record_for(beginner_profile.user_id) is None


def _with_activity_minutes(body: bytes, minutes) -> bytes:
    envelope = json.loads(body)
    content = json.loads(envelope["choices"][0]["message"]["content"])
    for phase in content["phases"]:
        if "activity" in phase:
            phase["activity"]["durationMinutes"] = minutes
    envelope["choices"][0]["message"]["content"] = json.dumps(content)
    return json.dumps(envelope).encode("utf-8")


@pytest.mark.asyncio
async def test_invalid_activity_durations_use_blueprint_defaults(
    build_composer, blueprint, seed_blocks, make_response, beginner_profile, upper_check_in
):
    assert any(block.guided_activity is not None for block in blueprint.blocks)
    client = ScriptedClient(_with_activity_minutes(make_response(blueprint, seed_blocks), -5))

    plan = await build_composer(client=client).compose_plan(beginner_profile, upper_check_in, seed_blocks)

    assert plan.source == "remote"
    for phase in plan.phases:
        block = blueprint.block_for(phase.kind)
        for activity in phase.activities:
            assert activity.duration_minutes == block.guided_activity.duration_minutes


class RejectingAssembler(ResponseValidator):
    def assemble(self, draft, blueprint, blocks, created_at):
        return ActivityPrescription(kind=ActivityKind.MOBILITY, title="Broken", duration_minutes=-1)


@pytest.mark.asyncio
async def test_model_errors_during_assembly_become_schema_failures(
    build_composer, events, blueprint, seed_blocks, make_response, beginner_profile, upper_check_in
):
    body = make_response(blueprint, seed_blocks)
    client = ScriptedClient(body, body)

    outcome = await build_composer(client=client, validator=RejectingAssembler()).compose(
        beginner_profile, upper_check_in, seed_blocks
    )

    assert outcome.plan.source == "local"
    assert outcome.fallback_reason == "attempts_exhausted"
    assert events.names() == ["attempt", "validation_failure", "attempt", "validation_failure", "fallback"]
    error = events.events[1][1]["error"]
    assert isinstance(error, SchemaInvalidError)
    assert any("duration_minutes" in issue for issue in error.issues)
