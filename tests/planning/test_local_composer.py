import pytest

from fitcompose.domain.models import (
    DailyCheckIn,
    DailyFocus,
    EquipmentType,
    HealthCondition,
    IntRange,
    MuscleGroup,
    PhaseKind,
    SorenessLevel,
    TrainingLevel,
    TrainingStructure,
    UserProfile,
    WorkoutBlock,
    WorkoutExercise,
)
from fitcompose.planning.blueprint_engine import BlueprintEngine
from fitcompose.planning.errors import NoCompatibleContentError
from fitcompose.planning.feedback import DECREASE_INTENSITY, INCREASE_INTENSITY
from fitcompose.planning.local_composer import LocalFallbackComposer, compatibility_score
from fitcompose.planning.rules import is_high_impact


def _compose(blocks, profile, check_in, now, seed=42, feedback=None):
    blueprint = BlueprintEngine().generate_blueprint(profile, check_in, seed)
    plan = LocalFallbackComposer().compose(blocks, profile, check_in, blueprint=blueprint, feedback=feedback, now=now)
    return blueprint, plan


def test_plan_matches_blueprint_exactly(seed_blocks, beginner_profile, upper_check_in, fixed_now):
    blueprint, plan = _compose(seed_blocks, beginner_profile, upper_check_in, fixed_now)

    assert plan.source == "local"
    assert plan.title == blueprint.title
    assert plan.created_at == fixed_now
    assert [phase.kind for phase in plan.phases] == [block.phase_kind for block in blueprint.blocks]
    for phase, block in zip(plan.phases, blueprint.blocks):
        assert len(phase.exercises) == block.exercise_count
        assert phase.rpe_target == block.rpe_target
    assert len(plan.exercises) == blueprint.total_exercise_count


def test_same_inputs_same_plan(seed_blocks, gym_profile, upper_check_in, fixed_now):
    _, first = _compose(seed_blocks, gym_profile, upper_check_in, fixed_now)
    _, second = _compose(seed_blocks, gym_profile, upper_check_in, fixed_now)

    assert first == second


def test_injected_clock_makes_omitted_now_deterministic(seed_blocks, gym_profile, upper_check_in, clock, fixed_now):
    blueprint = BlueprintEngine().generate_blueprint(gym_profile, upper_check_in, 42)
    composer = LocalFallbackComposer(clock=clock)

    first = composer.compose(seed_blocks, gym_profile, upper_check_in, blueprint=blueprint)
    second = composer.compose(seed_blocks, gym_profile, upper_check_in, blueprint=blueprint)

    assert first == second
    assert first.created_at == fixed_now


def test_different_seeds_vary_selection(seed_blocks, gym_profile, upper_check_in, fixed_now):
    plans = {tuple(_compose(seed_blocks, gym_profile, upper_check_in, fixed_now, seed=seed)[1].exercise_ids()) for seed in range(6)}

    assert len(plans) > 1


def test_no_duplicate_exercises(seed_blocks, gym_profile, fixed_now):
    for focus in DailyFocus:
        _, plan = _compose(seed_blocks, gym_profile, DailyCheckIn(focus=focus), fixed_now)
        ids = plan.exercise_ids()
        assert len(ids) == len(set(ids)), focus


@pytest.mark.parametrize("structure", list(TrainingStructure))
def test_equipment_stays_within_structure(seed_blocks, structure, fixed_now):
    profile = UserProfile(goal="conditioning", level=TrainingLevel.INTERMEDIATE, structure=structure)
    blueprint, plan = _compose(seed_blocks, profile, DailyCheckIn(focus=DailyFocus.FULL_BODY), fixed_now)

    assert plan.exercises
    assert all(blueprint.equipment_constraints.allows(item.exercise.equipment) for item in plan.exercises)


def test_knee_condition_excludes_high_impact(seed_blocks, beginner_profile, fixed_now):
    profile = beginner_profile.model_copy(update={"health_conditions": [HealthCondition.KNEE]})

    for seed in range(5):
        _, plan = _compose(seed_blocks, profile, DailyCheckIn(focus=DailyFocus.CARDIO), fixed_now, seed=seed)
        assert not any(is_high_impact(name) for name in plan.exercise_names())


def test_recovery_mode_caps_rpe_and_avoids_sore_areas(seed_blocks, gym_profile, fixed_now):
    check_in = DailyCheckIn(focus=DailyFocus.UPPER, soreness=SorenessLevel.STRONG, sore_areas=[MuscleGroup.CHEST])

    blueprint, plan = _compose(seed_blocks, gym_profile, check_in, fixed_now)

    assert blueprint.is_recovery_mode
    assert plan.notes
    assert all(phase.rpe_target <= 7 for phase in plan.phases)
    assert all(item.exercise.main_muscle != MuscleGroup.CHEST for item in plan.exercises)
    assert not any(is_high_impact(name) for name in plan.exercise_names())


def test_feedback_adjusts_prescriptions(seed_blocks, gym_profile, upper_check_in, fixed_now):
    blueprint, neutral = _compose(seed_blocks, gym_profile, upper_check_in, fixed_now)
    _, harder = _compose(seed_blocks, gym_profile, upper_check_in, fixed_now, feedback=INCREASE_INTENSITY)
    _, easier = _compose(seed_blocks, gym_profile, upper_check_in, fixed_now, feedback=DECREASE_INTENSITY)

    main = blueprint.block_for(PhaseKind.STRENGTH)
    neutral_phase, harder_phase, easier_phase = (
        next(phase for phase in plan.phases if phase.kind == PhaseKind.STRENGTH) for plan in (neutral, harder, easier)
    )

    assert neutral_phase.exercises[0].rest_seconds == main.rest_seconds
    assert harder_phase.exercises[0].rest_seconds == main.rest_seconds - 15
    assert easier_phase.exercises[0].rest_seconds == main.rest_seconds + 30
    assert harder_phase.rpe_target == main.rpe_target + 1
    assert easier_phase.rpe_target == main.rpe_target - 1
    assert easier_phase.exercises[0].sets <= neutral_phase.exercises[0].sets <= harder_phase.exercises[0].sets


def test_focus_relaxes_to_full_body(seed_blocks, beginner_profile, fixed_now):
    full_body_only = [block for block in seed_blocks if block.group == DailyFocus.FULL_BODY]

    _, plan = _compose(full_body_only, beginner_profile, DailyCheckIn(focus=DailyFocus.CORE), fixed_now)

    assert plan.exercises


def test_no_compatible_content_raises(beginner_profile, upper_check_in, fixed_now):
    barbell_block = WorkoutBlock(
        id="barbell_only",
        group=DailyFocus.UPPER,
        level=TrainingLevel.ADVANCED,
        compatible_structures=[TrainingStructure.FULL_GYM],
        equipment_options=[EquipmentType.BARBELL],
        exercises=[
            WorkoutExercise(id="bench", name="Bench Press", main_muscle=MuscleGroup.CHEST, equipment=EquipmentType.BARBELL)
        ],
        suggested_sets=IntRange.of(4, 5),
        suggested_reps=IntRange.of(4, 6),
        rest_interval=180,
    )

    with pytest.raises(NoCompatibleContentError):
        _compose([barbell_block], beginner_profile, upper_check_in, fixed_now)

    with pytest.raises(NoCompatibleContentError):
        _compose([], beginner_profile, upper_check_in, fixed_now)


def test_compatibility_score_prefers_focus_and_level(seed_blocks, gym_profile, upper_check_in):
    by_id = {block.id: block for block in seed_blocks}

    focused = compatibility_score(by_id["upper_dumbbell_intermediate"], gym_profile, upper_check_in)
    unrelated = compatibility_score(by_id["lower_machine_intermediate"], gym_profile, upper_check_in)

    assert focused > unrelated
