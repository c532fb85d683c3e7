from datetime import timedelta

from fitcompose.domain.models import IntensityAdjustment, WorkoutFeedback, WorkoutRating
from fitcompose.planning.feedback import DECREASE_INTENSITY, INCREASE_INTENSITY, FeedbackAnalyzer


def _feedback(now, ratings, spacing_hours=12):
    return [
        WorkoutFeedback(plan_id=f"plan-{i}", rating=rating, rated_at=now - timedelta(hours=spacing_hours * i))
        for i, rating in enumerate(ratings)
    ]


def test_three_too_easy_increases_intensity():
    adjustment = FeedbackAnalyzer().analyze_ratings([WorkoutRating.TOO_EASY] * 3 + [WorkoutRating.ADEQUATE])

    assert adjustment == INCREASE_INTENSITY
    assert adjustment.volume_multiplier == 1.15
    assert adjustment.rpe_delta == 1
    assert adjustment.rest_delta_seconds == -15


def test_three_too_hard_decreases_intensity():
    adjustment = FeedbackAnalyzer().analyze_ratings([WorkoutRating.TOO_HARD] * 3)

    assert adjustment == DECREASE_INTENSITY
    assert adjustment.rest_delta_seconds == 30


def test_mixed_or_missing_ratings_are_neutral():
    analyzer = FeedbackAnalyzer()

    assert analyzer.analyze_ratings([]).is_neutral
    assert analyzer.analyze_ratings([WorkoutRating.TOO_EASY, WorkoutRating.TOO_EASY, WorkoutRating.TOO_HARD]).is_neutral


def test_only_five_most_recent_ratings_count(fixed_now):
    ratings = [WorkoutRating.ADEQUATE] * 3 + [WorkoutRating.TOO_EASY] * 3

    adjustment = FeedbackAnalyzer().analyze(_feedback(fixed_now, ratings), fixed_now)

    assert adjustment.is_neutral


def test_ratings_older_than_two_weeks_are_ignored(fixed_now):
    stale = _feedback(fixed_now - timedelta(days=15), [WorkoutRating.TOO_HARD] * 3)

    assert FeedbackAnalyzer().analyze(stale, fixed_now).is_neutral
    assert FeedbackAnalyzer().analyze(_feedback(fixed_now, [WorkoutRating.TOO_HARD] * 3), fixed_now) == DECREASE_INTENSITY


def test_fingerprint_distinguishes_adjustments():
    assert IntensityAdjustment.neutral().fingerprint == "v1.00|r0|s0"
    assert INCREASE_INTENSITY.fingerprint != DECREASE_INTENSITY.fingerprint
