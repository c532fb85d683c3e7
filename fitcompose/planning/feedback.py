"""Feedback analysis.

Turns recent user difficulty ratings into an IntensityAdjustment that is
folded into the generation prompt and into local-composer prescriptions.
"""

from datetime import datetime, timedelta

from loguru import logger

from fitcompose.domain.models import IntensityAdjustment, WorkoutFeedback, WorkoutRating

MIN_MATCHING_RATINGS = 3
MAX_RATING_AGE_DAYS = 14
RECENT_RATINGS_WINDOW = 5

INCREASE_INTENSITY = IntensityAdjustment(
    volume_multiplier=1.15,
    rpe_delta=1,
    rest_delta_seconds=-15,
    recommendation=(
        "The user reported recent workouts as too easy. Increase intensity: add sets or reps, "
        "shorten rest intervals and choose more challenging exercise variations."
    ),
)

DECREASE_INTENSITY = IntensityAdjustment(
    volume_multiplier=0.85,
    rpe_delta=-1,
    rest_delta_seconds=30,
    recommendation=(
        "The user reported recent workouts as too hard. Decrease intensity: reduce sets or reps, "
        "lengthen rest intervals and choose more accessible exercise variations."
    ),
)


class FeedbackAnalyzer:
    def analyze_ratings(self, ratings: list[WorkoutRating]) -> IntensityAdjustment:
        """Map a list of ratings (most recent first) to an adjustment."""
        if not ratings:
            return IntensityAdjustment.neutral()

        too_easy = sum(1 for rating in ratings if rating == WorkoutRating.TOO_EASY)
        too_hard = sum(1 for rating in ratings if rating == WorkoutRating.TOO_HARD)

        if too_easy >= MIN_MATCHING_RATINGS:
            return INCREASE_INTENSITY
        if too_hard >= MIN_MATCHING_RATINGS:
            return DECREASE_INTENSITY
        return IntensityAdjustment.neutral()

    def analyze(self, feedback: list[WorkoutFeedback], reference: datetime) -> IntensityAdjustment:
        """Analyze the five most recent ratings from the last fourteen days."""
        cutoff = reference - timedelta(days=MAX_RATING_AGE_DAYS)
        recent = sorted(
            (entry for entry in feedback if entry.rated_at >= cutoff),
            key=lambda entry: entry.rated_at,
            reverse=True,
        )[:RECENT_RATINGS_WINDOW]

        adjustment = self.analyze_ratings([entry.rating for entry in recent])
        logger.debug(
            "feedback_analyzer: Ratings analyzed",
            considered=len(recent),
            total=len(feedback),
            adjustment=adjustment.fingerprint,
        )
        return adjustment
