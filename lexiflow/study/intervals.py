"""
Review interval policy.

SM-2 style scheduling driven by three-level self-assessment instead of
the 0-5 grade scale:

    easy   - recalled without effort: easiness up, interval grows by EF
    hard   - recalled with effort: easiness down, interval grows slowly
    forgot - not recalled: easiness down, repetitions reset, short relearn delay

Each word keeps:
- Easiness Factor (EF): 2.5 default, clamped to [1.3, 3.0]
- Interval: days until next review (0 while relearning)
- Repetitions: consecutive successful recalls
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from loguru import logger

from config import Settings, get_settings
from lexiflow.core.models import DifficultyRating, LearningStatus, WordProgress

# =============================================================================
# Policy
# =============================================================================


@dataclass
class ReviewPolicy:
    """Configuration for interval scheduling and status promotion."""

    initial_easiness: float = 2.5
    minimum_easiness: float = 1.3
    maximum_easiness: float = 3.0
    first_interval: int = 1  # Days after the first success
    max_interval: int = 365
    hard_factor: float = 1.2
    relearn_delay_minutes: int = 10
    easy_bonus: float = 0.10
    hard_penalty: float = 0.15
    forgot_penalty: float = 0.20
    mastery_easy_streak: int = 1  # Consecutive easy ratings: learned -> mastered

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ReviewPolicy:
        settings = settings or get_settings()
        return cls(
            initial_easiness=settings.initial_easiness,
            minimum_easiness=settings.minimum_easiness,
            maximum_easiness=settings.maximum_easiness,
            first_interval=settings.first_interval_days,
            max_interval=settings.max_interval_days,
            hard_factor=settings.hard_interval_factor,
            relearn_delay_minutes=settings.relearn_delay_minutes,
            mastery_easy_streak=settings.mastery_easy_streak,
        )


@dataclass
class ReviewOutcome:
    """New status and schedule after one rating."""

    learning_status: LearningStatus
    easiness_factor: float
    interval_days: int
    repetition_count: int
    consecutive_easy: int
    next_review_at: datetime


# =============================================================================
# Scheduler
# =============================================================================


class SpacedRepetitionScheduler:
    """
    Applies a difficulty rating to a word's learning state.

    Status transitions:

        from \\ rating   easy                 hard        forgot
        new              learned              learning    learning
        learning         learned              learning    learning
        learned          mastered after N     learning    learning
        mastered         mastered             mastered    learning
    """

    def __init__(self, policy: ReviewPolicy | None = None):
        """
        Initialize the scheduler.

        Args:
            policy: Custom policy (uses defaults if None)
        """
        self.policy = policy or ReviewPolicy()

    def next_status(
        self,
        current: LearningStatus,
        rating: DifficultyRating,
        consecutive_easy: int = 0,
    ) -> LearningStatus:
        """
        Next learning status for a rating.

        Args:
            current: Status before the rating
            rating: The learner's self-assessment
            consecutive_easy: Easy ratings since the last status change

        Returns:
            Status after the rating
        """
        if rating is DifficultyRating.FORGOT:
            return LearningStatus.LEARNING

        if current is LearningStatus.MASTERED:
            return LearningStatus.MASTERED

        if rating is DifficultyRating.HARD:
            return LearningStatus.LEARNING

        # easy
        if current is LearningStatus.LEARNED:
            if consecutive_easy + 1 >= self.policy.mastery_easy_streak:
                return LearningStatus.MASTERED
            return LearningStatus.LEARNED
        return LearningStatus.LEARNED

    def calculate_next_review(
        self,
        progress: WordProgress,
        rating: DifficultyRating,
        now: datetime,
    ) -> ReviewOutcome:
        """
        Calculate status, easiness and next review time for a rating.

        Args:
            progress: Current state of the word
            rating: The learner's self-assessment
            now: Time of the response (naive UTC)

        Returns:
            ReviewOutcome with the updated schedule
        """
        policy = self.policy
        current = progress.learning_status
        status = self.next_status(current, rating, progress.consecutive_easy)
        previous_interval = max(0, progress.interval_days)

        if rating is DifficultyRating.FORGOT:
            easiness = self._clamp_easiness(progress.easiness_factor - policy.forgot_penalty)
            interval = 0
            repetitions = 0
            next_review = now + timedelta(minutes=policy.relearn_delay_minutes)
        else:
            if rating is DifficultyRating.EASY:
                easiness = self._clamp_easiness(progress.easiness_factor + policy.easy_bonus)
                interval = max(previous_interval + 1, round(previous_interval * easiness))
            else:
                easiness = self._clamp_easiness(progress.easiness_factor - policy.hard_penalty)
                interval = round(previous_interval * policy.hard_factor)
                if current is LearningStatus.MASTERED:
                    interval = max(interval, previous_interval + 1)
            interval = min(max(interval, policy.first_interval), policy.max_interval)
            repetitions = progress.repetition_count + 1
            next_review = now + timedelta(days=interval)

        if status is not current:
            consecutive_easy = 0
        elif rating is DifficultyRating.EASY:
            consecutive_easy = progress.consecutive_easy + 1
        else:
            consecutive_easy = 0

        logger.debug(
            f"Word {progress.word_id}: {current.value} --{rating.value}--> {status.value}, "
            f"EF={easiness:.2f}, interval={interval}d"
        )

        return ReviewOutcome(
            learning_status=status,
            easiness_factor=easiness,
            interval_days=interval,
            repetition_count=repetitions,
            consecutive_easy=consecutive_easy,
            next_review_at=next_review,
        )

    def _clamp_easiness(self, value: float) -> float:
        return min(self.policy.maximum_easiness, max(self.policy.minimum_easiness, value))
