"""
Unit tests for the review interval policy and status transitions.

Pure functions; no database required.
"""

from datetime import datetime, timedelta

import pytest

from lexiflow.core.models import DifficultyRating, LearningStatus, WordProgress
from lexiflow.study.intervals import ReviewPolicy, SpacedRepetitionScheduler

NOW = datetime(2026, 3, 10, 9, 0, 0)

EASY = DifficultyRating.EASY
HARD = DifficultyRating.HARD
FORGOT = DifficultyRating.FORGOT


def progress(status: LearningStatus, interval: int = 0, easiness: float = 2.5, consecutive_easy: int = 0):
    return WordProgress(
        user_id="u1",
        word_id=1,
        learning_status=status,
        easiness_factor=easiness,
        interval_days=interval,
        consecutive_easy=consecutive_easy,
    )


class TestStatusTransitions:
    @pytest.mark.parametrize(
        "current,rating,expected",
        [
            (LearningStatus.NEW, EASY, LearningStatus.LEARNED),
            (LearningStatus.NEW, HARD, LearningStatus.LEARNING),
            (LearningStatus.NEW, FORGOT, LearningStatus.LEARNING),
            (LearningStatus.LEARNING, EASY, LearningStatus.LEARNED),
            (LearningStatus.LEARNING, HARD, LearningStatus.LEARNING),
            (LearningStatus.LEARNING, FORGOT, LearningStatus.LEARNING),
            (LearningStatus.LEARNED, EASY, LearningStatus.MASTERED),
            (LearningStatus.LEARNED, HARD, LearningStatus.LEARNING),
            (LearningStatus.LEARNED, FORGOT, LearningStatus.LEARNING),
            (LearningStatus.MASTERED, EASY, LearningStatus.MASTERED),
            (LearningStatus.MASTERED, HARD, LearningStatus.MASTERED),
            (LearningStatus.MASTERED, FORGOT, LearningStatus.LEARNING),
        ],
    )
    def test_transition_table(self, current, rating, expected):
        scheduler = SpacedRepetitionScheduler()
        assert scheduler.next_status(current, rating) is expected

    def test_mastery_needs_configured_easy_streak(self):
        scheduler = SpacedRepetitionScheduler(ReviewPolicy(mastery_easy_streak=2))

        assert scheduler.next_status(LearningStatus.LEARNED, EASY, consecutive_easy=0) is LearningStatus.LEARNED
        assert scheduler.next_status(LearningStatus.LEARNED, EASY, consecutive_easy=1) is LearningStatus.MASTERED

    def test_new_word_reaches_mastered_through_learned(self):
        scheduler = SpacedRepetitionScheduler()
        state = progress(LearningStatus.NEW)

        first = scheduler.calculate_next_review(state, EASY, NOW)
        assert first.learning_status is LearningStatus.LEARNED

        state.learning_status = first.learning_status
        state.interval_days = first.interval_days
        state.consecutive_easy = first.consecutive_easy
        second = scheduler.calculate_next_review(state, EASY, NOW + timedelta(days=1))
        assert second.learning_status is LearningStatus.MASTERED


class TestIntervals:
    def test_forgot_schedules_relearn_in_minutes(self):
        scheduler = SpacedRepetitionScheduler()
        outcome = scheduler.calculate_next_review(progress(LearningStatus.LEARNED, interval=6), FORGOT, NOW)

        assert outcome.interval_days == 0
        assert outcome.repetition_count == 0
        assert outcome.next_review_at == NOW + timedelta(minutes=10)
        assert outcome.easiness_factor == pytest.approx(2.3)

    def test_first_easy_is_one_day(self):
        scheduler = SpacedRepetitionScheduler()
        outcome = scheduler.calculate_next_review(progress(LearningStatus.NEW), EASY, NOW)

        assert outcome.interval_days == 1
        assert outcome.next_review_at == NOW + timedelta(days=1)
        assert outcome.easiness_factor == pytest.approx(2.6)

    def test_easy_grows_by_easiness(self):
        scheduler = SpacedRepetitionScheduler()
        outcome = scheduler.calculate_next_review(progress(LearningStatus.LEARNED, interval=4), EASY, NOW)

        # EF 2.5 + 0.1 = 2.6; 4 * 2.6 = 10.4
        assert outcome.interval_days == 10

    def test_hard_is_sooner_than_easy(self):
        scheduler = SpacedRepetitionScheduler()
        state = progress(LearningStatus.LEARNING, interval=5)

        hard = scheduler.calculate_next_review(state, HARD, NOW)
        easy = scheduler.calculate_next_review(state, EASY, NOW)

        assert hard.interval_days == 6
        assert hard.next_review_at < easy.next_review_at
        assert hard.easiness_factor == pytest.approx(2.35)

    def test_mastered_hard_still_extends_interval(self):
        scheduler = SpacedRepetitionScheduler()
        outcome = scheduler.calculate_next_review(progress(LearningStatus.MASTERED, interval=2), HARD, NOW)

        assert outcome.learning_status is LearningStatus.MASTERED
        assert outcome.interval_days == 3

    def test_interval_capped(self):
        scheduler = SpacedRepetitionScheduler(ReviewPolicy(max_interval=30))
        outcome = scheduler.calculate_next_review(progress(LearningStatus.MASTERED, interval=25), EASY, NOW)

        assert outcome.interval_days == 30

    def test_easiness_clamped(self):
        scheduler = SpacedRepetitionScheduler()

        low = scheduler.calculate_next_review(progress(LearningStatus.LEARNING, easiness=1.35), FORGOT, NOW)
        high = scheduler.calculate_next_review(progress(LearningStatus.LEARNED, easiness=2.95), EASY, NOW)

        assert low.easiness_factor == pytest.approx(1.3)
        assert high.easiness_factor == pytest.approx(3.0)


class TestConsecutiveEasy:
    def test_reset_on_status_change(self):
        scheduler = SpacedRepetitionScheduler()
        outcome = scheduler.calculate_next_review(progress(LearningStatus.NEW, consecutive_easy=3), EASY, NOW)

        assert outcome.consecutive_easy == 0

    def test_counts_easy_while_status_unchanged(self):
        scheduler = SpacedRepetitionScheduler(ReviewPolicy(mastery_easy_streak=3))
        outcome = scheduler.calculate_next_review(progress(LearningStatus.LEARNED, consecutive_easy=1), EASY, NOW)

        assert outcome.learning_status is LearningStatus.LEARNED
        assert outcome.consecutive_easy == 2


class TestPolicyFromSettings:
    def test_reads_configured_values(self, settings):
        settings.relearn_delay_minutes = 5
        settings.mastery_easy_streak = 2

        policy = ReviewPolicy.from_settings(settings)

        assert policy.relearn_delay_minutes == 5
        assert policy.mastery_easy_streak == 2
        assert policy.initial_easiness == pytest.approx(2.5)
