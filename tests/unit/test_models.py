"""
Unit tests for domain enums, dataclasses and the error taxonomy.
"""

from datetime import date, datetime, timedelta

import pytest

from lexiflow.core.errors import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    SessionAlreadyOpenError,
    SessionClosedError,
    TransientStoreError,
    UnauthenticatedError,
)
from lexiflow.core.models import (
    CategoryProgress,
    CategoryStatus,
    DashboardStats,
    DifficultyRating,
    LearningStatus,
    SessionCounters,
    SessionMode,
    StudyConstraints,
    UserActivity,
    UserStatistics,
    WordProgress,
    local_date,
    resolve_timezone,
)


class TestLearningStatus:
    def test_parse_current_values(self):
        assert LearningStatus.parse("learned") is LearningStatus.LEARNED
        assert LearningStatus.parse(" Mastered ") is LearningStatus.MASTERED

    def test_legacy_values_map_onto_lifecycle(self):
        assert LearningStatus.parse("studied") is LearningStatus.LEARNING
        assert LearningStatus.parse("viewed") is LearningStatus.NEW

    def test_unknown_value_rejected(self):
        with pytest.raises(InvalidInputError):
            LearningStatus.parse("forgotten")

    def test_is_known(self):
        assert LearningStatus.LEARNED.is_known
        assert LearningStatus.MASTERED.is_known
        assert not LearningStatus.LEARNING.is_known


class TestDifficultyRating:
    def test_hard_counts_as_correct(self):
        assert DifficultyRating.EASY.counts_as_correct
        assert DifficultyRating.HARD.counts_as_correct
        assert not DifficultyRating.FORGOT.counts_as_correct

    @pytest.mark.parametrize("value", ["", "medium", None, 3])
    def test_invalid_rating_rejected(self, value):
        with pytest.raises(InvalidInputError):
            DifficultyRating.parse(value)

    def test_parse_is_case_insensitive(self):
        assert DifficultyRating.parse("EASY") is DifficultyRating.EASY


class TestStudyConstraints:
    def test_non_positive_size_rejected(self):
        with pytest.raises(InvalidInputError):
            StudyConstraints(max_words=0).validate()

    def test_size_clamped_to_maximum(self):
        constraints = StudyConstraints(max_words=500).validate(max_batch_size=100)
        assert constraints.max_words == 100

    def test_review_mode_skips_new_words(self):
        constraints = StudyConstraints.for_mode("review", max_words=5)
        assert constraints.include_new is False
        assert constraints.include_review is True

    def test_unknown_mode_rejected(self):
        with pytest.raises(InvalidInputError):
            StudyConstraints.for_mode("cram")
        assert SessionMode.parse("TEST") is SessionMode.TEST


class TestSessionCounters:
    def test_accuracy(self):
        assert SessionCounters(correct_answers=3, total_answers=4).accuracy == pytest.approx(75.0)
        assert SessionCounters().accuracy == 0.0

    def test_more_correct_than_total_rejected(self):
        with pytest.raises(InvalidInputError):
            SessionCounters(correct_answers=5, total_answers=4).validate()

    def test_negative_rejected(self):
        with pytest.raises(InvalidInputError):
            SessionCounters(words_studied=-1).validate()

    def test_omitted_mastered_count_taken_from_running(self):
        tally = SessionCounters(words_studied=1, total_answers=1, words_mastered=None).validate()
        running = SessionCounters(words_studied=3, words_mastered=2, total_answers=4)

        merged = tally.with_running(running)

        assert merged.words_mastered == 2
        assert merged.total_answers == 1
        assert SessionCounters(words_mastered=0).with_running(running).words_mastered == 0


class TestWordProgress:
    def test_due_only_for_reviewable_statuses(self):
        now = datetime(2026, 3, 10, 9, 0)
        past = now - timedelta(hours=1)

        assert WordProgress("u", 1, LearningStatus.LEARNING, next_review_at=past).is_due(now)
        assert WordProgress("u", 1, LearningStatus.LEARNED, next_review_at=now).is_due(now)
        assert not WordProgress("u", 1, LearningStatus.MASTERED, next_review_at=past).is_due(now)
        assert WordProgress("u", 1, LearningStatus.MASTERED, next_review_at=past).is_due(now, include_mastered=True)
        assert not WordProgress("u", 1, LearningStatus.NEW, next_review_at=past).is_due(now)
        assert not WordProgress("u", 1, LearningStatus.LEARNING).is_due(now)

    def test_accuracy(self):
        assert WordProgress("u", 1, attempts=4, correct_attempts=3).accuracy == pytest.approx(75.0)


class TestCategoryStatus:
    @pytest.mark.parametrize(
        "total,started,learned,mastered,expected",
        [
            (0, 0, 0, 0, CategoryStatus.NOT_STARTED),
            (10, 0, 0, 0, CategoryStatus.NOT_STARTED),
            (10, 4, 2, 0, CategoryStatus.IN_PROGRESS),
            (10, 10, 10, 3, CategoryStatus.COMPLETED),
            (10, 10, 10, 10, CategoryStatus.MASTERED),
        ],
    )
    def test_from_counts(self, total, started, learned, mastered, expected):
        assert CategoryStatus.from_counts(total, started, learned, mastered) is expected


class TestDashboardStats:
    def test_goal_progress_capped(self):
        dashboard = DashboardStats(
            user_id="u",
            statistics=UserStatistics("u", words_learned_today=15, minutes_studied_today=15),
            activity=UserActivity("u"),
            daily_words_target=10,
            daily_minutes_target=30,
        )
        assert dashboard.daily_words_progress == 100.0
        assert dashboard.daily_minutes_progress == pytest.approx(50.0)

    def test_category_rollups(self):
        dashboard = DashboardStats(
            user_id="u",
            statistics=UserStatistics("u"),
            activity=UserActivity("u"),
            categories=[
                CategoryProgress(1, "a", status=CategoryStatus.IN_PROGRESS),
                CategoryProgress(2, "b", status=CategoryStatus.COMPLETED),
                CategoryProgress(3, "c", status=CategoryStatus.MASTERED),
                CategoryProgress(4, "d"),
            ],
        )
        assert dashboard.categories_in_progress == 1
        assert dashboard.categories_completed == 2


class TestTimezones:
    def test_local_date_crosses_midnight(self):
        late_utc = datetime(2026, 3, 10, 23, 30)
        assert local_date(late_utc, resolve_timezone("UTC")) == date(2026, 3, 10)
        assert local_date(late_utc, resolve_timezone("Asia/Shanghai")) == date(2026, 3, 11)


class TestErrors:
    @pytest.mark.parametrize(
        "error,status,retryable",
        [
            (UnauthenticatedError, 401, False),
            (NotFoundError, 404, False),
            (ConflictError, 409, True),
            (SessionAlreadyOpenError, 409, False),
            (SessionClosedError, 409, False),
            (TransientStoreError, 503, True),
            (InvalidInputError, 422, False),
        ],
    )
    def test_status_and_retryability(self, error, status, retryable):
        exc = error("boom")
        assert exc.status_code == status
        assert exc.retryable is retryable
        assert exc.message == "boom"

    def test_default_message_from_docstring(self):
        assert "closed" in SessionClosedError().message
