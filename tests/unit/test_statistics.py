"""
Unit tests for streaks, daily counters and cumulative statistics.
"""

from datetime import date, datetime, timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from lexiflow.core.errors import ConflictError, InvalidInputError, NotFoundError
from lexiflow.core.models import SessionCounters, SessionMode, StudySession
from lexiflow.db.database import create_store_engine, init_db, run_with_retry, session_scope
from lexiflow.db.models import StudySessionModel, UserStatisticsModel
from lexiflow.study.statistics import StatisticsAggregator, advance_streak


@pytest.fixture
def aggregator(session_factory, settings, clock):
    return StatisticsAggregator(session_factory, settings, clock)


def closed(ended_at: datetime, minutes: int = 20, user_id: str = "alice", **counters) -> StudySession:
    return StudySession(
        session_id=f"s-{ended_at:%Y%m%d%H%M}",
        user_id=user_id,
        category_id=1,
        mode=SessionMode.STUDY,
        counters=SessionCounters(**counters),
        started_at=ended_at - timedelta(minutes=minutes),
        ended_at=ended_at,
        duration_minutes=minutes,
    )


def fold(aggregator, session_factory, session: StudySession):
    with session_scope(session_factory) as db:
        return aggregator.apply_session_completion(db, session)


class TestAdvanceStreak:
    def test_first_activity_starts_streak(self):
        update = advance_streak(None, date(2026, 3, 10), 0, 0)
        assert (update.current, update.longest, update.is_new_day) == (1, 1, True)

    def test_consecutive_day_extends(self):
        update = advance_streak(date(2026, 3, 9), date(2026, 3, 10), 4, 4)
        assert update.current == 5
        assert update.longest == 5

    def test_same_day_unchanged(self):
        update = advance_streak(date(2026, 3, 10), date(2026, 3, 10), 5, 7)
        assert (update.current, update.longest, update.is_new_day) == (5, 7, False)

    def test_gap_resets_but_keeps_longest(self):
        update = advance_streak(date(2026, 3, 5), date(2026, 3, 10), 10, 10)
        assert update.current == 1
        assert update.longest == 10

    def test_future_last_date_unchanged(self):
        update = advance_streak(date(2026, 3, 12), date(2026, 3, 10), 3, 3)
        assert (update.current, update.longest, update.is_new_day) == (3, 3, False)


class TestSessionCompletion:
    def test_first_session(self, aggregator, clock, session_factory):
        session = closed(clock(), words_learned=3, words_mastered=1, correct_answers=4, total_answers=5)
        stats = fold(aggregator, session_factory, session)

        assert stats.total_sessions == 1
        assert stats.total_study_minutes == 20
        assert stats.total_words_learned == 3
        assert stats.total_words_mastered == 1
        assert stats.words_learned_today == 3
        assert stats.minutes_studied_today == 20
        assert stats.overall_accuracy == pytest.approx(80.0)
        assert stats.current_streak_days == 1
        assert stats.longest_streak_days == 1
        assert stats.total_active_days == 1
        assert stats.last_activity_date == date(2026, 3, 10)

    def test_same_day_sessions_accumulate(self, aggregator, clock, session_factory):
        fold(aggregator, session_factory, closed(clock(), words_learned=2))
        clock.advance(hours=3)
        stats = fold(aggregator, session_factory, closed(clock(), minutes=10, words_learned=1))

        assert stats.words_learned_today == 3
        assert stats.minutes_studied_today == 30
        assert stats.current_streak_days == 1
        assert stats.total_active_days == 1

    def test_next_day_resets_daily_counters(self, aggregator, clock, session_factory):
        fold(aggregator, session_factory, closed(clock(), words_learned=2))
        clock.advance(days=1)
        stats = fold(aggregator, session_factory, closed(clock(), minutes=5, words_learned=1))

        assert stats.words_learned_today == 1
        assert stats.minutes_studied_today == 5
        assert stats.current_streak_days == 2
        assert stats.longest_streak_days == 2
        assert stats.total_active_days == 2
        assert stats.total_words_learned == 3

    def test_gap_resets_streak(self, aggregator, clock, session_factory):
        for _ in range(3):
            fold(aggregator, session_factory, closed(clock()))
            clock.advance(days=1)
        clock.advance(days=3)
        stats = fold(aggregator, session_factory, closed(clock()))

        assert stats.current_streak_days == 1
        assert stats.longest_streak_days == 3
        assert stats.current_streak_days <= stats.longest_streak_days

    def test_late_close_only_feeds_totals(self, aggregator, clock, session_factory):
        fold(aggregator, session_factory, closed(clock(), words_learned=2))
        earlier = clock() - timedelta(days=1)
        stats = fold(aggregator, session_factory, closed(earlier, minutes=15, words_learned=4))

        assert stats.words_learned_today == 2
        assert stats.minutes_studied_today == 20
        assert stats.total_words_learned == 6
        assert stats.total_study_minutes == 35
        assert stats.total_sessions == 2
        assert stats.last_activity_date == date(2026, 3, 10)

    def test_accuracy_zero_without_answers(self, aggregator, clock, session_factory):
        stats = fold(aggregator, session_factory, closed(clock()))
        assert stats.overall_accuracy == 0.0

    def test_session_totals_reach_activity(self, aggregator, clock, session_factory):
        fold(aggregator, session_factory, closed(clock(), minutes=12))
        activity = aggregator.get_activity("alice")

        assert activity.total_sessions == 1
        assert activity.total_minutes == 12


class TestRecordSessionCompletion:
    def test_session_closed_by_tracker_not_counted_again(self, service, food_category, clock):
        session = service.tracker.start_session("alice", food_category)
        service.processor.submit_response(session.session_id, 102, "easy")
        clock.advance(minutes=10)
        ended = service.tracker.end_session(session.session_id)

        stats = service.aggregator.record_session_completion("alice", ended)
        again = service.aggregator.record_session_completion("alice", ended)

        assert stats.total_sessions == 1
        assert again == stats
        assert service.aggregator.get_statistics("alice").total_study_minutes == 10
        assert service.aggregator.get_activity("alice").total_sessions == 1

    def test_unaggregated_session_folded_once(self, service, session_factory, food_category, clock):
        session = service.tracker.start_session("alice", food_category)
        clock.advance(minutes=8)
        with session_scope(session_factory) as db:
            row = db.get(StudySessionModel, session.session_id)
            row.ended_at = clock()
            row.duration_minutes = 8
            row.open_key = None
        ended = service.tracker.get_session(session.session_id)

        first = service.aggregator.record_session_completion("alice", ended)
        second = service.aggregator.record_session_completion("alice", ended)

        assert first.total_sessions == 1
        assert first.total_study_minutes == 8
        assert second == first
        with session_scope(session_factory) as db:
            assert db.get(StudySessionModel, session.session_id).aggregated_at == clock()

    def test_other_users_session_rejected(self, service, food_category):
        session = service.tracker.start_session("alice", food_category)
        ended = service.tracker.end_session(session.session_id)

        with pytest.raises(NotFoundError):
            service.aggregator.record_session_completion("bob", ended)

    def test_unknown_session_rejected(self, aggregator, clock):
        with pytest.raises(NotFoundError):
            aggregator.record_session_completion("alice", closed(clock()))

    def test_open_session_rejected(self, service, food_category):
        session = service.tracker.start_session("alice", food_category)

        with pytest.raises(InvalidInputError):
            service.aggregator.record_session_completion("alice", session)
        assert service.aggregator.get_statistics("alice").total_sessions == 0


class TestConcurrentCompletion:
    @pytest.fixture
    def file_factory(self, tmp_path):
        engine = create_store_engine(f"sqlite:///{tmp_path / 'stats.db'}")
        init_db(bind=engine)
        factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        with session_scope(factory) as db:
            db.add(
                UserStatisticsModel(
                    user_id="alice",
                    current_streak_days=4,
                    longest_streak_days=4,
                    total_active_days=4,
                    last_activity_date=date(2026, 3, 9),
                )
            )
        yield factory
        engine.dispose()

    def test_stale_read_conflicts(self, file_factory, settings, clock):
        aggregator = StatisticsAggregator(file_factory, settings, clock)

        with pytest.raises(ConflictError):
            with session_scope(file_factory) as first:
                stale = first.get(UserStatisticsModel, "alice")  # noqa: F841 - hold a strong ref
                with session_scope(file_factory) as second:
                    aggregator.apply_session_completion(second, closed(clock(), words_learned=1))
                aggregator.apply_session_completion(first, closed(clock() + timedelta(minutes=1)))

        stats = aggregator.get_statistics("alice")
        assert stats.total_sessions == 1
        assert stats.current_streak_days == 5

    def test_retry_rereads_and_extends_streak_once(self, file_factory, settings, clock):
        aggregator = StatisticsAggregator(file_factory, settings, clock)
        attempts = []

        def close_first():
            with session_scope(file_factory) as db:
                attempts.append(1)
                if len(attempts) == 1:
                    stale = db.get(UserStatisticsModel, "alice")  # noqa: F841 - hold a strong ref
                    # The other close commits between our read and our write
                    with session_scope(file_factory) as other:
                        aggregator.apply_session_completion(other, closed(clock(), words_learned=2))
                return aggregator.apply_session_completion(
                    db, closed(clock() + timedelta(minutes=1), words_learned=1)
                )

        stats = run_with_retry(close_first, retries=3)

        assert len(attempts) == 2
        assert stats.total_sessions == 2
        assert stats.current_streak_days == 5
        assert stats.longest_streak_days == 5
        assert stats.total_active_days == 5
        assert stats.words_learned_today == 3
        assert aggregator.get_statistics("alice") == stats


class TestDailyGoals:
    def test_defaults_from_settings(self, aggregator, settings):
        goals = aggregator.get_daily_goals("alice")

        assert goals.is_default
        assert goals.new_words_target == settings.daily_words_target
        assert goals.review_words_target == settings.daily_review_target
        assert goals.study_minutes_target == settings.daily_minutes_target

    def test_update_keeps_omitted_targets(self, aggregator, settings, clock):
        goals = aggregator.update_daily_goals("alice", new_words_target=25)

        assert not goals.is_default
        assert goals.new_words_target == 25
        assert goals.study_minutes_target == settings.daily_minutes_target
        assert goals.updated_at == clock()

        goals = aggregator.update_daily_goals("alice", study_minutes_target=45)
        assert (goals.new_words_target, goals.study_minutes_target) == (25, 45)
        assert aggregator.get_daily_goals("alice") == goals
        assert aggregator.get_daily_goals("bob").is_default

    def test_non_positive_target_rejected(self, aggregator):
        with pytest.raises(InvalidInputError):
            aggregator.update_daily_goals("alice", review_words_target=0)
        assert aggregator.get_daily_goals("alice").is_default


class TestWordViews:
    def test_views_count_per_day(self, aggregator, clock):
        aggregator.record_word_view("alice")
        activity = aggregator.record_word_view("alice")
        assert activity.words_viewed_today == 2
        assert activity.streak_days == 1

        clock.advance(days=1)
        activity = aggregator.record_word_view("alice")

        assert activity.words_viewed_today == 1
        assert activity.total_words_viewed == 3
        assert activity.streak_days == 2
        assert activity.total_days_active == 2

    def test_reference_timezone_decides_the_day(self, session_factory, settings, clock):
        settings.reference_timezone = "Asia/Shanghai"
        aggregator = StatisticsAggregator(session_factory, settings, clock)
        clock.now = datetime(2026, 3, 10, 15, 0)  # 23:00 in Shanghai
        aggregator.record_word_view("alice")

        clock.advance(hours=2)  # 01:00 next day in Shanghai
        activity = aggregator.record_word_view("alice")

        assert activity.words_viewed_today == 1
        assert activity.streak_days == 2
        assert activity.last_activity_date == date(2026, 3, 11)


class TestReads:
    def test_unknown_user_reads_as_zero(self, aggregator):
        stats = aggregator.get_statistics("nobody")
        activity = aggregator.get_activity("nobody")

        assert stats.total_sessions == 0
        assert stats.last_activity_date is None
        assert activity.total_words_viewed == 0

    def test_as_of_today_hides_stale_daily_counters(self, aggregator, clock, session_factory):
        fold(aggregator, session_factory, closed(clock(), words_learned=2))
        clock.advance(days=1)

        stats = aggregator.as_of_today(aggregator.get_statistics("alice"))

        assert stats.words_learned_today == 0
        assert stats.minutes_studied_today == 0
        assert stats.total_words_learned == 2

    def test_activity_as_of_today(self, aggregator, clock):
        aggregator.record_word_view("alice")
        clock.advance(days=2)

        assert aggregator.activity_as_of_today(aggregator.get_activity("alice")).words_viewed_today == 0

    def test_is_streak_active(self, aggregator):
        today = date(2026, 3, 10)
        assert aggregator.is_streak_active(today, today)
        assert aggregator.is_streak_active(date(2026, 3, 9), today)
        assert not aggregator.is_streak_active(date(2026, 3, 8), today)
        assert not aggregator.is_streak_active(None, today)
