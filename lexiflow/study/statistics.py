"""
Streak and Statistics Aggregator.

Maintains per-user daily activity, streaks and cumulative counters:

- UserStatistics is updated when a session closes
- UserActivity is updated on every word view (and gets session totals)
- DailyGoals hold per-user targets, falling back to the configured defaults

Streak rule (per calendar day in the reference timezone):
    same day as last activity  -> unchanged
    day after last activity    -> streak + 1
    any larger gap / first day -> streak = 1

Both rows are version-guarded; concurrent updates lose the
compare-and-swap and retry with fresh state instead of double counting.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from config import Settings, get_settings
from lexiflow.core.errors import InvalidInputError, NotFoundError
from lexiflow.core.models import (
    Clock,
    DailyGoals,
    StudySession,
    UserActivity,
    UserStatistics,
    local_date,
    resolve_timezone,
    utc_now,
)
from lexiflow.db.database import run_with_retry, session_scope
from lexiflow.db.models import DailyGoalsModel, StudySessionModel, UserActivityModel, UserStatisticsModel


@dataclass(frozen=True)
class StreakUpdate:
    """Result of advancing a streak to a given day."""

    current: int
    longest: int
    is_new_day: bool


def advance_streak(
    last_date: date | None,
    today: date,
    current: int,
    longest: int,
) -> StreakUpdate:
    """
    Advance a streak for activity on ``today``.

    A ``last_date`` on or after ``today`` leaves the streak unchanged.
    """
    if last_date is not None and last_date >= today:
        return StreakUpdate(current=current, longest=max(longest, current), is_new_day=False)

    if last_date is not None and today - last_date == timedelta(days=1):
        current = current + 1
    else:
        current = 1
    return StreakUpdate(current=current, longest=max(longest, current), is_new_day=True)


class StatisticsAggregator:
    """Updates and reads per-user statistics and activity counters."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ):
        self.settings = settings or get_settings()
        self.session_factory = session_factory
        self.clock = clock or utc_now
        self.tz = resolve_timezone(self.settings.reference_timezone)

    def today(self, moment: datetime | None = None) -> date:
        """Calendar date of ``moment`` (default now) in the reference timezone."""
        return local_date(moment or self.clock(), self.tz)

    # =========================================================================
    # Session completion
    # =========================================================================

    def record_session_completion(self, user_id: str, closed_session: StudySession) -> UserStatistics:
        """
        Fold a closed session into the user's statistics in its own transaction.

        Safe to repeat: the stored session is marked once aggregated, and a
        session already folded in (by end_session or an earlier call)
        returns the current statistics unchanged.

        Raises:
            NotFoundError: No such session for this user
            InvalidInputError: The session is still open
        """

        def _apply() -> UserStatistics:
            with session_scope(self.session_factory) as db:
                row = db.get(StudySessionModel, closed_session.session_id)
                if row is None or row.user_id != user_id:
                    raise NotFoundError(f"Session {closed_session.session_id} not found")
                if row.is_open:
                    raise InvalidInputError(f"Session {closed_session.session_id} is still open")
                return self.fold_closed_session(db, row)

        return run_with_retry(_apply, self.settings.conflict_max_retries, "record_session_completion")

    def fold_closed_session(self, db: Session, row: StudySessionModel) -> UserStatistics:
        """Aggregate a closed session row exactly once within the caller's transaction."""
        if row.aggregated_at is not None:
            logger.debug(f"Session {row.session_id} already aggregated")
            stats = db.get(UserStatisticsModel, row.user_id)
            return stats.to_domain() if stats else UserStatistics(user_id=row.user_id)
        result = self.apply_session_completion(db, row.to_domain())
        row.aggregated_at = self.clock()
        return result

    def apply_session_completion(self, db: Session, closed_session: StudySession) -> UserStatistics:
        """Fold a closed session into statistics within the caller's transaction."""
        moment = closed_session.ended_at or self.clock()
        event_day = self.today(moment)
        counters = closed_session.counters
        minutes = closed_session.duration_minutes or 0

        stats = self._statistics_row(db, closed_session.user_id)
        update = advance_streak(
            stats.last_activity_date, event_day, stats.current_streak_days, stats.longest_streak_days
        )
        if update.is_new_day:
            stats.words_learned_today = 0
            stats.minutes_studied_today = 0
            stats.total_active_days += 1
            stats.last_activity_date = event_day
        stats.current_streak_days = update.current
        stats.longest_streak_days = update.longest

        # A late close for an earlier day only feeds the cumulative totals
        if stats.last_activity_date == event_day:
            stats.words_learned_today += counters.words_learned
            stats.minutes_studied_today += minutes

        stats.total_sessions += 1
        stats.total_study_minutes += minutes
        stats.total_words_learned += counters.words_learned
        stats.total_words_mastered += counters.words_mastered
        stats.total_correct_answers += counters.correct_answers
        stats.total_answers += counters.total_answers
        stats.overall_accuracy = (
            round(stats.total_correct_answers / stats.total_answers * 100, 2)
            if stats.total_answers
            else 0.0
        )
        stats.updated_at = self.clock()

        activity = self._activity_row(db, closed_session.user_id)
        activity.total_sessions += 1
        activity.total_minutes += minutes
        activity.updated_at = stats.updated_at

        db.flush()
        logger.info(
            f"Statistics for user={closed_session.user_id}: streak={stats.current_streak_days} "
            f"(longest {stats.longest_streak_days}), sessions={stats.total_sessions}"
        )
        return stats.to_domain()

    # =========================================================================
    # Word views
    # =========================================================================

    def record_word_view(self, user_id: str) -> UserActivity:
        """Count one word view for the user in its own transaction."""

        def _apply() -> UserActivity:
            with session_scope(self.session_factory) as db:
                return self.apply_word_view(db, user_id)

        return run_with_retry(_apply, self.settings.conflict_max_retries, "record_word_view")

    def apply_word_view(self, db: Session, user_id: str, moment: datetime | None = None) -> UserActivity:
        today = self.today(moment)
        activity = self._activity_row(db, user_id)
        update = advance_streak(
            activity.last_activity_date, today, activity.streak_days, activity.longest_streak_days
        )
        if update.is_new_day:
            activity.words_viewed_today = 0
            activity.total_days_active += 1
            activity.last_activity_date = today
        activity.streak_days = update.current
        activity.longest_streak_days = update.longest

        if activity.last_activity_date == today:
            activity.words_viewed_today += 1
        activity.total_words_viewed += 1
        activity.updated_at = self.clock()

        db.flush()
        logger.debug(f"Word view for user={user_id}: {activity.words_viewed_today} today")
        return activity.to_domain()

    # =========================================================================
    # Reads
    # =========================================================================

    def get_statistics(self, user_id: str) -> UserStatistics:
        """Stored statistics, or an all-zero record for a user with none."""
        with session_scope(self.session_factory) as db:
            row = db.get(UserStatisticsModel, user_id)
            return row.to_domain() if row else UserStatistics(user_id=user_id)

    def get_activity(self, user_id: str) -> UserActivity:
        with session_scope(self.session_factory) as db:
            row = db.get(UserActivityModel, user_id)
            return row.to_domain() if row else UserActivity(user_id=user_id)

    def as_of_today(self, stats: UserStatistics, today: date | None = None) -> UserStatistics:
        """Zero the *_today counters when the last activity was on an earlier day."""
        today = today or self.today()
        if stats.last_activity_date != today:
            stats.words_learned_today = 0
            stats.minutes_studied_today = 0
        return stats

    def activity_as_of_today(self, activity: UserActivity, today: date | None = None) -> UserActivity:
        today = today or self.today()
        if activity.last_activity_date != today:
            activity.words_viewed_today = 0
        return activity

    def is_streak_active(self, last_activity_date: date | None, today: date | None = None) -> bool:
        """A streak is alive if the last activity was today or yesterday."""
        if last_activity_date is None:
            return False
        today = today or self.today()
        return today - last_activity_date <= timedelta(days=1)

    # =========================================================================
    # Daily goals
    # =========================================================================

    def default_goals(self, user_id: str) -> DailyGoals:
        return DailyGoals(
            user_id=user_id,
            new_words_target=self.settings.daily_words_target,
            review_words_target=self.settings.daily_review_target,
            study_minutes_target=self.settings.daily_minutes_target,
        )

    def get_daily_goals(self, user_id: str) -> DailyGoals:
        """The user's own goals, or the configured defaults when none are stored."""
        with session_scope(self.session_factory) as db:
            row = db.get(DailyGoalsModel, user_id)
            return row.to_domain() if row else self.default_goals(user_id)

    def update_daily_goals(
        self,
        user_id: str,
        new_words_target: int | None = None,
        review_words_target: int | None = None,
        study_minutes_target: int | None = None,
    ) -> DailyGoals:
        """
        Store the user's daily goals. Omitted targets keep their current value.

        Raises:
            InvalidInputError: A target is not positive
        """

        def _apply() -> DailyGoals:
            with session_scope(self.session_factory) as db:
                row = db.get(DailyGoalsModel, user_id)
                current = row.to_domain() if row else self.default_goals(user_id)
                goals = DailyGoals(
                    user_id=user_id,
                    new_words_target=new_words_target if new_words_target is not None else current.new_words_target,
                    review_words_target=(
                        review_words_target if review_words_target is not None else current.review_words_target
                    ),
                    study_minutes_target=(
                        study_minutes_target if study_minutes_target is not None else current.study_minutes_target
                    ),
                ).validate()

                if row is None:
                    row = DailyGoalsModel(user_id=user_id)
                    db.add(row)
                row.new_words_target = goals.new_words_target
                row.review_words_target = goals.review_words_target
                row.study_minutes_target = goals.study_minutes_target
                row.updated_at = self.clock()
                db.flush()
                return row.to_domain()

        goals = run_with_retry(_apply, self.settings.conflict_max_retries, f"update_daily_goals(user={user_id})")
        logger.info(
            f"Daily goals for user={user_id}: {goals.new_words_target} new, "
            f"{goals.review_words_target} reviews, {goals.study_minutes_target} min"
        )
        return goals

    # =========================================================================
    # Rows
    # =========================================================================

    def _statistics_row(self, db: Session, user_id: str) -> UserStatisticsModel:
        row = db.get(UserStatisticsModel, user_id)
        if row is None:
            row = UserStatisticsModel(
                user_id=user_id,
                total_words_learned=0,
                total_words_mastered=0,
                total_study_minutes=0,
                total_sessions=0,
                total_active_days=0,
                current_streak_days=0,
                longest_streak_days=0,
                words_learned_today=0,
                minutes_studied_today=0,
                total_correct_answers=0,
                total_answers=0,
                overall_accuracy=0.0,
            )
            db.add(row)
        return row

    def _activity_row(self, db: Session, user_id: str) -> UserActivityModel:
        row = db.get(UserActivityModel, user_id)
        if row is None:
            row = UserActivityModel(
                user_id=user_id,
                total_words_viewed=0,
                words_viewed_today=0,
                total_sessions=0,
                total_minutes=0,
                total_days_active=0,
                streak_days=0,
                longest_streak_days=0,
            )
            db.add(row)
        return row
