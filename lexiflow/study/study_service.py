"""
Study Service.

Wires the scheduler, response processor, session tracker and statistics
aggregator around one session factory, and builds the dashboard read model:
- statistics and activity snapshots
- words due today and recent sessions
- per-category progress with progress toward the user's daily goals

and the per-session and time-range analytics reads.
"""

from __future__ import annotations

from datetime import datetime

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from config import Settings, get_settings
from lexiflow.core.errors import InvalidInputError
from lexiflow.core.models import (
    ActivityReport,
    Category,
    CategoryProgress,
    CategoryStatus,
    Clock,
    DashboardStats,
    LearningStatus,
    SessionDetails,
    WordProgress,
    utc_now,
)
from lexiflow.db.database import session_scope
from lexiflow.db.models import CategoryModel
from lexiflow.study.catalog import WordCatalog
from lexiflow.study.intervals import ReviewPolicy, SpacedRepetitionScheduler
from lexiflow.study.progress_store import ProgressStore
from lexiflow.study.response_processor import ResponseProcessor
from lexiflow.study.scheduler import StudyScheduler
from lexiflow.study.session_tracker import SessionTracker
from lexiflow.study.statistics import StatisticsAggregator


class StudyService:
    """High-level entry point used by the API and CLI."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ):
        self.settings = settings or get_settings()
        self.session_factory = session_factory
        self.clock = clock or utc_now

        policy = ReviewPolicy.from_settings(self.settings)
        self.catalog = WordCatalog(session_factory)
        self.store = ProgressStore(session_factory, policy=policy, clock=self.clock)
        self.aggregator = StatisticsAggregator(session_factory, self.settings, self.clock)
        self.scheduler = StudyScheduler(
            session_factory, self.catalog, self.store, self.settings, self.clock
        )
        self.processor = ResponseProcessor(
            session_factory,
            store=self.store,
            catalog=self.catalog,
            scheduler=SpacedRepetitionScheduler(policy),
            aggregator=self.aggregator,
            settings=self.settings,
            clock=self.clock,
        )
        self.tracker = SessionTracker(
            session_factory, self.catalog, self.aggregator, self.settings, self.clock
        )

    # =========================================================================
    # Progress queries
    # =========================================================================

    def is_word_learned(self, user_id: str, word_id: int) -> bool:
        return self.store.is_word_learned(user_id, word_id)

    def count_due(self, user_id: str, category_id: int | None = None) -> int:
        return self.store.count_due(
            user_id, category_id, include_mastered=self.settings.review_mastered_words
        )

    def word_progress(self, user_id: str, word_id: int) -> WordProgress:
        """
        Learning state of one word, or a fresh 'new' record if never seen.

        Raises:
            NotFoundError: Unknown or inactive word
        """
        with session_scope(self.session_factory) as db:
            self.catalog.require_word(db, word_id)
            row = self.store.find(db, user_id, word_id)
            if row is not None:
                return row.to_domain()
        return WordProgress(
            user_id=user_id, word_id=word_id, easiness_factor=self.store.policy.initial_easiness
        )

    def category_progress(self, user_id: str, category_id: int) -> CategoryProgress:
        """Progress of one user through one category."""
        with session_scope(self.session_factory) as db:
            category = self.catalog.require_category(db, category_id)
            return self._category_progress(db, user_id, category)

    def _category_progress(self, db: Session, user_id: str, category: Category) -> CategoryProgress:
        total = len(self.catalog.active_words(db, category.id))
        counts, last_studied = self.store.status_breakdown(db, user_id, category.id)
        mastered = counts[LearningStatus.MASTERED]
        learned = counts[LearningStatus.LEARNED] + mastered
        started = learned + counts[LearningStatus.LEARNING]

        return CategoryProgress(
            category_id=category.id,
            category_name=category.name,
            total_words=total,
            words_started=started,
            words_learned=learned,
            words_mastered=mastered,
            completion_percentage=round(learned / total * 100, 1) if total else 0.0,
            status=CategoryStatus.from_counts(total, started, learned, mastered),
            last_studied_at=last_studied,
        )

    # =========================================================================
    # Session details and analytics
    # =========================================================================

    def session_details(self, session_id: str, user_id: str | None = None) -> SessionDetails:
        """A session, its ratings, the words rated and progress in its category."""
        details = self.tracker.session_details(session_id, user_id)
        category_id = details.session.category_id
        if category_id is not None:
            with session_scope(self.session_factory) as db:
                category = db.get(CategoryModel, category_id)
                if category is not None:
                    details.category_progress = self._category_progress(
                        db, details.session.user_id, category.to_domain()
                    )
        return details

    def activity_report(self, user_id: str, start: datetime, end: datetime) -> ActivityReport:
        """
        Views and ratings of one user between two instants (both inclusive).

        Raises:
            InvalidInputError: start is after end
        """
        if start > end:
            raise InvalidInputError("start must not be after end")
        entries = self.store.activity_between(user_id, start, end)
        logger.debug(f"Activity for user={user_id} {start}..{end}: {len(entries)} entries")
        return ActivityReport(user_id=user_id, start=start, end=end, entries=entries)

    # =========================================================================
    # Dashboard
    # =========================================================================

    def get_dashboard(self, user_id: str, recent_limit: int = 5) -> DashboardStats:
        """Everything the progress dashboard shows for one user."""
        today = self.aggregator.today()
        statistics = self.aggregator.as_of_today(self.aggregator.get_statistics(user_id), today)
        activity = self.aggregator.activity_as_of_today(self.aggregator.get_activity(user_id), today)
        goals = self.aggregator.get_daily_goals(user_id)

        with session_scope(self.session_factory) as db:
            categories = [
                self._category_progress(db, user_id, category)
                for category in self.catalog.active_categories(db)
            ]

        average = (
            round(statistics.total_study_minutes / statistics.total_sessions, 1)
            if statistics.total_sessions
            else 0.0
        )
        dashboard = DashboardStats(
            user_id=user_id,
            statistics=statistics,
            activity=activity,
            words_due_today=self.count_due(user_id),
            recent_sessions=self.tracker.recent_sessions(user_id, recent_limit),
            categories=categories,
            learning_streak_active=self.aggregator.is_streak_active(statistics.last_activity_date, today),
            average_session_minutes=average,
            daily_words_target=goals.new_words_target,
            daily_minutes_target=goals.study_minutes_target,
            daily_review_target=goals.review_words_target,
        )
        logger.debug(
            f"Dashboard for user={user_id}: {dashboard.words_due_today} due, "
            f"{dashboard.categories_completed}/{len(categories)} categories completed"
        )
        return dashboard
