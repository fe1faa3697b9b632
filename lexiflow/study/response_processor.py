"""
Response Processor.

Applies a learner's self-assessed rating for one word:
- transitions the word's learning status and recomputes its review time
- bumps attempt counters on the progress row
- bumps the owning session's running counters
- appends a row to the study activity log

Everything for one response happens in a single transaction. A lost
compare-and-swap on the progress or session row is retried with fresh
state up to ``conflict_max_retries`` times.
"""

from __future__ import annotations

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from config import Settings, get_settings
from lexiflow.core.errors import InvalidInputError, NotFoundError, SessionClosedError
from lexiflow.core.models import (
    Clock,
    DifficultyRating,
    LearningStatus,
    ResponseResult,
    UserActivity,
    utc_now,
)
from lexiflow.db.database import run_with_retry, session_scope
from lexiflow.db.models import StudySessionModel
from lexiflow.study.catalog import WordCatalog
from lexiflow.study.intervals import ReviewPolicy, SpacedRepetitionScheduler
from lexiflow.study.progress_store import ACTIVITY_RESPONSE, ACTIVITY_VIEW, ProgressStore
from lexiflow.study.statistics import StatisticsAggregator

KNOWN_STATUSES = (LearningStatus.LEARNED, LearningStatus.MASTERED)


class ResponseProcessor:
    """Records ratings and views against the progress store."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        store: ProgressStore | None = None,
        catalog: WordCatalog | None = None,
        scheduler: SpacedRepetitionScheduler | None = None,
        aggregator: StatisticsAggregator | None = None,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ):
        self.settings = settings or get_settings()
        self.session_factory = session_factory
        self.clock = clock or utc_now
        policy = ReviewPolicy.from_settings(self.settings)
        self.store = store or ProgressStore(session_factory, policy=policy, clock=self.clock)
        self.catalog = catalog or WordCatalog(session_factory)
        self.scheduler = scheduler or SpacedRepetitionScheduler(policy)
        self.aggregator = aggregator or StatisticsAggregator(session_factory, self.settings, self.clock)

    def submit_response(
        self,
        session_id: str,
        word_id: int,
        difficulty_rating: DifficultyRating | str,
        *,
        user_id: str | None = None,
        response_time_ms: int | None = None,
    ) -> ResponseResult:
        """
        Apply a rating to a word within an open session.

        Args:
            session_id: Owning study session
            word_id: Rated word
            difficulty_rating: 'easy', 'hard' or 'forgot'
            user_id: When given, the session must belong to this user
            response_time_ms: Optional time the learner took to answer

        Returns:
            ResponseResult with the updated progress and running counters

        Raises:
            InvalidInputError: Unknown rating or negative response time
            NotFoundError: Session or word does not exist
            SessionClosedError: Session already ended
            ConflictError: Lost the race more often than the retry bound
        """
        rating = DifficultyRating.parse(difficulty_rating)
        if response_time_ms is not None and response_time_ms < 0:
            raise InvalidInputError("response_time_ms must not be negative")

        def _apply() -> ResponseResult:
            return self._apply_response(session_id, word_id, rating, user_id, response_time_ms)

        result = run_with_retry(
            _apply,
            self.settings.conflict_max_retries,
            f"submit_response(session={session_id}, word={word_id})",
        )
        logger.info(
            f"Response session={session_id} word={word_id} rating={rating.value}: "
            f"{result.previous_status.value} -> {result.progress.learning_status.value}"
        )
        return result

    def _apply_response(
        self,
        session_id: str,
        word_id: int,
        rating: DifficultyRating,
        user_id: str | None,
        response_time_ms: int | None,
    ) -> ResponseResult:
        now = self.clock()
        with session_scope(self.session_factory) as db:
            session = db.get(StudySessionModel, session_id)
            if session is None or (user_id is not None and session.user_id != user_id):
                raise NotFoundError(f"Session {session_id} not found")
            if not session.is_open:
                raise SessionClosedError(f"Session {session_id} is closed")
            self.catalog.require_word(db, word_id)

            row, _ = self.store.get_or_create(db, session.user_id, word_id, now)
            before = row.status
            outcome = self.scheduler.calculate_next_review(row.to_domain(), rating, now)
            after = outcome.learning_status

            first_rating = not self.store.has_response_in_session(db, session_id, word_id)
            already_learned = self.store.reached_status_in_session(db, session_id, word_id, KNOWN_STATUSES)
            already_mastered = self.store.reached_status_in_session(
                db, session_id, word_id, (LearningStatus.MASTERED,)
            )

            self.store.apply_outcome(row, outcome, rating, now)

            counters = session.counters
            counters.total_answers += 1
            if rating.counts_as_correct:
                counters.correct_answers += 1
            if first_rating:
                counters.words_studied += 1
            if after is not before and after.is_known and not already_learned:
                counters.words_learned += 1
            if after is not before and after is LearningStatus.MASTERED and not already_mastered:
                counters.words_mastered += 1
            session.apply_counters(counters)
            session.last_activity_at = now

            self.store.log_activity(
                db,
                user_id=session.user_id,
                activity_type=ACTIVITY_RESPONSE,
                now=now,
                word_id=word_id,
                session_id=session_id,
                rating=rating,
                status_before=before,
                status_after=after,
                response_time_ms=response_time_ms,
            )
            db.flush()

            return ResponseResult(
                session_id=session_id,
                progress=row.to_domain(),
                counters=counters,
                previous_status=before,
                was_correct=rating.counts_as_correct,
            )

    def record_view(self, user_id: str, word_id: int | None = None) -> UserActivity:
        """
        Record that the user viewed a word.

        Creates the word's progress row (status new) when missing and
        counts the view in the user's activity record.
        """

        def _apply() -> UserActivity:
            now = self.clock()
            with session_scope(self.session_factory) as db:
                if word_id is not None:
                    self.catalog.require_word(db, word_id)
                    self.store.get_or_create(db, user_id, word_id, now)
                    self.store.log_activity(
                        db, user_id=user_id, activity_type=ACTIVITY_VIEW, now=now, word_id=word_id
                    )
                return self.aggregator.apply_word_view(db, user_id, now)

        return run_with_retry(_apply, self.settings.conflict_max_retries, f"record_view(user={user_id})")
