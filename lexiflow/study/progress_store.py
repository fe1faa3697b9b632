"""
Progress Store.

Durable per-(user, word) learning records plus the study activity log.

Handles:
- Lazy creation of WordProgress rows (upsert by user + word)
- Applying a review outcome to a row
- Activity log queries for per-session bookkeeping and time ranges
- Status breakdowns for category progress

Status filters include the legacy spellings so rows written by older
clients are still found; every write stores the current spelling.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from loguru import logger
from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session, sessionmaker

from lexiflow.core.models import (
    LEGACY_STATUSES,
    Clock,
    DifficultyRating,
    LearningStatus,
    StudyActivity,
    WordProgress,
    utc_now,
)
from lexiflow.db.database import session_scope
from lexiflow.db.models import CategoryModel, StudyActivityModel, WordModel, WordProgressModel
from lexiflow.study.intervals import ReviewOutcome, ReviewPolicy

ACTIVITY_RESPONSE = "response"
ACTIVITY_VIEW = "view"


def stored_values(*statuses: LearningStatus) -> list[str]:
    """Every stored spelling that parses to one of ``statuses``."""
    values = [status.value for status in statuses]
    values.extend(legacy for legacy, status in LEGACY_STATUSES.items() if status in statuses)
    return values


class ProgressStore:
    """
    SQLAlchemy-backed store for word progress and study activity.

    Methods taking ``db`` participate in the caller's transaction.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        policy: ReviewPolicy | None = None,
        clock: Clock | None = None,
    ):
        self.session_factory = session_factory
        self.policy = policy or ReviewPolicy()
        self.clock = clock or utc_now

    # =========================================================================
    # Standalone reads
    # =========================================================================

    def get(self, user_id: str, word_id: int) -> WordProgress | None:
        with session_scope(self.session_factory) as db:
            row = self.find(db, user_id, word_id)
            return row.to_domain() if row else None

    def is_word_learned(self, user_id: str, word_id: int) -> bool:
        """True once the word reached learned or mastered."""
        progress = self.get(user_id, word_id)
        return progress is not None and progress.learning_status.is_known

    def count_due(
        self,
        user_id: str,
        category_id: int | None = None,
        include_mastered: bool = False,
        now: datetime | None = None,
    ) -> int:
        """Number of words whose review time has passed."""
        with session_scope(self.session_factory) as db:
            return self.due_count(db, user_id, now or self.clock(), category_id, include_mastered)

    def activity_between(self, user_id: str, start: datetime, end: datetime) -> list[StudyActivity]:
        """Activity log entries with start <= created_at <= end, oldest first."""
        with session_scope(self.session_factory) as db:
            stmt = (
                select(StudyActivityModel)
                .where(
                    StudyActivityModel.user_id == user_id,
                    StudyActivityModel.created_at >= start,
                    StudyActivityModel.created_at <= end,
                )
                .order_by(StudyActivityModel.created_at, StudyActivityModel.id)
            )
            return [entry.to_domain() for entry in db.scalars(stmt)]

    # =========================================================================
    # Row access
    # =========================================================================

    def find(self, db: Session, user_id: str, word_id: int) -> WordProgressModel | None:
        stmt = select(WordProgressModel).where(
            WordProgressModel.user_id == user_id,
            WordProgressModel.word_id == word_id,
        )
        return db.scalars(stmt).first()

    def get_or_create(
        self, db: Session, user_id: str, word_id: int, now: datetime
    ) -> tuple[WordProgressModel, bool]:
        """
        Fetch the progress row, creating a 'new' one if missing.

        A concurrent insert of the same (user, word) surfaces as an
        IntegrityError at flush; the caller's retry then finds the row.
        """
        row = self.find(db, user_id, word_id)
        if row is not None:
            return row, False

        row = WordProgressModel(
            user_id=user_id,
            word_id=word_id,
            learning_status=LearningStatus.NEW.value,
            attempts=0,
            correct_attempts=0,
            easiness_factor=self.policy.initial_easiness,
            interval_days=0,
            repetition_count=0,
            consecutive_easy=0,
            first_seen_at=now,
        )
        db.add(row)
        db.flush()
        logger.debug(f"Created progress row for user={user_id} word={word_id}")
        return row, True

    def progress_in_scope(
        self,
        db: Session,
        user_id: str,
        category_id: int | None = None,
        difficulty_levels: Iterable[int] | None = None,
    ) -> dict[int, WordProgress]:
        """Progress of a user for active words, keyed by word id."""
        stmt = (
            select(WordProgressModel)
            .join(WordModel, WordModel.id == WordProgressModel.word_id)
            .join(CategoryModel, CategoryModel.id == WordModel.category_id)
            .where(
                WordProgressModel.user_id == user_id,
                WordModel.is_active.is_(True),
                CategoryModel.is_active.is_(True),
            )
        )
        if category_id is not None:
            stmt = stmt.where(WordModel.category_id == category_id)
        if difficulty_levels:
            stmt = stmt.where(WordModel.difficulty_level.in_(list(difficulty_levels)))
        return {row.word_id: row.to_domain() for row in db.scalars(stmt)}

    def due_count(
        self,
        db: Session,
        user_id: str,
        now: datetime,
        category_id: int | None = None,
        include_mastered: bool = False,
    ) -> int:
        statuses = [LearningStatus.LEARNING, LearningStatus.LEARNED]
        if include_mastered:
            statuses.append(LearningStatus.MASTERED)
        stmt = (
            select(func.count(WordProgressModel.id))
            .join(WordModel, WordModel.id == WordProgressModel.word_id)
            .where(
                WordProgressModel.user_id == user_id,
                WordProgressModel.next_review_at.is_not(None),
                WordProgressModel.next_review_at <= now,
                WordProgressModel.learning_status.in_(stored_values(*statuses)),
                WordModel.is_active.is_(True),
            )
        )
        if category_id is not None:
            stmt = stmt.where(WordModel.category_id == category_id)
        return db.scalar(stmt) or 0

    def status_breakdown(
        self, db: Session, user_id: str, category_id: int
    ) -> tuple[dict[LearningStatus, int], datetime | None]:
        """
        Count a user's active words in a category per learning status.

        Returns:
            Tuple of (counts per status, most recent study time)
        """
        stmt = (
            select(
                WordProgressModel.learning_status,
                func.count(WordProgressModel.id),
                func.max(WordProgressModel.last_studied_at),
            )
            .join(WordModel, WordModel.id == WordProgressModel.word_id)
            .where(
                WordProgressModel.user_id == user_id,
                WordModel.category_id == category_id,
                WordModel.is_active.is_(True),
            )
            .group_by(WordProgressModel.learning_status)
        )
        counts: dict[LearningStatus, int] = {status: 0 for status in LearningStatus}
        last_studied: datetime | None = None
        for raw_status, count, latest in db.execute(stmt):
            counts[LearningStatus.parse(raw_status)] += count
            if latest is not None and (last_studied is None or latest > last_studied):
                last_studied = latest
        return counts, last_studied

    # =========================================================================
    # Writes
    # =========================================================================

    def apply_outcome(
        self,
        row: WordProgressModel,
        outcome: ReviewOutcome,
        rating: DifficultyRating,
        now: datetime,
    ) -> None:
        """Write a review outcome and bump attempt counters."""
        previous = row.status
        status = outcome.learning_status

        row.learning_status = status.value
        row.last_difficulty = rating.value
        row.attempts = (row.attempts or 0) + 1
        if rating.counts_as_correct:
            row.correct_attempts = (row.correct_attempts or 0) + 1
        row.easiness_factor = outcome.easiness_factor
        row.interval_days = outcome.interval_days
        row.repetition_count = outcome.repetition_count
        row.consecutive_easy = outcome.consecutive_easy
        row.next_review_at = outcome.next_review_at
        row.last_studied_at = now
        if row.first_seen_at is None:
            row.first_seen_at = now

        if status is not previous:
            if status is LearningStatus.LEARNED:
                row.learned_at = now
            elif status is LearningStatus.MASTERED:
                row.mastered_at = now
                if row.learned_at is None:
                    row.learned_at = now

    def log_activity(
        self,
        db: Session,
        user_id: str,
        activity_type: str,
        now: datetime,
        word_id: int | None = None,
        session_id: str | None = None,
        rating: DifficultyRating | None = None,
        status_before: LearningStatus | None = None,
        status_after: LearningStatus | None = None,
        response_time_ms: int | None = None,
    ) -> StudyActivityModel:
        entry = StudyActivityModel(
            user_id=user_id,
            word_id=word_id,
            session_id=session_id,
            activity_type=activity_type,
            difficulty_rating=rating.value if rating else None,
            was_correct=rating.counts_as_correct if rating else None,
            status_before=status_before.value if status_before else None,
            status_after=status_after.value if status_after else None,
            response_time_ms=response_time_ms,
            created_at=now,
        )
        db.add(entry)
        return entry

    # =========================================================================
    # Per-session bookkeeping
    # =========================================================================

    def has_response_in_session(self, db: Session, session_id: str, word_id: int) -> bool:
        """Whether the word was already rated in this session."""
        stmt = select(StudyActivityModel.id).where(
            StudyActivityModel.session_id == session_id,
            StudyActivityModel.word_id == word_id,
            StudyActivityModel.activity_type == ACTIVITY_RESPONSE,
        )
        return db.scalars(stmt.limit(1)).first() is not None

    def reached_status_in_session(
        self,
        db: Session,
        session_id: str,
        word_id: int,
        statuses: Iterable[LearningStatus],
    ) -> bool:
        """Whether the word already changed status into one of ``statuses`` in this session."""
        values = [status.value for status in statuses]
        stmt = select(StudyActivityModel.id).where(
            StudyActivityModel.session_id == session_id,
            StudyActivityModel.word_id == word_id,
            StudyActivityModel.activity_type == ACTIVITY_RESPONSE,
            StudyActivityModel.status_after.in_(values),
            and_(
                StudyActivityModel.status_before.is_not(None),
                StudyActivityModel.status_before != StudyActivityModel.status_after,
            ),
        )
        return db.scalars(stmt.limit(1)).first() is not None
