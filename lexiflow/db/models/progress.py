"""
Progress Tracking Models.

SQLAlchemy models for per-learner state:
- Word progress (learning status + review schedule) per user per word
- Study sessions with running counters
- Append-only study activity log
- Cumulative statistics and lightweight activity counters per user
- Per-user daily goals

Mutable rows carry a ``version`` column used by the ORM as a
compare-and-swap guard: an UPDATE that matches zero rows raises
StaleDataError, which the store layer turns into a ConflictError.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from lexiflow.core.models import (
    DailyGoals,
    DifficultyRating,
    LearningStatus,
    SessionCounters,
    SessionMode,
    StudyActivity,
    StudySession,
    UserActivity,
    UserStatistics,
    WordProgress,
)

from .base import Base


class WordProgressModel(Base):
    """Learning state of one word for one user."""

    __tablename__ = "word_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    word_id: Mapped[int] = mapped_column(ForeignKey("words.id", ondelete="CASCADE"), nullable=False)

    # Stored as text so rows written by older clients ('studied', 'viewed') still load
    learning_status: Mapped[str] = mapped_column(String(16), nullable=False, default="new")
    last_difficulty: Mapped[str | None] = mapped_column(String(16))

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Review schedule
    easiness_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    interval_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    repetition_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    consecutive_easy: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    first_seen_at: Mapped[datetime | None] = mapped_column()
    last_studied_at: Mapped[datetime | None] = mapped_column()
    next_review_at: Mapped[datetime | None] = mapped_column()
    learned_at: Mapped[datetime | None] = mapped_column()
    mastered_at: Mapped[datetime | None] = mapped_column()

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "word_id", name="uq_word_progress_user_word"),
        Index("idx_word_progress_due", "user_id", "next_review_at"),
    )
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<WordProgressModel(user={self.user_id}, word={self.word_id}, "
            f"status={self.learning_status})>"
        )

    @property
    def status(self) -> LearningStatus:
        return LearningStatus.parse(self.learning_status)

    def to_domain(self) -> WordProgress:
        return WordProgress(
            user_id=self.user_id,
            word_id=self.word_id,
            learning_status=self.status,
            attempts=self.attempts or 0,
            correct_attempts=self.correct_attempts or 0,
            easiness_factor=self.easiness_factor if self.easiness_factor is not None else 2.5,
            interval_days=self.interval_days or 0,
            repetition_count=self.repetition_count or 0,
            consecutive_easy=self.consecutive_easy or 0,
            last_difficulty=DifficultyRating(self.last_difficulty) if self.last_difficulty else None,
            first_seen_at=self.first_seen_at,
            last_studied_at=self.last_studied_at,
            next_review_at=self.next_review_at,
            learned_at=self.learned_at,
            mastered_at=self.mastered_at,
        )


class StudySessionModel(Base):
    """
    One study session.

    ``open_key`` holds the user id while the session is open and is
    cleared on close. Its unique constraint lets the database reject a
    second concurrently opened session for the same user.
    """

    __tablename__ = "study_sessions"

    session_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    category_id: Mapped[int | None] = mapped_column(ForeignKey("categories.id", ondelete="SET NULL"))
    mode: Mapped[str] = mapped_column(String(16), nullable=False, default="study")
    open_key: Mapped[str | None] = mapped_column(Text, unique=True)

    words_studied: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    words_learned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    words_mastered: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    started_at: Mapped[datetime] = mapped_column(nullable=False)
    last_activity_at: Mapped[datetime | None] = mapped_column()
    ended_at: Mapped[datetime | None] = mapped_column()
    duration_minutes: Mapped[int | None] = mapped_column(Integer)
    # Set once the session has been folded into the user's statistics
    aggregated_at: Mapped[datetime | None] = mapped_column()

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_study_sessions_user_started", "user_id", "started_at"),
    )
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<StudySessionModel(id={self.session_id}, user={self.user_id}, open={self.is_open})>"

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    @property
    def counters(self) -> SessionCounters:
        return SessionCounters(
            words_studied=self.words_studied or 0,
            words_learned=self.words_learned or 0,
            words_mastered=self.words_mastered or 0,
            correct_answers=self.correct_answers or 0,
            total_answers=self.total_answers or 0,
        )

    def apply_counters(self, counters: SessionCounters) -> None:
        self.words_studied = counters.words_studied
        self.words_learned = counters.words_learned
        self.words_mastered = counters.words_mastered
        self.correct_answers = counters.correct_answers
        self.total_answers = counters.total_answers

    def to_domain(self) -> StudySession:
        return StudySession(
            session_id=self.session_id,
            user_id=self.user_id,
            category_id=self.category_id,
            mode=SessionMode.parse(self.mode),
            counters=self.counters,
            started_at=self.started_at,
            ended_at=self.ended_at,
            duration_minutes=self.duration_minutes,
            last_activity_at=self.last_activity_at,
        )


class StudyActivityModel(Base):
    """Append-only log of responses and views."""

    __tablename__ = "study_activity"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    word_id: Mapped[int | None] = mapped_column(ForeignKey("words.id", ondelete="CASCADE"))
    session_id: Mapped[str | None] = mapped_column(
        ForeignKey("study_sessions.session_id", ondelete="SET NULL")
    )
    activity_type: Mapped[str] = mapped_column(String(16), nullable=False)  # "response", "view"
    difficulty_rating: Mapped[str | None] = mapped_column(String(16))
    was_correct: Mapped[bool | None] = mapped_column(Boolean)
    status_before: Mapped[str | None] = mapped_column(String(16))
    status_after: Mapped[str | None] = mapped_column(String(16))
    response_time_ms: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (
        Index("idx_study_activity_session_word", "session_id", "word_id"),
        Index("idx_study_activity_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<StudyActivityModel(user={self.user_id}, word={self.word_id}, "
            f"type={self.activity_type}, rating={self.difficulty_rating})>"
        )

    def to_domain(self) -> StudyActivity:
        return StudyActivity(
            id=self.id,
            user_id=self.user_id,
            activity_type=self.activity_type,
            created_at=self.created_at,
            word_id=self.word_id,
            session_id=self.session_id,
            difficulty_rating=DifficultyRating(self.difficulty_rating) if self.difficulty_rating else None,
            was_correct=self.was_correct,
            status_before=LearningStatus.parse(self.status_before) if self.status_before else None,
            status_after=LearningStatus.parse(self.status_after) if self.status_after else None,
            response_time_ms=self.response_time_ms,
        )


class UserStatisticsModel(Base):
    """Cumulative study statistics for one user."""

    __tablename__ = "user_statistics"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)

    total_words_learned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_words_mastered: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_study_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_sessions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_active_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    current_streak_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    words_learned_today: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    minutes_studied_today: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    total_correct_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overall_accuracy: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    last_activity_date: Mapped[date | None] = mapped_column()
    updated_at: Mapped[datetime | None] = mapped_column()

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<UserStatisticsModel(user={self.user_id}, streak={self.current_streak_days})>"

    def to_domain(self) -> UserStatistics:
        return UserStatistics(
            user_id=self.user_id,
            total_words_learned=self.total_words_learned,
            total_words_mastered=self.total_words_mastered,
            total_study_minutes=self.total_study_minutes,
            total_sessions=self.total_sessions,
            total_active_days=self.total_active_days,
            current_streak_days=self.current_streak_days,
            longest_streak_days=self.longest_streak_days,
            words_learned_today=self.words_learned_today,
            minutes_studied_today=self.minutes_studied_today,
            total_correct_answers=self.total_correct_answers,
            total_answers=self.total_answers,
            overall_accuracy=self.overall_accuracy,
            last_activity_date=self.last_activity_date,
        )


class UserActivityModel(Base):
    """Lightweight view and visit counters for one user."""

    __tablename__ = "user_activity"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)

    total_words_viewed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    words_viewed_today: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_sessions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_days_active: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    streak_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    last_activity_date: Mapped[date | None] = mapped_column()
    updated_at: Mapped[datetime | None] = mapped_column()

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<UserActivityModel(user={self.user_id}, streak={self.streak_days})>"

    def to_domain(self) -> UserActivity:
        return UserActivity(
            user_id=self.user_id,
            total_words_viewed=self.total_words_viewed,
            words_viewed_today=self.words_viewed_today,
            total_sessions=self.total_sessions,
            total_minutes=self.total_minutes,
            total_days_active=self.total_days_active,
            streak_days=self.streak_days,
            longest_streak_days=self.longest_streak_days,
            last_activity_date=self.last_activity_date,
        )


class DailyGoalsModel(Base):
    """Daily targets a user chose for themselves."""

    __tablename__ = "daily_goals"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    new_words_target: Mapped[int] = mapped_column(Integer, nullable=False)
    review_words_target: Mapped[int] = mapped_column(Integer, nullable=False)
    study_minutes_target: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column()

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def to_domain(self) -> DailyGoals:
        return DailyGoals(
            user_id=self.user_id,
            new_words_target=self.new_words_target,
            review_words_target=self.review_words_target,
            study_minutes_target=self.study_minutes_target,
            is_default=False,
            updated_at=self.updated_at,
        )
