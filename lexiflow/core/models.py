"""
Domain Models.

Plain dataclasses and enums shared by every layer of the study engine.
ORM rows convert to these via ``to_domain()``; the API serializes them
through pydantic response models.

Timestamps are naive UTC throughout. Calendar days (streaks, "today"
counters) are derived through the configured reference timezone.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime, timezone, tzinfo
from enum import Enum
from zoneinfo import ZoneInfo

from .errors import InvalidInputError

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(UTC).replace(tzinfo=None)


def resolve_timezone(name: str) -> tzinfo:
    """Resolve a timezone name, treating 'UTC' without the tz database."""
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def local_date(moment: datetime, tz: tzinfo) -> date:
    """Calendar date of a naive UTC timestamp in the given timezone."""
    return moment.replace(tzinfo=timezone.utc).astimezone(tz).date()


# =============================================================================
# Enums
# =============================================================================


class LearningStatus(str, Enum):
    """
    Per-word learning lifecycle.

    new -> learning -> learned -> mastered, with lapses back to learning.
    """

    NEW = "new"
    LEARNING = "learning"
    LEARNED = "learned"
    MASTERED = "mastered"

    @classmethod
    def parse(cls, value: str | LearningStatus) -> LearningStatus:
        """
        Parse a stored status string.

        Older rows used 'studied' and 'viewed'; those map onto the
        current lifecycle.
        """
        if isinstance(value, cls):
            return value
        normalized = (value or "").strip().lower()
        if normalized in LEGACY_STATUSES:
            return LEGACY_STATUSES[normalized]
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidInputError(f"Unknown learning status: {value!r}") from None

    @property
    def is_known(self) -> bool:
        """Learned or mastered."""
        return self in (LearningStatus.LEARNED, LearningStatus.MASTERED)


LEGACY_STATUSES: dict[str, LearningStatus] = {
    "studied": LearningStatus.LEARNING,
    "viewed": LearningStatus.NEW,
}


class DifficultyRating(str, Enum):
    """Self-assessed recall quality for one word."""

    EASY = "easy"
    HARD = "hard"
    FORGOT = "forgot"

    @classmethod
    def parse(cls, value: str | DifficultyRating) -> DifficultyRating:
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except (ValueError, AttributeError):
            raise InvalidInputError(
                f"Invalid difficulty rating {value!r}; expected easy, hard or forgot"
            ) from None

    @property
    def counts_as_correct(self) -> bool:
        # 'hard' is a successful but effortful recall
        return self is not DifficultyRating.FORGOT


class SessionMode(str, Enum):
    """Kind of study session."""

    STUDY = "study"
    REVIEW = "review"
    TEST = "test"

    @classmethod
    def parse(cls, value: str | SessionMode) -> SessionMode:
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except (ValueError, AttributeError):
            raise InvalidInputError(f"Invalid session mode {value!r}") from None


class CategoryStatus(str, Enum):
    """Derived progress status of a learner within one category."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    MASTERED = "mastered"

    @classmethod
    def from_counts(cls, total: int, started: int, learned: int, mastered: int) -> CategoryStatus:
        """
        Derive category status from word counts.

        Args:
            total: Active words in the category
            started: Words with any progress beyond 'new'
            learned: Words learned or mastered
            mastered: Words mastered

        Returns:
            Corresponding CategoryStatus
        """
        if total == 0 or started == 0:
            return cls.NOT_STARTED
        if mastered >= total:
            return cls.MASTERED
        if learned >= total:
            return cls.COMPLETED
        return cls.IN_PROGRESS


# =============================================================================
# Catalog
# =============================================================================


@dataclass
class Category:
    """A themed group of words."""

    id: int
    name: str
    name_translation: str | None = None
    difficulty_level: int = 1
    display_order: int = 0
    is_active: bool = True


@dataclass
class Word:
    """A vocabulary item from the catalog."""

    id: int
    category_id: int
    simplified: str
    pinyin: str
    translation: str
    difficulty_level: int = 1
    frequency_rank: int | None = None
    traditional: str | None = None
    english_translation: str | None = None
    example_sentence: str | None = None
    example_translation: str | None = None
    audio_url: str | None = None
    is_active: bool = True


# =============================================================================
# Progress
# =============================================================================


@dataclass
class WordProgress:
    """Learning state of one word for one user."""

    user_id: str
    word_id: int
    learning_status: LearningStatus = LearningStatus.NEW
    attempts: int = 0
    correct_attempts: int = 0
    easiness_factor: float = 2.5
    interval_days: int = 0
    repetition_count: int = 0
    consecutive_easy: int = 0
    last_difficulty: DifficultyRating | None = None
    first_seen_at: datetime | None = None
    last_studied_at: datetime | None = None
    next_review_at: datetime | None = None
    learned_at: datetime | None = None
    mastered_at: datetime | None = None

    @property
    def accuracy(self) -> float:
        """Percentage of correct attempts (0-100)."""
        if self.attempts == 0:
            return 0.0
        return self.correct_attempts / self.attempts * 100

    def is_due(self, now: datetime, include_mastered: bool = False) -> bool:
        """Check whether this word is waiting for a review at ``now``."""
        if self.next_review_at is None or self.next_review_at > now:
            return False
        if self.learning_status in (LearningStatus.LEARNING, LearningStatus.LEARNED):
            return True
        return include_mastered and self.learning_status is LearningStatus.MASTERED


@dataclass
class StudyConstraints:
    """Knobs for one batch selection."""

    max_words: int = 20
    include_new: bool = True
    include_review: bool = True
    difficulty_levels: tuple[int, ...] | None = None

    def validate(self, max_batch_size: int | None = None) -> StudyConstraints:
        """Reject non-positive sizes and clamp to ``max_batch_size``."""
        if self.max_words <= 0:
            raise InvalidInputError(f"max_words must be positive, got {self.max_words}")
        if max_batch_size is not None and self.max_words > max_batch_size:
            self.max_words = max_batch_size
        return self

    @classmethod
    def for_mode(
        cls,
        mode: SessionMode | str,
        max_words: int = 20,
        difficulty_levels: tuple[int, ...] | None = None,
    ) -> StudyConstraints:
        """Default constraints for a session mode; review mode skips new words."""
        mode = SessionMode.parse(mode)
        return cls(
            max_words=max_words,
            include_new=mode is not SessionMode.REVIEW,
            include_review=True,
            difficulty_levels=difficulty_levels,
        )


@dataclass
class StudyItem:
    """One word in a batch, with its current progress (None if never seen)."""

    word: Word
    progress: WordProgress | None
    is_review: bool = False

    @property
    def learning_status(self) -> LearningStatus:
        return self.progress.learning_status if self.progress else LearningStatus.NEW


@dataclass
class StudyBatch:
    """Ordered selection of words to present next."""

    user_id: str
    category_id: int | None
    items: list[StudyItem] = field(default_factory=list)
    generated_at: datetime | None = None

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def due_count(self) -> int:
        return sum(1 for item in self.items if item.is_review)

    @property
    def new_count(self) -> int:
        return sum(1 for item in self.items if not item.is_review)

    @property
    def word_ids(self) -> list[int]:
        return [item.word.id for item in self.items]


# =============================================================================
# Sessions
# =============================================================================


@dataclass
class SessionCounters:
    """
    Running tally of one study session.

    In a caller's final tally ``words_mastered`` may be None, meaning
    "keep the running count".
    """

    words_studied: int = 0
    words_learned: int = 0
    words_mastered: int | None = 0
    correct_answers: int = 0
    total_answers: int = 0

    @property
    def accuracy(self) -> float:
        if self.total_answers == 0:
            return 0.0
        return self.correct_answers / self.total_answers * 100

    def validate(self) -> SessionCounters:
        """Reject negative counts and more correct answers than answers."""
        for name in ("words_studied", "words_learned", "words_mastered", "correct_answers", "total_answers"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise InvalidInputError(f"{name} must not be negative")
        if self.correct_answers > self.total_answers:
            raise InvalidInputError("correct_answers cannot exceed total_answers")
        return self

    def with_running(self, running: SessionCounters) -> SessionCounters:
        """This tally with omitted fields filled from the running counters."""
        if self.words_mastered is None:
            return replace(self, words_mastered=running.words_mastered)
        return self


@dataclass
class StudySession:
    """A bounded study interaction."""

    session_id: str
    user_id: str
    category_id: int | None
    mode: SessionMode
    counters: SessionCounters
    started_at: datetime
    ended_at: datetime | None = None
    duration_minutes: int | None = None
    last_activity_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.ended_at is None


@dataclass
class ResponseResult:
    """Outcome of a single rating."""

    session_id: str
    progress: WordProgress
    counters: SessionCounters
    previous_status: LearningStatus
    was_correct: bool

    @property
    def status_changed(self) -> bool:
        return self.previous_status is not self.progress.learning_status


# =============================================================================
# Aggregates
# =============================================================================


@dataclass
class UserStatistics:
    """Cumulative study statistics for one user."""

    user_id: str
    total_words_learned: int = 0
    total_words_mastered: int = 0
    total_study_minutes: int = 0
    total_sessions: int = 0
    total_active_days: int = 0
    current_streak_days: int = 0
    longest_streak_days: int = 0
    words_learned_today: int = 0
    minutes_studied_today: int = 0
    total_correct_answers: int = 0
    total_answers: int = 0
    overall_accuracy: float = 0.0
    last_activity_date: date | None = None


@dataclass
class UserActivity:
    """Lightweight view and visit counters for one user."""

    user_id: str
    total_words_viewed: int = 0
    words_viewed_today: int = 0
    total_sessions: int = 0
    total_minutes: int = 0
    total_days_active: int = 0
    streak_days: int = 0
    longest_streak_days: int = 0
    last_activity_date: date | None = None


@dataclass
class CategoryProgress:
    """Progress of one user through one category, derived on read."""

    category_id: int
    category_name: str
    total_words: int = 0
    words_started: int = 0
    words_learned: int = 0
    words_mastered: int = 0
    completion_percentage: float = 0.0
    status: CategoryStatus = CategoryStatus.NOT_STARTED
    last_studied_at: datetime | None = None


@dataclass
class DailyGoals:
    """A user's daily targets; users without their own get the configured defaults."""

    user_id: str
    new_words_target: int = 10
    review_words_target: int = 20
    study_minutes_target: int = 30
    is_default: bool = True
    updated_at: datetime | None = None

    def validate(self) -> DailyGoals:
        for name in ("new_words_target", "review_words_target", "study_minutes_target"):
            if getattr(self, name) <= 0:
                raise InvalidInputError(f"{name} must be positive")
        return self


# =============================================================================
# Activity log
# =============================================================================


@dataclass
class StudyActivity:
    """One entry of the study activity log (a rating or a view)."""

    id: int
    user_id: str
    activity_type: str
    created_at: datetime
    word_id: int | None = None
    session_id: str | None = None
    difficulty_rating: DifficultyRating | None = None
    was_correct: bool | None = None
    status_before: LearningStatus | None = None
    status_after: LearningStatus | None = None
    response_time_ms: int | None = None


@dataclass
class SessionDetails:
    """A session with the words rated in it."""

    session: StudySession
    responses: list[StudyActivity] = field(default_factory=list)
    words: list[Word] = field(default_factory=list)
    category_progress: CategoryProgress | None = None

    @property
    def words_changed_status(self) -> list[int]:
        """Ids of words whose status changed in this session, first change first."""
        seen: list[int] = []
        for entry in self.responses:
            if entry.status_before is not entry.status_after and entry.word_id not in seen:
                seen.append(entry.word_id)
        return seen


@dataclass
class ActivityReport:
    """Activity of one user in a time window, oldest entry first."""

    user_id: str
    start: datetime
    end: datetime
    entries: list[StudyActivity] = field(default_factory=list)

    @property
    def responses(self) -> int:
        return sum(1 for e in self.entries if e.difficulty_rating is not None)

    @property
    def views(self) -> int:
        return sum(1 for e in self.entries if e.difficulty_rating is None)

    @property
    def correct_answers(self) -> int:
        return sum(1 for e in self.entries if e.was_correct)

    @property
    def accuracy(self) -> float:
        return self.correct_answers / self.responses * 100 if self.responses else 0.0

    @property
    def distinct_words(self) -> int:
        return len({e.word_id for e in self.entries if e.word_id is not None})


@dataclass
class DashboardStats:
    """Everything the progress dashboard shows for one user."""

    user_id: str
    statistics: UserStatistics
    activity: UserActivity
    words_due_today: int = 0
    recent_sessions: list[StudySession] = field(default_factory=list)
    categories: list[CategoryProgress] = field(default_factory=list)
    learning_streak_active: bool = False
    average_session_minutes: float = 0.0
    daily_words_target: int = 10
    daily_minutes_target: int = 30
    daily_review_target: int = 20

    @property
    def categories_in_progress(self) -> int:
        return sum(1 for c in self.categories if c.status is CategoryStatus.IN_PROGRESS)

    @property
    def categories_completed(self) -> int:
        return sum(
            1 for c in self.categories if c.status in (CategoryStatus.COMPLETED, CategoryStatus.MASTERED)
        )

    @property
    def daily_words_progress(self) -> float:
        """Percent of today's word goal reached, capped at 100."""
        return min(100.0, self.statistics.words_learned_today / self.daily_words_target * 100)

    @property
    def daily_minutes_progress(self) -> float:
        return min(100.0, self.statistics.minutes_studied_today / self.daily_minutes_target * 100)
