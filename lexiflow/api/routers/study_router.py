"""
Study API Router.

Endpoints for the study loop:
- Batch selection
- Session start / end / history / details
- Rating submission
- Word views and per-word progress
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from loguru import logger
from pydantic import BaseModel, Field

from lexiflow.api.dependencies import get_current_user_id, get_study_service
from lexiflow.core.models import (
    CategoryProgress,
    ResponseResult,
    SessionCounters,
    SessionDetails,
    StudyActivity,
    StudyBatch,
    StudyConstraints,
    StudySession,
    UserActivity,
    WordProgress,
)
from lexiflow.study.study_service import StudyService

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class CountersModel(BaseModel):
    """Session counters."""

    words_studied: int = Field(0, ge=0)
    words_learned: int = Field(0, ge=0)
    words_mastered: int = Field(0, ge=0)
    correct_answers: int = Field(0, ge=0)
    total_answers: int = Field(0, ge=0)

    @classmethod
    def from_counters(cls, counters: SessionCounters) -> CountersModel:
        return cls(
            words_studied=counters.words_studied,
            words_learned=counters.words_learned,
            words_mastered=counters.words_mastered,
            correct_answers=counters.correct_answers,
            total_answers=counters.total_answers,
        )


class FinalCountersModel(BaseModel):
    """Final tally sent when ending a session; omit words_mastered to keep the running count."""

    words_studied: int = Field(0, ge=0)
    words_learned: int = Field(0, ge=0)
    words_mastered: int | None = Field(None, ge=0)
    correct_answers: int = Field(0, ge=0)
    total_answers: int = Field(0, ge=0)

    def to_counters(self) -> SessionCounters:
        return SessionCounters(**self.model_dump())


class SessionResponse(BaseModel):
    """A study session."""

    session_id: str
    user_id: str
    category_id: int | None
    mode: str
    counters: CountersModel
    accuracy: float
    started_at: datetime
    ended_at: datetime | None
    duration_minutes: int | None
    is_open: bool

    @classmethod
    def from_session(cls, session: StudySession) -> SessionResponse:
        return cls(
            session_id=session.session_id,
            user_id=session.user_id,
            category_id=session.category_id,
            mode=session.mode.value,
            counters=CountersModel.from_counters(session.counters),
            accuracy=round(session.counters.accuracy, 1),
            started_at=session.started_at,
            ended_at=session.ended_at,
            duration_minutes=session.duration_minutes,
            is_open=session.is_open,
        )


class SessionStartRequest(BaseModel):
    """Request model for starting a session."""

    category_id: int | None = Field(None, description="Category (omit for all categories)")
    mode: str = Field("study", description="Session mode: study, review, test")


class SessionEndRequest(BaseModel):
    """Request model for ending a session."""

    counters: FinalCountersModel | None = Field(None, description="Final tally (omit to keep running counters)")


class ResponseSubmitRequest(BaseModel):
    """Request model for rating a word."""

    word_id: int
    difficulty_rating: str = Field(..., description="easy, hard or forgot")
    response_time_ms: int | None = Field(None, ge=0)


class ProgressResponse(BaseModel):
    """Learning state of one word."""

    word_id: int
    learning_status: str
    attempts: int
    correct_attempts: int
    accuracy: float
    easiness_factor: float
    interval_days: int
    last_studied_at: datetime | None
    next_review_at: datetime | None

    @classmethod
    def from_progress(cls, progress: WordProgress) -> ProgressResponse:
        return cls(
            word_id=progress.word_id,
            learning_status=progress.learning_status.value,
            attempts=progress.attempts,
            correct_attempts=progress.correct_attempts,
            accuracy=round(progress.accuracy, 1),
            easiness_factor=round(progress.easiness_factor, 2),
            interval_days=progress.interval_days,
            last_studied_at=progress.last_studied_at,
            next_review_at=progress.next_review_at,
        )


class ResponseSubmitResponse(BaseModel):
    """Result of a rating."""

    session_id: str
    previous_status: str
    was_correct: bool
    progress: ProgressResponse
    counters: CountersModel

    @classmethod
    def from_result(cls, result: ResponseResult) -> ResponseSubmitResponse:
        return cls(
            session_id=result.session_id,
            previous_status=result.previous_status.value,
            was_correct=result.was_correct,
            progress=ProgressResponse.from_progress(result.progress),
            counters=CountersModel.from_counters(result.counters),
        )


class CategoryProgressResponse(BaseModel):
    """Progress through one category."""

    category_id: int
    category_name: str
    total_words: int
    words_started: int
    words_learned: int
    words_mastered: int
    completion_percentage: float
    status: str
    last_studied_at: datetime | None

    @classmethod
    def from_progress(cls, progress: CategoryProgress) -> CategoryProgressResponse:
        return cls(
            category_id=progress.category_id,
            category_name=progress.category_name,
            total_words=progress.total_words,
            words_started=progress.words_started,
            words_learned=progress.words_learned,
            words_mastered=progress.words_mastered,
            completion_percentage=progress.completion_percentage,
            status=progress.status.value,
            last_studied_at=progress.last_studied_at,
        )


class ActivityEntryResponse(BaseModel):
    """One entry of the activity log."""

    activity_type: str
    word_id: int | None
    session_id: str | None
    difficulty_rating: str | None
    was_correct: bool | None
    status_before: str | None
    status_after: str | None
    response_time_ms: int | None
    created_at: datetime

    @classmethod
    def from_activity(cls, entry: StudyActivity) -> ActivityEntryResponse:
        return cls(
            activity_type=entry.activity_type,
            word_id=entry.word_id,
            session_id=entry.session_id,
            difficulty_rating=entry.difficulty_rating.value if entry.difficulty_rating else None,
            was_correct=entry.was_correct,
            status_before=entry.status_before.value if entry.status_before else None,
            status_after=entry.status_after.value if entry.status_after else None,
            response_time_ms=entry.response_time_ms,
            created_at=entry.created_at,
        )


class SessionWordResponse(BaseModel):
    """A word rated in a session."""

    word_id: int
    simplified: str
    pinyin: str
    translation: str


class SessionDetailsResponse(BaseModel):
    """A session with its ratings and words."""

    session: SessionResponse
    responses: list[ActivityEntryResponse]
    words: list[SessionWordResponse]
    words_changed_status: list[int]
    category_progress: CategoryProgressResponse | None

    @classmethod
    def from_details(cls, details: SessionDetails) -> SessionDetailsResponse:
        return cls(
            session=SessionResponse.from_session(details.session),
            responses=[ActivityEntryResponse.from_activity(e) for e in details.responses],
            words=[
                SessionWordResponse(
                    word_id=word.id,
                    simplified=word.simplified,
                    pinyin=word.pinyin,
                    translation=word.translation,
                )
                for word in details.words
            ],
            words_changed_status=details.words_changed_status,
            category_progress=(
                CategoryProgressResponse.from_progress(details.category_progress)
                if details.category_progress
                else None
            ),
        )


class BatchItemResponse(BaseModel):
    """One word in a study batch."""

    word_id: int
    category_id: int
    simplified: str
    traditional: str | None
    pinyin: str
    translation: str
    english_translation: str | None
    example_sentence: str | None
    example_translation: str | None
    audio_url: str | None
    difficulty_level: int
    learning_status: str
    is_review: bool
    next_review_at: datetime | None


class BatchResponse(BaseModel):
    """An ordered study batch."""

    user_id: str
    category_id: int | None
    due_count: int
    new_count: int
    is_empty: bool
    items: list[BatchItemResponse]

    @classmethod
    def from_batch(cls, batch: StudyBatch) -> BatchResponse:
        return cls(
            user_id=batch.user_id,
            category_id=batch.category_id,
            due_count=batch.due_count,
            new_count=batch.new_count,
            is_empty=batch.is_empty,
            items=[
                BatchItemResponse(
                    word_id=item.word.id,
                    category_id=item.word.category_id,
                    simplified=item.word.simplified,
                    traditional=item.word.traditional,
                    pinyin=item.word.pinyin,
                    translation=item.word.translation,
                    english_translation=item.word.english_translation,
                    example_sentence=item.word.example_sentence,
                    example_translation=item.word.example_translation,
                    audio_url=item.word.audio_url,
                    difficulty_level=item.word.difficulty_level,
                    learning_status=item.learning_status.value,
                    is_review=item.is_review,
                    next_review_at=item.progress.next_review_at if item.progress else None,
                )
                for item in batch.items
            ],
        )


class ViewRequest(BaseModel):
    """Request model for a word view."""

    word_id: int | None = None


class ActivityResponse(BaseModel):
    """Activity counters."""

    total_words_viewed: int
    words_viewed_today: int
    total_sessions: int
    total_minutes: int
    total_days_active: int
    streak_days: int
    longest_streak_days: int

    @classmethod
    def from_activity(cls, activity: UserActivity) -> ActivityResponse:
        return cls(
            total_words_viewed=activity.total_words_viewed,
            words_viewed_today=activity.words_viewed_today,
            total_sessions=activity.total_sessions,
            total_minutes=activity.total_minutes,
            total_days_active=activity.total_days_active,
            streak_days=activity.streak_days,
            longest_streak_days=activity.longest_streak_days,
        )


# ========================================
# Batch Endpoints
# ========================================


@router.get("/batch", response_model=BatchResponse, summary="Select the next study batch")
def get_batch(
    category_id: int | None = Query(None, description="Category (omit for all)"),
    max_words: int | None = Query(None, description="Batch size (default from config)"),
    mode: str = Query("study", description="study, review or test"),
    include_new: bool | None = Query(None),
    include_review: bool | None = Query(None),
    difficulty: list[int] | None = Query(None, description="Difficulty levels to include"),
    user_id: str = Depends(get_current_user_id),
    service: StudyService = Depends(get_study_service),
) -> BatchResponse:
    """
    Due reviews first (oldest due first), then new words (most frequent first).

    An empty batch means there is nothing to study right now.
    """
    constraints = StudyConstraints.for_mode(
        mode,
        max_words=max_words if max_words is not None else service.settings.default_batch_size,
        difficulty_levels=tuple(difficulty) if difficulty else None,
    )
    if include_new is not None:
        constraints.include_new = include_new
    if include_review is not None:
        constraints.include_review = include_review

    batch = service.scheduler.select_study_batch(user_id, category_id, constraints)
    return BatchResponse.from_batch(batch)


# ========================================
# Session Endpoints
# ========================================


@router.post("/sessions", response_model=SessionResponse, status_code=201, summary="Start a session")
def start_session(
    request: SessionStartRequest,
    user_id: str = Depends(get_current_user_id),
    service: StudyService = Depends(get_study_service),
) -> SessionResponse:
    session = service.tracker.start_session(user_id, request.category_id, request.mode)
    return SessionResponse.from_session(session)


@router.get("/sessions", response_model=list[SessionResponse], summary="Recent sessions")
def list_sessions(
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    service: StudyService = Depends(get_study_service),
) -> list[SessionResponse]:
    return [SessionResponse.from_session(s) for s in service.tracker.recent_sessions(user_id, limit)]


@router.get("/sessions/{session_id}", response_model=SessionResponse, summary="Get a session")
def get_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    service: StudyService = Depends(get_study_service),
) -> SessionResponse:
    return SessionResponse.from_session(service.tracker.get_session(session_id, user_id))


@router.get(
    "/sessions/{session_id}/details",
    response_model=SessionDetailsResponse,
    summary="A session with its ratings",
)
def get_session_details(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    service: StudyService = Depends(get_study_service),
) -> SessionDetailsResponse:
    return SessionDetailsResponse.from_details(service.session_details(session_id, user_id))


@router.post(
    "/sessions/{session_id}/responses",
    response_model=ResponseSubmitResponse,
    summary="Rate a word",
)
def submit_response(
    session_id: str,
    request: ResponseSubmitRequest,
    user_id: str = Depends(get_current_user_id),
    service: StudyService = Depends(get_study_service),
) -> ResponseSubmitResponse:
    result = service.processor.submit_response(
        session_id,
        request.word_id,
        request.difficulty_rating,
        user_id=user_id,
        response_time_ms=request.response_time_ms,
    )
    return ResponseSubmitResponse.from_result(result)


@router.post("/sessions/{session_id}/end", response_model=SessionResponse, summary="End a session")
def end_session(
    session_id: str,
    request: SessionEndRequest | None = None,
    user_id: str = Depends(get_current_user_id),
    service: StudyService = Depends(get_study_service),
) -> SessionResponse:
    """Close the session and update statistics. Ending twice is harmless."""
    counters = request.counters.to_counters() if request and request.counters else None
    session = service.tracker.end_session(session_id, counters, user_id=user_id)
    logger.info(f"API: session {session_id} ended by user={user_id}")
    return SessionResponse.from_session(session)


# ========================================
# View Endpoints
# ========================================


@router.post("/views", response_model=ActivityResponse, summary="Record a word view")
def record_view(
    request: ViewRequest,
    user_id: str = Depends(get_current_user_id),
    service: StudyService = Depends(get_study_service),
) -> ActivityResponse:
    activity = service.processor.record_view(user_id, request.word_id)
    return ActivityResponse.from_activity(activity)


# ========================================
# Word Endpoints
# ========================================


@router.get("/words/{word_id}/progress", response_model=ProgressResponse, summary="Progress on one word")
def get_word_progress(
    word_id: int,
    user_id: str = Depends(get_current_user_id),
    service: StudyService = Depends(get_study_service),
) -> ProgressResponse:
    """Words never seen report status new."""
    return ProgressResponse.from_progress(service.word_progress(user_id, word_id))
