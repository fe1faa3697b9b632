"""
Statistics API Router.

Endpoints for progress dashboards, activity analytics and daily goals.
"""

from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from loguru import logger
from pydantic import BaseModel, Field

from lexiflow.api.dependencies import get_current_user_id, get_study_service
from lexiflow.api.routers.study_router import (
    ActivityEntryResponse,
    ActivityResponse,
    CategoryProgressResponse,
    SessionResponse,
)
from lexiflow.core.errors import NotFoundError
from lexiflow.core.models import ActivityReport, DailyGoals, UserStatistics
from lexiflow.study.study_service import StudyService

router = APIRouter()


# ========================================
# Response Models
# ========================================


class StatisticsResponse(BaseModel):
    """Cumulative statistics."""

    total_words_learned: int
    total_words_mastered: int
    total_study_minutes: int
    total_sessions: int
    total_active_days: int
    current_streak_days: int
    longest_streak_days: int
    words_learned_today: int
    minutes_studied_today: int
    overall_accuracy: float
    last_activity_date: date | None

    @classmethod
    def from_statistics(cls, stats: UserStatistics) -> StatisticsResponse:
        return cls(
            total_words_learned=stats.total_words_learned,
            total_words_mastered=stats.total_words_mastered,
            total_study_minutes=stats.total_study_minutes,
            total_sessions=stats.total_sessions,
            total_active_days=stats.total_active_days,
            current_streak_days=stats.current_streak_days,
            longest_streak_days=stats.longest_streak_days,
            words_learned_today=stats.words_learned_today,
            minutes_studied_today=stats.minutes_studied_today,
            overall_accuracy=stats.overall_accuracy,
            last_activity_date=stats.last_activity_date,
        )


class ActivityReportResponse(BaseModel):
    """Activity of the current user in a time window."""

    user_id: str
    start: datetime
    end: datetime
    responses: int
    views: int
    correct_answers: int
    accuracy: float
    distinct_words: int
    entries: list[ActivityEntryResponse]

    @classmethod
    def from_report(cls, report: ActivityReport) -> ActivityReportResponse:
        return cls(
            user_id=report.user_id,
            start=report.start,
            end=report.end,
            responses=report.responses,
            views=report.views,
            correct_answers=report.correct_answers,
            accuracy=round(report.accuracy, 1),
            distinct_words=report.distinct_words,
            entries=[ActivityEntryResponse.from_activity(e) for e in report.entries],
        )


class DailyGoalsResponse(BaseModel):
    """Daily goals of the current user."""

    new_words_target: int
    review_words_target: int
    study_minutes_target: int
    is_default: bool
    updated_at: datetime | None

    @classmethod
    def from_goals(cls, goals: DailyGoals) -> DailyGoalsResponse:
        return cls(
            new_words_target=goals.new_words_target,
            review_words_target=goals.review_words_target,
            study_minutes_target=goals.study_minutes_target,
            is_default=goals.is_default,
            updated_at=goals.updated_at,
        )


class DailyGoalsUpdateRequest(BaseModel):
    """Request model for changing daily goals; omitted targets are kept."""

    new_words_target: int | None = Field(None, ge=1)
    review_words_target: int | None = Field(None, ge=1)
    study_minutes_target: int | None = Field(None, ge=1)


class DashboardResponse(BaseModel):
    """Progress dashboard."""

    user_id: str
    statistics: StatisticsResponse
    activity: ActivityResponse
    words_due_today: int
    learning_streak_active: bool
    average_session_minutes: float
    daily_words_target: int
    daily_minutes_target: int
    daily_review_target: int
    daily_words_progress: float
    daily_minutes_progress: float
    categories_in_progress: int
    categories_completed: int
    categories: list[CategoryProgressResponse]
    recent_sessions: list[SessionResponse]


# ========================================
# Endpoints
# ========================================


@router.get("/dashboard", response_model=DashboardResponse, summary="Dashboard for the current user")
def get_dashboard(
    user_id: str = Depends(get_current_user_id),
    service: StudyService = Depends(get_study_service),
) -> DashboardResponse:
    dashboard = service.get_dashboard(user_id)
    return DashboardResponse(
        user_id=dashboard.user_id,
        statistics=StatisticsResponse.from_statistics(dashboard.statistics),
        activity=ActivityResponse.from_activity(dashboard.activity),
        words_due_today=dashboard.words_due_today,
        learning_streak_active=dashboard.learning_streak_active,
        average_session_minutes=dashboard.average_session_minutes,
        daily_words_target=dashboard.daily_words_target,
        daily_minutes_target=dashboard.daily_minutes_target,
        daily_review_target=dashboard.daily_review_target,
        daily_words_progress=round(dashboard.daily_words_progress, 1),
        daily_minutes_progress=round(dashboard.daily_minutes_progress, 1),
        categories_in_progress=dashboard.categories_in_progress,
        categories_completed=dashboard.categories_completed,
        categories=[CategoryProgressResponse.from_progress(c) for c in dashboard.categories],
        recent_sessions=[SessionResponse.from_session(s) for s in dashboard.recent_sessions],
    )


@router.get("/users/{user_id}", response_model=StatisticsResponse, summary="Statistics for a user")
def get_user_statistics(
    user_id: str,
    current_user: str = Depends(get_current_user_id),
    service: StudyService = Depends(get_study_service),
) -> StatisticsResponse:
    """Users can only read their own statistics."""
    if user_id != current_user:
        raise NotFoundError(f"No statistics for user {user_id}")
    stats = service.aggregator.as_of_today(service.aggregator.get_statistics(user_id))
    return StatisticsResponse.from_statistics(stats)


@router.get(
    "/categories/{category_id}",
    response_model=CategoryProgressResponse,
    summary="Progress in one category",
)
def get_category_progress(
    category_id: int,
    user_id: str = Depends(get_current_user_id),
    service: StudyService = Depends(get_study_service),
) -> CategoryProgressResponse:
    return CategoryProgressResponse.from_progress(service.category_progress(user_id, category_id))


@router.get("/activity", response_model=ActivityReportResponse, summary="Activity in a time window")
def get_activity_report(
    start: datetime = Query(..., description="Window start (UTC, inclusive)"),
    end: datetime = Query(..., description="Window end (UTC, inclusive)"),
    user_id: str = Depends(get_current_user_id),
    service: StudyService = Depends(get_study_service),
) -> ActivityReportResponse:
    return ActivityReportResponse.from_report(service.activity_report(user_id, start, end))


@router.get("/goals", response_model=DailyGoalsResponse, summary="Daily goals")
def get_daily_goals(
    user_id: str = Depends(get_current_user_id),
    service: StudyService = Depends(get_study_service),
) -> DailyGoalsResponse:
    """Users without their own goals get the configured defaults."""
    return DailyGoalsResponse.from_goals(service.aggregator.get_daily_goals(user_id))


@router.put("/goals", response_model=DailyGoalsResponse, summary="Change daily goals")
def update_daily_goals(
    request: DailyGoalsUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    service: StudyService = Depends(get_study_service),
) -> DailyGoalsResponse:
    goals = service.aggregator.update_daily_goals(
        user_id,
        new_words_target=request.new_words_target,
        review_words_target=request.review_words_target,
        study_minutes_target=request.study_minutes_target,
    )
    logger.info(f"API: daily goals updated by user={user_id}")
    return DailyGoalsResponse.from_goals(goals)
