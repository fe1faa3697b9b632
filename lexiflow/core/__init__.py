"""
Core domain types shared by the store, study engine, API and CLI.
"""

from .errors import (
    ConflictError,
    InvalidInputError,
    LexiflowError,
    NotFoundError,
    SessionAlreadyOpenError,
    SessionClosedError,
    TransientStoreError,
    UnauthenticatedError,
)
from .models import (
    ActivityReport,
    Category,
    CategoryProgress,
    CategoryStatus,
    DailyGoals,
    DashboardStats,
    DifficultyRating,
    LearningStatus,
    ResponseResult,
    SessionCounters,
    SessionDetails,
    SessionMode,
    StudyActivity,
    StudyBatch,
    StudyConstraints,
    StudyItem,
    StudySession,
    UserActivity,
    UserStatistics,
    Word,
    WordProgress,
)

__all__ = [
    # Errors
    "LexiflowError",
    "UnauthenticatedError",
    "NotFoundError",
    "ConflictError",
    "SessionAlreadyOpenError",
    "SessionClosedError",
    "TransientStoreError",
    "InvalidInputError",
    # Models
    "LearningStatus",
    "DifficultyRating",
    "SessionMode",
    "CategoryStatus",
    "Category",
    "Word",
    "WordProgress",
    "StudyConstraints",
    "StudyItem",
    "StudyBatch",
    "SessionCounters",
    "StudySession",
    "UserStatistics",
    "UserActivity",
    "ResponseResult",
    "CategoryProgress",
    "DashboardStats",
    "DailyGoals",
    "StudyActivity",
    "SessionDetails",
    "ActivityReport",
]
