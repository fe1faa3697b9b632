# SQLAlchemy models
from .base import Base
from .catalog import CategoryModel, WordModel
from .progress import (
    DailyGoalsModel,
    StudyActivityModel,
    StudySessionModel,
    UserActivityModel,
    UserStatisticsModel,
    WordProgressModel,
)

__all__ = [
    "Base",
    # Catalog
    "CategoryModel",
    "WordModel",
    # Progress
    "WordProgressModel",
    "StudySessionModel",
    "StudyActivityModel",
    "UserStatisticsModel",
    "UserActivityModel",
    "DailyGoalsModel",
]
