"""
Study engine: batch scheduling, response processing, sessions and statistics.
"""

from .catalog import WordCatalog
from .intervals import ReviewPolicy, SpacedRepetitionScheduler
from .progress_store import ProgressStore
from .response_processor import ResponseProcessor
from .scheduler import StudyScheduler
from .session_tracker import SessionTracker
from .statistics import StatisticsAggregator, advance_streak
from .study_service import StudyService

__all__ = [
    "WordCatalog",
    "ReviewPolicy",
    "SpacedRepetitionScheduler",
    "ProgressStore",
    "StudyScheduler",
    "ResponseProcessor",
    "SessionTracker",
    "StatisticsAggregator",
    "advance_streak",
    "StudyService",
]
