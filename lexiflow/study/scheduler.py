"""
Study batch scheduler.

Builds the ordered list of words a learner sees next:

1. Due reviews first - learning/learned words whose review time has
   passed, oldest due first.
2. Then new words - never studied or still 'new', most frequent first,
   then easiest, then by id.

Selection is a pure read. An empty batch means "nothing to study now".
"""

from __future__ import annotations

from datetime import datetime

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from config import Settings, get_settings
from lexiflow.core.models import (
    Clock,
    LearningStatus,
    StudyBatch,
    StudyConstraints,
    StudyItem,
    Word,
    WordProgress,
    utc_now,
)
from lexiflow.db.database import session_scope
from lexiflow.study.catalog import WordCatalog
from lexiflow.study.progress_store import ProgressStore


class StudyScheduler:
    """Selects study batches for a user and category."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        catalog: WordCatalog | None = None,
        store: ProgressStore | None = None,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ):
        self.settings = settings or get_settings()
        self.session_factory = session_factory
        self.catalog = catalog or WordCatalog(session_factory)
        self.store = store or ProgressStore(session_factory)
        self.clock = clock or utc_now

    def default_constraints(self) -> StudyConstraints:
        return StudyConstraints(max_words=self.settings.default_batch_size)

    def select_study_batch(
        self,
        user_id: str,
        category_id: int | None = None,
        constraints: StudyConstraints | None = None,
    ) -> StudyBatch:
        """
        Select the next batch of words to study.

        Args:
            user_id: Learner id
            category_id: Restrict to one category (None = all active categories)
            constraints: Batch size and include flags

        Returns:
            StudyBatch, possibly empty

        Raises:
            InvalidInputError: max_words is not positive
            NotFoundError: category_id does not exist
        """
        constraints = (constraints or self.default_constraints()).validate(self.settings.max_batch_size)
        now = self.clock()

        with session_scope(self.session_factory) as db:
            if category_id is not None:
                self.catalog.require_category(db, category_id)
            words = self.catalog.active_words(db, category_id, constraints.difficulty_levels)
            progress = self.store.progress_in_scope(
                db, user_id, category_id, constraints.difficulty_levels
            )

        batch = self.build_batch(user_id, category_id, words, progress, constraints, now)
        logger.info(
            f"Batch for user={user_id} category={category_id}: "
            f"{batch.due_count} due + {batch.new_count} new"
        )
        return batch

    def build_batch(
        self,
        user_id: str,
        category_id: int | None,
        words: list[Word],
        progress: dict[int, WordProgress],
        constraints: StudyConstraints,
        now: datetime,
    ) -> StudyBatch:
        """Partition candidates and fill the batch, due reviews first."""
        due, new = self.partition(words, progress, now)
        logger.debug(f"Candidates: {len(words)} words, {len(due)} due, {len(new)} new")

        items: list[StudyItem] = []
        if constraints.include_review:
            items.extend(due[: constraints.max_words])
        if constraints.include_new:
            remaining = constraints.max_words - len(items)
            items.extend(new[:remaining])

        return StudyBatch(
            user_id=user_id,
            category_id=category_id,
            items=items,
            generated_at=now,
        )

    def partition(
        self,
        words: list[Word],
        progress: dict[int, WordProgress],
        now: datetime,
    ) -> tuple[list[StudyItem], list[StudyItem]]:
        """
        Split candidates into ordered due and new lists.

        Words in learning/learned that are not yet due, and mastered
        words (unless configured for review), appear in neither.
        """
        include_mastered = self.settings.review_mastered_words
        due: list[StudyItem] = []
        new: list[StudyItem] = []

        for word in words:
            state = progress.get(word.id)
            if state is None or state.learning_status is LearningStatus.NEW:
                new.append(StudyItem(word=word, progress=state, is_review=False))
            elif state.is_due(now, include_mastered=include_mastered):
                due.append(StudyItem(word=word, progress=state, is_review=True))

        due.sort(key=lambda item: (item.progress.next_review_at, item.word.id))
        new.sort(
            key=lambda item: (
                item.word.frequency_rank is None,
                item.word.frequency_rank or 0,
                item.word.difficulty_level,
                item.word.id,
            )
        )
        return due, new
