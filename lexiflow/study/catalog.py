"""
Read-only access to the word catalog.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from lexiflow.core.errors import NotFoundError
from lexiflow.core.models import Category, Word
from lexiflow.db.database import session_scope
from lexiflow.db.models import CategoryModel, WordModel


class WordCatalog:
    """
    Queries over categories and words.

    Methods taking ``db`` run inside the caller's transaction; the
    ``list_*`` methods open their own.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self.session_factory = session_factory

    def list_active_words(
        self,
        category_id: int | None = None,
        difficulty_levels: Iterable[int] | None = None,
    ) -> list[Word]:
        with session_scope(self.session_factory) as db:
            return self.active_words(db, category_id, difficulty_levels)

    def list_categories(self) -> list[Category]:
        with session_scope(self.session_factory) as db:
            return self.active_categories(db)

    def active_words(
        self,
        db: Session,
        category_id: int | None = None,
        difficulty_levels: Iterable[int] | None = None,
    ) -> list[Word]:
        """Active words in active categories, optionally narrowed."""
        stmt = (
            select(WordModel)
            .join(CategoryModel, CategoryModel.id == WordModel.category_id)
            .where(WordModel.is_active.is_(True), CategoryModel.is_active.is_(True))
        )
        if category_id is not None:
            stmt = stmt.where(WordModel.category_id == category_id)
        if difficulty_levels:
            stmt = stmt.where(WordModel.difficulty_level.in_(list(difficulty_levels)))
        return [row.to_domain() for row in db.scalars(stmt.order_by(WordModel.id))]

    def active_categories(self, db: Session) -> list[Category]:
        stmt = (
            select(CategoryModel)
            .where(CategoryModel.is_active.is_(True))
            .order_by(CategoryModel.display_order, CategoryModel.id)
        )
        return [row.to_domain() for row in db.scalars(stmt)]

    def require_word(self, db: Session, word_id: int) -> Word:
        """An active word in an active category."""
        row = db.get(WordModel, word_id)
        if row is None or not row.is_active:
            raise NotFoundError(f"Word {word_id} not found")
        category = db.get(CategoryModel, row.category_id)
        if category is None or not category.is_active:
            raise NotFoundError(f"Word {word_id} not found")
        return row.to_domain()

    def require_category(self, db: Session, category_id: int) -> Category:
        row = db.get(CategoryModel, category_id)
        if row is None:
            raise NotFoundError(f"Category {category_id} not found")
        return row.to_domain()
