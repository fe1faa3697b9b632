"""
Word catalog models.

Categories and words are authored elsewhere; the study engine only reads them.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from lexiflow.core.models import Category, Word

from .base import Base


class CategoryModel(Base):
    """A themed group of words (e.g. 'Food', 'HSK 1')."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    name_translation: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    difficulty_level: Mapped[int] = mapped_column(Integer, default=1)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())

    def __repr__(self) -> str:
        return f"<CategoryModel(id={self.id}, name='{self.name}')>"

    def to_domain(self) -> Category:
        return Category(
            id=self.id,
            name=self.name,
            name_translation=self.name_translation,
            difficulty_level=self.difficulty_level if self.difficulty_level is not None else 1,
            display_order=self.display_order or 0,
            is_active=bool(self.is_active) if self.is_active is not None else True,
        )


class WordModel(Base):
    """A vocabulary item."""

    __tablename__ = "words"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    simplified: Mapped[str] = mapped_column(Text, nullable=False)
    traditional: Mapped[str | None] = mapped_column(Text)
    pinyin: Mapped[str] = mapped_column(Text, nullable=False)
    translation: Mapped[str] = mapped_column(Text, nullable=False)
    english_translation: Mapped[str | None] = mapped_column(Text)
    example_sentence: Mapped[str | None] = mapped_column(Text)
    example_translation: Mapped[str | None] = mapped_column(Text)
    audio_url: Mapped[str | None] = mapped_column(Text)
    difficulty_level: Mapped[int] = mapped_column(Integer, default=1)
    frequency_rank: Mapped[int | None] = mapped_column(Integer)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())

    __table_args__ = (
        Index("idx_words_category_active", "category_id", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<WordModel(id={self.id}, simplified='{self.simplified}')>"

    def to_domain(self) -> Word:
        return Word(
            id=self.id,
            category_id=self.category_id,
            simplified=self.simplified,
            pinyin=self.pinyin,
            translation=self.translation,
            difficulty_level=self.difficulty_level if self.difficulty_level is not None else 1,
            frequency_rank=self.frequency_rank,
            traditional=self.traditional,
            english_translation=self.english_translation,
            example_sentence=self.example_sentence,
            example_translation=self.example_translation,
            audio_url=self.audio_url,
            is_active=bool(self.is_active) if self.is_active is not None else True,
        )
