"""
Session Tracker.

Opens and closes study sessions. Closing is idempotent and folds the
session into the user's statistics in the same transaction, so a
session is aggregated exactly once.

At most one session per user is open at a time unless
``allow_concurrent_sessions`` is set. Sessions abandoned without an
explicit end are closed by ``reconcile_stale_sessions``.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from uuid import uuid4

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from config import Settings, get_settings
from lexiflow.core.errors import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    SessionAlreadyOpenError,
)
from lexiflow.core.models import (
    Clock,
    SessionCounters,
    SessionDetails,
    SessionMode,
    StudySession,
    utc_now,
)
from lexiflow.db.database import run_with_retry, session_scope
from lexiflow.db.models import StudyActivityModel, StudySessionModel, WordModel
from lexiflow.study.catalog import WordCatalog
from lexiflow.study.progress_store import ACTIVITY_RESPONSE
from lexiflow.study.statistics import StatisticsAggregator


class SessionTracker:
    """Lifecycle of study sessions."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        catalog: WordCatalog | None = None,
        aggregator: StatisticsAggregator | None = None,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ):
        self.settings = settings or get_settings()
        self.session_factory = session_factory
        self.clock = clock or utc_now
        self.catalog = catalog or WordCatalog(session_factory)
        self.aggregator = aggregator or StatisticsAggregator(session_factory, self.settings, self.clock)

    @property
    def _retries(self) -> int:
        return self.settings.conflict_max_retries

    # =========================================================================
    # Start
    # =========================================================================

    def start_session(
        self,
        user_id: str,
        category_id: int | None = None,
        mode: SessionMode | str = SessionMode.STUDY,
    ) -> StudySession:
        """
        Open a new session with zeroed counters.

        Raises:
            InvalidInputError: Unknown mode
            NotFoundError: category_id does not exist
            SessionAlreadyOpenError: The user already has an open session
        """
        mode = SessionMode.parse(mode)
        session = run_with_retry(
            lambda: self._open(user_id, category_id, mode),
            self._retries,
            f"start_session(user={user_id})",
        )
        logger.info(
            f"Session {session.session_id} started for user={user_id} "
            f"(category={category_id}, mode={mode.value})"
        )
        return session

    def _open(self, user_id: str, category_id: int | None, mode: SessionMode) -> StudySession:
        now = self.clock()
        exclusive = not self.settings.allow_concurrent_sessions
        with session_scope(self.session_factory) as db:
            if category_id is not None:
                self.catalog.require_category(db, category_id)

            if exclusive:
                existing = self._find_open(db, user_id)
                if existing is not None:
                    if self.settings.auto_close_stale_sessions and self._is_stale(existing, now):
                        logger.info(f"Auto-closing stale session {existing.session_id}")
                        self._close(db, existing, self._idle_since(existing), None)
                    else:
                        raise SessionAlreadyOpenError(
                            f"User {user_id} already has open session {existing.session_id}",
                            session_id=existing.session_id,
                        )

            row = StudySessionModel(
                session_id=uuid4().hex,
                user_id=user_id,
                category_id=category_id,
                mode=mode.value,
                open_key=user_id if exclusive else None,
                started_at=now,
                last_activity_at=now,
            )
            row.apply_counters(SessionCounters())
            db.add(row)
            try:
                db.flush()
            except IntegrityError as e:
                # Another start for the same user committed first
                raise SessionAlreadyOpenError(f"User {user_id} already has an open session") from e
            return row.to_domain()

    # =========================================================================
    # End
    # =========================================================================

    def end_session(
        self,
        session_id: str,
        final_counters: SessionCounters | None = None,
        *,
        user_id: str | None = None,
    ) -> StudySession:
        """
        Close a session and update the user's statistics.

        Idempotent: ending a closed session returns it unchanged.

        Args:
            session_id: Session to close
            final_counters: Caller's final tally; replaces the running
                counters (None keeps them, as does a None words_mastered)
            user_id: When given, the session must belong to this user

        Raises:
            NotFoundError: Unknown session
            InvalidInputError: final_counters invalid
        """
        if final_counters is not None:
            final_counters.validate()

        return run_with_retry(
            lambda: self._end(session_id, final_counters, user_id),
            self._retries,
            f"end_session({session_id})",
        )

    def _end(
        self,
        session_id: str,
        final_counters: SessionCounters | None,
        user_id: str | None,
    ) -> StudySession:
        now = self.clock()
        with session_scope(self.session_factory) as db:
            row = self._require(db, session_id, user_id)
            if not row.is_open:
                logger.debug(f"Session {session_id} already closed")
                return row.to_domain()
            self._close(db, row, now, final_counters)
            logger.info(
                f"Session {session_id} closed: {row.duration_minutes} min, "
                f"{row.words_studied} studied, {row.words_learned} learned"
            )
            return row.to_domain()

    def _close(
        self,
        db: Session,
        row: StudySessionModel,
        ended_at: datetime,
        final_counters: SessionCounters | None,
    ) -> None:
        if final_counters is not None:
            # The caller's tally is authoritative; it may be below the running count
            row.apply_counters(final_counters.with_running(row.counters))

        ended_at = max(ended_at, row.started_at)
        row.ended_at = ended_at
        row.duration_minutes = int((ended_at - row.started_at).total_seconds() / 60 + 0.5)
        row.open_key = None
        db.flush()

        self.aggregator.fold_closed_session(db, row)

    # =========================================================================
    # Stale sessions
    # =========================================================================

    def reconcile_stale_sessions(self, idle_minutes: int | None = None) -> list[StudySession]:
        """
        Close open sessions idle for longer than ``idle_minutes``.

        Each session closes in its own transaction with its last activity
        time as ended_at. Sessions closed concurrently are skipped.
        """
        idle_minutes = idle_minutes if idle_minutes is not None else self.settings.stale_session_minutes
        if idle_minutes <= 0:
            raise InvalidInputError("idle_minutes must be positive")
        cutoff = self.clock() - timedelta(minutes=idle_minutes)

        with session_scope(self.session_factory) as db:
            stmt = select(StudySessionModel.session_id).where(
                StudySessionModel.ended_at.is_(None),
                func.coalesce(StudySessionModel.last_activity_at, StudySessionModel.started_at) < cutoff,
            )
            candidates = list(db.scalars(stmt))

        closed: list[StudySession] = []
        for session_id in candidates:
            try:
                session = run_with_retry(
                    lambda sid=session_id: self._close_if_stale(sid, cutoff),
                    self._retries,
                    f"reconcile({session_id})",
                )
            except ConflictError as e:
                logger.warning(f"Could not close stale session {session_id}: {e.message}")
                continue
            if session is not None:
                closed.append(session)

        logger.info(f"Reconciled {len(closed)} stale session(s) idle > {idle_minutes} min")
        return closed

    def _close_if_stale(self, session_id: str, cutoff: datetime) -> StudySession | None:
        with session_scope(self.session_factory) as db:
            row = db.get(StudySessionModel, session_id)
            if row is None or not row.is_open or self._idle_since(row) >= cutoff:
                return None
            self._close(db, row, self._idle_since(row), None)
            return row.to_domain()

    def _is_stale(self, row: StudySessionModel, now: datetime) -> bool:
        return now - self._idle_since(row) > timedelta(minutes=self.settings.stale_session_minutes)

    @staticmethod
    def _idle_since(row: StudySessionModel) -> datetime:
        return row.last_activity_at or row.started_at

    # =========================================================================
    # Reads
    # =========================================================================

    def get_session(self, session_id: str, user_id: str | None = None) -> StudySession:
        with session_scope(self.session_factory) as db:
            return self._require(db, session_id, user_id).to_domain()

    def session_details(self, session_id: str, user_id: str | None = None) -> SessionDetails:
        """A session with its ratings in order and the words rated in it."""
        with session_scope(self.session_factory) as db:
            session = self._require(db, session_id, user_id).to_domain()
            stmt = (
                select(StudyActivityModel)
                .where(
                    StudyActivityModel.session_id == session_id,
                    StudyActivityModel.activity_type == ACTIVITY_RESPONSE,
                )
                .order_by(StudyActivityModel.created_at, StudyActivityModel.id)
            )
            responses = [entry.to_domain() for entry in db.scalars(stmt)]

            word_ids = list(dict.fromkeys(entry.word_id for entry in responses if entry.word_id is not None))
            words_by_id = {
                row.id: row.to_domain()
                for row in db.scalars(select(WordModel).where(WordModel.id.in_(word_ids)))
            } if word_ids else {}

        return SessionDetails(
            session=session,
            responses=responses,
            words=[words_by_id[word_id] for word_id in word_ids if word_id in words_by_id],
        )

    def open_session_for(self, user_id: str) -> StudySession | None:
        with session_scope(self.session_factory) as db:
            row = self._find_open(db, user_id)
            return row.to_domain() if row else None

    def recent_sessions(self, user_id: str, limit: int = 10) -> list[StudySession]:
        """Most recently started sessions first."""
        if limit <= 0:
            raise InvalidInputError("limit must be positive")
        with session_scope(self.session_factory) as db:
            stmt = (
                select(StudySessionModel)
                .where(StudySessionModel.user_id == user_id)
                .order_by(StudySessionModel.started_at.desc(), StudySessionModel.session_id)
                .limit(limit)
            )
            return [row.to_domain() for row in db.scalars(stmt)]

    def _require(self, db: Session, session_id: str, user_id: str | None) -> StudySessionModel:
        row = db.get(StudySessionModel, session_id)
        if row is None or (user_id is not None and row.user_id != user_id):
            raise NotFoundError(f"Session {session_id} not found")
        return row

    def _find_open(self, db: Session, user_id: str) -> StudySessionModel | None:
        stmt = (
            select(StudySessionModel)
            .where(StudySessionModel.user_id == user_id, StudySessionModel.ended_at.is_(None))
            .order_by(StudySessionModel.started_at.desc())
        )
        return db.scalars(stmt).first()
