from __future__ import annotations

from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import TypeVar

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from config import get_settings
from lexiflow.core.errors import ConflictError, TransientStoreError
from lexiflow.db.models.base import Base

settings = get_settings()

T = TypeVar("T")


def create_store_engine(url: str, echo: bool = False, **kwargs) -> Engine:
    """Create an engine for the progress store."""
    if url.startswith("sqlite"):
        # API handlers run on a thread pool
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_pre_ping", True)
    return create_engine(url, echo=echo, **kwargs)


# Sync engine/session
engine = create_store_engine(settings.database_url, echo=settings.log_level == "DEBUG")
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def get_engine() -> Engine:
    """Get the database engine."""
    return engine


def init_db(bind: Engine | None = None) -> None:
    """Initialize database tables."""
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables initialized")


@contextmanager
def session_scope(
    session_factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Commits on success. On any error the transaction is rolled back, so no
    partial write is visible, and store exceptions are translated:

    - StaleDataError / IntegrityError -> ConflictError (lost race)
    - OperationalError / InterfaceError / invalidated connection -> TransientStoreError
    """
    session = (session_factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except (StaleDataError, IntegrityError) as e:
        session.rollback()
        raise ConflictError(f"Concurrent update detected: {e.__class__.__name__}") from e
    except (OperationalError, InterfaceError) as e:
        session.rollback()
        raise TransientStoreError(f"Progress store unavailable: {e.orig}") from e
    except DBAPIError as e:
        session.rollback()
        if e.connection_invalidated:
            raise TransientStoreError("Progress store connection lost") from e
        raise
    except Exception:  # Intentionally broad - rollback on any error before re-raising
        session.rollback()
        raise
    finally:
        session.close()


def run_with_retry(operation: Callable[[], T], retries: int, label: str = "operation") -> T:
    """
    Run ``operation`` and re-run it on a retryable ConflictError.

    Each attempt must open its own transaction so it reads fresh state.
    After ``retries`` extra attempts the last conflict propagates.
    """
    attempt = 0
    while True:
        try:
            return operation()
        except ConflictError as e:
            if not e.retryable or attempt >= retries:
                raise
            attempt += 1
            logger.warning(f"{label}: conflict, retrying ({attempt}/{retries})")
