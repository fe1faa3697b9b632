"""
FastAPI dependencies: the shared StudyService and the caller's identity.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Header

from lexiflow.core.errors import UnauthenticatedError
from lexiflow.study.study_service import StudyService


@lru_cache(maxsize=1)
def get_study_service() -> StudyService:
    """StudyService bound to the application database."""
    return StudyService()


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """
    Identity of the caller.

    The upstream auth layer sets ``X-User-Id`` after verifying the user.
    """
    if x_user_id is None or not x_user_id.strip():
        raise UnauthenticatedError("Missing X-User-Id header")
    return x_user_id.strip()
