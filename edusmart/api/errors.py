"""Map progress-engine exceptions onto HTTP responses."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from edusmart.services.errors import (
    CompletionValidationError,
    CourseModuleNotFoundError,
    CourseNotFoundError,
    ProgressError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 5


def http_error(exc: ProgressError) -> HTTPException:
    if isinstance(exc, CompletionValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"code": exc.code, "message": str(exc)},
        )
    if isinstance(exc, CourseNotFoundError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "course_not_found", "message": str(exc)},
        )
    if isinstance(exc, CourseModuleNotFoundError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "module_not_found", "message": str(exc)},
        )
    if isinstance(exc, StoreUnavailableError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "store_unavailable", "message": "progress store unavailable"},
            headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
        )

    # ConcurrentUpdateError: the per-user lock makes this a lost lock, so retry.
    logger.error("Unmapped progress error: %s", type(exc).__name__)
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"code": "conflict", "message": "concurrent update, retry"},
        headers={"Retry-After": "1"},
    )
