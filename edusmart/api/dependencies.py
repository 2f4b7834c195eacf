from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from edusmart.db import engine as db
from edusmart.models.principal import Principal
from edusmart.repos.pg_event_repo import PgCompletionEventRepo
from edusmart.repos.pg_progress_repos import (
    PgAchievementRepo,
    PgCourseProgressRepo,
    PgUserStatsRepo,
)
from edusmart.services import token_service
from edusmart.services.progress_service import (
    ProgressService,
    build_progress_service,
    progress_service,
)

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def require_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(bearer_scheme)
    ],
) -> Principal:
    """Extract and validate the JWT bearer token. Returns a Principal.

    Used as a FastAPI dependency on every learner-facing endpoint.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        claims = token_service.decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    principal = Principal(
        user_id=claims["sub"],
        roles=frozenset(claims.get("roles", [])),
    )
    logger.debug(
        "Token validated for user=%s roles=%s",
        principal.user_id,
        principal.roles,
    )
    return principal


def require_role(role: str):
    """Dependency factory: demand a specific role.

    Usage: Depends(require_role("admin"))
    """

    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not principal.has_role(role):
            logger.warning(
                "Access denied: user=%s missing role=%s",
                principal.user_id,
                role,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard


async def get_progress_service() -> AsyncGenerator[ProgressService, None]:
    """In-memory singleton, or a PostgreSQL-backed service per request.

    In PostgreSQL mode the whole request is one transaction: commit on
    success, rollback on any exception.
    """
    if db.async_session_factory is None:
        yield progress_service
        return

    async with db.async_session_factory() as session:

        async def commit() -> None:
            with db.store_errors("commit"):
                await session.commit()

        service = build_progress_service(
            events=PgCompletionEventRepo(session),
            stats=PgUserStatsRepo(session),
            achievements=PgAchievementRepo(session),
            course_progress=PgCourseProgressRepo(session),
            commit=commit,
        )
        try:
            yield service
            await commit()
        except Exception:
            await session.rollback()
            raise


