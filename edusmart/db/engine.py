"""Async SQLAlchemy engine and session factory.

When DATABASE_URL is configured the progress store lives in PostgreSQL
(asyncpg driver).  When it is not, engine and async_session_factory are
None and the service runs on the in-memory repositories.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import asynccontextmanager, contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from edusmart.core.config import SETTINGS
from edusmart.services.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all table models."""


if SETTINGS.database_url:
    engine = create_async_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev,  # log SQL in dev only
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )
    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
else:
    engine = None
    async_session_factory = None


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Re-raise driver/ORM failures as StoreUnavailableError.

    Callers see one transient error kind regardless of which database
    call failed; the original exception stays chained.
    """
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("Store operation failed: %s (%s)", operation, type(e).__name__)
        raise StoreUnavailableError(f"{operation} failed") from e


@asynccontextmanager
async def lifespan_db():
    if engine is None:
        logger.info("No DATABASE_URL configured; using in-memory repositories")
        yield
        return

    logger.info("Database engine created: %s", engine.url.render_as_string(hide_password=True))
    yield
    await engine.dispose()
    logger.info("Database engine disposed")
