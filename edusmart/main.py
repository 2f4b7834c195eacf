from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from edusmart.api.achievements import router as achievements_router
from edusmart.api.courses import router as courses_router
from edusmart.api.health import router as health_router
from edusmart.api.metrics_endpoint import router as metrics_router
from edusmart.api.progress import router as progress_router
from edusmart.api.tutor import router as tutor_router
from edusmart.core.config import SETTINGS
from edusmart.core.logging import setup_logging
from edusmart.db.engine import lifespan_db
from edusmart.db.redis import lifespan_redis
from edusmart.middleware.metrics import MetricsMiddleware
from edusmart.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order.
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="edusmart-progress",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last-added runs first: RequestContext -> Metrics -> CORS -> route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(progress_router)
app.include_router(achievements_router)
app.include_router(courses_router)
app.include_router(tutor_router)

logger.info(
    "edusmart-progress started  env=%s log_level=%s port=%d docs=%s tutor=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
    "on" if SETTINGS.tutor_enabled else "off",
)
