"""FastAPI application factory.

Assembles the health, roster and audit routers.
This module is the authoritative app object — claimaudit/main.py re-exports it.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from claimaudit.api.routes.audits import router as audits_router
from claimaudit.api.routes.health import router as health_router
from claimaudit.api.routes.roster import router as roster_router
from claimaudit.core.logging import setup_logging
from claimaudit.core.settings import get_settings
from claimaudit.db.base import Base
from claimaudit.db.session import get_engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging()
    if get_settings().database_url.startswith("sqlite"):
        # Local runs skip migrations; Postgres schemas come from alembic.
        Base.metadata.create_all(bind=get_engine())
        logger.info("SQLite schema created")
    yield


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(roster_router)
app.include_router(audits_router)
