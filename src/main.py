"""
Remote S.K.A.T.E. API.

Run with: uvicorn src.main:app
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from sqlalchemy.orm import Session, sessionmaker

from src.api.dependencies import get_notifier
from src.api.errors import register_error_handlers
from src.api.routes import cron_router, games_router
from src.core.config import Settings, get_settings
from src.db.database import create_db_engine, create_session_factory, init_db
from src.db.sql_repository import SQLGameRepository
from src.services.scheduler import (
    DeadlineScheduler,
    SchedulerReport,
    start_background_jobs,
)
from src.skate.rules import TurnRules

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def run_scheduler_tick(
    settings: Settings, session_factory: sessionmaker[Session]
) -> SchedulerReport:
    """One scheduler pass with its own session (the job thread never shares one)."""
    with session_factory() as db:
        scheduler = DeadlineScheduler(
            SQLGameRepository(db), get_notifier(), rules=TurnRules.from_settings(settings)
        )
        return scheduler.run_once()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        init_db(app.state.engine)
        background = None
        if settings.scheduler_enabled:
            background = start_background_jobs(
                lambda: run_scheduler_tick(settings, app.state.session_factory),
                settings.scheduler_interval_seconds,
            )
        try:
            yield
        finally:
            if background is not None:
                background.shutdown(wait=False)
            app.state.engine.dispose()

    app = FastAPI(title="Remote S.K.A.T.E. API", lifespan=lifespan)
    app.state.engine = create_db_engine(settings)
    app.state.session_factory = create_session_factory(app.state.engine)
    # routes see the same settings the app was built with
    app.dependency_overrides[get_settings] = lambda: settings
    register_error_handlers(app)
    app.include_router(games_router)
    app.include_router(cron_router)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
