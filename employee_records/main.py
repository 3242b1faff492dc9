from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from employee_records.db.init_db import init_db
from employee_records.db.session import build_engine, build_session_factory
from employee_records.logging_config import configure_app_logging
from employee_records.routers import catalog, compensations, employees, health, salaries
from employee_records.security.config import load_security_config
from employee_records.security.dependencies import enforce_security
from employee_records.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the app with its own engine and session factory.

    Nothing database-related lives at module level; tests pass their own
    `Settings` (e.g. an in-memory SQLite url).
    """

    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        app.state.security_config = load_security_config(settings.resolved_security_config_path())
        logger.info("Loaded security config: %s", settings.resolved_security_config_path())

        init_db(app.state.engine, app.state.session_factory, seed=settings.seed_demo_data)
        logger.info("Database initialized (tables ensured, seed=%s)", settings.seed_demo_data)

        yield

        app.state.engine.dispose()

    # Global dependency: route rules from the security config apply to every handler.
    app = FastAPI(title="Employee Records", dependencies=[Depends(enforce_security)], lifespan=lifespan)

    engine = build_engine(settings.resolved_db_url())
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)

    app.include_router(health.router)
    app.include_router(employees.router)
    app.include_router(salaries.router)
    app.include_router(compensations.router)
    app.include_router(catalog.router)

    return app
