"""
Entry point for the scheduled notification service API.

Creates the FastAPI application and includes the API routers. Run with:

    uvicorn scheduled_notify.main:app --reload

"""

from __future__ import annotations

import logging
from fastapi import FastAPI

from .core.db import engine, SessionLocal
from .core.logging_config import setup_logging
from .models import Base
from .services.publisher_seed import seed_default_publishers

from .api import api_router
from .core.config import settings
from .core.errors import log_exception


def create_app() -> FastAPI:
    app = FastAPI(title="Scheduled Notification Service", version="0.1.0")
    app.include_router(api_router)

    # Ensure tables exist for local use
    @app.on_event("startup")
    def _init_db() -> None:
        setup_logging(settings.log_level)
        logger = logging.getLogger("startup")
        if settings.auto_create_db:
            try:
                Base.metadata.create_all(bind=engine)
            except Exception as exc:
                log_exception(logger, "DB create_all failed", exc=exc)
                raise
        if settings.auto_seed_publishers:
            try:
                with SessionLocal() as db:
                    seed_default_publishers(db)
            except Exception as exc:
                log_exception(logger, "Seed publishers failed", exc=exc)

    return app


app = create_app()
