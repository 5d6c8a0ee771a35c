"""Taskminder application entry point.

Quick Start:
    $ taskminder serve          # Start the API server and reminder loop
    $ taskminder today          # Show today's executions

Environment:
    TASKMINDER_ENV              # development/production (default: development)
    TASKMINDER_LOG_LEVEL        # DEBUG/INFO/WARNING/ERROR (default: INFO)
    DATABASE_URL                # SQLAlchemy async URL
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI

from taskminder import __version__
from taskminder.api.routes import router, set_orchestrator, taskminder_error_handler
from taskminder.config import get_settings
from taskminder.database import close_db, init_db
from taskminder.errors import TaskminderError
from taskminder.logging_config import get_logger, setup_logging
from taskminder.orchestrator import Orchestrator

setup_logging()
logger = get_logger(__name__)

_orchestrator: Optional[Orchestrator] = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle."""
    global _orchestrator
    settings = get_settings()
    logger.info("taskminder_starting", version=__version__, env=settings.taskminder_env)

    await init_db()
    _orchestrator = Orchestrator(settings)
    set_orchestrator(_orchestrator)
    await _orchestrator.startup()
    logger.info("taskminder_ready", version=__version__)

    yield

    logger.info("taskminder_shutting_down")
    try:
        await _orchestrator.shutdown()
    except Exception as exc:
        logger.warning("orchestrator_shutdown_error", error=str(exc))
    try:
        await close_db()
    except Exception as exc:
        logger.warning("db_close_error", error=str(exc))
    set_orchestrator(None)
    logger.info("taskminder_stopped")


app = FastAPI(
    title="Taskminder",
    description="Recurring tasks with escalating reminders",
    version=__version__,
    lifespan=lifespan,
)
app.add_exception_handler(TaskminderError, taskminder_error_handler)
app.include_router(router, prefix="/api")


def main(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the API server."""
    settings = get_settings()
    uvicorn.run(
        app,
        host=host or settings.api_host,
        port=port or settings.api_port,
        log_level=settings.taskminder_log_level.lower(),
    )


if __name__ == "__main__":
    main()
