from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from .errors import ContestEngineError, VotingClosed  # noqa: E402
from .routers import contests, notifications, photos, system, users, votes, xp  # noqa: E402
from .services.notifications import register_notification_handlers  # noqa: E402
from .settings import RUN_MIGRATIONS_ON_STARTUP  # noqa: E402

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

_STARTUP_COMPLETE = False


def _alembic_config() -> Config:
    base_dir = Path(__file__).resolve().parent.parent
    cfg = Config(str(base_dir / "alembic.ini"))
    cfg.set_main_option("script_location", str(base_dir / "alembic"))
    return cfg


def run_migrations() -> None:
    logger.info("run_migrations: Starting...")
    try:
        from alembic.runtime.migration import MigrationContext
        from alembic.script import ScriptDirectory
        from .db import engine

        alembic_cfg = _alembic_config()
        try:
            with engine.connect() as connection:
                context = MigrationContext.configure(connection)
                current_heads = set(context.get_current_heads())
                heads = set(ScriptDirectory.from_config(alembic_cfg).get_heads())
                if current_heads and current_heads == heads:
                    logger.info(f"Database is up to date (revision: {sorted(heads)}), skipping migrations.")
                    return
                logger.info(f"Current revision(s): {sorted(current_heads)}, target: {sorted(heads)}")
        finally:
            # Ensure connection is closed before calling command.upgrade
            engine.dispose()

        command.upgrade(alembic_cfg, "heads")
        logger.info("run_migrations: Completed successfully.")
    except Exception as e:
        logger.error(f"run_migrations: Error occurred: {e}", exc_info=True)
        raise


def run_startup_tasks() -> None:
    global _STARTUP_COMPLETE
    if _STARTUP_COMPLETE:
        logger.info("run_startup_tasks: Already completed, skipping.")
        return
    try:
        if RUN_MIGRATIONS_ON_STARTUP:
            run_migrations()
        else:
            logger.info("run_startup_tasks: Migrations disabled by RUN_MIGRATIONS_ON_STARTUP")
        register_notification_handlers()
        _STARTUP_COMPLETE = True
        logger.info("Startup tasks completed.")
    except Exception as e:
        logger.error(f"Startup tasks failed: {e}", exc_info=True)
        raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    run_startup_tasks()
    logger.info("Photo contest API server ready")
    yield
    logger.info("Shutting down application...")


app = FastAPI(
    title="Photo Contest API",
    version="1.0.0",
    description="Photo contests with voting, placements and an XP economy",
    lifespan=lifespan,
)


@app.exception_handler(ContestEngineError)
async def contest_engine_error_handler(request: Request, exc: ContestEngineError) -> JSONResponse:
    body = {"detail": exc.detail, "code": exc.code}
    if isinstance(exc, VotingClosed) and exc.phase:
        body["phase"] = exc.phase
    return JSONResponse(status_code=exc.status_code, content=body)


# CORS Configuration - restrict to specific origins
cors_origins_str = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost")
if cors_origins_str == "*":
    logger.warning(
        "CORS is configured to allow all origins. "
        "This is insecure for production. Set CORS_ORIGINS to specific domains."
    )
cors_origins = [origin.strip() for origin in cors_origins_str.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=600,
)


app.include_router(system.router)
app.include_router(users.router)
app.include_router(contests.router)
app.include_router(photos.router)
app.include_router(votes.router)
app.include_router(xp.router)
app.include_router(notifications.router)
