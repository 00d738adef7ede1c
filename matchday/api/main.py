"""
Matchday API Server

FastAPI server for organizing amateur football: teams, open matches,
match requests, availability, lineups and match events.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from matchday.api.routes import router, limiter as routes_limiter
from matchday.database import db
from matchday.services.availability_reminder_service import get_availability_reminder_service

# Allow log level to be configured via environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

RUN_REMINDER_WORKER = os.getenv("RUN_REMINDER_WORKER", "true").lower() == "true"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    logger.info("Starting up Matchday API...")

    # Create tables that migrations have not created yet
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    if RUN_REMINDER_WORKER:
        try:
            get_availability_reminder_service().start()
        except Exception as e:
            logger.error(f"Failed to start availability reminder worker: {e}", exc_info=True)

    yield  # App is running

    logger.info("Shutting down Matchday API...")
    try:
        get_availability_reminder_service().stop()
    except Exception as e:
        logger.error(f"Error stopping availability reminder worker: {e}", exc_info=True)


app = FastAPI(
    title="Matchday API",
    description="API for organizing amateur football teams and matches",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/api/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
