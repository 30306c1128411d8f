"""Main FastAPI application with server/agent mode switching."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .database import init_db, close_db, async_session
from .routers import checks_router, samples_router, tags_router
from .services.aggregator import AggregationEngine
from .services.check_source import DatabaseCheckSource, ApiCheckSource
from .services.scheduler import SchedulerService, SchedulerConfig

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_scheduler() -> Optional[SchedulerService]:
    """Build the scheduler for the configured mode.

    Server mode polls and aggregates against the local database. Agent mode
    only polls, fetching checks from and reporting samples to SERVER_URL.
    """
    config = SchedulerConfig.from_settings(settings)
    if settings.mode == "agent":
        if not settings.server_url:
            logger.error("SERVER_URL must be configured for agent mode")
            return None
        return SchedulerService(config, ApiCheckSource(settings.server_url))
    source = DatabaseCheckSource(async_session, claim_ttl_ms=settings.poll_claim_ttl_ms)
    return SchedulerService(config, source, aggregator=AggregationEngine(async_session))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info(f"Starting uptime tracker in {settings.mode.upper()} mode")

    if settings.mode == "server":
        await init_db()
        logger.info("Database initialized")

    scheduler = create_scheduler()
    if scheduler:
        scheduler.start()
    app.state.scheduler = scheduler

    yield

    if scheduler:
        scheduler.stop()
    await close_db()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Uptime Tracker",
        description="Poll endpoints, record samples and aggregate QoS per check and tag",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, restrict to your domain
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(checks_router)
    app.include_router(samples_router)
    app.include_router(tags_router)

    @app.get("/health")
    async def health_check():
        scheduler = getattr(app.state, "scheduler", None)
        return {
            "status": "healthy",
            "mode": settings.mode,
            "scheduler_running": bool(scheduler and scheduler.running),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)
