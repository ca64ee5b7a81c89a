"""Addon Radar pipeline service - FastAPI host for the scheduler and admin triggers."""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from addon_radar import __version__
from addon_radar.api.auth import verify_api_key
from addon_radar.config import get_settings
from addon_radar.database import dispose_engine, init_db
from addon_radar.scheduler import (
    run_retention_sweep,
    run_sync_cycle,
    run_trending_calculation,
    start_scheduler,
    stop_scheduler,
)

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info(f"Starting Addon Radar pipeline ({settings.environment})")
    await init_db()
    scheduling = bool(settings.curseforge_api_key)
    if scheduling:
        start_scheduler()
    else:
        logger.warning("CURSEFORGE_API_KEY not set - scheduled sync disabled")

    yield

    # Shutdown
    logger.info("Shutting down Addon Radar pipeline")
    if scheduling:
        stop_scheduler()
    await dispose_engine()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Addon Radar Pipeline",
        description="CurseForge addon ingestion and trending leaderboard calculation",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat(), "service": "addon-radar"}

    @app.get("/")
    async def root():
        """API information."""
        return {
            "service": "Addon Radar Pipeline",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    # Manual trigger endpoints (for admin use)
    @app.post("/api/v1/admin/sync")
    async def trigger_sync(_: str = Depends(verify_api_key)):
        """Manually run a full sync cycle."""
        result = await run_sync_cycle()
        return {
            "status": "completed" if result.success else "failed",
            "job": "sync",
            "fetched": result.fetched,
            "written": result.success_count,
            "errors": result.error_count,
            "error_rate": result.error_rate,
            "inactive_marked": result.inactive_marked,
            "duration_seconds": round(result.duration_seconds, 1),
            "message": result.message,
        }

    @app.post("/api/v1/admin/calculate")
    async def trigger_calculation(_: str = Depends(verify_api_key)):
        """Manually recalculate trending scores."""
        result = await run_trending_calculation()
        return {
            "status": "completed",
            "job": "calculate",
            "processed": result.processed,
            "skipped": result.skipped,
            "hot": result.hot_count,
            "rising": result.rising_count,
        }

    @app.post("/api/v1/admin/sweep")
    async def trigger_sweep(_: str = Depends(verify_api_key)):
        """Manually run the retention sweep."""
        result = await run_retention_sweep()
        return {
            "status": "completed",
            "job": "sweep",
            "snapshots_deleted": result.snapshots_deleted,
            "rank_history_deleted": result.rank_history_deleted,
            "complete": result.complete,
        }

    # Error handlers
    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "addon_radar.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
