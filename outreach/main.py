"""
Application entrypoint with database pool and cache lifecycle management.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from outreach.config import settings
from outreach.db.pool import db_pool
from outreach.features.inbox.api import router as inbox_router
from outreach.infrastructure.observability.logging import get_logger, setup_logging
from outreach.middleware import CORSMiddleware, RequestContextMiddleware
from outreach.routes import health, migration, pipeline, threads
from outreach.services.infrastructure.redis_client import fast_redis

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""
    logger.info(
        "Application starting",
        environment=settings.environment,
        debug=settings.debug,
        local_cache_backend=settings.LOCAL_CACHE_BACKEND,
    )

    startup_tasks = []

    try:
        logger.info("Initializing database pool")
        await db_pool.initialize()
        startup_tasks.append("database_pool")

        if settings.uses_redis_cache():
            logger.info("Initializing Redis connection")
            await fast_redis.initialize()
            startup_tasks.append("redis")

        logger.info("All services initialized successfully", services=startup_tasks)

    except Exception as e:
        logger.error("Failed to initialize services", error=str(e), completed_tasks=startup_tasks)

        # Clean up any successfully initialized services in reverse order
        if "redis" in startup_tasks:
            await fast_redis.close()
        if "database_pool" in startup_tasks:
            await db_pool.close()

        raise

    yield

    logger.info("Application shutting down")

    shutdown_errors = []

    if "redis" in startup_tasks:
        try:
            await fast_redis.close()
        except Exception as e:
            logger.error("Error closing Redis", error=str(e))
            shutdown_errors.append(f"Redis: {e}")

    # Close database pool last (may have active connections)
    try:
        await db_pool.close()
    except Exception as e:
        logger.error("Error closing database pool", error=str(e))
        shutdown_errors.append(f"Database: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="Outreach CRM",
    description="Business outreach pipeline: inbound email matching, threads, stages and migration",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router)
app.include_router(inbox_router.router)
app.include_router(threads.router)
app.include_router(pipeline.router)
app.include_router(migration.router)

# Last added runs first: CORS answers preflights before request context is built
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allowed_origins=settings.CORS_ALLOWED_ORIGINS,
    allowed_origin_suffix=settings.CORS_ALLOW_PREVIEW_SUFFIX,
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
