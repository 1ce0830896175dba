# app/main.py

import logging
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from redis.exceptions import RedisError

# Config and core
from app.core.config import settings as config
from app.core.errors import DistributionError
from app.core.logging_config import setup_logging
from app.core.redis import redis_client

# FastAPI routers
from app.routers.v1.api import api_router
from app.routers.webhooks import checkout_router

# Background jobs
from app.services.settlement import settle_commissions_task

# --- Init ---
logger = logging.getLogger(__name__)
scheduler = AsyncIOScheduler()

STARTUP_LOCK_KEY = "distribution_startup_lock"


# --- Error handlers ---
async def distribution_error_handler(request: Request, exc: DistributionError):
    """Business rule violations: machine-readable code plus a message for the user."""
    logger.info(f"{request.method} {request.url.path} refused: {exc.code}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Global handler for everything nobody caught.
    """
    logger.critical(f"Unhandled exception for request: {request.method} {request.url}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error. The administrator has been notified."},
    )


# --- Lifespan (startup and shutdown) ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Application lifespan startup...")

    # Only one worker runs the scheduler
    try:
        is_main_worker = await redis_client.set(STARTUP_LOCK_KEY, "1", ex=60, nx=True)
    except RedisError:
        logger.error("Redis is unavailable, the scheduler will not start on this worker.", exc_info=True)
        is_main_worker = False

    if is_main_worker:
        logger.info("This is the main worker. Running initial setup...")
        if not scheduler.running:
            scheduler.add_job(
                settle_commissions_task,
                'cron',
                hour=config.SETTLEMENT_CRON_HOUR,
                minute=config.SETTLEMENT_CRON_MINUTE,
                timezone=config.SCHEDULER_TIMEZONE,
                id="settle_commissions",
                max_instances=1,
                coalesce=True,
            )
            scheduler.start()
            logger.info("Scheduler started with background jobs.")
    else:
        logger.info("This is a secondary worker. Skipping initial setup.")

    yield

    if is_main_worker:
        logger.info("Main worker shutting down...")
        if scheduler.running:
            scheduler.shutdown()
            logger.info("Scheduler shut down.")
        await redis_client.delete(STARTUP_LOCK_KEY)
    else:
        logger.info("Secondary worker shutting down.")


# --- FastAPI app ---
app = FastAPI(
    title="Knowledge Shop Distribution Service",
    description="Affiliate commission ledger, settlement and withdrawal risk engine",
    version="0.1.0",
    lifespan=lifespan
)

origins = [
    "http://localhost",
    "http://localhost:3000",
    "http://localhost:5173",
    config.FRONTEND_URL,
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Exception handlers ---
app.add_exception_handler(DistributionError, distribution_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(api_router, prefix="/api")

# Webhooks from the checkout service
app.include_router(checkout_router, prefix="/internal/webhooks", tags=["Internal Webhooks"])
