# app/main.py

import logging
import os
import subprocess
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request

from app.core import logging_config  # noqa: F401  configures logging on import
from app.core.config import get_settings
from app.core.security import get_current_username, require_auth
from app.routes import bookings, calendar, health, platform_sync, sync, villas
from app.scheduler import get_scheduler_status, start_scheduler, stop_scheduler
from app.services.booking_sync_service import BookingSyncService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Run migrations on startup
    if os.getenv('RUN_MIGRATIONS', 'false').lower() == 'true':
        logger.info("Running database migrations...")
        result = subprocess.run(['alembic', 'upgrade', 'head'], capture_output=True, text=True)
        if result.returncode == 0:
            logger.info("Migrations completed successfully")
        else:
            logger.error(f"Migration failed: {result.stderr}")

    # One orchestrator per process so every request shares the same sync locks
    app.state.sync_service = BookingSyncService()
    await start_scheduler(app.state.sync_service)
    try:
        yield  # This is where the app runs
    finally:
        await stop_scheduler()
        written = await app.state.sync_service.sync_log.flush()
        pending = app.state.sync_service.sync_log.pending_count
        if pending:
            logger.error(f"Shutting down with {pending} sync log entries unwritten")
        elif written:
            logger.info(f"Flushed {written} buffered sync log entries on shutdown")


app = FastAPI(
    title="Villa Booking Sync",
    debug=get_settings().DEBUG,
    lifespan=lifespan
)


# Add middleware to handle HTTPS behind proxy
@app.middleware("http")
async def proxy_headers_middleware(request: Request, call_next):
    forwarded_proto = request.headers.get("x-forwarded-proto")
    if forwarded_proto == "https":
        request.scope["scheme"] = "https"
    response = await call_next(request)
    return response


# Include routers with authentication
app.include_router(villas.router, dependencies=[require_auth()])
app.include_router(bookings.router, dependencies=[require_auth()])
app.include_router(platform_sync.router, dependencies=[require_auth()])
app.include_router(sync.router, dependencies=[require_auth()])
app.include_router(calendar.router, dependencies=[require_auth()])
app.include_router(health.router)  # Health check should be accessible without auth


@app.get("/scheduler/status", dependencies=[Depends(get_current_username)])
async def scheduler_status():
    return await get_scheduler_status()
