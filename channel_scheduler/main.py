"""FastAPI application for the live channel scheduler.

This is the web service entry point. The lifespan owns every long-lived
resource: database engine, channel store, broadcast coordinator and the
scheduler (heartbeat task plus one task per recurrence job).
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from channel_scheduler.config import (
    get_broadcast_coalesce_seconds,
    get_cors_origins,
    get_database_url,
    get_frontend_dir,
    get_heartbeat_enabled,
    get_log_json,
    get_log_level,
    get_scheduler_timezone,
    get_seed_demo_channels,
    get_tick_interval_seconds,
)
from channel_scheduler.constants import WEBSOCKET_PATH
from channel_scheduler.database import create_engine, create_session_factory, init_models
from channel_scheduler.routes import channels, websocket
from channel_scheduler.services.broadcast import BroadcastCoordinator
from channel_scheduler.services.channel_store import ChannelStore
from channel_scheduler.services.scheduler import ChannelScheduler
from channel_scheduler.services.seed import seed_demo_channels
from channel_scheduler.utils.logging import configure_logging

log = structlog.get_logger()

SERVICE_NAME = "live-channel-scheduler"
SERVICE_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup/shutdown of the scheduler.

    Startup:
    - Create tables that do not exist yet (and seed demo channels if enabled)
    - Load every channel and install its jobs (two-phase initialize)
    - Start the one-second heartbeat

    Shutdown:
    - Cancel the heartbeat and every job (no timer fires afterwards)
    - Cancel pending observer pushes
    - Dispose of the engine
    """
    # Startup
    configure_logging(get_log_level(), get_log_json())

    engine = create_engine(get_database_url())
    await init_models(engine)

    store = ChannelStore(create_session_factory(engine))
    if get_seed_demo_channels():
        await seed_demo_channels(store)

    broadcaster = BroadcastCoordinator(store, coalesce_seconds=get_broadcast_coalesce_seconds())
    scheduler = ChannelScheduler(
        store,
        broadcaster,
        tick_interval=get_tick_interval_seconds(),
        timezone=get_scheduler_timezone(),
    )

    app.state.store = store
    app.state.broadcaster = broadcaster
    app.state.scheduler = scheduler

    channel_count = await scheduler.start(heartbeat=get_heartbeat_enabled())
    log.info("service_started", channel_count=channel_count)

    yield  # Application runs here

    # Shutdown
    log.info("service_shutting_down")
    await scheduler.shutdown()
    await broadcaster.close()
    await engine.dispose()


# Create FastAPI app with lifespan
app = FastAPI(
    title="Live Channel Scheduler",
    description="Countdown-driven lifecycle scheduler for simulated live channels",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(channels.router)
app.include_router(websocket.router)

# Dashboard files are optional (API-only deployments)
if os.path.isdir(get_frontend_dir()):
    app.mount("/static", StaticFiles(directory=get_frontend_dir()), name="static")


@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> JSONResponse:
    """Health check endpoint for deployment validation.

    Returns:
        JSONResponse: Status, scheduler state and registered job count
    """
    scheduler: ChannelScheduler | None = getattr(app.state, "scheduler", None)
    return JSONResponse(
        content={
            "status": "healthy",
            "service": SERVICE_NAME,
            "scheduler_running": bool(scheduler and scheduler.is_running),
            "jobs": len(scheduler.registry) if scheduler else 0,
        }
    )


@app.get("/", status_code=status.HTTP_200_OK)
async def root() -> JSONResponse:
    """Root endpoint with API information.

    Returns:
        JSONResponse: API metadata
    """
    return JSONResponse(
        content={
            "service": "Live Channel Scheduler",
            "version": SERVICE_VERSION,
            "docs": "/docs",
            "health": "/health",
            "channels": "/api/channels",
            "websocket": WEBSOCKET_PATH,
        }
    )


if __name__ == "__main__":
    import uvicorn

    # For local development
    # Binding to 0.0.0.0 is intentional for Docker compatibility
    uvicorn.run(
        "channel_scheduler.main:app",
        host="0.0.0.0",  # noqa: S104
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
