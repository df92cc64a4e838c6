"""SlotSwap API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map SlotSwapError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database and ChangeFeed created on startup via lifespan context manager

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - ChangeFeed stored on app.state: one feed per application, injected into routes
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.error_handlers import register_error_handlers
from app.api.routes import changes, health, profiles, slots, swap_requests
from app.config import get_settings
from app.infrastructure.change_feed import ChangeFeed
from app.infrastructure.database import init_db
from app.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    manager = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        isolation_level=settings.database_isolation_level,
    )
    if settings.database_create_schema:
        await manager.create_schema()
    app.state.change_feed = ChangeFeed(settings.change_feed_queue_size)
    logger.info("SlotSwap API started")
    yield
    logger.info("SlotSwap API shutting down")
    await manager.dispose()


app = FastAPI(
    title="SlotSwap API", version="1.0.0", lifespan=lifespan,
)

# CORS — configured from settings, not hardcoded
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes — explicit registration
app.include_router(health.router)
app.include_router(profiles.router)
app.include_router(slots.router)
app.include_router(swap_requests.router)
app.include_router(changes.router)

register_error_handlers(app)
