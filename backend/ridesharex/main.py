import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from ridesharex.core.config import settings
from ridesharex.core.errors import register_exception_handlers
from ridesharex.core.logging import setup_logging
from ridesharex.db.base import Base
from ridesharex.db.session import AsyncSessionLocal, engine
from ridesharex.realtime.manager import manager
from ridesharex.workflow.outbox import OutboxDispatcher
from ridesharex.api.routers import (
    auth as auth_router,
    users as users_router,
    listings as listings_router,
    bookings as bookings_router,
    host as host_router,
    admin as admin_router,
    documents as documents_router,
    notifications as notifications_router,
)

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    dispatcher = None
    if settings.OUTBOX_DISPATCHER_ENABLED:
        dispatcher = OutboxDispatcher(app.state.session_factory, app.state.connection_manager)
        await dispatcher.start()
    logger.info("%s started (%s)", settings.PROJECT_NAME, settings.ENVIRONMENT)
    try:
        yield
    finally:
        if dispatcher is not None:
            await dispatcher.stop()
        await engine.dispose()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)
app.state.session_factory = AsyncSessionLocal
app.state.connection_manager = manager

register_exception_handlers(app)

# ---------------------------
# CORS
# ---------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------
# Static files
# ---------------------------
os.makedirs(settings.STATIC_DIR, exist_ok=True)

app.mount("/static", StaticFiles(directory=settings.STATIC_DIR), name="static")

# ---------------------------
# Routers
# ---------------------------
app.include_router(auth_router.router, prefix="/api/auth", tags=["auth"])
app.include_router(users_router.router, prefix="/api/users", tags=["users"])
app.include_router(listings_router.router, prefix="/api", tags=["listings"])
app.include_router(bookings_router.router, prefix="/api/bookings", tags=["bookings"])
app.include_router(host_router.router, prefix="/api/host", tags=["host"])
app.include_router(admin_router.router, prefix="/api/admin", tags=["admin"])
app.include_router(documents_router.router, prefix="/api/documents", tags=["documents"])
app.include_router(notifications_router.router, prefix="/api/notifications", tags=["notifications"])


# ---------------------------
# Health check
# ---------------------------
@app.get("/ping")
async def ping():
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run("ridesharex.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
