"""
PolicyAdminBot Backend - Main Application Entry Point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.config import settings
from app.core.logging import logger
from app.db.session import SessionLocal
from app.orchestration.admin import create_admin_module
from app.api.routes import bot, vehicles, admin


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} in {settings.APP_ENV} mode")
    app.state.admin = create_admin_module(settings, SessionLocal)
    yield
    # Shutdown
    logger.info("Shutting down, waiting for pending side effects...")
    await app.state.admin.side_effects.drain()


app = FastAPI(
    title=settings.APP_NAME,
    description="Policy administration chat bot back-office",
    version="1.0.0",
    lifespan=lifespan,
)

# Include API Routers
app.include_router(bot.router, prefix="/bot", tags=["Bot"])
app.include_router(vehicles.router, prefix="/vehicles", tags=["Vehicles"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "env": settings.APP_ENV,
    }
