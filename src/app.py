"""Main FastAPI application module.

This module initializes the FastAPI application and registers all route handlers.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.logging_config import setup_logging
from config import (
    CORS_ALLOWED_ORIGINS,
    API_HOST,
    API_PORT,
)
from api.routes import admin, admin_auth, attendance, auth, class_route, notifications
from core.database import init_db
from core.error_handlers import register_error_handlers

# Setup logging
setup_logging()

logger = logging.getLogger(__name__)

# Initialize FastAPI application
app = FastAPI(
    title="Academic Notifications API",
    description="Backend API for academic notifications, one-time code login and class administration.",
    version="1.0.0",
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Register route handlers
app.include_router(auth.router)
app.include_router(admin_auth.router)
app.include_router(notifications.router)
app.include_router(admin.router)
app.include_router(class_route.router)
app.include_router(attendance.router)


@app.on_event("startup")
def startup_tasks() -> None:
    """Create missing database tables."""
    init_db()
    logger.info("Database initialized")


@app.get("/", summary="API root", tags=["Info"])
def root() -> dict:
    """Return API information and documentation links.

    Returns:
        Dictionary with API information and documentation links.
    """
    return {
        "name": "Academic Notifications API",
        "version": "1.0.0",
        "docs": {
            "swagger": "/docs",
            "redoc": "/redoc",
        },
        "health": "/api/health",
    }


@app.get("/api/health", summary="Health check", tags=["Health"])
def health() -> dict:
    """Health check endpoint.

    Returns:
        Dictionary with status "ok".
    """
    return {"status": "ok"}


# --- Startup code for direct execution ---
if __name__ == "__main__":
    import uvicorn

    server_url = f"http://{API_HOST}:{API_PORT}"
    logger.info("Starting Academic Notifications API at %s (docs: %s/docs)", server_url, server_url)

    uvicorn.run("app:app", host=API_HOST, port=API_PORT, reload=True)
