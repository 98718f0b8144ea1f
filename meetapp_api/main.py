"""Meeting application assembler - FastAPI application."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import make_asgi_app

from meetapp_api import __version__
from meetapp_api.middleware.api_key import ApiKeyMiddleware
from meetapp_api.routes import applications, callbacks
from meetapp_api.settings import get_settings

# Configure logging
logging.basicConfig(
    level=get_settings().log_level,
    format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s", "module": "%(name)s"}',
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting meeting application assembler API...")
    try:
        settings.validate_production_settings()
    except ValueError as e:
        logger.error(f"Configuration validation failed: {e}")
        raise
    yield
    logger.info("Shutting down meeting application assembler API...")


app = FastAPI(
    title="Meeting Application Assembler",
    description="Assembles meeting application PDFs from storage files and registry messages",
    version=__version__,
    lifespan=lifespan,
)

settings = get_settings()

app.add_middleware(ApiKeyMiddleware)

# Prometheus metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# Register routers
app.include_router(applications.router)
app.include_router(callbacks.router)


@app.get("/health")
async def health_check():
    """Health check endpoint (basic liveness)."""
    return {
        "status": "healthy",
        "service": "meetapp-api",
        "version": __version__,
    }
