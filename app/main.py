"""
Main FastAPI application.

Business record search service: full-text search, suggestions, index
maintenance, saved searches and search history.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.database import create_tables
from app.api.v1 import search, saved_searches

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Runs on startup and shutdown.
    """
    # Startup
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)
    logger.info("Starting Business Search Service")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Search limits: default={settings.search_default_limit}, max={settings.search_max_limit}")

    try:
        create_tables()
        logger.info("Database tables ready")
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down")


# Create FastAPI app
app = FastAPI(
    title="Business Search Service",
    description="Full-text search over contacts, projects and tasks",
    version="0.1.0",
    lifespan=lifespan
)

# CORS middleware (configure as needed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(search.router, prefix="/api/v1")
app.include_router(saved_searches.router, prefix="/api/v1")


@app.get("/")
def root():
    """Root endpoint with service info."""
    return {
        "service": "Business Search Service",
        "version": "0.1.0",
        "entity_types": ["contact", "project", "task"],
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """
    Health check endpoint.

    Returns status of the service and database connectivity.
    """
    from app.core.database import get_engine
    from sqlalchemy import text

    health_status = {
        "status": "healthy",
        "service": "running",
        "database": "unknown"
    }

    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        health_status["status"] = "degraded"
        health_status["database"] = f"error: {str(e)}"
        logger.warning(f"Database health check failed: {e}")

    return health_status
