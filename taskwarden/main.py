import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from taskwarden.config import get_settings
from taskwarden.api.routes import worklist

settings = get_settings()

# Configure application logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# Set log level for app modules
logger = logging.getLogger("taskwarden")
logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    refresh_service = worklist.get_refresh_service()
    refresh_service.start()
    try:
        yield
    finally:
        await refresh_service.stop()


app = FastAPI(
    title=settings.app_name,
    description="Unified Jira and GitHub worklist",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(worklist.router, prefix="/api/worklist", tags=["Worklist"])


@app.get("/")
async def root():
    return {
        "message": "Welcome to Taskwarden - Jira and GitHub worklist",
        "version": "0.1.0",
        "endpoints": {
            "worklist": "/api/worklist",
            "status": "/api/worklist/status",
            "refresh": "/api/worklist/refresh",
            "health": "/health",
            "docs": "/docs",
        },
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": settings.app_name}
