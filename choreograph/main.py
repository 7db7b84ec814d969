from contextlib import asynccontextmanager
from typing import AsyncGenerator
import os
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.concurrency import run_in_threadpool
from alembic.config import Config
from alembic import command

from choreograph.db import init_db
from choreograph.core import get_settings
from choreograph.core.errors import register_exception_handlers
from choreograph.core.middleware import RequestLoggingMiddleware
from choreograph.api.v1 import api_router
from choreograph.logs import api_logger, configure_logging

# Get application settings
settings = get_settings()

ALEMBIC_INI = os.path.join(Path(__file__).parent.parent, "alembic.ini")


def run_migrations() -> None:
    alembic_cfg = Config(ALEMBIC_INI)
    command.upgrade(alembic_cfg, "head")


# Lifespan event handler
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_logging(settings.LOG_DIR, settings.DEBUG)
    try:
        if settings.RUN_MIGRATIONS:
            # alembic's async env runs its own event loop
            await run_in_threadpool(run_migrations)
            api_logger.info("Database migrations applied")
        else:
            await init_db()
            api_logger.info("Database tables created from models")
    except Exception as e:
        api_logger.error(f"Error preparing the database: {e}")
        raise

    yield

# Initialize FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="API for collaborative kanban projects",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
    max_age=3600,
)

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

# Include API router
app.include_router(api_router)

@app.get("/")
async def root(request: Request):
    """Health check endpoint"""
    api_logger.info(f"Received health check request: {request.method} {request.url}")
    return {"message": f"{settings.PROJECT_NAME} is running"}


if __name__ == "__main__":
    import uvicorn

    api_logger.info("Server starting on http://0.0.0.0:8000")

    uvicorn.run(
        "choreograph.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="info"
    )
