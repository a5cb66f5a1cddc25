"""FastAPI application entry point.

This is the main entry point for the coding agent sidecar. Editor clients
connect to ``/ws/agent``.
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import websocket_router
from config import Settings, get_settings, init_directories


VERSION = "0.1.0"

# Configure logging to output to stdout
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

# Set specific log levels for our modules
logging.getLogger('core.task').setLevel(logging.INFO)
logging.getLogger('core.api_handler').setLevel(logging.INFO)
logging.getLogger('httpx').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    settings = app.state.settings
    init_directories(settings)

    logger.info("=" * 60)
    logger.info("Coding Agent Sidecar Starting")
    logger.info("=" * 60)
    logger.info(f"Workspace root: {settings.workspace_root}")
    logger.info(f"History dir: {settings.history_dir}")
    logger.info(f"Model: {settings.model} at {settings.api_base_url}")
    logger.info(f"API configured: {settings.is_configured}")
    logger.info(f"Current working directory: {Path.cwd()}")
    logger.info("=" * 60)

    yield

    # Shutdown
    logger.info("Coding Agent Sidecar Shutting Down")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Coding Agent Sidecar",
        description="Streaming tool-use agent for editor clients",
        version=VERSION,
        lifespan=lifespan,
        debug=settings.debug
    )
    app.state.settings = settings

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(websocket_router)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": VERSION, "configured": settings.is_configured}

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
