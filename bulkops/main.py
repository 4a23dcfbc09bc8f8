"""
Board Bulk Operations - Main Application Entry Point

FastAPI application serving the issues API used by the bulk operations
workflow.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Iterable, Optional

from fastapi import FastAPI

from config import settings
from .models.issue import IssueSelection
from .web.routes import router
from .web.store import get_issue_store


def configure_logging():
    """Configure root logging for the application."""
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


logger = logging.getLogger(__name__)


def create_app(issues: Optional[Iterable[IssueSelection]] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        issues: Optional issues to seed the in-memory store with

    Returns:
        Configured FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.app_name} ({settings.environment})...")
        yield
        logger.info(f"{settings.app_name} stopped")

    if issues:
        get_issue_store().seed(issues)

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(router)

    @app.get("/health")
    async def health():
        """Liveness check."""
        return {"status": "ok", "service": settings.app_name}

    return app


def run():
    """Run the API with uvicorn."""
    import uvicorn

    configure_logging()
    uvicorn.run(create_app(), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
