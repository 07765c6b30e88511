"""FastAPI lifecycle management for shared resources.

This module centralizes startup and shutdown handling for:
- ExtractionSettings (read from the environment once)
- DatabaseManager (only when DATABASE_URL is configured)
- LinkStore (database-backed, or in-memory without a database)
- MetadataExtractor and PreviewService (with its refresh worker pool)

Tests can pre-populate ``app.state`` with their own instances; startup
leaves anything already present untouched.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from linkpreview import config as app_config
from linkpreview.config import ExtractionSettings
from linkpreview.crawler import MetadataExtractor
from linkpreview.crawler.utils import mask_credentials
from linkpreview.models.database import DatabaseManager
from linkpreview.services.link_store import DatabaseLinkStore, InMemoryLinkStore
from linkpreview.services.preview_service import PreviewService

logger = logging.getLogger(__name__)


def _missing(app: FastAPI, name: str) -> bool:
    return getattr(app.state, name, None) is None


async def startup_resources(app: FastAPI) -> None:
    """Initialize shared resources for the FastAPI app.

    Args:
        app: The FastAPI application instance
    """
    logger.info("Starting resource initialization...")

    if _missing(app, "settings"):
        app.state.settings = ExtractionSettings.from_env()

    # 1. DatabaseManager, only when a database is configured
    if _missing(app, "db_manager") and _missing(app, "link_store"):
        if app_config.DATABASE_URL:
            try:
                app.state.db_manager = DatabaseManager(app_config.DATABASE_URL)
                logger.info(
                    f"DatabaseManager initialized: "
                    f"{mask_credentials(app_config.DATABASE_URL)[:60]}"
                )
            except Exception as exc:
                logger.exception("Failed to initialize DatabaseManager", exc_info=exc)
                app.state.db_manager = None
        else:
            app.state.db_manager = None

    # 2. Link store
    if _missing(app, "link_store"):
        db_manager = getattr(app.state, "db_manager", None)
        if db_manager is not None:
            app.state.link_store = DatabaseLinkStore(db_manager)
            logger.info("Using database link store")
        else:
            app.state.link_store = InMemoryLinkStore()
            logger.info("Using in-memory link store (DATABASE_URL not set)")

    # 3. Extraction engine and serving layer
    if _missing(app, "extractor"):
        app.state.extractor = MetadataExtractor(app.state.settings)
    if _missing(app, "preview_service"):
        app.state.preview_service = PreviewService(
            app.state.link_store,
            extractor=app.state.extractor,
            settings=app.state.settings,
        )

    app.state.ready = True
    logger.info("All resources initialized, app is ready")


async def shutdown_resources(app: FastAPI) -> None:
    """Clean up shared resources gracefully."""
    logger.info("Starting resource cleanup...")

    service = getattr(app.state, "preview_service", None)
    if service is not None:
        try:
            service.close()
        except Exception as exc:
            logger.exception("Error shutting down PreviewService", exc_info=exc)

    db_manager = getattr(app.state, "db_manager", None)
    if db_manager is not None:
        try:
            logger.info("Disposing DatabaseManager engine...")
            db_manager.close()
        except Exception as exc:
            logger.exception("Error disposing DatabaseManager", exc_info=exc)

    app.state.ready = False
    logger.info("Resource cleanup complete")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize resources before serving and release them afterwards."""
    await startup_resources(app)
    yield
    await shutdown_resources(app)


# Dependency injection functions for route handlers


def get_preview_service(request: Request) -> PreviewService:
    """Dependency that provides the shared PreviewService.

    Tests can override this dependency to inject a service built on a fake
    fetcher.
    """
    return request.app.state.preview_service


def get_extractor(request: Request) -> MetadataExtractor:
    return request.app.state.extractor


def get_db_manager(request: Request) -> Optional[DatabaseManager]:
    return getattr(request.app.state, "db_manager", None)


def is_ready(request: Request) -> bool:
    return getattr(request.app.state, "ready", False)


def check_db_health(db_manager: Optional[DatabaseManager]) -> tuple[bool, str]:
    """Perform a lightweight database health check.

    Returns:
        Tuple of (is_healthy, message)
    """
    if db_manager is None:
        return True, "No database configured (in-memory link store)"

    try:
        with db_manager.get_session() as session:
            session.execute(text("SELECT 1"))
        return True, "Database connection OK"
    except OperationalError as exc:
        return False, f"Database connection failed: {exc}"
    except Exception as exc:
        return False, f"Database health check error: {exc}"
