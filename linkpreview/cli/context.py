"""Shared CLI helpers: logging setup and store construction."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from linkpreview.config import DATABASE_URL, ExtractionSettings
from linkpreview.models.database import DatabaseManager
from linkpreview.services.link_store import DatabaseLinkStore


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for CLI runs. Logs go to stderr so stdout stays parseable."""
    log_level = getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
    # urllib3 connection chatter drowns out strategy logs at DEBUG
    logging.getLogger("urllib3").setLevel(max(log_level, logging.INFO))


def load_settings() -> ExtractionSettings:
    return ExtractionSettings.from_env()


def open_database_store(database_url: Optional[str]) -> Optional[DatabaseLinkStore]:
    url = database_url or DATABASE_URL
    if not url:
        return None
    return DatabaseLinkStore(DatabaseManager(url))
