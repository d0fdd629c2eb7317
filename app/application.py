"""Application factory that builds the API from on-disk configuration."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Optional

from fastapi import FastAPI

from .api import create_app
from .config import load_settings
from .database import Database

logger = logging.getLogger("taskmanager.application")


def create_application(
    *,
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> FastAPI:
    """Create the ASGI application from configuration and environment."""

    settings = load_settings(config_path, environ)
    database = Database(settings.database_path)
    if "*" in settings.cors_origins:
        logger.warning("CORS allows any origin. Set TASKS_FRONTEND_URL to restrict it in production.")
    return create_app(settings=settings, database=database)


__all__ = ["create_application"]
