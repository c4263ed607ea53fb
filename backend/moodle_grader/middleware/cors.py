"""CORS middleware configuration."""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from moodle_grader.core.config import settings


logger = logging.getLogger(__name__)


def setup_cors_middleware(app: FastAPI) -> None:
    """
    Set up CORS middleware for the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=settings.cors_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    logger.info(
        "Configured CORS for origins %s (regex %s)",
        ", ".join(settings.cors_origins) or "none", settings.cors_origin_regex
    )
