# src/waypoint/api/app.py
"""
FastAPI application wiring.

This file creates the `FastAPI` instance and applies CORS.
Tracking logic lives in `waypoint.api.routes` and `waypoint.tracking`.
"""

from __future__ import annotations

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from waypoint.config.settings import get_settings
from waypoint.core.logging import configure_logging

from .routes import router

configure_logging()

settings = get_settings()

app = FastAPI(title="Waypoint API", version="0.1.0")

# CORS (dev-friendly): the position-pushing client usually runs on a local dev server.
# Configure via `api.cors_origins` in YAML or WAYPOINT_CORS_ORIGINS="http://localhost:3000,...".
cors_origins = settings.api.cors_origins
cors_origin_regex = (
    r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$" if settings.api.cors_allow_local and not cors_origins else ""
)
if cors_origins or cors_origin_regex:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_origin_regex=cors_origin_regex or None,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(router)
