"""
API routes.

Endpoints:
- GET    `/api/health`: liveness + app name.
- GET    `/api/tracking/status`: monitor state, active destination, last reading, recent events.
- PUT    `/api/tracking/destination`: switch the active destination.
- DELETE `/api/tracking/destination`: deactivate the active destination.
- POST   `/api/tracking/start` / `/api/tracking/stop`: open or close the position watch.
- POST   `/api/tracking/positions`: push one position fix from the client device.
- POST   `/api/tracking/errors`: report a classified position failure from the client device.
- POST   `/api/tracking/permission`: record the device's location permission state.
- POST   `/api/tracking/timeouts`: report `timeout` to a watch that has gone without fixes past `timeout_ms`.
"""

from __future__ import annotations

from dataclasses import replace
from functools import lru_cache
from typing import Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from waypoint.config.settings import get_settings
from waypoint.domain.models import Destination, DestinationIn, PositionSample, TrackingStatus
from waypoint.tracking.position_source import PositionErrorKind, PositionOptions, position_error
from waypoint.tracking.session import TrackingNotStarted, TrackingSession

router = APIRouter()


class StartRequest(BaseModel):
    high_accuracy: bool | None = None
    timeout_ms: int | None = Field(default=None, ge=0)
    max_cache_age_ms: int | None = Field(default=None, ge=0)


class ErrorReport(BaseModel):
    kind: PositionErrorKind
    message: str | None = None


class PermissionUpdate(BaseModel):
    state: Literal["granted", "denied", "prompt"]


class PermissionResponse(BaseModel):
    granted: bool
    sample: PositionSample | None = None
    error: PositionErrorKind | None = None


@lru_cache
def _session() -> TrackingSession:
    return TrackingSession(get_settings())


@router.get("/api/health")
def get_health() -> dict:
    return {"status": "ok", "app": get_settings().app.name}


@router.get("/api/tracking/status", response_model=TrackingStatus)
def get_status() -> TrackingStatus:
    return _session().status()


@router.put("/api/tracking/destination", response_model=Destination)
def put_destination(payload: DestinationIn) -> Destination:
    """Make `payload` the single active destination (creates or replaces it)."""
    return _session().set_destination(payload)


@router.delete("/api/tracking/destination")
def delete_destination() -> dict:
    cleared = _session().clear_destination()
    if cleared is None:
        raise HTTPException(status_code=404, detail="No active destination")
    return {"deactivated": cleared.id}


@router.post("/api/tracking/start", response_model=TrackingStatus)
def post_start(payload: StartRequest | None = None) -> TrackingStatus:
    session = _session()
    options = PositionOptions.from_settings(session.settings)
    if payload is not None:
        overrides = payload.model_dump(exclude_none=True)
        options = replace(options, **overrides)
    return session.start(options)


@router.post("/api/tracking/stop", response_model=TrackingStatus)
def post_stop() -> TrackingStatus:
    return _session().stop()


@router.post("/api/tracking/positions", response_model=TrackingStatus)
def post_position(sample: PositionSample) -> TrackingStatus:
    try:
        return _session().push(sample)
    except TrackingNotStarted as e:
        raise HTTPException(status_code=409, detail=str(e)) from e


@router.post("/api/tracking/errors", response_model=TrackingStatus)
def post_error(report: ErrorReport) -> TrackingStatus:
    return _session().report_error(position_error(report.kind, report.message))


@router.post("/api/tracking/timeouts", response_model=TrackingStatus)
def post_check_timeouts() -> TrackingStatus:
    """Meant to be polled by the client (or a scheduler) while tracking is running."""
    session = _session()
    session.check_timeouts()
    return session.status()


@router.post("/api/tracking/permission", response_model=PermissionResponse)
def post_permission(update: PermissionUpdate) -> PermissionResponse:
    result = _session().set_permission(update.state)
    return PermissionResponse(
        granted=result.granted,
        sample=result.sample,
        error=result.error.kind if result.error is not None else None,
    )
