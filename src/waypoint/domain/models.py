"""
Domain models (Pydantic).

These types represent the stable "contract" between layers:
- tracking inputs (`PositionSample`, `Destination`)
- tracking outputs (`ApproachingEvent`, `ArrivalEvent`, `ProximityReading`)
- API payloads (`DestinationIn`, `TrackingStatus`)

Keeping these models in one place helps:
- validation (reject impossible coordinates early),
- typed refactors,
- consistent JSON output across CLI/API.
"""

from __future__ import annotations

import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class Coordinate(BaseModel):
    """A geographic point in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class PositionSample(BaseModel):
    """One fix from a position source. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    accuracy_m: float = Field(0.0, ge=0)
    captured_at_ms: int


class Destination(BaseModel):
    """A place the user wants to be alerted about before and on arrival."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    address: str | None = None
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    notify_before_minutes: float = Field(1, ge=1, le=60)
    radius_m: float = Field(100, ge=10, le=1000)
    is_active: bool = False
    created_at_ms: int = 0
    arrived_at_ms: int | None = None


class DestinationIn(BaseModel):
    """API payload for switching the active destination."""

    id: str | None = None
    name: str = Field(..., min_length=1)
    address: str | None = None
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    notify_before_minutes: float | None = Field(default=None, ge=1, le=60)
    radius_m: float | None = Field(default=None, ge=10, le=1000)


class ApproachingEvent(BaseModel):
    """Fired once per episode when the ETA drops under the destination's lead time."""

    kind: Literal["approaching"] = "approaching"
    destination_id: str
    destination_name: str
    eta_minutes: float
    distance_meters: float
    speed_mps: float
    occurred_at_ms: int


class ArrivalEvent(BaseModel):
    """Fired once per episode when a sample lands inside the destination radius."""

    kind: Literal["arrived"] = "arrived"
    destination_id: str
    destination_name: str
    distance_meters: float
    occurred_at_ms: int


class ProximityReading(BaseModel):
    """The last per-sample computation against the active destination.

    `eta_minutes == 0` means "unknown" (not moving, or no usable speed yet),
    never "already there"; use `arrived` for that.
    """

    destination_id: str
    distance_meters: float
    speed_mps: float
    eta_minutes: float
    arrived: bool
    captured_at_ms: int


class TrackingStatus(BaseModel):
    state: Literal["idle", "monitoring"]
    tracking: bool
    destination: Destination | None = None
    reading: ProximityReading | None = None
    last_error: str | None = None
    events: list[ApproachingEvent | ArrivalEvent] = Field(default_factory=list)
