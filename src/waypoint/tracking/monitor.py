"""
Proximity monitor (state machine).

The monitor sits between a position source and the notification/store collaborators:

    PositionSource -> LocationHistory -> geo math -> ProximityMonitor -> {dispatcher, store}

States:
- `idle`: not tracking, or no active destination.
- `monitoring`: tracking with an active destination; every sample is evaluated.

An *episode* runs from a destination becoming active until it is reached, replaced or
deactivated. Within one episode at most one arrival event fires, and at most one
approaching event fires until the hysteresis rule re-arms it. Episode memory is two sets
of destination ids owned here; the external `Destination` record is never mutated.

All work for a sample runs synchronously inside the source callback, so samples are
processed one at a time.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from waypoint.core.geo import distance, eta, has_arrived, should_notify, speed
from waypoint.domain.models import (
    ApproachingEvent,
    ArrivalEvent,
    Destination,
    PositionSample,
    ProximityReading,
)
from waypoint.tracking.history import HISTORY_CAPACITY, LocationHistory
from waypoint.tracking.notify import NotificationDispatcher, TrackingEvent
from waypoint.tracking.position_source import (
    ErrorCallback,
    PositionError,
    PositionOptions,
    PositionSource,
    WatchHandle,
)
from waypoint.tracking.store import DestinationStore

logger = logging.getLogger(__name__)

# Re-arm the approaching alert once ETA exceeds this multiple of the lead time.
# Heuristic kept from the product behaviour; tune here if alerts re-fire too often.
REARM_ETA_FACTOR = 2.0


class MonitorState(str, Enum):
    IDLE = "idle"
    MONITORING = "monitoring"


class ProximityMonitor:
    def __init__(
        self,
        store: DestinationStore,
        dispatcher: NotificationDispatcher,
        *,
        history_capacity: int = HISTORY_CAPACITY,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._history = LocationHistory(history_capacity)

        self._source: PositionSource | None = None
        self._handle: WatchHandle | None = None
        self._on_error: ErrorCallback | None = None

        # Episode memory.
        self._destination_id: str | None = None
        self._notified: set[str] = set()
        self._arrived: set[str] = set()

        self._reading: ProximityReading | None = None
        self._last_error: PositionError | None = None

    @property
    def state(self) -> MonitorState:
        return MonitorState.MONITORING if self._destination_id is not None else MonitorState.IDLE

    @property
    def tracking(self) -> bool:
        return self._handle is not None and self._handle.active

    @property
    def history(self) -> LocationHistory:
        return self._history

    @property
    def reading(self) -> ProximityReading | None:
        return self._reading

    @property
    def last_error(self) -> PositionError | None:
        return self._last_error

    def is_notified(self, destination_id: str) -> bool:
        return destination_id in self._notified

    def has_arrived_at(self, destination_id: str) -> bool:
        return destination_id in self._arrived

    # -- tracking lifecycle -------------------------------------------------

    def start(
        self,
        source: PositionSource,
        *,
        options: PositionOptions | None = None,
        on_error: ErrorCallback | None = None,
    ) -> WatchHandle:
        """Subscribe to `source` and begin a fresh tracking session.

        A position error ends the session: the watch is cancelled, state is reset and
        the typed error is handed to `on_error`. Restarting is up to the caller.
        """
        if self.tracking:
            self.stop()
        self._reset_episode(None)
        self._last_error = None
        self._reading = None
        self._source = source
        self._on_error = on_error
        self._handle = source.start(self.handle_sample, self._handle_error, options)
        if self.tracking:
            self.sync_destination()
        return self._handle

    def stop(self) -> None:
        """Cancel the watch and drop all episode state. Safe to call repeatedly."""
        if self._source is not None and self._handle is not None:
            self._source.stop(self._handle)
        self._handle = None
        self._source = None
        self._reset_episode(None)
        self._reading = None

    def _handle_error(self, error: PositionError) -> None:
        logger.warning("Position source error (%s): %s", error.kind.value, error.message)
        self._last_error = error
        on_error = self._on_error
        self.stop()
        if on_error is not None:
            on_error(error)

    # -- per-sample algorithm ----------------------------------------------

    def sync_destination(self) -> Destination | None:
        """Read the active destination and start a new episode if it changed."""
        destination = self._store.get_active()
        active_id = destination.id if destination is not None else None
        if active_id != self._destination_id:
            if self._destination_id is not None:
                logger.info("Active destination changed (%s -> %s); resetting episode", self._destination_id, active_id)
            self._reset_episode(active_id)
        return destination

    def handle_sample(self, sample: PositionSample) -> None:
        destination = self.sync_destination()
        if destination is None:
            return

        self._history.push(sample)
        meters = distance(sample, destination).meters

        if has_arrived(meters, destination.radius_m):
            self._record(destination, sample, meters, arrived=True)
            if destination.id not in self._arrived:
                self._arrived.add(destination.id)
                self._notified.discard(destination.id)
                logger.info("Arrived at destination %s (%.0fm from center)", destination.name, meters)
                self._mark_arrived(destination.id)
                self._dispatch(
                    self._dispatcher.notify_arrived,
                    ArrivalEvent(
                        destination_id=destination.id,
                        destination_name=destination.name,
                        distance_meters=meters,
                        occurred_at_ms=sample.captured_at_ms,
                    ),
                )
                # The store normally clears is_active right away; that ends the episode.
                self.sync_destination()
            return

        mps = speed(self._history).meters_per_second
        if mps == 0:
            # Not moving (or no usable history yet): ETA unknown for this sample.
            self._record(destination, sample, meters)
            return

        minutes = eta(meters, mps)
        self._record(destination, sample, meters, speed_mps=mps, eta_minutes=minutes)

        if should_notify(meters, mps, destination.notify_before_minutes) and destination.id not in self._notified:
            self._notified.add(destination.id)
            logger.info(
                "Proximity notification for %s: distance=%.0fm eta=%.1fmin speed=%.1fkm/h",
                destination.name,
                meters,
                minutes,
                mps * 3.6,
            )
            self._dispatch(
                self._dispatcher.notify_approaching,
                ApproachingEvent(
                    destination_id=destination.id,
                    destination_name=destination.name,
                    eta_minutes=minutes,
                    distance_meters=meters,
                    speed_mps=mps,
                    occurred_at_ms=sample.captured_at_ms,
                ),
            )

        if minutes > REARM_ETA_FACTOR * destination.notify_before_minutes:
            self._notified.discard(destination.id)

    def _record(
        self,
        destination: Destination,
        sample: PositionSample,
        meters: float,
        *,
        speed_mps: float = 0.0,
        eta_minutes: float = 0.0,
        arrived: bool = False,
    ) -> None:
        self._reading = ProximityReading(
            destination_id=destination.id,
            distance_meters=meters,
            speed_mps=speed_mps,
            eta_minutes=eta_minutes,
            arrived=arrived,
            captured_at_ms=sample.captured_at_ms,
        )

    def _mark_arrived(self, destination_id: str) -> None:
        # Fire-and-forget: a store failure must not stop sample processing.
        try:
            self._store.mark_arrived(destination_id)
        except Exception:
            logger.exception("Failed to mark destination %s as arrived", destination_id)

    def _dispatch(self, notify: Callable[[TrackingEvent], None], event: TrackingEvent) -> None:
        # A failing dispatcher must not undo episode bookkeeping or abort the sample.
        try:
            notify(event)
        except Exception:
            logger.exception("Notification dispatch failed for %s event (%s)", event.kind, event.destination_id)

    def _reset_episode(self, destination_id: str | None) -> None:
        self._history.reset()
        self._notified.clear()
        self._arrived.clear()
        self._destination_id = destination_id

