"""
Tracking session: one store + one push source + one monitor, behind one lock.

The HTTP API serves requests from a worker thread pool, while the monitor assumes a
single writer. Every entry point here takes `_lock`, so position pushes, error reports,
start/stop and destination switches are processed one at a time.
"""

from __future__ import annotations

import threading

from waypoint.config.settings import Settings
from waypoint.domain.models import Destination, DestinationIn, PositionSample, TrackingStatus
from waypoint.tracking.monitor import ProximityMonitor
from waypoint.tracking.notify import LoggingDispatcher, NotificationDispatcher, RecordingDispatcher
from waypoint.tracking.position_source import (
    PermissionResult,
    PermissionState,
    PositionError,
    PositionOptions,
    PushPositionSource,
)
from waypoint.tracking.store import InMemoryDestinationStore


class TrackingNotStarted(RuntimeError):
    pass


class TrackingSession:
    def __init__(
        self,
        settings: Settings,
        *,
        source: PushPositionSource | None = None,
        store: InMemoryDestinationStore | None = None,
        dispatchers: list[NotificationDispatcher] | None = None,
    ) -> None:
        self.settings = settings
        self.source = source or PushPositionSource()
        self.store = store or InMemoryDestinationStore()
        self.recorder = RecordingDispatcher(
            limit=settings.app.recent_events_limit,
            forward_to=dispatchers if dispatchers is not None else [LoggingDispatcher()],
        )
        self.monitor = ProximityMonitor(self.store, self.recorder)
        self._lock = threading.Lock()

    def start(self, options: PositionOptions | None = None) -> TrackingStatus:
        with self._lock:
            self.monitor.start(self.source, options=options or PositionOptions.from_settings(self.settings))
            return self._status()

    def stop(self) -> TrackingStatus:
        with self._lock:
            self.monitor.stop()
            return self._status()

    def push(self, sample: PositionSample) -> TrackingStatus:
        with self._lock:
            if not self.monitor.tracking:
                raise TrackingNotStarted("Tracking is not running; start it before pushing positions.")
            self.source.publish(sample)
            return self._status()

    def report_error(self, error: PositionError) -> TrackingStatus:
        with self._lock:
            self.source.fail(error)
            return self._status()

    def set_permission(self, permission: PermissionState) -> PermissionResult:
        with self._lock:
            self.source.set_permission(permission)
            return self.source.request_permission()

    def check_timeouts(self) -> int:
        with self._lock:
            return self.source.check_timeouts()

    def set_destination(self, payload: DestinationIn) -> Destination:
        """Activate `payload` as the single tracked destination (insert or replace)."""
        defaults = self.settings.destination
        data = payload.model_dump(exclude_none=True)
        data.setdefault("notify_before_minutes", defaults.notify_before_minutes)
        data.setdefault("radius_m", defaults.radius_m)
        with self._lock:
            existing = data.get("id")
            if existing:
                try:
                    created_at = self.store.get(existing).created_at_ms
                except KeyError:
                    created_at = 0
                data["created_at_ms"] = created_at
            destination = self.store.add(Destination(**data, is_active=True))
            if self.monitor.tracking:
                self.monitor.sync_destination()
            return destination

    def clear_destination(self) -> Destination | None:
        with self._lock:
            active = self.store.get_active()
            if active is not None:
                self.store.deactivate(active.id)
            if self.monitor.tracking:
                self.monitor.sync_destination()
            return active

    def status(self) -> TrackingStatus:
        with self._lock:
            return self._status()

    def _status(self) -> TrackingStatus:
        error = self.monitor.last_error
        return TrackingStatus(
            state=self.monitor.state.value,
            tracking=self.monitor.tracking,
            destination=self.store.get_active(),
            reading=self.monitor.reading,
            last_error=error.kind.value if error is not None else None,
            events=self.recorder.events,
        )
