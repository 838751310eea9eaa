"""
Notification dispatchers: turn monitor events into something a user sees.

Real delivery (push notifications, toasts) happens outside this package; these two
implementations cover logging and in-process collection for the API status endpoint.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, Protocol

from waypoint.core.geo import format_distance, format_eta
from waypoint.domain.models import ApproachingEvent, ArrivalEvent

logger = logging.getLogger(__name__)

TrackingEvent = ApproachingEvent | ArrivalEvent


class NotificationDispatcher(Protocol):
    def notify_approaching(self, event: ApproachingEvent) -> None: ...

    def notify_arrived(self, event: ArrivalEvent) -> None: ...


def describe(event: TrackingEvent) -> str:
    """Human-readable one-liner (the text a toast would show)."""
    if isinstance(event, ApproachingEvent):
        return (
            f"Arriving at {event.destination_name} in {format_eta(event.eta_minutes)} "
            f"({format_distance(event.distance_meters)})"
        )
    return f"Arrived at {event.destination_name}!"


class LoggingDispatcher:
    def notify_approaching(self, event: ApproachingEvent) -> None:
        logger.info("%s [speed=%.1f km/h]", describe(event), event.speed_mps * 3.6)

    def notify_arrived(self, event: ArrivalEvent) -> None:
        logger.info(describe(event))


class RecordingDispatcher:
    """Keeps the most recent events in memory (bounded) and optionally forwards them."""

    def __init__(self, *, limit: int | None = None, forward_to: Iterable[NotificationDispatcher] = ()) -> None:
        self._events: deque[TrackingEvent] = deque(maxlen=limit)
        self._forward = list(forward_to)

    @property
    def events(self) -> list[TrackingEvent]:
        return list(self._events)

    def clear(self) -> None:
        self._events.clear()

    def notify_approaching(self, event: ApproachingEvent) -> None:
        self._events.append(event)
        for target in self._forward:
            target.notify_approaching(event)

    def notify_arrived(self, event: ArrivalEvent) -> None:
        self._events.append(event)
        for target in self._forward:
            target.notify_arrived(event)
