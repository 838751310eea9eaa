"""
Destination store.

The monitor treats the store as read-mostly: it asks for the single active destination on
every sample and issues one "mark arrived" per episode. `InMemoryDestinationStore` is the
process-local implementation used by the API session, the CLI and tests; it enforces the
"at most one active destination" rule on activation.
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from waypoint.core.time import now_ms
from waypoint.domain.models import Destination

logger = logging.getLogger(__name__)


class DestinationNotFound(KeyError):
    def __init__(self, destination_id: str) -> None:
        super().__init__(destination_id)
        self.destination_id = destination_id

    def __str__(self) -> str:
        return f"Destination not found: {self.destination_id}"


class DestinationStore(Protocol):
    def get_active(self) -> Destination | None: ...

    def mark_arrived(self, destination_id: str) -> Destination: ...


class InMemoryDestinationStore:
    def __init__(self, *, clock: Callable[[], int] = now_ms) -> None:
        self._clock = clock
        self._items: dict[str, Destination] = {}

    def list(self) -> list[Destination]:
        """All destinations, newest first."""
        return sorted(self._items.values(), key=lambda d: d.created_at_ms, reverse=True)

    def get(self, destination_id: str) -> Destination:
        try:
            return self._items[destination_id]
        except KeyError:
            raise DestinationNotFound(destination_id) from None

    def get_active(self) -> Destination | None:
        return next((d for d in self._items.values() if d.is_active), None)

    def add(self, destination: Destination) -> Destination:
        """Insert or replace a destination; activating it deactivates every other one."""
        if not destination.created_at_ms:
            destination = destination.model_copy(update={"created_at_ms": self._clock()})
        if destination.is_active:
            self._deactivate_all(except_id=destination.id)
        self._items[destination.id] = destination
        return destination

    def activate(self, destination_id: str) -> Destination:
        current = self.get(destination_id)
        self._deactivate_all(except_id=destination_id)
        updated = current.model_copy(update={"is_active": True})
        self._items[destination_id] = updated
        logger.info("Destination %s (%s) is now active", updated.name, destination_id)
        return updated

    def deactivate(self, destination_id: str) -> Destination:
        updated = self.get(destination_id).model_copy(update={"is_active": False})
        self._items[destination_id] = updated
        return updated

    def delete(self, destination_id: str) -> Destination:
        removed = self.get(destination_id)
        del self._items[destination_id]
        return removed

    def mark_arrived(self, destination_id: str) -> Destination:
        """Set `arrived_at_ms` (first arrival wins) and clear `is_active`."""
        current = self.get(destination_id)
        arrived_at = current.arrived_at_ms if current.arrived_at_ms is not None else self._clock()
        updated = current.model_copy(update={"is_active": False, "arrived_at_ms": arrived_at})
        self._items[destination_id] = updated
        return updated

    def _deactivate_all(self, *, except_id: str) -> None:
        for key, dest in list(self._items.items()):
            if key != except_id and dest.is_active:
                self._items[key] = dest.model_copy(update={"is_active": False})

    def __len__(self) -> int:
        return len(self._items)
