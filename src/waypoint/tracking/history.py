"""Bounded FIFO of recent position samples (input to the speed estimator)."""

from __future__ import annotations

from collections import deque
from typing import Iterator

from waypoint.domain.models import PositionSample

HISTORY_CAPACITY = 10


class LocationHistory:
    """Insertion-ordered ring of the last `capacity` samples.

    The only ways samples leave are FIFO eviction on `push` and a full `reset`.
    """

    def __init__(self, capacity: int = HISTORY_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._samples: deque[PositionSample] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._samples.maxlen or 0

    def push(self, sample: PositionSample) -> None:
        self._samples.append(sample)

    def reset(self) -> None:
        self._samples.clear()

    def samples(self) -> list[PositionSample]:
        return list(self._samples)

    @property
    def latest(self) -> PositionSample | None:
        return self._samples[-1] if self._samples else None

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[PositionSample]:
        return iter(list(self._samples))
