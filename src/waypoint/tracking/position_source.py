"""
Position sources: the boundary between a location platform and the proximity monitor.

A source is anything with `start/stop` plus two callback channels (sample, error) and a
cancellation handle. The monitor depends only on the `PositionSource` protocol, so it is
not tied to any event loop or reactive framework.

Two in-process implementations live here:
- `PushPositionSource`: the platform pushes fixes in (`publish`) or reports failures (`fail`);
  used by the HTTP API, where a browser/phone client posts its positions.
- `ReplayPositionSource`: a scripted sequence of fixes/errors; used by the CLI and tests.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Literal, Protocol

from waypoint.config.settings import Settings
from waypoint.core.time import now_ms
from waypoint.domain.models import PositionSample

logger = logging.getLogger(__name__)


class PositionErrorKind(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"


class PositionError(Exception):
    """Base class for classified position-source failures.

    Callers branch on the subclass (or `kind`) to pick a remediation: re-prompt for
    permission, retry later, or disable the feature.
    """

    kind: PositionErrorKind
    default_message = "An unknown error occurred while getting your location."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class PermissionDenied(PositionError):
    kind = PositionErrorKind.PERMISSION_DENIED
    default_message = "Location permission denied. Please enable location access in your device settings."


class PositionUnavailable(PositionError):
    kind = PositionErrorKind.POSITION_UNAVAILABLE
    default_message = "Location information unavailable. Please check your device settings."


class PositionTimeout(PositionError):
    kind = PositionErrorKind.TIMEOUT
    default_message = "Location request timed out. Please try again."


class Unsupported(PositionError):
    kind = PositionErrorKind.UNSUPPORTED
    default_message = "Geolocation is not supported on this platform."


_ERRORS_BY_KIND: dict[PositionErrorKind, type[PositionError]] = {
    cls.kind: cls for cls in (PermissionDenied, PositionUnavailable, PositionTimeout, Unsupported)
}


def position_error(kind: PositionErrorKind | str, message: str | None = None) -> PositionError:
    """Build the typed error for `kind` (accepts the enum or its string value)."""
    return _ERRORS_BY_KIND[PositionErrorKind(kind)](message)


@dataclass(frozen=True)
class PositionOptions:
    """Watch options. `max_cache_age_ms=0` means never reuse a cached fix."""

    high_accuracy: bool = True
    timeout_ms: int = 10_000
    max_cache_age_ms: int = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "PositionOptions":
        pos = settings.position
        return cls(
            high_accuracy=pos.high_accuracy,
            timeout_ms=pos.timeout_ms,
            max_cache_age_ms=pos.max_cache_age_ms,
        )


SampleCallback = Callable[[PositionSample], None]
ErrorCallback = Callable[[PositionError], None]


@dataclass
class PermissionResult:
    granted: bool
    sample: PositionSample | None = None
    error: PositionError | None = None


class WatchHandle:
    """Cancellation handle returned by `PositionSource.start`."""

    def __init__(self, watch_id: int, options: PositionOptions, *, active: bool = True) -> None:
        self.watch_id = watch_id
        self.options = options
        self._active = active

    @property
    def active(self) -> bool:
        return self._active

    def _deactivate(self) -> None:
        self._active = False

    def __repr__(self) -> str:
        return f"WatchHandle(watch_id={self.watch_id}, active={self._active})"


class PositionSource(Protocol):
    def supported(self) -> bool: ...

    def start(
        self,
        on_sample: SampleCallback,
        on_error: ErrorCallback,
        options: PositionOptions | None = None,
    ) -> WatchHandle: ...

    def stop(self, handle: WatchHandle) -> None: ...

    def request_permission(self) -> PermissionResult: ...


@dataclass
class _Watch:
    handle: WatchHandle
    on_sample: SampleCallback
    on_error: ErrorCallback
    last_delivery_ms: int = field(default=0)


PermissionState = Literal["granted", "denied", "prompt"]


class PushPositionSource:
    """Fan-out source fed by the caller.

    Samples are delivered to every active watch in the order they are published; this
    layer does not re-order. Errors are reported to watches but never retried, and the
    watch stays registered until its owner stops it.
    """

    def __init__(
        self,
        *,
        available: bool = True,
        permission: PermissionState = "prompt",
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._available = available
        self._permission: PermissionState = permission
        self._clock = clock
        self._ids = itertools.count(1)
        self._watches: dict[int, _Watch] = {}
        self._last_sample: PositionSample | None = None

    @property
    def permission(self) -> PermissionState:
        return self._permission

    def set_permission(self, permission: PermissionState) -> None:
        """Record the platform permission state (e.g. after the user changed it in settings)."""
        self._permission = permission

    @property
    def active_watches(self) -> int:
        return len(self._watches)

    def supported(self) -> bool:
        return self._available

    def start(
        self,
        on_sample: SampleCallback,
        on_error: ErrorCallback,
        options: PositionOptions | None = None,
    ) -> WatchHandle:
        options = options or PositionOptions()
        watch_id = next(self._ids)

        if not self._available:
            handle = WatchHandle(watch_id, options, active=False)
            on_error(Unsupported())
            return handle
        if self._permission == "denied":
            handle = WatchHandle(watch_id, options, active=False)
            on_error(PermissionDenied())
            return handle

        handle = WatchHandle(watch_id, options)
        watch = _Watch(handle=handle, on_sample=on_sample, on_error=on_error, last_delivery_ms=self._clock())
        self._watches[watch_id] = watch
        logger.debug("Position watch %s started (high_accuracy=%s)", watch_id, options.high_accuracy)

        cached = self._last_sample
        if cached is not None and self._clock() - cached.captured_at_ms <= options.max_cache_age_ms:
            self._deliver(watch, cached)
        return handle

    def stop(self, handle: WatchHandle) -> None:
        handle._deactivate()
        if self._watches.pop(handle.watch_id, None) is not None:
            logger.debug("Position watch %s stopped", handle.watch_id)

    def publish(self, sample: PositionSample) -> None:
        """Deliver one platform fix to every active watch."""
        self._last_sample = sample
        if self._permission == "prompt":
            self._permission = "granted"
        for watch in list(self._watches.values()):
            self._deliver(watch, sample)

    def fail(self, error: PositionError) -> None:
        """Report a platform failure to every active watch."""
        if isinstance(error, PermissionDenied):
            self._permission = "denied"
        for watch in list(self._watches.values()):
            if watch.handle.active:
                watch.on_error(error)

    def check_timeouts(self, now: int | None = None) -> int:
        """Report `PositionTimeout` to watches starved longer than their `timeout_ms`.

        Returns how many watches timed out. A watch's timer restarts after each report.
        """
        now = self._clock() if now is None else now
        timed_out = 0
        for watch in list(self._watches.values()):
            timeout_ms = watch.handle.options.timeout_ms
            if not watch.handle.active or timeout_ms <= 0:
                continue
            if now - watch.last_delivery_ms > timeout_ms:
                watch.last_delivery_ms = now
                timed_out += 1
                watch.on_error(PositionTimeout())
        return timed_out

    def request_permission(self) -> PermissionResult:
        """Probe permission and return the most recent fix, if any."""
        if not self._available:
            return PermissionResult(granted=False, error=Unsupported())
        if self._permission == "denied":
            return PermissionResult(granted=False, error=PermissionDenied())
        self._permission = "granted"
        return PermissionResult(granted=True, sample=self._last_sample)

    def _deliver(self, watch: _Watch, sample: PositionSample) -> None:
        # A callback earlier in this fan-out may have stopped the watch.
        if not watch.handle.active:
            return
        watch.last_delivery_ms = self._clock()
        watch.on_sample(sample)


class ReplayPositionSource(PushPositionSource):
    """Plays back a recorded script of fixes and errors."""

    def __init__(self, script: Iterable[PositionSample | PositionError], **kwargs) -> None:
        super().__init__(**kwargs)
        self._script = list(script)

    def __len__(self) -> int:
        return len(self._script)

    def request_permission(self) -> PermissionResult:
        """Probe with the first scripted item, like a single one-shot fix."""
        if not self._available:
            return PermissionResult(granted=False, error=Unsupported())
        if not self._script:
            return super().request_permission()
        first = self._script[0]
        if isinstance(first, PositionError):
            if isinstance(first, PermissionDenied):
                self._permission = "denied"
            return PermissionResult(granted=False, error=first)
        self._permission = "granted"
        return PermissionResult(granted=True, sample=first)

    def play(self) -> int:
        """Deliver the script serially; stops early once no watch is listening.

        Returns how many items were delivered.
        """
        delivered = 0
        for item in self._script:
            if not self._watches:
                break
            if isinstance(item, PositionError):
                self.fail(item)
            else:
                self.publish(item)
            delivered += 1
        return delivered
