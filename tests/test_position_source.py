import pytest

from waypoint.domain.models import PositionSample
from waypoint.tracking.position_source import (
    PermissionDenied,
    PositionError,
    PositionErrorKind,
    PositionOptions,
    PositionTimeout,
    PositionUnavailable,
    PushPositionSource,
    ReplayPositionSource,
    Unsupported,
    position_error,
)


class FakeClock:
    def __init__(self, now: int = 0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def _sample(t_ms: int) -> PositionSample:
    return PositionSample(lat=25.0, lng=121.5, accuracy_m=5.0, captured_at_ms=t_ms)


def test_publish_delivers_samples_in_order_until_stopped():
    source = PushPositionSource()
    seen: list[int] = []
    errors: list[PositionError] = []

    handle = source.start(lambda s: seen.append(s.captured_at_ms), errors.append)
    source.publish(_sample(1))
    source.publish(_sample(2))
    source.stop(handle)
    source.publish(_sample(3))

    assert seen == [1, 2]
    assert errors == []
    assert handle.active is False
    assert source.active_watches == 0


def test_stop_is_idempotent():
    source = PushPositionSource()
    handle = source.start(lambda s: None, lambda e: None)
    source.stop(handle)
    source.stop(handle)
    assert handle.active is False


def test_start_on_unsupported_platform_reports_unsupported():
    source = PushPositionSource(available=False)
    errors: list[PositionError] = []

    handle = source.start(lambda s: None, errors.append)

    assert source.supported() is False
    assert handle.active is False
    assert len(errors) == 1
    assert isinstance(errors[0], Unsupported)
    assert errors[0].kind is PositionErrorKind.UNSUPPORTED
    # Stopping an already-dead handle is safe.
    source.stop(handle)


def test_start_with_denied_permission_reports_permission_denied():
    source = PushPositionSource(permission="denied")
    errors: list[PositionError] = []

    handle = source.start(lambda s: None, errors.append)

    assert handle.active is False
    assert [type(e) for e in errors] == [PermissionDenied]


def test_fail_reports_typed_error_without_stopping_the_watch():
    source = PushPositionSource()
    errors: list[PositionError] = []
    handle = source.start(lambda s: None, errors.append)

    source.fail(PositionUnavailable())

    assert isinstance(errors[0], PositionUnavailable)
    assert errors[0].kind.value == "position_unavailable"
    assert "unavailable" in errors[0].message
    assert handle.active is True


def test_permission_denied_failure_sticks_to_the_source():
    source = PushPositionSource()
    source.start(lambda s: None, lambda e: None)
    source.fail(PermissionDenied())
    assert source.permission == "denied"


@pytest.mark.parametrize(
    "kind,cls",
    [
        ("permission_denied", PermissionDenied),
        ("position_unavailable", PositionUnavailable),
        ("timeout", PositionTimeout),
        (PositionErrorKind.UNSUPPORTED, Unsupported),
    ],
)
def test_position_error_factory(kind, cls):
    err = position_error(kind)
    assert isinstance(err, cls)
    assert str(err) == cls.default_message


def test_check_timeouts_reports_starved_watches():
    clock = FakeClock(0)
    source = PushPositionSource(clock=clock)
    errors: list[PositionError] = []
    source.start(lambda s: None, errors.append, PositionOptions(timeout_ms=1_000))

    clock.now = 900
    assert source.check_timeouts() == 0
    source.publish(_sample(900))

    clock.now = 1_800
    assert source.check_timeouts() == 0

    clock.now = 2_000
    assert source.check_timeouts() == 1
    assert isinstance(errors[0], PositionTimeout)

    # The timer restarts after a report.
    assert source.check_timeouts() == 0


def test_cached_fix_is_reused_only_when_fresh_enough():
    clock = FakeClock(10_000)
    source = PushPositionSource(clock=clock)
    source.publish(_sample(9_000))

    fresh: list[PositionSample] = []
    source.start(fresh.append, lambda e: None, PositionOptions(max_cache_age_ms=0))
    assert fresh == []

    cached: list[PositionSample] = []
    source.start(cached.append, lambda e: None, PositionOptions(max_cache_age_ms=5_000))
    assert cached == [_sample(9_000)]


def test_request_permission_returns_last_fix():
    source = PushPositionSource()
    source.publish(_sample(5))

    result = source.request_permission()

    assert result.granted is True
    assert result.sample == _sample(5)
    assert result.error is None


def test_request_permission_on_unsupported_platform():
    result = PushPositionSource(available=False).request_permission()
    assert result.granted is False
    assert isinstance(result.error, Unsupported)


def test_replay_permission_probe_uses_first_item():
    ok = ReplayPositionSource([_sample(1), _sample(2)])
    result = ok.request_permission()
    assert result.granted is True
    assert result.sample == _sample(1)

    denied = ReplayPositionSource([PermissionDenied(), _sample(2)])
    result = denied.request_permission()
    assert result.granted is False
    assert isinstance(result.error, PermissionDenied)
    assert denied.permission == "denied"


def test_replay_plays_samples_and_errors_in_script_order():
    source = ReplayPositionSource([_sample(1), PositionTimeout(), _sample(2)])
    events: list[object] = []
    source.start(lambda s: events.append(s.captured_at_ms), lambda e: events.append(e.kind))

    delivered = source.play()

    assert delivered == 3
    assert events == [1, PositionErrorKind.TIMEOUT, 2]


def test_replay_stops_when_the_listener_stops_its_watch():
    source = ReplayPositionSource([_sample(i) for i in range(5)])
    seen: list[int] = []

    def on_sample(sample: PositionSample) -> None:
        seen.append(sample.captured_at_ms)
        if len(seen) == 2:
            source.stop(handle)

    handle = source.start(on_sample, lambda e: None)

    assert source.play() == 2
    assert seen == [0, 1]
