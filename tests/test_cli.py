import json
import math

from waypoint.cli import main
from waypoint.core.geo import EARTH_RADIUS_M

M_PER_DEG_LAT = EARTH_RADIUS_M * math.pi / 180


def _write_track(path, points: list[tuple[float, int]]) -> None:
    lines = ["captured_at_ms,lat,lng,accuracy_m"]
    for meters, t_ms in points:
        lines.append(f"{t_ms},{meters / M_PER_DEG_LAT!r},0.0,5")
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def test_replay_json_reports_events_and_arrival(tmp_path, capsys):
    track = tmp_path / "walk.csv"
    # 5 m/s due north of the destination, ending inside the 100m radius.
    _write_track(track, [(2000, 0), (1800, 40_000), (1600, 80_000), (1400, 120_000), (800, 240_000), (90, 382_000)])

    code = main(
        [
            "replay",
            str(track),
            "--dest-lat",
            "0",
            "--dest-lng",
            "0",
            "--name",
            "Station",
            "--notify-before",
            "5",
            "--json",
        ]
    )

    assert code == 0
    out = json.loads(capsys.readouterr().out)
    assert [e["kind"] for e in out["events"]] == ["approaching", "arrived"]
    assert out["events"][0]["destination_name"] == "Station"
    assert out["samples"] == {"delivered": 6, "parsed": 6, "skipped": 0}
    assert out["destination"]["is_active"] is False
    assert out["destination"]["arrived_at_ms"] is not None
    assert out["errors"] == []


def test_replay_without_usable_rows_exits_2(tmp_path, capsys):
    track = tmp_path / "empty.csv"
    track.write_text("captured_at_ms,lat,lng\nx,y,z\n", encoding="utf-8")

    code = main(["replay", str(track), "--dest-lat", "0", "--dest-lng", "0"])

    assert code == 2
    assert "No usable samples" in capsys.readouterr().err


def test_eta_prints_distance_and_minutes(capsys):
    to_lat = repr(1500 / M_PER_DEG_LAT)

    code = main(["eta", "--from-lat", "0", "--from-lng", "0", "--to-lat", to_lat, "--to-lng", "0", "--speed-kmh", "18"])

    assert code == 0
    out = capsys.readouterr().out
    assert "Distance: 1.5km" in out
    assert "ETA: 5 min" in out


def test_eta_json_with_zero_speed_is_unknown(capsys):
    code = main(
        ["eta", "--from-lat", "0", "--from-lng", "0", "--to-lat", "0.01", "--to-lng", "0", "--speed-kmh", "0", "--json"]
    )

    assert code == 0
    out = json.loads(capsys.readouterr().out)
    assert out["eta_minutes"] == 0
    assert out["notify"] is False
    assert out["arrived"] is False


def test_replay_text_output_lists_events(tmp_path, capsys):
    track = tmp_path / "walk.csv"
    _write_track(track, [(300, 1_700_000_000_000), (250, 1_700_000_010_000), (40, 1_700_000_052_000)])

    code = main(["replay", str(track), "--dest-lat", "0", "--dest-lng", "0", "--name", "Gate", "--notify-before", "5"])

    assert code == 0
    out = capsys.readouterr().out
    assert "Arriving at Gate in < 1 min (250m)" in out
    assert "arrived: Arrived at Gate!" in out
    assert "[2023-11-14T22:13:30+00:00]" in out
