import logging

import pytest

from waypoint.cli import main
from waypoint.core.env import get_project_root, resolve_project_path
from waypoint.core.logging import configure_logging


@pytest.fixture
def project_root(monkeypatch, tmp_path):
    monkeypatch.setenv("WAYPOINT_PROJECT_ROOT", str(tmp_path))
    get_project_root.cache_clear()
    yield tmp_path
    get_project_root.cache_clear()


def test_relative_paths_resolve_against_project_root(project_root):
    assert resolve_project_path("tracks/walk.csv") == project_root / "tracks" / "walk.csv"
    absolute = project_root / "elsewhere.csv"
    assert resolve_project_path(absolute) == absolute


def test_explicit_level_beats_settings(monkeypatch):
    monkeypatch.setenv("WAYPOINT_LOG_LEVEL", "WARNING")

    assert configure_logging("debug") == "DEBUG"
    assert logging.getLogger().level == logging.DEBUG


def test_cli_log_level_flag(capsys):
    code = main(["--log-level", "ERROR", "eta", "--from-lat", "0", "--from-lng", "0", "--to-lat", "0", "--to-lng", "0.01", "--speed-kmh", "5"])

    assert code == 0
    assert logging.getLogger().level == logging.ERROR
    assert "Distance:" in capsys.readouterr().out
