from __future__ import annotations

# We use pytest because the repository standardizes on it for automated checks.
import pytest

# We import the real loader so tests run against the packaged defaults.yaml.
from waypoint.config.settings import get_settings
from waypoint.tracking.position_source import PositionOptions


@pytest.fixture
def fresh_settings():
    # `get_settings` is lru_cached; clear it so env/config changes in a test are visible,
    # and clear again afterwards so other tests see the packaged defaults.
    get_settings.cache_clear()
    yield get_settings
    get_settings.cache_clear()


def test_defaults_favor_fresh_high_accuracy_fixes(fresh_settings, monkeypatch):
    monkeypatch.delenv("WAYPOINT_CONFIG_PATH", raising=False)
    monkeypatch.delenv("WAYPOINT_POSITION_TIMEOUT_MS", raising=False)
    settings = fresh_settings()

    options = PositionOptions.from_settings(settings)

    # Never reuse a cached fix by default; accuracy beats battery life for arrival alerts.
    assert options.max_cache_age_ms == 0
    assert options.high_accuracy is True
    assert options.timeout_ms == 10_000


def test_destination_defaults_match_form_defaults(fresh_settings, monkeypatch):
    monkeypatch.delenv("WAYPOINT_CONFIG_PATH", raising=False)
    settings = fresh_settings()
    assert settings.destination.notify_before_minutes == 1
    assert settings.destination.radius_m == 100


def test_env_overrides_are_applied(fresh_settings, monkeypatch):
    monkeypatch.delenv("WAYPOINT_CONFIG_PATH", raising=False)
    monkeypatch.setenv("WAYPOINT_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("WAYPOINT_POSITION_TIMEOUT_MS", "2500")

    settings = fresh_settings()

    assert settings.app.log_level == "DEBUG"
    assert settings.position.timeout_ms == 2500


def test_external_config_file_replaces_packaged_defaults(fresh_settings, monkeypatch, tmp_path):
    cfg = tmp_path / "waypoint.yaml"
    cfg.write_text("app:\n  name: Test\nposition:\n  max_cache_age_ms: 30000\n", encoding="utf-8")
    monkeypatch.setenv("WAYPOINT_CONFIG_PATH", str(cfg))

    settings = fresh_settings()

    assert settings.app.name == "Test"
    assert settings.position.max_cache_age_ms == 30_000
    # Sections missing from the file fall back to model defaults.
    assert settings.destination.radius_m == 100


def test_invalid_yaml_root_is_rejected(fresh_settings, monkeypatch, tmp_path):
    cfg = tmp_path / "bad.yaml"
    cfg.write_text("- just\n- a list\n", encoding="utf-8")
    monkeypatch.setenv("WAYPOINT_CONFIG_PATH", str(cfg))

    with pytest.raises(ValueError, match="expected a mapping"):
        fresh_settings()
