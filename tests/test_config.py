"""Tests for configuration loading."""

from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

from order_autopilot.config import ClassifierConfig, Settings, get_settings, load_config


def write_config(tmpdir: str, text: str) -> Path:
    path = Path(tmpdir) / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_missing_config_uses_defaults(monkeypatch) -> None:
    """Test defaults when no config file exists."""
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("ORDER_AUTOPILOT_TZ", raising=False)
    monkeypatch.delenv("ANALYTICS_WEBHOOK_URL", raising=False)

    with TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "missing.yaml"
        assert load_config(path) == {}
        settings = get_settings(path)

    assert settings.log_level == "INFO"
    assert settings.coordinator.min_interval_ms == 1000
    assert settings.coordinator.accept_confidence_threshold == 0.8
    assert settings.coordinator.post_action_delay_ms == 500
    assert settings.screen.cache_window_ms == 500
    assert settings.pipeline.dedup_window_ms == 30 * 60 * 1000
    assert settings.analytics.webhook_url is None


def test_yaml_sections_are_applied(monkeypatch) -> None:
    """Test that YAML values override defaults."""
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("ORDER_AUTOPILOT_TZ", raising=False)

    with TemporaryDirectory() as tmpdir:
        path = write_config(
            tmpdir,
            """
log_level: DEBUG
timezone: Asia/Kolkata
coordinator:
  min_interval_ms: 2500
screen:
  max_depth: 10
packages:
  aliases:
    com.example.old: com.zepto.rider
  deprecated: [com.bigbasket.delivery]
paths:
  feedback_dir: /tmp/feedback
""",
        )
        settings = get_settings(path)

    assert settings.log_level == "DEBUG"
    assert settings.timezone == "Asia/Kolkata"
    assert settings.coordinator.min_interval_ms == 2500
    assert settings.screen.max_depth == 10
    assert settings.packages.aliases == {"com.example.old": "com.zepto.rider"}
    assert settings.packages.deprecated == ["com.bigbasket.delivery"]
    assert settings.paths.feedback_dir == Path("/tmp/feedback")


def test_unknown_setting_is_rejected() -> None:
    """Test that typos in config fail loudly."""
    with TemporaryDirectory() as tmpdir:
        path = write_config(tmpdir, "coordinator:\n  min_intervl_ms: 10\n")
        with pytest.raises(ValueError, match="coordinator.min_intervl_ms"):
            get_settings(path)


def test_environment_overrides(monkeypatch) -> None:
    """Test environment variable overrides."""
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.setenv("ORDER_AUTOPILOT_TZ", "UTC")
    monkeypatch.setenv("ANALYTICS_WEBHOOK_URL", "https://analytics.example.com/hook")

    with TemporaryDirectory() as tmpdir:
        settings = get_settings(write_config(tmpdir, "log_level: DEBUG\n"))

    assert settings.log_level == "WARNING"
    assert settings.timezone == "UTC"
    assert settings.analytics.webhook_url == "https://analytics.example.com/hook"


def test_classifier_tables_are_validated() -> None:
    """Test that non-monotonic tier tables are rejected."""
    ClassifierConfig().validate()

    with pytest.raises(ValueError, match="earning_weights"):
        ClassifierConfig(earning_weights=[0.9, 0.7]).validate()
    with pytest.raises(ValueError, match="descending"):
        ClassifierConfig(earning_weights=[0.3, 0.7, 0.9]).validate()
    with pytest.raises(ValueError, match="ascending"):
        ClassifierConfig(distance_cutoffs=[5.0, 2.0]).validate()

    with TemporaryDirectory() as tmpdir:
        path = write_config(tmpdir, "classifier:\n  distance_weights: [0.1, 0.5, 0.9]\n")
        with pytest.raises(ValueError):
            get_settings(path)


def test_settings_sections_are_independent() -> None:
    """Test that each Settings instance owns its sections."""
    first, second = Settings(), Settings()
    first.coordinator.min_interval_ms = 1
    assert second.coordinator.min_interval_ms == 1000
