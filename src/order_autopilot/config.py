"""Configuration management."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml


@dataclass
class PipelineConfig:
    """Event intake settings."""
    workers: int = 4
    queue_size: int = 64
    dedup_window_ms: int = 30 * 60 * 1000


@dataclass
class CoordinatorConfig:
    """Acceptance state machine settings."""
    min_interval_ms: int = 1000
    accept_confidence_threshold: float = 0.8
    locate_timeout_ms: int = 1500
    post_action_delay_ms: int = 500
    confirmation_timeout_ms: int = 3000
    confirmation_attempts: int = 3
    activation_retries: int = 2
    retry_backoff_ms: int = 200
    attempt_budget_ms: int = 8000
    wake_lock_timeout_ms: int = 10000
    # Launcher and analytics calls after an accept, run outside the attempt
    follow_up_timeout_ms: int = 5000
    # 0 disables the staleness check
    max_signal_age_ms: int = 0
    # Battery-aware throttling (percent thresholds and their intervals)
    low_battery_threshold: int = 15
    medium_battery_threshold: int = 30
    low_battery_interval_ms: int = 5000
    medium_battery_interval_ms: int = 2000


@dataclass
class ScreenConfig:
    """Screen analysis settings."""
    cache_window_ms: int = 500
    max_depth: int = 25
    max_nodes: int = 2000
    confirmation_max_depth: int = 5
    visual_confidence_threshold: float = 0.75


@dataclass
class ClassifierConfig:
    """Classifier thresholds."""
    earning_cutoffs: list[float] = field(default_factory=lambda: [200.0, 150.0])
    earning_weights: list[float] = field(default_factory=lambda: [0.9, 0.7, 0.3])
    distance_cutoffs: list[float] = field(default_factory=lambda: [2.0, 5.0])
    distance_weights: list[float] = field(default_factory=lambda: [0.9, 0.6, 0.2])
    neutral_distance_weight: float = 0.5
    busy_hours: list[int] = field(default_factory=lambda: [17, 18, 19, 20, 21])
    busy_weekdays: list[int] = field(default_factory=lambda: [6, 7])
    busy_weight: float = 0.8
    off_peak_weight: float = 0.4
    low_value_threshold: float = 100.0
    low_value_weight: float = 0.8
    normal_value_weight: float = 0.2
    standard_weight: float = 0.5

    def validate(self) -> None:
        """Reject tier tables that would break monotonic weighting."""
        if len(self.earning_weights) != len(self.earning_cutoffs) + 1:
            raise ValueError("earning_weights needs one more entry than earning_cutoffs")
        if len(self.distance_weights) != len(self.distance_cutoffs) + 1:
            raise ValueError("distance_weights needs one more entry than distance_cutoffs")
        if self.earning_cutoffs != sorted(self.earning_cutoffs, reverse=True):
            raise ValueError("earning_cutoffs must be descending")
        if self.earning_weights != sorted(self.earning_weights, reverse=True):
            raise ValueError("earning_weights must be descending")
        if self.distance_cutoffs != sorted(self.distance_cutoffs):
            raise ValueError("distance_cutoffs must be ascending")
        if self.distance_weights != sorted(self.distance_weights, reverse=True):
            raise ValueError("distance_weights must be descending")


@dataclass
class PrioritizationConfig:
    """Default user weights."""
    earnings_weight: float = 0.5
    distance_weight: float = 0.3
    time_weight: float = 0.2


@dataclass
class PackagesConfig:
    """Extra package renames and deprecations."""
    aliases: dict = field(default_factory=dict)
    deprecated: list[str] = field(default_factory=list)


@dataclass
class PathsConfig:
    """Path settings."""
    platforms_file: Path = Path("platforms.yaml")
    feedback_dir: Path = Path("feedback")


@dataclass
class AnalyticsConfig:
    """Analytics webhook settings."""
    webhook_url: Optional[str] = None
    timeout: float = 10.0
    max_retries: int = 3
    initial_retry_delay: float = 1.0


@dataclass
class Settings:
    """Application settings."""

    log_level: str = "INFO"
    timezone: Optional[str] = None

    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    coordinator: CoordinatorConfig = field(default_factory=CoordinatorConfig)
    screen: ScreenConfig = field(default_factory=ScreenConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    prioritization: PrioritizationConfig = field(default_factory=PrioritizationConfig)
    packages: PackagesConfig = field(default_factory=PackagesConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)


def load_config(config_path: Path = Path("config.yaml")) -> dict:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_settings(config_path: Path = Path("config.yaml")) -> Settings:
    """Get application settings from YAML config and environment."""
    config = load_config(config_path)

    settings = Settings()

    if "log_level" in config:
        settings.log_level = str(config["log_level"])
    if "timezone" in config:
        settings.timezone = config["timezone"]

    for section in ("pipeline", "coordinator", "screen", "classifier", "prioritization", "analytics"):
        if section in config:
            target = getattr(settings, section)
            for key, value in (config[section] or {}).items():
                if not hasattr(target, key):
                    raise ValueError(f"Unknown setting {section}.{key}")
                setattr(target, key, value)

    if "packages" in config:
        settings.packages = PackagesConfig(**(config["packages"] or {}))

    if "paths" in config:
        for key, value in (config["paths"] or {}).items():
            setattr(settings.paths, key, Path(value))

    # Environment overrides
    settings.log_level = os.getenv("LOG_LEVEL", settings.log_level)
    settings.timezone = os.getenv("ORDER_AUTOPILOT_TZ", settings.timezone)
    webhook_url = os.getenv("ANALYTICS_WEBHOOK_URL")
    if webhook_url:
        settings.analytics.webhook_url = webhook_url

    settings.classifier.validate()
    return settings
