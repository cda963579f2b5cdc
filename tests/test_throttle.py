"""Tests for rate limiting and duplicate suppression."""

from unittest.mock import Mock

from order_autopilot.adapters.device import StaticBattery
from order_autopilot.config import CoordinatorConfig
from order_autopilot.core import PlatformId, RateLimiter, RecentNotifications, ThrottlePolicy


def test_interval_without_battery_probe() -> None:
    """Test the base interval."""
    assert ThrottlePolicy(CoordinatorConfig()).current_interval_ms() == 1000


def test_interval_follows_battery_bands() -> None:
    """Test that low battery stretches the interval."""
    config = CoordinatorConfig()

    assert ThrottlePolicy(config, StaticBattery(level=10)).current_interval_ms() == 5000
    assert ThrottlePolicy(config, StaticBattery(level=15)).current_interval_ms() == 5000
    assert ThrottlePolicy(config, StaticBattery(level=25)).current_interval_ms() == 2000
    assert ThrottlePolicy(config, StaticBattery(level=80)).current_interval_ms() == 1000
    assert ThrottlePolicy(config, StaticBattery(level=10, charging=True)).current_interval_ms() == 1000


def test_failing_battery_probe_uses_base_interval() -> None:
    """Test that probe errors do not stop throttling."""
    battery = Mock()
    battery.is_charging.side_effect = RuntimeError("no battery service")

    assert ThrottlePolicy(CoordinatorConfig(), battery).current_interval_ms() == 1000


def test_rate_limiter_per_platform() -> None:
    """Test minimum spacing between processed signals."""
    limiter = RateLimiter(ThrottlePolicy(CoordinatorConfig(min_interval_ms=1000)))

    assert limiter.allow(PlatformId.SWIGGY, 0)
    limiter.mark(PlatformId.SWIGGY, 0)

    assert not limiter.allow(PlatformId.SWIGGY, 500)
    assert limiter.allow(PlatformId.SWIGGY, 1000)
    assert limiter.allow(PlatformId.ZOMATO, 500)

    limiter.reset()
    assert limiter.allow(PlatformId.SWIGGY, 1)


def test_recent_notifications_window() -> None:
    """Test that reposted notifications are processed once per window."""
    recent = RecentNotifications(window_ms=1000)

    assert recent.check_and_remember("pkg", "New Order: ₹150", "3 km", 0)
    assert not recent.check_and_remember("pkg", "New Order: ₹150", "3 km", 500)
    assert recent.check_and_remember("pkg", "New Order: ₹150", "4 km", 500)
    assert len(recent) == 2

    # Entries expire after the window
    assert recent.check_and_remember("pkg", "New Order: ₹150", "3 km", 1501)

    recent.clear()
    assert len(recent) == 0


def test_recent_notifications_disabled() -> None:
    """Test that a zero window disables suppression."""
    recent = RecentNotifications(window_ms=0)
    assert recent.check_and_remember("pkg", "t", "b", 0)
    assert recent.check_and_remember("pkg", "t", "b", 0)
