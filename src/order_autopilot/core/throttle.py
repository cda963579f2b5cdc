"""Rate limiting and duplicate suppression for incoming signals."""

import hashlib
import logging
from typing import Optional

from order_autopilot.config import CoordinatorConfig
from order_autopilot.core.entities import PlatformId
from order_autopilot.core.interfaces import BatteryProbe

logger = logging.getLogger(__name__)


class ThrottlePolicy:
    """Minimum interval between processed signals, stretched on low battery."""

    def __init__(self, config: CoordinatorConfig, battery: Optional[BatteryProbe] = None) -> None:
        self.config = config
        self.battery = battery

    def current_interval_ms(self) -> int:
        cfg = self.config
        if self.battery is None:
            return cfg.min_interval_ms
        try:
            if self.battery.is_charging():
                return cfg.min_interval_ms
            level = self.battery.level()
        except Exception:
            logger.exception("Battery probe failed, using the base interval")
            return cfg.min_interval_ms

        if level <= cfg.low_battery_threshold:
            return max(cfg.min_interval_ms, cfg.low_battery_interval_ms)
        if level <= cfg.medium_battery_threshold:
            return max(cfg.min_interval_ms, cfg.medium_battery_interval_ms)
        return cfg.min_interval_ms


class RateLimiter:
    """Per-platform minimum spacing of processed signals."""

    def __init__(self, policy: ThrottlePolicy) -> None:
        self.policy = policy
        self._last_processed: dict[PlatformId, int] = {}

    def allow(self, platform_id: PlatformId, observed_at_millis: int) -> bool:
        """True if a signal observed at this time may be processed."""
        last = self._last_processed.get(platform_id)
        if last is None:
            return True
        return observed_at_millis - last >= self.policy.current_interval_ms()

    def mark(self, platform_id: PlatformId, observed_at_millis: int) -> None:
        self._last_processed[platform_id] = observed_at_millis

    def reset(self) -> None:
        self._last_processed.clear()


class RecentNotifications:
    """Remember notifications already seen so reposts are processed once."""

    def __init__(self, window_ms: int) -> None:
        self.window_ms = window_ms
        self._seen: dict[str, int] = {}

    @staticmethod
    def key(package_id: str, title: str, body: str) -> str:
        raw = f"{package_id}\x1f{title}\x1f{body}".encode("utf-8")
        return hashlib.sha1(raw).hexdigest()

    def check_and_remember(self, package_id: str, title: str, body: str, now_millis: int) -> bool:
        """Return True if this notification is new (and remember it)."""
        if self.window_ms <= 0:
            return True
        self._prune(now_millis)
        key = self.key(package_id, title, body)
        if key in self._seen:
            return False
        self._seen[key] = now_millis
        return True

    def _prune(self, now_millis: int) -> None:
        expired = [k for k, seen_at in self._seen.items() if now_millis - seen_at > self.window_ms]
        for k in expired:
            del self._seen[k]

    def __len__(self) -> int:
        return len(self._seen)

    def clear(self) -> None:
        self._seen.clear()
