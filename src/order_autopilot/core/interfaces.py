"""Core interfaces for adapters."""

from abc import ABC, abstractmethod
from typing import Any, Optional

from order_autopilot.core.entities import (
    PlatformId,
    PlatformProfile,
    PriorityTier,
    UiNode,
    VisualMatch,
)


class PlatformStore(ABC):
    """Read-only access to per-platform user settings."""

    @abstractmethod
    def get_profile(self, platform_id: PlatformId) -> Optional[PlatformProfile]:
        """Return the current profile for a platform, or None if unknown."""
        pass


class UiActuator(ABC):
    """Performs clicks on resolved controls."""

    @abstractmethod
    async def activate(self, node: UiNode) -> bool:
        """Click/tap the node. Returns True on success."""
        pass


class ForegroundLauncher(ABC):
    """Brings a delivery app to the foreground."""

    @abstractmethod
    async def launch(self, platform_id: PlatformId) -> bool:
        pass


class AnalyticsSink(ABC):
    """Receives accepted orders for analytics."""

    @abstractmethod
    async def record_accepted_order(
        self, platform_id: PlatformId, amount: float, timestamp_millis: int
    ) -> None:
        pass


class FeedbackLog(ABC):
    """Durable log of user priority corrections."""

    @abstractmethod
    async def record(self, signal_id: str, assigned_priority: PriorityTier) -> None:
        pass


class ScreenReader(ABC):
    """Reads the live UI tree of the foreground window."""

    @abstractmethod
    async def current_tree(self, platform_id: PlatformId) -> Optional[UiNode]:
        """Return the active window's root node, or None if unavailable."""
        pass


class VisualMatcher(ABC):
    """Locates an accept control in a screenshot."""

    @abstractmethod
    def match(self, screenshot: Any, platform_id: PlatformId) -> Optional[VisualMatch]:
        pass


class WakeLock(ABC):
    """Keeps the device awake while a UI action completes."""

    @abstractmethod
    def acquire(self, tag: str, timeout_ms: int) -> None:
        pass

    @abstractmethod
    def release(self, tag: str) -> None:
        pass


class BatteryProbe(ABC):
    """Reports device battery state."""

    @abstractmethod
    def level(self) -> int:
        """Battery level in percent (0-100)."""
        pass

    @abstractmethod
    def is_charging(self) -> bool:
        pass
