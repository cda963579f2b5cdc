"""In-memory device collaborators used by the simulator and tests."""

import logging
from typing import Optional

from order_autopilot.core.entities import PlatformId, UiNode
from order_autopilot.core.interfaces import BatteryProbe, ForegroundLauncher, ScreenReader, UiActuator, WakeLock

logger = logging.getLogger(__name__)


class DryRunActuator(UiActuator):
    """Records clicks instead of performing them.

    A click on a node listed in `advance_on` moves the paired
    `StaticScreenReader` to its next screen, which is how a scenario models
    the confirmation dialog that follows an accept.
    """

    def __init__(self, screen_reader: Optional["StaticScreenReader"] = None, succeed: bool = True) -> None:
        self.screen_reader = screen_reader
        self.succeed = succeed
        self.clicks: list[UiNode] = []

    async def activate(self, node: UiNode) -> bool:
        self.clicks.append(node)
        label = node.text or node.content_description or node.resource_id or "<node>"
        logger.info("Dry run click on %r at %s", label, node.center)
        if self.succeed and self.screen_reader is not None:
            self.screen_reader.advance()
        return self.succeed


class DryRunLauncher(ForegroundLauncher):
    def __init__(self) -> None:
        self.launched: list[PlatformId] = []

    async def launch(self, platform_id: PlatformId) -> bool:
        self.launched.append(platform_id)
        return True


class StaticScreenReader(ScreenReader):
    """Serves a fixed sequence of screens; the last one repeats."""

    def __init__(self, screens: Optional[list[Optional[UiNode]]] = None) -> None:
        self.screens = list(screens or [])
        self.position = 0

    async def current_tree(self, platform_id: PlatformId) -> Optional[UiNode]:
        if not self.screens:
            return None
        return self.screens[min(self.position, len(self.screens) - 1)]

    def advance(self) -> None:
        if self.position < len(self.screens) - 1:
            self.position += 1

    def load(self, screens: list[Optional[UiNode]]) -> None:
        self.screens = list(screens)
        self.position = 0


class NullWakeLock(WakeLock):
    """Tracks held tags without touching any power manager."""

    def __init__(self) -> None:
        self.held: set[str] = set()
        self.acquired_count = 0

    def acquire(self, tag: str, timeout_ms: int) -> None:
        self.held.add(tag)
        self.acquired_count += 1

    def release(self, tag: str) -> None:
        self.held.discard(tag)


class StaticBattery(BatteryProbe):
    def __init__(self, level: int = 100, charging: bool = False) -> None:
        self._level = level
        self._charging = charging

    def level(self) -> int:
        return self._level

    def is_charging(self) -> bool:
        return self._charging
