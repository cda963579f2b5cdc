"""Extract structured order signals from notification and screen text."""

import logging
import math
import re
from dataclasses import dataclass
from typing import Optional

from order_autopilot.core.entities import OrderSignal, PlatformId, SignalSource, UiNode
from order_autopilot.core.platforms import PLATFORMS

logger = logging.getLogger(__name__)

_NUMBER = r"([0-9][0-9,]*(?:\.[0-9]+)?)"
_CURRENCY_PREFIX = r"(?:₹|(?<![A-Za-z])(?:Rs\.?|INR)(?![A-Za-z]))"
_CURRENCY_SUFFIX = r"(?:₹|rupees?\b|INR\b)"


@dataclass(frozen=True)
class PatternSet:
    """Ordered regexes for one platform; earlier patterns win."""

    amount: tuple[re.Pattern, ...]
    distance: tuple[re.Pattern, ...]
    time: tuple[re.Pattern, ...]


DEFAULT_PATTERNS = PatternSet(
    amount=(
        # Labelled driver earnings beat any other amount in the text
        re.compile(
            r"(?:earn(?:ing)?s?|payout|you(?:'ll)? get)\s*:?\s*" + _CURRENCY_PREFIX + r"\s*" + _NUMBER,
            re.IGNORECASE,
        ),
        re.compile(_CURRENCY_PREFIX + r"\s*" + _NUMBER, re.IGNORECASE),
        re.compile(_NUMBER + r"\s*" + _CURRENCY_SUFFIX, re.IGNORECASE),
    ),
    distance=(
        re.compile(r"(\d+(?:\.\d+)?)\s*(km|kms|kilomet(?:er|re)s?)\b", re.IGNORECASE),
        re.compile(r"(\d+(?:\.\d+)?)\s*(m|meters?|metres?)\b", re.IGNORECASE),
    ),
    time=(
        re.compile(r"(\d+(?:\.\d+)?)\s*(min|mins|minutes?)\b", re.IGNORECASE),
        re.compile(r"(\d+(?:\.\d+)?)\s*(hr|hrs|hours?)\b", re.IGNORECASE),
    ),
)

PLATFORM_PATTERNS: dict[PlatformId, PatternSet] = {
    PlatformId.UBER_EATS: PatternSet(
        amount=(
            # "₹85.50 est." fare cards on Uber's offer screen
            re.compile(_CURRENCY_PREFIX + r"\s*" + _NUMBER + r"\s*est", re.IGNORECASE),
            *DEFAULT_PATTERNS.amount,
        ),
        distance=DEFAULT_PATTERNS.distance,
        time=DEFAULT_PATTERNS.time,
    ),
}


def parse_amount(raw: str) -> Optional[float]:
    """Parse a currency number, dropping thousand separators."""
    cleaned = raw.replace(",", "").strip()
    if not cleaned:
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if value < 0 or not math.isfinite(value):
        return None
    return value


class NotificationExtractor:
    """Turn platform notification text into an `OrderSignal`.

    The amount is mandatory: without one the text is not an order. Distance
    and time are best-effort and left unset when absent.
    """

    def patterns_for(self, platform_id: PlatformId) -> PatternSet:
        return PLATFORM_PATTERNS.get(platform_id, DEFAULT_PATTERNS)

    def extract(
        self,
        platform_id: PlatformId,
        title: str,
        body: str,
        observed_at_millis: int = 0,
        source: SignalSource = SignalSource.NOTIFICATION,
    ) -> Optional[OrderSignal]:
        """Return an order signal, or None when the text is not an order."""
        if platform_id == PlatformId.UNSUPPORTED or platform_id not in PLATFORMS:
            return None

        title = title or ""
        body = body or ""
        patterns = self.patterns_for(platform_id)

        amount = self._extract_amount(patterns, title, body)
        if amount is None:
            return None

        return OrderSignal(
            platform_id=platform_id,
            amount=amount,
            observed_at_millis=observed_at_millis,
            estimated_distance_km=self._extract_distance(patterns, body, title),
            estimated_time_minutes=self._extract_time(patterns, body, title),
            source=source,
        )

    def extract_from_screen(
        self, platform_id: PlatformId, tree: UiNode, observed_at_millis: int = 0
    ) -> Optional[OrderSignal]:
        """Extract an order from the text visible on an offer screen."""
        return self.extract(
            platform_id,
            "",
            tree.visible_text(),
            observed_at_millis=observed_at_millis,
            source=SignalSource.SCREEN,
        )

    def _extract_amount(self, patterns: PatternSet, *texts: str) -> Optional[float]:
        for pattern in patterns.amount:
            for text in texts:
                for match in pattern.finditer(text):
                    amount = parse_amount(match.group(1))
                    if amount is not None:
                        return amount
        return None

    def _extract_distance(self, patterns: PatternSet, *texts: str) -> Optional[float]:
        for pattern in patterns.distance:
            for text in texts:
                match = pattern.search(text)
                if not match:
                    continue
                value = float(match.group(1))
                if not math.isfinite(value):
                    continue
                unit = match.group(2).lower()
                if unit.startswith("k"):
                    return value
                return round(value / 1000.0, 3)
        return None

    def _extract_time(self, patterns: PatternSet, *texts: str) -> Optional[int]:
        for pattern in patterns.time:
            for text in texts:
                match = pattern.search(text)
                if not match:
                    continue
                value = float(match.group(1))
                unit = match.group(2).lower()
                if unit.startswith("h"):
                    value *= 60
                if not math.isfinite(value):
                    continue
                return int(round(value))
        return None
