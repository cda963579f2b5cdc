"""Screenshot-based control matchers."""

from order_autopilot.adapters.vision.color_matcher import ColorRegionMatcher

__all__ = ["ColorRegionMatcher"]
