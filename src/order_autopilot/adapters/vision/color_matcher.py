"""Find an accept button by its color when the UI tree has no usable node."""

import io
import logging
from pathlib import Path
from typing import Any, Optional

import numpy as np
from PIL import Image

from order_autopilot.core.entities import PlatformId, VisualMatch
from order_autopilot.core.interfaces import VisualMatcher

logger = logging.getLogger(__name__)


def _runs(flags: np.ndarray) -> list[tuple[int, int]]:
    """[start, end) spans of consecutive True values."""
    padded = np.concatenate(([0], flags.astype(np.int8), [0]))
    diff = np.diff(padded)
    starts = np.flatnonzero(diff == 1)
    ends = np.flatnonzero(diff == -1)
    return list(zip(starts.tolist(), ends.tolist()))


def load_image(screenshot: Any) -> Image.Image:
    """Accept a path, raw bytes, a PIL image or a numpy array."""
    if isinstance(screenshot, Image.Image):
        return screenshot
    if isinstance(screenshot, (str, Path)):
        with Image.open(screenshot) as image:
            image.load()
            return image
    if isinstance(screenshot, (bytes, bytearray)):
        with Image.open(io.BytesIO(screenshot)) as image:
            image.load()
            return image
    if isinstance(screenshot, np.ndarray):
        return Image.fromarray(screenshot.astype(np.uint8))
    raise TypeError(f"Unsupported screenshot type: {type(screenshot).__name__}")


class ColorRegionMatcher(VisualMatcher):
    """Largest saturated accept-colored block in the lower part of the screen.

    Delivery apps draw their accept action as a wide solid green button near
    the bottom of the offer card. Confidence combines how solidly the block
    fills its bounding box with how large it is relative to `target_area_ratio`.
    """

    def __init__(
        self,
        hue_range: tuple[float, float] = (0.22, 0.45),
        min_saturation: float = 0.45,
        min_value: float = 0.35,
        search_from: float = 0.5,
        min_area_ratio: float = 0.005,
        target_area_ratio: float = 0.03,
    ) -> None:
        self.hue_range = hue_range
        self.min_saturation = min_saturation
        self.min_value = min_value
        self.search_from = search_from
        self.min_area_ratio = min_area_ratio
        self.target_area_ratio = target_area_ratio

    def match(self, screenshot: Any, platform_id: PlatformId) -> Optional[VisualMatch]:
        image = load_image(screenshot)
        hsv = np.asarray(image.convert("RGB").convert("HSV"), dtype=np.float32) / 255.0
        height, width = hsv.shape[:2]
        if height == 0 or width == 0:
            return None

        top = int(height * self.search_from)
        region = hsv[top:]
        hue, sat, val = region[..., 0], region[..., 1], region[..., 2]
        mask = (
            (hue >= self.hue_range[0])
            & (hue <= self.hue_range[1])
            & (sat >= self.min_saturation)
            & (val >= self.min_value)
        )
        if not mask.any():
            return None

        bbox = self._largest_block(mask)
        if bbox is None:
            return None
        r0, r1, c0, c1 = bbox

        box_area = (r1 - r0) * (c1 - c0)
        area_ratio = box_area / float(height * width)
        if area_ratio < self.min_area_ratio:
            logger.debug("Accept-colored block on %s too small (%.4f)", platform_id.value, area_ratio)
            return None

        fill = float(mask[r0:r1, c0:c1].mean())
        size = min(1.0, area_ratio / self.target_area_ratio)
        confidence = round(0.6 * fill + 0.4 * size, 3)

        return VisualMatch(bounds=(c0, top + r0, c1, top + r1), confidence=confidence)

    def _largest_block(self, mask: np.ndarray) -> Optional[tuple[int, int, int, int]]:
        best = None
        best_pixels = 0
        for r0, r1 in _runs(mask.any(axis=1)):
            band = mask[r0:r1]
            for c0, c1 in _runs(band.any(axis=0)):
                pixels = int(band[:, c0:c1].sum())
                if pixels > best_pixels:
                    best_pixels = pixels
                    best = (r0, r1, c0, c1)
        return best
