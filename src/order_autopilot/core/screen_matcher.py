"""Locate accept and confirmation controls in a UI tree."""

import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from order_autopilot.config import ScreenConfig
from order_autopilot.core.entities import ControlMatch, MatchStrategy, PlatformId, UiNode
from order_autopilot.core.interfaces import VisualMatcher
from order_autopilot.core.platforms import PlatformInfo, get_platform_info

logger = logging.getLogger(__name__)

DIRECT_TEXT_CONFIDENCE = 0.95
TREE_SEARCH_CONFIDENCE = 0.9
RESOURCE_ID_CONFIDENCE = 0.85

# How far up a matched label may climb to find its clickable container
MAX_ANCESTOR_HOPS = 3


@dataclass
class _CacheEntry:
    fingerprint: str
    created_at: float
    path: Optional[tuple[int, ...]]
    match: Optional[ControlMatch]
    used_visual: bool


class _TreeIndex:
    """Single bounded BFS pass over a tree, with parent links."""

    def __init__(self, root: UiNode, max_nodes: int) -> None:
        self.nodes: list[tuple[UiNode, int]] = []
        self.parents: dict[int, UiNode] = {}
        for node, depth in root.iter_bfs():
            if len(self.nodes) >= max_nodes:
                logger.debug("UI tree truncated at %d nodes", max_nodes)
                break
            self.nodes.append((node, depth))
            for child in node.children:
                self.parents[id(child)] = node

    def clickable_self_or_ancestor(self, node: UiNode) -> Optional[UiNode]:
        current: Optional[UiNode] = node
        for _ in range(MAX_ANCESTOR_HOPS + 1):
            if current is None:
                return None
            if current.clickable and current.enabled:
                return current
            current = self.parents.get(id(current))
        return None


def _word_pattern(candidates: tuple[str, ...]) -> Optional[re.Pattern]:
    if not candidates:
        return None
    alternatives = "|".join(re.escape(c) for c in sorted(candidates, key=len, reverse=True))
    return re.compile(r"(?<!\w)(?:" + alternatives + r")(?!\w)", re.IGNORECASE)


def _resource_id_matches(resource_id: str, candidate: str) -> bool:
    return resource_id == candidate or resource_id.endswith("/" + candidate)


class ScreenMatcher:
    """Layered control lookup: direct text, tree search, resource id, then vision.

    Results for a platform are cached briefly so a screen that has not changed
    is not analysed twice within `cache_window_ms`.
    """

    def __init__(
        self,
        config: Optional[ScreenConfig] = None,
        visual_matcher: Optional[VisualMatcher] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or ScreenConfig()
        self.visual_matcher = visual_matcher
        self.clock = clock
        self._cache: dict[PlatformId, _CacheEntry] = {}
        self._lock = threading.Lock()
        self.stats = {"analyses": 0, "cache_hits": 0}

    def locate_accept_control(
        self,
        tree: UiNode,
        platform_id: PlatformId,
        screenshot: Any = None,
        bypass_cache: bool = False,
    ) -> Optional[ControlMatch]:
        """Find the accept control, or None when nothing qualifies."""
        try:
            info = get_platform_info(platform_id)
            if info is None or tree is None:
                return None

            fingerprint = tree.fingerprint()
            if not bypass_cache:
                hit, cached = self._from_cache(platform_id, fingerprint, tree, screenshot is not None)
                if hit:
                    return cached

            with self._lock:
                self.stats["analyses"] += 1

            index = _TreeIndex(tree, self.config.max_nodes)
            match = self._locate(
                index,
                texts=info.accept_texts,
                descriptions=info.accept_descriptions,
                resource_ids=info.accept_resource_ids,
                max_depth=self.config.max_depth,
            )

            used_visual = False
            if match is None and screenshot is not None and self.visual_matcher is not None:
                used_visual = True
                match = self._visual(screenshot, info, tree.package)

            self._remember(platform_id, fingerprint, tree, match, used_visual)
            if match is not None:
                logger.debug(
                    "Accept control for %s via %s (%.2f)", platform_id.value, match.strategy.value, match.confidence
                )
            return match
        except Exception:
            logger.exception("stage=locate_control platform=%s: treating as not found", platform_id)
            return None

    def detect_confirmation(self, tree: UiNode, platform_id: PlatformId) -> bool:
        """True if a post-accept confirmation prompt is on screen."""
        try:
            info = get_platform_info(platform_id)
            if info is None or tree is None:
                return False
            index = _TreeIndex(tree, self.config.max_nodes)
            vocabulary = info.confirmation_texts

            wanted = {text.strip().lower() for text in vocabulary}
            for node, depth in index.nodes:
                if depth > self.config.confirmation_max_depth:
                    break
                if node.text.strip().lower() in wanted:
                    return True

            pattern = _word_pattern(vocabulary)
            if pattern is None:
                return False
            for node, depth in index.nodes:
                if depth > self.config.confirmation_max_depth:
                    break
                if pattern.search(node.text) or pattern.search(node.content_description):
                    return True
            return False
        except Exception:
            logger.exception("stage=detect_confirmation platform=%s: assuming no dialog", platform_id)
            return False

    def locate_confirm_control(self, tree: UiNode, platform_id: PlatformId) -> Optional[ControlMatch]:
        """Find the button that confirms a pending accept."""
        try:
            info = get_platform_info(platform_id)
            if info is None or tree is None:
                return None
            index = _TreeIndex(tree, self.config.max_nodes)
            return self._locate(
                index,
                texts=info.confirm_button_texts,
                descriptions=("confirm",),
                resource_ids=info.confirm_resource_ids,
                max_depth=self.config.max_depth,
            )
        except Exception:
            logger.exception("stage=locate_confirm platform=%s: treating as not found", platform_id)
            return None

    def invalidate(self, platform_id: Optional[PlatformId] = None) -> None:
        with self._lock:
            if platform_id is None:
                self._cache.clear()
            else:
                self._cache.pop(platform_id, None)

    def _locate(
        self,
        index: _TreeIndex,
        texts: tuple[str, ...],
        descriptions: tuple[str, ...],
        resource_ids: tuple[str, ...],
        max_depth: int,
    ) -> Optional[ControlMatch]:
        # 1. Direct lookup by literal text, in candidate priority order
        for candidate in texts:
            wanted = candidate.strip().lower()
            for node, _ in index.nodes:
                if node.text.strip().lower() != wanted:
                    continue
                target = index.clickable_self_or_ancestor(node)
                if target is not None:
                    return ControlMatch(target, MatchStrategy.DIRECT_TEXT, DIRECT_TEXT_CONFIDENCE)

        # 2. Bounded breadth-first search over text and descriptions
        pattern = _word_pattern(tuple(texts) + tuple(descriptions))
        if pattern is not None:
            for node, depth in index.nodes:
                if depth > max_depth:
                    break
                if not (node.clickable and node.enabled):
                    continue
                if pattern.search(node.text) or pattern.search(node.content_description):
                    return ControlMatch(node, MatchStrategy.TREE_SEARCH, TREE_SEARCH_CONFIDENCE)

        # 3. Known resource ids
        for candidate in resource_ids:
            for node, _ in index.nodes:
                if not node.resource_id or not _resource_id_matches(node.resource_id, candidate):
                    continue
                target = index.clickable_self_or_ancestor(node)
                if target is not None:
                    return ControlMatch(target, MatchStrategy.RESOURCE_ID, RESOURCE_ID_CONFIDENCE)

        return None

    def _visual(self, screenshot: Any, info: PlatformInfo, package: str) -> Optional[ControlMatch]:
        try:
            result = self.visual_matcher.match(screenshot, info.platform_id)
        except Exception:
            logger.exception("stage=visual_match platform=%s: model failed", info.platform_id.value)
            return None

        if result is None or result.confidence < self.config.visual_confidence_threshold:
            return None

        node = UiNode(
            text=result.label,
            clickable=True,
            bounds=result.bounds,
            package=package,
        )
        return ControlMatch(node, MatchStrategy.VISUAL, result.confidence)

    def _from_cache(
        self, platform_id: PlatformId, fingerprint: str, tree: UiNode, has_screenshot: bool
    ) -> tuple[bool, Optional[ControlMatch]]:
        with self._lock:
            entry = self._cache.get(platform_id)
            if entry is None or entry.fingerprint != fingerprint:
                return False, None
            if (self.clock() - entry.created_at) * 1000 > self.config.cache_window_ms:
                del self._cache[platform_id]
                return False, None
            # A miss without a screenshot says nothing about what vision would find
            if entry.match is None and has_screenshot and not entry.used_visual:
                return False, None

        cached: Optional[ControlMatch] = entry.match
        if entry.match is not None and entry.path is not None:
            node = tree.resolve_path(entry.path)
            if node is None:
                return False, None
            cached = ControlMatch(node, entry.match.strategy, entry.match.confidence)

        with self._lock:
            self.stats["cache_hits"] += 1
        return True, cached

    def _remember(
        self,
        platform_id: PlatformId,
        fingerprint: str,
        tree: UiNode,
        match: Optional[ControlMatch],
        used_visual: bool,
    ) -> None:
        path = None
        if match is not None and match.strategy != MatchStrategy.VISUAL:
            path = tree.path_to(match.node)
        with self._lock:
            self._cache[platform_id] = _CacheEntry(
                fingerprint=fingerprint,
                created_at=self.clock(),
                path=path,
                match=match,
                used_visual=used_visual,
            )
