"""Order intake pipeline: events in, acceptance attempts out."""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo

from order_autopilot.config import PipelineConfig, Settings
from order_autopilot.core import (
    AcceptanceAttempt,
    AcceptanceCoordinator,
    AnalyticsSink,
    BatteryProbe,
    Classifier,
    FeedbackLog,
    ForegroundLauncher,
    NotificationExtractor,
    OrderSignal,
    PackageResolver,
    PlatformId,
    PlatformStore,
    PrioritizationEngine,
    PriorityTier,
    RecentNotifications,
    ScreenEventKind,
    ScreenMatcher,
    ScreenReader,
    UiActuator,
    UiNode,
    UserWeights,
    VisualMatcher,
    WakeLock,
)
from order_autopilot.core.platforms import refine_platform

logger = logging.getLogger(__name__)


@dataclass
class NotificationEvent:
    package_id: str
    title: str
    body: str
    timestamp_millis: int


@dataclass
class ScreenEvent:
    package_id: str
    ui_tree: Optional[UiNode]
    timestamp_millis: int
    screenshot: Any = None
    event_kind: ScreenEventKind = ScreenEventKind.CONTENT_CHANGED


PipelineEvent = Union[NotificationEvent, ScreenEvent]


class OrderPipeline:
    """Resolve, extract, classify, prioritize and hand off to the coordinator.

    Host callbacks (`on_notification_event`, `on_screen_event`) never block
    and never raise: they enqueue onto a bounded queue drained by a fixed pool
    of worker tasks. Each stage catches its own faults so one bad event cannot
    stop the stream.
    """

    def __init__(
        self,
        coordinator: AcceptanceCoordinator,
        resolver: Optional[PackageResolver] = None,
        extractor: Optional[NotificationExtractor] = None,
        classifier: Optional[Classifier] = None,
        engine: Optional[PrioritizationEngine] = None,
        weights: Optional[UserWeights] = None,
        config: Optional[PipelineConfig] = None,
        history_size: int = 100,
    ) -> None:
        self.coordinator = coordinator
        self.resolver = resolver or coordinator.resolver
        self.extractor = extractor or NotificationExtractor()
        self.classifier = classifier or Classifier()
        self.engine = engine or PrioritizationEngine()
        self.weights = weights or UserWeights()
        self.config = config or PipelineConfig()
        self.recent = RecentNotifications(self.config.dedup_window_ms)
        self.history: deque[AcceptanceAttempt] = deque(maxlen=history_size)

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._workers: list[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        """Start workers from a fresh idle state."""
        if self.is_running:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue(maxsize=self.config.queue_size)
        self.coordinator.reset()
        self.recent.clear()
        self._workers = [
            asyncio.create_task(self._worker(n), name=f"order-worker-{n}") for n in range(self.config.workers)
        ]
        logger.info("Order pipeline started with %d workers", len(self._workers))

    async def stop(self) -> None:
        """Cancel workers and abandon whatever is still in flight."""
        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        if workers:
            await asyncio.gather(*workers, return_exceptions=True)
        await self.coordinator.flush()
        abandoned = self.coordinator.shutdown()
        self._queue = None
        self._loop = None
        logger.info("Order pipeline stopped (%d attempts abandoned)", abandoned)

    async def drain(self) -> None:
        """Wait until every queued event and post-accept call has finished."""
        if self._queue is not None:
            await self._queue.join()
        await self.coordinator.flush()

    def on_notification_event(self, package_id: str, title: str, body: str, timestamp_millis: int) -> None:
        self._submit(NotificationEvent(package_id, title or "", body or "", timestamp_millis))

    def on_screen_event(
        self,
        package_id: str,
        ui_tree: Optional[UiNode],
        timestamp_millis: int,
        screenshot: Any = None,
        event_kind: ScreenEventKind = ScreenEventKind.CONTENT_CHANGED,
    ) -> None:
        self._submit(ScreenEvent(package_id, ui_tree, timestamp_millis, screenshot, event_kind))

    async def record_feedback(self, signal_id: str, priority: PriorityTier) -> None:
        await self.engine.record_feedback(signal_id, priority)

    def update_weights(self, weights: UserWeights) -> None:
        self.weights = weights
        logger.info(
            "User weights updated: earnings=%.2f distance=%.2f time=%.2f",
            weights.earnings,
            weights.distance,
            weights.time,
        )

    async def process(self, event: PipelineEvent) -> Optional[AcceptanceAttempt]:
        """Run one event through every stage. Returns the attempt, if any."""
        if isinstance(event, NotificationEvent):
            return await self.process_notification(event)
        return await self.process_screen(event)

    async def process_notification(self, event: NotificationEvent) -> Optional[AcceptanceAttempt]:
        platform_id = self._resolve(event.package_id)
        if platform_id == PlatformId.UNSUPPORTED:
            return None
        platform_id = refine_platform(platform_id, event.title, event.body)

        if not self.recent.check_and_remember(event.package_id, event.title, event.body, event.timestamp_millis):
            logger.debug("Duplicate notification from %s skipped", event.package_id)
            return None

        try:
            signal = self.extractor.extract(
                platform_id, event.title, event.body, observed_at_millis=event.timestamp_millis
            )
        except Exception:
            logger.exception("stage=extract package=%s", event.package_id)
            return None
        if signal is None:
            return None

        return await self._decide(signal)

    async def process_screen(self, event: ScreenEvent) -> Optional[AcceptanceAttempt]:
        if event.ui_tree is None:
            return None
        platform_id = self._resolve(event.package_id)
        if platform_id == PlatformId.UNSUPPORTED:
            return None

        try:
            platform_id = refine_platform(platform_id, event.ui_tree.visible_text())
            signal = self.extractor.extract_from_screen(platform_id, event.ui_tree, event.timestamp_millis)
        except Exception:
            logger.exception("stage=extract package=%s", event.package_id)
            return None
        if signal is None:
            return None

        return await self._decide(
            signal,
            tree=event.ui_tree,
            screenshot=event.screenshot,
            bypass_cache=event.event_kind == ScreenEventKind.WINDOW_STATE_CHANGED,
        )

    async def _decide(
        self,
        signal: OrderSignal,
        tree: Optional[UiNode] = None,
        screenshot: Any = None,
        bypass_cache: bool = False,
    ) -> AcceptanceAttempt:
        classification = self.classifier.classify(signal)
        priority = self.engine.score(classification, self.weights)
        logger.info(
            "Order on %s: amount=%g score=%.2f priority=%s",
            signal.platform_id.value,
            signal.amount,
            priority.score,
            priority.tier.value,
        )

        attempt = await self.coordinator.submit(
            signal, priority, tree=tree, screenshot=screenshot, bypass_cache=bypass_cache
        )
        self.history.append(attempt)
        return attempt

    def _resolve(self, package_id: str) -> PlatformId:
        try:
            return self.resolver.resolve(package_id)
        except Exception:
            logger.exception("stage=resolve package=%r", package_id)
            return PlatformId.UNSUPPORTED

    def _submit(self, event: PipelineEvent) -> None:
        loop = self._loop
        if loop is None or loop.is_closed() or not self._workers:
            logger.warning("Pipeline is not running, dropping %s", type(event).__name__)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._enqueue(event)
        else:
            loop.call_soon_threadsafe(self._enqueue, event)

    def _enqueue(self, event: PipelineEvent) -> None:
        if self._queue is None:
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Event queue full, dropping %s from %s", type(event).__name__, event.package_id)

    async def _worker(self, n: int) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.process(event)
            except Exception:
                logger.exception("stage=pipeline worker=%d", n)
            finally:
                self._queue.task_done()


def build_pipeline(
    settings: Settings,
    store: PlatformStore,
    actuator: UiActuator,
    screen_reader: ScreenReader,
    launcher: Optional[ForegroundLauncher] = None,
    analytics: Optional[AnalyticsSink] = None,
    feedback_log: Optional[FeedbackLog] = None,
    visual_matcher: Optional[VisualMatcher] = None,
    wake_lock: Optional[WakeLock] = None,
    battery: Optional[BatteryProbe] = None,
) -> OrderPipeline:
    """Wire the pipeline from settings and host collaborators."""
    resolver = PackageResolver(
        aliases=settings.packages.aliases,
        deprecated=settings.packages.deprecated,
    )
    matcher = ScreenMatcher(settings.screen, visual_matcher=visual_matcher)
    coordinator = AcceptanceCoordinator(
        store=store,
        matcher=matcher,
        actuator=actuator,
        screen_reader=screen_reader,
        resolver=resolver,
        config=settings.coordinator,
        launcher=launcher,
        analytics=analytics,
        wake_lock=wake_lock,
        battery=battery,
    )
    tz = ZoneInfo(settings.timezone) if settings.timezone else None
    weights = UserWeights(
        earnings=settings.prioritization.earnings_weight,
        distance=settings.prioritization.distance_weight,
        time=settings.prioritization.time_weight,
    )
    return OrderPipeline(
        coordinator=coordinator,
        resolver=resolver,
        classifier=Classifier(settings.classifier, tz=tz),
        engine=PrioritizationEngine(feedback_log),
        weights=weights,
        config=settings.pipeline,
    )
