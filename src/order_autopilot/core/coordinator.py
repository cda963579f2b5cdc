"""Acceptance state machine.

IDLE -> SIGNAL_RECEIVED -> GATING_CHECK -> LOCATING_CONTROL -> ACTION_DISPATCHED
-> CONFIRMATION_WAIT -> SUCCEEDED | FAILED -> IDLE

Gating runs synchronously on the event loop, so checking and claiming a
platform's in-flight slot cannot interleave with another worker. Everything
after gating runs under a hard wall-clock budget.
"""

import asyncio
import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from order_autopilot.config import CoordinatorConfig
from order_autopilot.core.entities import (
    AcceptanceAttempt,
    AttemptOutcome,
    AttemptState,
    OrderSignal,
    PlatformId,
    PlatformProfile,
    PriorityDecision,
    UiNode,
)
from order_autopilot.core.interfaces import (
    AnalyticsSink,
    BatteryProbe,
    ForegroundLauncher,
    PlatformStore,
    ScreenReader,
    UiActuator,
    WakeLock,
)
from order_autopilot.core.package_resolver import PackageResolver
from order_autopilot.core.screen_matcher import ScreenMatcher
from order_autopilot.core.throttle import RateLimiter, ThrottlePolicy

logger = logging.getLogger(__name__)


# Marks a profile that has not been read from the store yet
_LOOKUP = object()


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class AcceptanceCoordinator:
    """Drive one accept attempt per platform at a time."""

    def __init__(
        self,
        store: PlatformStore,
        matcher: ScreenMatcher,
        actuator: UiActuator,
        screen_reader: ScreenReader,
        resolver: Optional[PackageResolver] = None,
        config: Optional[CoordinatorConfig] = None,
        launcher: Optional[ForegroundLauncher] = None,
        analytics: Optional[AnalyticsSink] = None,
        wake_lock: Optional[WakeLock] = None,
        battery: Optional[BatteryProbe] = None,
        clock_ms: Callable[[], int] = _wall_clock_ms,
    ) -> None:
        self.store = store
        self.matcher = matcher
        self.actuator = actuator
        self.screen_reader = screen_reader
        self.resolver = resolver or PackageResolver()
        self.config = config or CoordinatorConfig()
        self.launcher = launcher
        self.analytics = analytics
        self.wake_lock = wake_lock
        self.clock_ms = clock_ms
        self.rate_limiter = RateLimiter(ThrottlePolicy(self.config, battery))
        self._in_flight: dict[PlatformId, AcceptanceAttempt] = {}
        self._follow_ups: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> dict[PlatformId, AcceptanceAttempt]:
        return dict(self._in_flight)

    async def submit(
        self,
        signal: OrderSignal,
        priority: Optional[PriorityDecision] = None,
        tree: Optional[UiNode] = None,
        screenshot: Any = None,
        bypass_cache: bool = False,
    ) -> AcceptanceAttempt:
        """Gate a signal and, if it passes, run the attempt to a terminal outcome."""
        try:
            profile = await asyncio.to_thread(self.store.get_profile, signal.platform_id)
        except Exception:
            logger.exception("stage=profile platform=%s", signal.platform_id.value)
            profile = None

        attempt = self.begin(signal, priority, profile=profile)
        if attempt.is_terminal:
            return attempt
        return await self.run(attempt, tree=tree, screenshot=screenshot, bypass_cache=bypass_cache)

    def begin(
        self,
        signal: OrderSignal,
        priority: Optional[PriorityDecision] = None,
        profile: Any = _LOOKUP,
    ) -> AcceptanceAttempt:
        """SIGNAL_RECEIVED -> GATING_CHECK. Claims the platform slot on success.

        `profile` may be fetched beforehand; otherwise the store is read here.
        """
        attempt = AcceptanceAttempt(platform_id=signal.platform_id, signal=signal, priority=priority)
        attempt.transition(AttemptState.SIGNAL_RECEIVED)
        attempt.transition(AttemptState.GATING_CHECK)

        try:
            if profile is _LOOKUP:
                profile = self.store.get_profile(signal.platform_id)
            reason = self._gate(signal, priority, profile)
        except Exception:
            logger.exception("stage=gating platform=%s", signal.platform_id.value)
            reason = "gating error"

        if reason:
            self._abandon(attempt, reason)
            return attempt

        self.rate_limiter.mark(signal.platform_id, signal.observed_at_millis)
        self._in_flight[signal.platform_id] = attempt
        return attempt

    async def run(
        self,
        attempt: AcceptanceAttempt,
        tree: Optional[UiNode] = None,
        screenshot: Any = None,
        bypass_cache: bool = False,
    ) -> AcceptanceAttempt:
        """Run a gated attempt through LOCATING_CONTROL to SUCCEEDED or FAILED."""
        budget = self.config.attempt_budget_ms / 1000.0
        try:
            await asyncio.wait_for(self._drive(attempt, tree, screenshot, bypass_cache), timeout=budget)
        except asyncio.TimeoutError:
            self._fail(attempt, f"attempt exceeded {self.config.attempt_budget_ms} ms budget")
        except asyncio.CancelledError:
            self._abandon(attempt, "cancelled")
            raise
        except Exception:
            logger.exception("stage=coordinator platform=%s", attempt.platform_id.value)
            self._fail(attempt, "internal error")
        finally:
            if self._in_flight.get(attempt.platform_id) is attempt:
                del self._in_flight[attempt.platform_id]
            if attempt.state != AttemptState.IDLE:
                attempt.transition(AttemptState.IDLE)

        # The platform is free again before launcher and analytics run
        if attempt.outcome == AttemptOutcome.SUCCEEDED:
            self._start_follow_up(attempt)
        return attempt

    def abandon_all(self, reason: str = "service stopped") -> int:
        """Abandon every in-flight attempt. Returns how many were dropped."""
        attempts = list(self._in_flight.values())
        self._in_flight.clear()
        for attempt in attempts:
            if not attempt.is_terminal:
                self._abandon(attempt, reason)
        return len(attempts)

    def shutdown(self) -> int:
        """Abandon in-flight work and cancel pending post-accept calls."""
        for task in list(self._follow_ups):
            task.cancel()
        return self.abandon_all("service stopped")

    async def flush(self) -> None:
        """Wait for post-accept launcher and analytics calls still running."""
        if self._follow_ups:
            await asyncio.gather(*list(self._follow_ups), return_exceptions=True)

    def reset(self) -> None:
        """Forget all per-platform state so the next activation starts fresh."""
        self.abandon_all("reset")
        self.rate_limiter.reset()
        self.matcher.invalidate()

    def _gate(
        self, signal: OrderSignal, priority: Optional[PriorityDecision], profile: Optional[PlatformProfile]
    ) -> str:
        """Return why the signal must be dropped, or an empty string."""
        if not signal.is_actionable:
            return "signal has no amount"

        if profile is None:
            return "no profile for platform"
        if profile.should_remove:
            return "platform is deprecated"
        if not profile.is_enabled:
            return "platform disabled"
        if not profile.auto_accept_enabled:
            return "auto-accept disabled"
        if not self.resolver.is_consistent(profile):
            return "no valid package mapping for platform"
        if signal.amount < profile.minimum_amount:
            return f"amount {signal.amount:g} below minimum {profile.minimum_amount:g}"
        if priority is not None and priority.tier.rank < profile.minimum_priority.rank:
            return f"priority {priority.tier.value} below {profile.minimum_priority.value}"

        max_age = self.config.max_signal_age_ms
        if max_age > 0 and self.clock_ms() - signal.observed_at_millis > max_age:
            return "signal is stale"

        if signal.platform_id in self._in_flight:
            return "attempt already in flight"
        if not self.rate_limiter.allow(signal.platform_id, signal.observed_at_millis):
            return "processed too recently"
        return ""

    async def _drive(
        self, attempt: AcceptanceAttempt, tree: Optional[UiNode], screenshot: Any, bypass_cache: bool
    ) -> None:
        cfg = self.config
        platform_id = attempt.platform_id

        attempt.transition(AttemptState.LOCATING_CONTROL)
        if tree is None:
            tree = await self.screen_reader.current_tree(platform_id)
        if tree is None:
            self._fail(attempt, "no UI tree available")
            return

        try:
            match = await asyncio.wait_for(
                asyncio.to_thread(self.matcher.locate_accept_control, tree, platform_id, screenshot, bypass_cache),
                timeout=cfg.locate_timeout_ms / 1000.0,
            )
        except asyncio.TimeoutError:
            self._fail(attempt, "locating accept control timed out")
            return

        if match is None:
            self._fail(attempt, "accept control not found")
            return
        if match.confidence < cfg.accept_confidence_threshold:
            self._fail(attempt, f"accept control confidence {match.confidence:.2f} below threshold")
            return

        with self._wake_lock_held(f"accept:{platform_id.value}"):
            attempt.transition(AttemptState.ACTION_DISPATCHED)
            if not await self._activate_with_retry(attempt, match.node):
                self._fail(attempt, "accept control did not respond")
                return
            logger.info(
                "Clicked accept for %s via %s (%.2f)", platform_id.value, match.strategy.value, match.confidence
            )

            await asyncio.sleep(cfg.post_action_delay_ms / 1000.0)

            attempt.transition(AttemptState.CONFIRMATION_WAIT)
            try:
                confirmed = await asyncio.wait_for(
                    self._resolve_confirmation(attempt), timeout=cfg.confirmation_timeout_ms / 1000.0
                )
            except asyncio.TimeoutError:
                self._fail(attempt, "confirmation timed out")
                return

        if confirmed:
            attempt.transition(AttemptState.SUCCEEDED)
            attempt.outcome = AttemptOutcome.SUCCEEDED
        else:
            self._fail(attempt, "confirmation control not found")

    async def _resolve_confirmation(self, attempt: AcceptanceAttempt) -> bool:
        """True once no dialog is showing or its confirm control was clicked."""
        cfg = self.config
        platform_id = attempt.platform_id

        for n in range(cfg.confirmation_attempts):
            tree = await self.screen_reader.current_tree(platform_id)
            if tree is None:
                return True
            if not await asyncio.to_thread(self.matcher.detect_confirmation, tree, platform_id):
                return True

            match = await asyncio.to_thread(self.matcher.locate_confirm_control, tree, platform_id)
            if match is not None and await self._activate_with_retry(attempt, match.node):
                logger.info("Confirmed accept for %s", platform_id.value)
                return True

            attempt.retry_count += 1
            if n < cfg.confirmation_attempts - 1:
                await asyncio.sleep(cfg.retry_backoff_ms * (2 ** n) / 1000.0)

        return False

    async def _activate_with_retry(self, attempt: AcceptanceAttempt, node: UiNode) -> bool:
        cfg = self.config
        for n in range(cfg.activation_retries + 1):
            try:
                ok = await self.actuator.activate(node)
            except Exception:
                logger.exception("stage=activate platform=%s", attempt.platform_id.value)
                ok = False
            attempt.last_action_at = time.monotonic()
            if ok:
                return True
            if n < cfg.activation_retries:
                attempt.retry_count += 1
                await asyncio.sleep(cfg.retry_backoff_ms * (2 ** n) / 1000.0)
        return False

    def _start_follow_up(self, attempt: AcceptanceAttempt) -> None:
        if self.launcher is None and self.analytics is None:
            return
        task = asyncio.create_task(self._follow_up(attempt), name=f"accepted-{attempt.platform_id.value}")
        self._follow_ups.add(task)
        task.add_done_callback(self._follow_ups.discard)

    async def _follow_up(self, attempt: AcceptanceAttempt) -> None:
        timeout_ms = self.config.follow_up_timeout_ms
        try:
            await asyncio.wait_for(self._after_success(attempt), timeout=timeout_ms / 1000.0)
        except asyncio.TimeoutError:
            logger.warning(
                "Post-accept calls for %s exceeded %d ms, dropped", attempt.platform_id.value, timeout_ms
            )

    async def _after_success(self, attempt: AcceptanceAttempt) -> None:
        platform_id = attempt.platform_id
        if self.launcher is not None:
            try:
                if not await self.launcher.launch(platform_id):
                    logger.info("Could not bring %s to the foreground", platform_id.value)
            except Exception:
                logger.exception("stage=foreground platform=%s", platform_id.value)

        if self.analytics is not None:
            try:
                await self.analytics.record_accepted_order(
                    platform_id, attempt.signal.amount, attempt.signal.observed_at_millis
                )
            except Exception:
                logger.exception("stage=analytics platform=%s", platform_id.value)

    @contextmanager
    def _wake_lock_held(self, tag: str) -> Iterator[None]:
        acquired = False
        if self.wake_lock is not None:
            try:
                self.wake_lock.acquire(tag, self.config.wake_lock_timeout_ms)
                acquired = True
            except Exception:
                logger.exception("Could not acquire wake lock %s", tag)
        try:
            yield
        finally:
            if acquired:
                try:
                    self.wake_lock.release(tag)
                except Exception:
                    logger.exception("Could not release wake lock %s", tag)

    def _abandon(self, attempt: AcceptanceAttempt, reason: str) -> None:
        attempt.outcome = AttemptOutcome.ABANDONED
        attempt.reason = reason
        attempt.transition(AttemptState.IDLE)
        logger.debug("Attempt for %s abandoned: %s", attempt.platform_id.value, reason)

    def _fail(self, attempt: AcceptanceAttempt, reason: str) -> None:
        attempt.outcome = AttemptOutcome.FAILED
        attempt.reason = reason
        attempt.transition(AttemptState.FAILED)
        logger.warning("Attempt for %s failed: %s", attempt.platform_id.value, reason)
