"""Core domain layer."""

from order_autopilot.core.classifier import Classifier
from order_autopilot.core.coordinator import AcceptanceCoordinator
from order_autopilot.core.entities import (
    AcceptanceAttempt,
    AttemptOutcome,
    AttemptState,
    ClassificationLabel,
    ClassificationResult,
    ControlMatch,
    MatchStrategy,
    OrderSignal,
    PlatformId,
    PlatformProfile,
    PriorityDecision,
    PriorityTier,
    ScreenEventKind,
    SignalSource,
    UiNode,
    UserWeights,
    VisualMatch,
)
from order_autopilot.core.extractor import NotificationExtractor
from order_autopilot.core.interfaces import (
    AnalyticsSink,
    BatteryProbe,
    FeedbackLog,
    ForegroundLauncher,
    PlatformStore,
    ScreenReader,
    UiActuator,
    VisualMatcher,
    WakeLock,
)
from order_autopilot.core.package_resolver import PackageResolver
from order_autopilot.core.prioritization import PrioritizationEngine
from order_autopilot.core.screen_matcher import ScreenMatcher
from order_autopilot.core.throttle import RateLimiter, RecentNotifications, ThrottlePolicy

__all__ = [
    "OrderSignal",
    "PlatformId",
    "PlatformProfile",
    "SignalSource",
    "ScreenEventKind",
    "ClassificationLabel",
    "ClassificationResult",
    "PriorityTier",
    "PriorityDecision",
    "UserWeights",
    "AttemptState",
    "AttemptOutcome",
    "AcceptanceAttempt",
    "UiNode",
    "MatchStrategy",
    "ControlMatch",
    "VisualMatch",
    "PlatformStore",
    "UiActuator",
    "ForegroundLauncher",
    "AnalyticsSink",
    "FeedbackLog",
    "ScreenReader",
    "VisualMatcher",
    "WakeLock",
    "BatteryProbe",
    "PackageResolver",
    "NotificationExtractor",
    "Classifier",
    "PrioritizationEngine",
    "ScreenMatcher",
    "ThrottlePolicy",
    "RateLimiter",
    "RecentNotifications",
    "AcceptanceCoordinator",
]
