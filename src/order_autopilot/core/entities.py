"""Core domain entities."""

import hashlib
import math
import uuid
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional


class PlatformId(str, Enum):
    """Canonical delivery platform identifier."""

    SWIGGY = "swiggy"
    INSTAMART = "instamart"
    ZOMATO = "zomato"
    ZEPTO = "zepto"
    BLINKIT = "blinkit"
    UBER_EATS = "ubereats"
    BIGBASKET = "bigbasket"
    UNSUPPORTED = "unsupported"


class SignalSource(str, Enum):
    """Where an order signal was observed."""

    NOTIFICATION = "notification"
    SCREEN = "screen"


class ScreenEventKind(str, Enum):
    """Kind of accessibility event that produced a screen snapshot."""

    CONTENT_CHANGED = "content_changed"
    WINDOW_STATE_CHANGED = "window_state_changed"


@dataclass
class OrderSignal:
    """One order observed in a notification or on screen."""

    platform_id: PlatformId
    amount: Optional[float]
    observed_at_millis: int
    estimated_distance_km: Optional[float] = None
    estimated_time_minutes: Optional[int] = None
    source: SignalSource = SignalSource.NOTIFICATION
    signal_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self) -> None:
        if self.amount is not None and self.amount < 0:
            raise ValueError("Amount cannot be negative")
        if self.amount is not None and not math.isfinite(self.amount):
            raise ValueError("Amount must be finite")
        if self.estimated_distance_km is not None and not math.isfinite(self.estimated_distance_km):
            raise ValueError("Distance must be finite")
        if self.estimated_distance_km is not None and self.estimated_distance_km < 0:
            raise ValueError("Distance cannot be negative")
        if self.estimated_time_minutes is not None and self.estimated_time_minutes < 0:
            raise ValueError("Time estimate cannot be negative")

    @property
    def is_actionable(self) -> bool:
        return self.amount is not None and self.platform_id != PlatformId.UNSUPPORTED


class ClassificationLabel(str, Enum):
    """Categorical features an order is scored on."""

    HIGH_EARNING = "high_earning"
    LOW_DISTANCE = "low_distance"
    BUSY_TIME = "busy_time"
    STANDARD = "standard"
    LOW_PRIORITY = "low_priority"


@dataclass
class ClassificationResult:
    """Confidence weight per label, always including STANDARD."""

    weights: dict[ClassificationLabel, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.weights.setdefault(ClassificationLabel.STANDARD, 0.5)

    @classmethod
    def fallback(cls) -> "ClassificationResult":
        return cls(weights={ClassificationLabel.STANDARD: 1.0})

    def get(self, label: ClassificationLabel, default: float) -> float:
        return self.weights.get(label, default)


class PriorityTier(str, Enum):
    """Priority tier of an order."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return {"LOW": 0, "MEDIUM": 1, "HIGH": 2}[self.value]


@dataclass
class PriorityDecision:
    """Tier and the score that produced it."""

    tier: PriorityTier
    score: float
    policy_version: str
    is_fallback: bool = False


@dataclass
class UserWeights:
    """User-configured importance of each feature."""

    earnings: float = 0.5
    distance: float = 0.3
    time: float = 0.2


@dataclass
class PlatformProfile:
    """User settings for one platform."""

    platform_id: PlatformId
    is_enabled: bool = True
    auto_accept_enabled: bool = True
    minimum_amount: float = 0.0
    priority_weight: float = 1.0
    package_identifiers: list[str] = field(default_factory=list)
    should_remove: bool = False
    # Lowest tier that may be auto-accepted; MEDIUM when medium priority is opted into
    minimum_priority: PriorityTier = PriorityTier.HIGH


class AttemptState(str, Enum):
    """States of the acceptance state machine."""

    IDLE = "idle"
    SIGNAL_RECEIVED = "signal_received"
    GATING_CHECK = "gating_check"
    LOCATING_CONTROL = "locating_control"
    ACTION_DISPATCHED = "action_dispatched"
    CONFIRMATION_WAIT = "confirmation_wait"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class AttemptOutcome(str, Enum):
    """Outcome of an acceptance attempt."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABANDONED = "abandoned"


@dataclass
class AcceptanceAttempt:
    """One in-flight accept operation."""

    platform_id: PlatformId
    signal: OrderSignal
    priority: Optional[PriorityDecision] = None
    state: AttemptState = AttemptState.IDLE
    outcome: AttemptOutcome = AttemptOutcome.PENDING
    retry_count: int = 0
    last_action_at: Optional[float] = None
    reason: str = ""
    history: list[AttemptState] = field(default_factory=list)

    def transition(self, state: AttemptState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def is_terminal(self) -> bool:
        return self.outcome != AttemptOutcome.PENDING


@dataclass(eq=False)
class UiNode:
    """Node of an accessibility (UI element) tree.

    Nodes compare by identity: two structurally equal buttons on the same
    screen are still different controls.
    """

    text: str = ""
    content_description: str = ""
    resource_id: str = ""
    class_name: str = ""
    clickable: bool = False
    enabled: bool = True
    bounds: tuple[int, int, int, int] = (0, 0, 0, 0)
    package: str = ""
    children: list["UiNode"] = field(default_factory=list)

    def iter_bfs(self, max_depth: Optional[int] = None) -> Iterator[tuple["UiNode", int]]:
        """Yield (node, depth) pairs breadth-first."""
        queue: deque[tuple[UiNode, int]] = deque([(self, 0)])
        while queue:
            node, depth = queue.popleft()
            yield node, depth
            if max_depth is not None and depth >= max_depth:
                continue
            for child in node.children:
                queue.append((child, depth + 1))

    def visible_text(self) -> str:
        """All non-empty text and descriptions, one per line, in BFS order."""
        parts = []
        for node, _ in self.iter_bfs():
            if node.text:
                parts.append(node.text)
            elif node.content_description:
                parts.append(node.content_description)
        return "\n".join(parts)

    def fingerprint(self) -> str:
        """Digest of the tree's text, ids and actionability."""
        digest = hashlib.sha1()
        for node, depth in self.iter_bfs():
            digest.update(
                f"{depth}|{node.text}|{node.content_description}|{node.resource_id}|"
                f"{int(node.clickable)}{int(node.enabled)}\n".encode("utf-8")
            )
        return digest.hexdigest()

    def path_to(self, target: "UiNode") -> Optional[tuple[int, ...]]:
        """Child-index path from this node to target, or None."""
        stack: list[tuple[UiNode, tuple[int, ...]]] = [(self, ())]
        while stack:
            node, path = stack.pop()
            if node is target:
                return path
            for index, child in enumerate(node.children):
                stack.append((child, path + (index,)))
        return None

    def resolve_path(self, path: tuple[int, ...]) -> Optional["UiNode"]:
        node = self
        for index in path:
            if index >= len(node.children):
                return None
            node = node.children[index]
        return node

    @property
    def center(self) -> tuple[int, int]:
        left, top, right, bottom = self.bounds
        return (left + right) // 2, (top + bottom) // 2


class MatchStrategy(str, Enum):
    """Strategy that located a control."""

    DIRECT_TEXT = "direct_text"
    TREE_SEARCH = "tree_search"
    RESOURCE_ID = "resource_id"
    VISUAL = "visual"


@dataclass
class ControlMatch:
    """A located control and how confident the match is."""

    node: UiNode
    strategy: MatchStrategy
    confidence: float


@dataclass
class VisualMatch:
    """Result of screenshot-based control detection."""

    bounds: tuple[int, int, int, int]
    confidence: float
    label: str = "accept_button"
