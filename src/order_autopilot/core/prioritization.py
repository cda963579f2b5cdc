"""Combine classification weights into a priority tier."""

import logging
import math
from typing import Optional

from order_autopilot.core.entities import (
    ClassificationLabel,
    ClassificationResult,
    PriorityDecision,
    PriorityTier,
    UserWeights,
)
from order_autopilot.core.interfaces import FeedbackLog

logger = logging.getLogger(__name__)

# Tier policy. Changing any of these constants is a new policy version.
POLICY_VERSION = "tiers-v1"
HIGH_THRESHOLD = 0.7
MEDIUM_THRESHOLD = 0.4
LOW_PRIORITY_PENALTY = 0.5

# Weights assumed for labels the classification does not carry
MISSING_LABEL_DEFAULTS = {
    ClassificationLabel.HIGH_EARNING: 0.5,
    ClassificationLabel.LOW_DISTANCE: 0.5,
    ClassificationLabel.BUSY_TIME: 0.5,
    ClassificationLabel.LOW_PRIORITY: 0.0,
}


def tier_for_score(score: float) -> PriorityTier:
    if score >= HIGH_THRESHOLD:
        return PriorityTier.HIGH
    if score >= MEDIUM_THRESHOLD:
        return PriorityTier.MEDIUM
    return PriorityTier.LOW


class PrioritizationEngine:
    """Weighted scoring of classified orders.

    Never raises: any failure yields a MEDIUM decision flagged as fallback.
    """

    def __init__(self, feedback_log: Optional[FeedbackLog] = None) -> None:
        self.feedback_log = feedback_log

    def score(self, classification: ClassificationResult, weights: UserWeights) -> PriorityDecision:
        try:
            value = self._score(classification, weights)
        except Exception:
            logger.exception("stage=prioritize: falling back to MEDIUM")
            return PriorityDecision(
                tier=PriorityTier.MEDIUM, score=float("nan"), policy_version=POLICY_VERSION, is_fallback=True
            )

        tier = tier_for_score(value)
        logger.debug("Order scored %.3f: %s priority", value, tier.value)
        return PriorityDecision(tier=tier, score=value, policy_version=POLICY_VERSION)

    def _score(self, classification: ClassificationResult, weights: UserWeights) -> float:
        if weights is None:
            raise ValueError("User weights are missing")

        def label(name: ClassificationLabel) -> float:
            return float(classification.get(name, MISSING_LABEL_DEFAULTS[name]))

        value = (
            float(weights.earnings) * label(ClassificationLabel.HIGH_EARNING)
            + float(weights.distance) * label(ClassificationLabel.LOW_DISTANCE)
            + float(weights.time) * label(ClassificationLabel.BUSY_TIME)
            - LOW_PRIORITY_PENALTY * label(ClassificationLabel.LOW_PRIORITY)
        )
        if not math.isfinite(value):
            raise ValueError(f"Non-finite priority score: {value}")
        return value

    async def record_feedback(self, signal_id: str, user_assigned_priority: PriorityTier) -> None:
        """Log a user's priority correction for offline weight tuning."""
        try:
            priority = PriorityTier(user_assigned_priority)
            logger.info("Feedback for signal %s: user priority = %s", signal_id, priority.value)
            if self.feedback_log is not None:
                await self.feedback_log.record(signal_id, priority)
        except Exception:
            logger.exception("stage=feedback signal=%s: could not record feedback", signal_id)
