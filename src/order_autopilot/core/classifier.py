"""Rule-based order classifier."""

import logging
from datetime import datetime, timezone, tzinfo
from typing import Optional

from order_autopilot.config import ClassifierConfig
from order_autopilot.core.entities import ClassificationLabel, ClassificationResult, OrderSignal

logger = logging.getLogger(__name__)


def tiered_weight(value: float, cutoffs: list[float], weights: list[float], higher_is_better: bool) -> float:
    """Pick the weight of the first tier whose cutoff the value passes.

    For `higher_is_better` the cutoffs are descending and a value must exceed
    a cutoff; otherwise they are ascending and a value must be below it. The
    last weight covers everything that passed no cutoff.
    """
    for cutoff, weight in zip(cutoffs, weights):
        if higher_is_better and value > cutoff:
            return weight
        if not higher_is_better and value < cutoff:
            return weight
    return weights[-1]


class Classifier:
    """Score an order signal on earning, distance, busy-time and low-value features."""

    def __init__(self, config: Optional[ClassifierConfig] = None, tz: Optional[tzinfo] = None) -> None:
        self.config = config or ClassifierConfig()
        self.tz = tz

    def classify(self, signal: OrderSignal) -> ClassificationResult:
        try:
            return ClassificationResult(weights=self._classify(signal))
        except Exception:
            logger.exception("stage=classify signal=%s: falling back to STANDARD", signal.signal_id)
            return ClassificationResult.fallback()

    def _classify(self, signal: OrderSignal) -> dict[ClassificationLabel, float]:
        cfg = self.config
        if signal.amount is None:
            raise ValueError("Cannot classify a signal without an amount")

        weights = {ClassificationLabel.STANDARD: cfg.standard_weight}

        weights[ClassificationLabel.HIGH_EARNING] = tiered_weight(
            signal.amount, cfg.earning_cutoffs, cfg.earning_weights, higher_is_better=True
        )

        if signal.estimated_distance_km is None:
            weights[ClassificationLabel.LOW_DISTANCE] = cfg.neutral_distance_weight
        else:
            weights[ClassificationLabel.LOW_DISTANCE] = tiered_weight(
                signal.estimated_distance_km, cfg.distance_cutoffs, cfg.distance_weights, higher_is_better=False
            )

        weights[ClassificationLabel.BUSY_TIME] = (
            cfg.busy_weight if self.is_busy_time(signal.observed_at_millis) else cfg.off_peak_weight
        )

        weights[ClassificationLabel.LOW_PRIORITY] = (
            cfg.low_value_weight if signal.amount < cfg.low_value_threshold else cfg.normal_value_weight
        )

        return weights

    def is_busy_time(self, observed_at_millis: int) -> bool:
        """Evening hours or weekend, in local time."""
        moment = datetime.fromtimestamp(observed_at_millis / 1000.0, tz=timezone.utc)
        local = moment.astimezone(self.tz) if self.tz is not None else moment.astimezone()
        return local.hour in self.config.busy_hours or local.isoweekday() in self.config.busy_weekdays
