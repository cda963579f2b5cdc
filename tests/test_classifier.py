"""Tests for the rule-based classifier."""

from datetime import timezone

from order_autopilot.config import ClassifierConfig
from order_autopilot.core import Classifier, ClassificationLabel, OrderSignal, PlatformId

# Tuesday 2023-11-14, UTC
TUESDAY_OFF_PEAK = 1699920000000 + 10 * 3600 * 1000
TUESDAY_EVENING = 1699920000000 + 18 * 3600 * 1000
SATURDAY_MORNING = 1699920000000 + 4 * 86400 * 1000 + 10 * 3600 * 1000


def make_signal(amount=150.0, distance=None, at=TUESDAY_OFF_PEAK) -> OrderSignal:
    return OrderSignal(
        platform_id=PlatformId.SWIGGY,
        amount=amount,
        observed_at_millis=at,
        estimated_distance_km=distance,
    )


def test_earning_tiers() -> None:
    """Test HIGH_EARNING thresholds."""
    classifier = Classifier(tz=timezone.utc)

    def weight(amount: float) -> float:
        return classifier.classify(make_signal(amount)).weights[ClassificationLabel.HIGH_EARNING]

    assert weight(250) == 0.9
    assert weight(200) == 0.7
    assert weight(151) == 0.7
    assert weight(150) == 0.3


def test_high_earning_is_monotonic() -> None:
    """Test that a larger amount never gets a smaller earning weight."""
    classifier = Classifier(tz=timezone.utc)
    amounts = [0, 50, 99.99, 100, 149, 150, 150.01, 199, 200, 200.01, 500, 10000]
    weights = [classifier.classify(make_signal(a)).weights[ClassificationLabel.HIGH_EARNING] for a in amounts]
    assert weights == sorted(weights)


def test_distance_tiers() -> None:
    """Test LOW_DISTANCE thresholds and the neutral default."""
    classifier = Classifier(tz=timezone.utc)

    def weight(distance):
        return classifier.classify(make_signal(distance=distance)).weights[ClassificationLabel.LOW_DISTANCE]

    assert weight(None) == 0.5
    assert weight(1.5) == 0.9
    assert weight(2.0) == 0.6
    assert weight(4.9) == 0.6
    assert weight(5.0) == 0.2


def test_busy_time() -> None:
    """Test evening and weekend detection in the configured timezone."""
    classifier = Classifier(tz=timezone.utc)

    assert classifier.classify(make_signal(at=TUESDAY_OFF_PEAK)).weights[ClassificationLabel.BUSY_TIME] == 0.4
    assert classifier.classify(make_signal(at=TUESDAY_EVENING)).weights[ClassificationLabel.BUSY_TIME] == 0.8
    assert classifier.classify(make_signal(at=SATURDAY_MORNING)).weights[ClassificationLabel.BUSY_TIME] == 0.8


def test_low_priority_threshold() -> None:
    """Test LOW_PRIORITY for small orders."""
    classifier = Classifier(tz=timezone.utc)
    assert classifier.classify(make_signal(99)).weights[ClassificationLabel.LOW_PRIORITY] == 0.8
    assert classifier.classify(make_signal(100)).weights[ClassificationLabel.LOW_PRIORITY] == 0.2


def test_result_always_contains_standard() -> None:
    """Test that STANDARD is present with its default weight."""
    weights = Classifier(tz=timezone.utc).classify(make_signal()).weights
    assert weights[ClassificationLabel.STANDARD] == 0.5
    assert set(weights) == set(ClassificationLabel)


def test_classify_falls_back_on_failure() -> None:
    """Test that an unclassifiable signal yields the STANDARD fallback."""
    result = Classifier(tz=timezone.utc).classify(make_signal(amount=None))
    assert result.weights == {ClassificationLabel.STANDARD: 1.0}


def test_custom_thresholds() -> None:
    """Test that tier tables come from configuration."""
    config = ClassifierConfig(earning_cutoffs=[100.0], earning_weights=[1.0, 0.1])
    classifier = Classifier(config, tz=timezone.utc)
    assert classifier.classify(make_signal(101)).weights[ClassificationLabel.HIGH_EARNING] == 1.0
    assert classifier.classify(make_signal(100)).weights[ClassificationLabel.HIGH_EARNING] == 0.1
