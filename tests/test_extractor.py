"""Tests for notification and screen extraction."""

import pytest

from order_autopilot.core import NotificationExtractor, PlatformId, SignalSource, UiNode
from order_autopilot.core.extractor import parse_amount


def test_extract_swiggy_order() -> None:
    """Test extraction of amount, distance and time from a typical order."""
    signal = NotificationExtractor().extract(
        PlatformId.SWIGGY,
        "New Order: ₹150",
        "Pickup from Restaurant A, 3.5 km away, estimated time 25 min",
        observed_at_millis=1700000000000,
    )

    assert signal is not None
    assert signal.platform_id == PlatformId.SWIGGY
    assert signal.amount == 150.0
    assert signal.estimated_distance_km == 3.5
    assert signal.estimated_time_minutes == 25
    assert signal.observed_at_millis == 1700000000000
    assert signal.source == SignalSource.NOTIFICATION


def test_text_without_amount_is_not_an_order() -> None:
    """Test that notifications without a currency amount are ignored."""
    extractor = NotificationExtractor()
    assert extractor.extract(PlatformId.SWIGGY, "Swiggy", "Your account has been updated") is None
    assert extractor.extract(PlatformId.ZOMATO, "", "") is None
    assert extractor.extract(PlatformId.ZOMATO, None, None) is None


def test_unsupported_platform_yields_nothing() -> None:
    """Test that unsupported platforms are never parsed."""
    assert NotificationExtractor().extract(PlatformId.UNSUPPORTED, "New Order: ₹150", "") is None


@pytest.mark.parametrize(
    "title,body,amount",
    [
        ("New order", "Order value Rs. 1,250", 1250.0),
        ("New order", "INR 300 for 2 km", 300.0),
        ("₹ 2,000.50", "", 2000.5),
        ("New order", "You get 180 rupees", 180.0),
        # Labelled earnings win over the order value
        ("New order", "Order value ₹450. Earn ₹85 on this trip", 85.0),
        # Title is searched before body
        ("New Order: ₹150", "Bill ₹200", 150.0),
    ],
)
def test_amount_formats(title: str, body: str, amount: float) -> None:
    """Test the supported currency formats."""
    signal = NotificationExtractor().extract(PlatformId.ZOMATO, title, body)
    assert signal is not None
    assert signal.amount == amount


def test_distance_and_time_units() -> None:
    """Test meter and hour conversion."""
    signal = NotificationExtractor().extract(PlatformId.ZEPTO, "₹60", "Drop 800 m away, about 1 hr")
    assert signal.estimated_distance_km == 0.8
    assert signal.estimated_time_minutes == 60


def test_missing_distance_and_time_are_unset() -> None:
    """Test that optional fields stay None when absent."""
    signal = NotificationExtractor().extract(PlatformId.BLINKIT, "New order ₹75", "Pick up now")
    assert signal.amount == 75.0
    assert signal.estimated_distance_km is None
    assert signal.estimated_time_minutes is None


def test_minutes_are_not_read_as_meters() -> None:
    """Test that '25 min' does not become a distance."""
    signal = NotificationExtractor().extract(PlatformId.BLINKIT, "₹75", "Deliver in 25 min")
    assert signal.estimated_distance_km is None
    assert signal.estimated_time_minutes == 25


def test_uber_estimated_fare() -> None:
    """Test Uber's estimated fare format."""
    signal = NotificationExtractor().extract(PlatformId.UBER_EATS, "Delivery request", "₹85.50 est. · 4.2 km")
    assert signal.amount == 85.5
    assert signal.estimated_distance_km == 4.2


def test_extract_from_screen() -> None:
    """Test extraction from the text visible on an offer screen."""
    tree = UiNode(
        children=[
            UiNode(text="New delivery"),
            UiNode(text="₹220"),
            UiNode(content_description="1.2 km away"),
            UiNode(text="Accept", clickable=True),
        ]
    )

    signal = NotificationExtractor().extract_from_screen(PlatformId.ZOMATO, tree, observed_at_millis=5)

    assert signal.amount == 220.0
    assert signal.estimated_distance_km == 1.2
    assert signal.source == SignalSource.SCREEN
    assert signal.observed_at_millis == 5


def test_parse_amount() -> None:
    """Test numeric parsing of captured amounts."""
    assert parse_amount("1,234.5") == 1234.5
    assert parse_amount("") is None
    assert parse_amount("abc") is None
    assert parse_amount("9" * 400) is None
    assert parse_amount("inf") is None
    assert parse_amount("nan") is None


def test_oversized_amount_is_not_an_order() -> None:
    """Test that an amount too large to represent is not read as an order."""
    signal = NotificationExtractor().extract(PlatformId.SWIGGY, "New Order: ₹" + "9" * 400, "Pickup 2 km away")
    assert signal is None


def test_oversized_distance_and_time_are_unset() -> None:
    """Test that unrepresentable distance and time leave the fields unset."""
    body = "Pickup " + "9" * 400 + " km away, estimated time " + "9" * 400 + " min"

    signal = NotificationExtractor().extract(PlatformId.SWIGGY, "New Order: ₹150", body)

    assert signal is not None
    assert signal.amount == 150.0
    assert signal.estimated_distance_km is None
    assert signal.estimated_time_minutes is None
