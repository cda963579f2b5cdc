"""Tests for UI tree loading."""

from pathlib import Path

import pytest

from order_autopilot.adapters.ui import load_tree, parse_bounds, parse_uiautomator_dump, tree_from_dict

SCENARIOS = Path(__file__).resolve().parent.parent / "scenarios"


def test_parse_bounds() -> None:
    """Test bounds parsing and fallbacks."""
    assert parse_bounds("[40,1500][1040,1640]") == (40, 1500, 1040, 1640)
    assert parse_bounds(" [0,0][1080,1920] ") == (0, 0, 1080, 1920)
    assert parse_bounds("") == (0, 0, 0, 0)
    assert parse_bounds("40,1500,1040,1640") == (0, 0, 0, 0)


def test_parse_dump_attributes() -> None:
    """Test that dump attributes map onto nodes."""
    xml = """<?xml version='1.0' encoding='UTF-8' standalone='yes' ?>
<hierarchy rotation="0">
  <node text="" class="android.widget.FrameLayout" package="com.zepto.rider" bounds="[0,0][1080,1920]" clickable="false" enabled="true">
    <node text="Accept" resource-id="com.zepto.rider:id/btnAccept" content-desc="accept order"
          class="android.widget.Button" package="com.zepto.rider" clickable="true" enabled="false"
          bounds="[40,1500][1040,1640]" />
  </node>
</hierarchy>"""

    root = parse_uiautomator_dump(xml)

    assert root.class_name == "android.widget.FrameLayout"
    assert root.package == "com.zepto.rider"
    button = root.children[0]
    assert button.text == "Accept"
    assert button.resource_id == "com.zepto.rider:id/btnAccept"
    assert button.content_description == "accept order"
    assert button.clickable is True
    assert button.enabled is False
    assert button.bounds == (40, 1500, 1040, 1640)


def test_parse_dump_with_several_windows() -> None:
    """Test that several top-level windows share a synthetic root."""
    xml = """<hierarchy>
  <node text="Main" package="in.swiggy.deliveryapp" bounds="[0,0][1080,1920]" />
  <node text="Popup" package="in.swiggy.deliveryapp" bounds="[0,800][1080,1200]" />
</hierarchy>"""

    root = parse_uiautomator_dump(xml)

    assert root.class_name == "hierarchy"
    assert root.package == "in.swiggy.deliveryapp"
    assert [child.text for child in root.children] == ["Main", "Popup"]


def test_parse_invalid_dump() -> None:
    """Test that malformed or foreign XML is rejected."""
    with pytest.raises(ValueError):
        parse_uiautomator_dump("<hierarchy><node></hierarchy>")
    with pytest.raises(ValueError, match="Unexpected root"):
        parse_uiautomator_dump("<rss><channel /></rss>")


def test_tree_from_dict() -> None:
    """Test building trees from fixture mappings."""
    root = tree_from_dict(
        {
            "package": "app.blinkit.onboarding",
            "children": [
                {"text": "₹120", "bounds": "[0,100][500,200]"},
                {"text": "Accept", "clickable": True, "bounds": [40, 1500, 1040, 1640]},
            ],
        }
    )

    assert root.children[0].bounds == (0, 100, 500, 200)
    assert root.children[1].clickable is True
    assert root.children[1].package == "app.blinkit.onboarding"
    assert root.visible_text().count("Accept") == 1

    with pytest.raises(ValueError):
        tree_from_dict({"bounds": [1, 2, 3]})
    with pytest.raises(ValueError):
        tree_from_dict(["not", "a", "node"])


def test_load_tree_from_scenario_dump() -> None:
    """Test loading an XML dump from disk."""
    root = load_tree(SCENARIOS / "offer.xml")

    assert root.package == "in.swiggy.deliveryapp"
    texts = [node.text for node, _ in root.iter_bfs() if node.text]
    assert "Accept Order" in texts
