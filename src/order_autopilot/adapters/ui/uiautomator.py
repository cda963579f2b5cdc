"""Build UI trees from `uiautomator dump` XML or plain dict fixtures."""

import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any

import yaml

from order_autopilot.core.entities import UiNode

_BOUNDS = re.compile(r"\[(-?\d+),(-?\d+)\]\[(-?\d+),(-?\d+)\]")


def parse_bounds(raw: str) -> tuple[int, int, int, int]:
    """'[l,t][r,b]' -> (l, t, r, b); anything else is an empty box."""
    match = _BOUNDS.fullmatch((raw or "").strip())
    if not match:
        return (0, 0, 0, 0)
    left, top, right, bottom = (int(v) for v in match.groups())
    return (left, top, right, bottom)


def _flag(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def _node_from_element(element: ET.Element) -> UiNode:
    return UiNode(
        text=element.get("text", ""),
        content_description=element.get("content-desc", ""),
        resource_id=element.get("resource-id", ""),
        class_name=element.get("class", ""),
        clickable=_flag(element.get("clickable"), False),
        enabled=_flag(element.get("enabled"), True),
        bounds=parse_bounds(element.get("bounds", "")),
        package=element.get("package", ""),
        children=[_node_from_element(child) for child in element if child.tag == "node"],
    )


def parse_uiautomator_dump(xml_text: str) -> UiNode:
    """Parse the XML written by `adb shell uiautomator dump`.

    The dump wraps windows in a `<hierarchy>` element; a single top-level
    node becomes the root, several are grouped under a synthetic root.

    Raises:
        ValueError: if the text is not a UI hierarchy.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise ValueError(f"Invalid UI dump: {e}") from e

    if root.tag == "node":
        return _node_from_element(root)
    if root.tag != "hierarchy":
        raise ValueError(f"Unexpected root element <{root.tag}>")

    nodes = [_node_from_element(child) for child in root if child.tag == "node"]
    if len(nodes) == 1:
        return nodes[0]
    package = nodes[0].package if nodes else ""
    return UiNode(class_name="hierarchy", package=package, children=nodes)


def tree_from_dict(data: dict, package: str = "") -> UiNode:
    """Build a tree from nested dicts (JSON or YAML fixtures).

    Keys mirror the dump attributes: `text`, `content_desc`, `resource_id`,
    `class`, `clickable`, `enabled`, `bounds` (list or '[l,t][r,b]'),
    `package`, `children`.
    """
    if not isinstance(data, dict):
        raise ValueError(f"UI node must be a mapping, got {type(data).__name__}")

    bounds = data.get("bounds")
    if isinstance(bounds, str):
        bounds = parse_bounds(bounds)
    elif bounds is None:
        bounds = (0, 0, 0, 0)
    else:
        bounds = tuple(int(v) for v in bounds)
        if len(bounds) != 4:
            raise ValueError(f"bounds needs four values, got {len(bounds)}")

    package = str(data.get("package", package) or "")
    return UiNode(
        text=str(data.get("text", "") or ""),
        content_description=str(data.get("content_desc", data.get("content_description", "")) or ""),
        resource_id=str(data.get("resource_id", "") or ""),
        class_name=str(data.get("class", data.get("class_name", "")) or ""),
        clickable=_flag(data.get("clickable"), False),
        enabled=_flag(data.get("enabled"), True),
        bounds=bounds,
        package=package,
        children=[tree_from_dict(child, package) for child in data.get("children") or []],
    )


def load_tree(path: Path) -> UiNode:
    """Load a tree from an `.xml` dump or a YAML/JSON fixture file."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".xml":
        return parse_uiautomator_dump(text)
    return tree_from_dict(yaml.safe_load(text) or {})
