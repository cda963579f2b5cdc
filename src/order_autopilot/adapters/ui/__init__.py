"""UI tree adapters."""

from order_autopilot.adapters.ui.uiautomator import load_tree, parse_bounds, parse_uiautomator_dump, tree_from_dict

__all__ = ["load_tree", "parse_bounds", "parse_uiautomator_dump", "tree_from_dict"]
