"""Order Autopilot - detect, rank and accept delivery orders."""

__version__ = "0.1.0"
