"""Feedback log adapters."""

from order_autopilot.adapters.feedback.yaml_feedback_log import YamlFeedbackLog

__all__ = ["YamlFeedbackLog"]
