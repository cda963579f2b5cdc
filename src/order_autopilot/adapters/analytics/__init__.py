"""Analytics sink adapters."""

from order_autopilot.adapters.analytics.webhook_sink import WebhookAnalyticsSink

__all__ = ["WebhookAnalyticsSink"]
