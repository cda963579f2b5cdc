"""Webhook analytics adapter."""

import asyncio
import logging
from typing import Optional

import httpx

from order_autopilot.config import AnalyticsConfig
from order_autopilot.core.entities import PlatformId
from order_autopilot.core.interfaces import AnalyticsSink

logger = logging.getLogger(__name__)


class WebhookAnalyticsSink(AnalyticsSink):
    """POST accepted orders to an analytics webhook as JSON."""

    def __init__(self, config: Optional[AnalyticsConfig] = None) -> None:
        """Initialize the sink.

        Args:
            config: Webhook settings. Without a `webhook_url` every record is skipped.
        """
        self.config = config or AnalyticsConfig()

    @property
    def webhook_url(self) -> Optional[str]:
        return self.config.webhook_url

    async def record_accepted_order(self, platform_id: PlatformId, amount: float, timestamp_millis: int) -> None:
        if not self.webhook_url:
            # Silently skip if no webhook configured
            return

        payload = {
            "event": "order_accepted",
            "platform": PlatformId(platform_id).value,
            "amount": amount,
            "timestamp_millis": timestamp_millis,
        }

        try:
            await self._post(payload)
            logger.info("Accepted order on %s sent to analytics", payload["platform"])
        except httpx.HTTPError as e:
            logger.warning("Could not send accepted order to analytics: %s", e)

    async def _post(self, payload: dict) -> None:
        """POST with retry on rate limits, server errors and network failures."""
        cfg = self.config
        last_exception: Optional[Exception] = None

        for attempt in range(cfg.max_retries):
            try:
                async with httpx.AsyncClient(timeout=cfg.timeout) as client:
                    response = await client.post(self.webhook_url, json=payload)

                    if response.status_code < 300:
                        return

                    # Rate limit - honour Retry-After
                    if response.status_code == 429:
                        retry_after = self._get_retry_delay(response, attempt)
                        logger.info(
                            "Analytics rate limited, retrying after %.1fs (attempt %d/%d)",
                            retry_after,
                            attempt + 1,
                            cfg.max_retries,
                        )
                        await asyncio.sleep(retry_after)
                        continue

                    if response.status_code >= 500:
                        retry_delay = cfg.initial_retry_delay * (2 ** attempt)
                        logger.info("Analytics server error %d, retrying after %.1fs", response.status_code, retry_delay)
                        await asyncio.sleep(retry_delay)
                        continue

                    # Other errors - raise immediately
                    response.raise_for_status()

            except httpx.RequestError as e:
                last_exception = e
                if attempt < cfg.max_retries - 1:
                    retry_delay = cfg.initial_retry_delay * (2 ** attempt)
                    logger.info("Analytics network error, retrying after %.1fs", retry_delay)
                    await asyncio.sleep(retry_delay)
                    continue
                raise

        if last_exception:
            raise last_exception
        raise httpx.HTTPError(f"Analytics webhook failed after {cfg.max_retries} attempts")

    def _get_retry_delay(self, response: httpx.Response, attempt: int) -> float:
        retry_after = response.headers.get("retry-after")
        if retry_after:
            try:
                return float(retry_after)
            except ValueError:
                pass
        return self.config.initial_retry_delay * (2 ** attempt)
