"""HTTP sender for per-product usage reporting webhooks.

Posts accepted usage to the product's configured ``usage_reporting_url``
with a bounded timeout. Transient failures (timeouts, connection errors,
429 and 5xx responses) are retried with exponential backoff; after the
last attempt the failure is logged and reported as ``False``.
"""

import json
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from meterline.core.logging import logger
from meterline.core.protocols.usage_webhooks import UsageWebhookSenderProtocol


def should_retry(exception: BaseException) -> bool:
    """Whether a delivery failure is transient."""
    if isinstance(exception, httpx.HTTPStatusError):
        status = exception.response.status_code
        return status == 429 or status >= 500
    return isinstance(
        exception,
        (
            httpx.ConnectTimeout,
            httpx.ReadTimeout,
            httpx.WriteTimeout,
            httpx.PoolTimeout,
            httpx.ConnectError,
        ),
    )


class HttpUsageWebhookSender(UsageWebhookSenderProtocol):
    """httpx-backed usage webhook sender."""

    def __init__(
        self,
        timeout_seconds: float = 5.0,
        max_attempts: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize with timeout and retry bounds."""
        self._timeout = timeout_seconds
        self._max_attempts = max_attempts
        self._transport = transport

    async def _post(self, client: httpx.AsyncClient, url: str, body: str) -> None:
        response = await client.post(
            url, content=body, headers={"Content-Type": "application/json"}
        )
        response.raise_for_status()

    async def send(self, url: str, payload: dict[str, Any]) -> bool:
        """POST *payload* as JSON; never raises."""
        body = json.dumps(payload, default=str)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(self._max_attempts),
                    wait=wait_exponential(multiplier=0.5, max=4),
                    retry=retry_if_exception(should_retry),
                    reraise=True,
                ):
                    with attempt:
                        await self._post(client, url, body)
            return True
        except (httpx.HTTPError, RetryError) as e:
            logger.warning(f"Usage webhook to {url} failed: {e}")
            return False
