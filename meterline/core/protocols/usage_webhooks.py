"""Outbound per-product usage webhook protocol."""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class UsageWebhookSenderProtocol(Protocol):
    """Best-effort POST of accepted usage to a product's reporting URL."""

    async def send(self, url: str, payload: dict[str, Any]) -> bool:
        """Deliver *payload*; returns False instead of raising on failure."""
        ...
