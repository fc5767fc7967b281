"""Fake usage webhook sender for testing."""

from typing import Any

from meterline.core.protocols.usage_webhooks import UsageWebhookSenderProtocol


class FakeUsageWebhookSender(UsageWebhookSenderProtocol):
    """Records deliveries; ``fail=True`` makes every delivery report failure."""

    def __init__(self, fail: bool = False) -> None:
        """Initialize with an empty delivery log."""
        self.fail = fail
        self.sent: list[tuple[str, dict[str, Any]]] = []

    async def send(self, url: str, payload: dict[str, Any]) -> bool:
        """Record the delivery."""
        self.sent.append((url, payload))
        return not self.fail
