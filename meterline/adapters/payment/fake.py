"""Fake payment gateway for testing.

In-memory implementation of PaymentGatewayProtocol.
Records all calls for assertions. No external API calls.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from meterline.core.protocols.payment import PaymentGatewayProtocol


class FakePaymentGateway(PaymentGatewayProtocol):
    """Test implementation of PaymentGatewayProtocol.

    Usage::

        fake = FakePaymentGateway()
        await fake.create_usage_record("si_1", quantity=3, timestamp=now)
        assert fake.call_count("create_usage_record") == 1

    ``verify_webhook_signature`` accepts the signature ``"valid"`` and
    parses the payload as a JSON event; anything else raises ValueError.
    """

    VALID_SIGNATURE = "valid"

    def __init__(self, should_raise: Optional[Exception] = None, enabled: bool = True) -> None:
        """Initialize with optional error injection."""
        self._should_raise = should_raise
        self._enabled = enabled
        self._calls: list[tuple[str, tuple, dict]] = []
        self.usage_records: list[_obj] = []
        self._idempotency: dict[str, _obj] = {}

    def _record(self, method: str, *args: Any, **kwargs: Any) -> None:
        self._calls.append((method, args, kwargs))
        if self._should_raise:
            raise self._should_raise

    # ---- Test helpers ----

    def call_count(self, method: str) -> int:
        """Number of times a method was called."""
        return sum(1 for name, _, _ in self._calls if name == method)

    def calls_for(self, method: str) -> list[tuple[tuple, dict]]:
        """Return (args, kwargs) for each call to *method*."""
        return [(a, k) for name, a, k in self._calls if name == method]

    def fail_with(self, exc: Optional[Exception]) -> None:
        """Make subsequent calls raise *exc* (None to recover)."""
        self._should_raise = exc

    @property
    def enabled(self) -> bool:
        """Whether the fake behaves as a configured provider."""
        return self._enabled

    # ---- Metered usage ----

    async def create_usage_record(
        self,
        subscription_item_id: str,
        *,
        quantity: int,
        timestamp: datetime,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        """Store a fake usage record; repeated idempotency keys return the first."""
        self._record(
            "create_usage_record",
            subscription_item_id,
            quantity=quantity,
            timestamp=timestamp,
            idempotency_key=idempotency_key,
        )
        if idempotency_key and idempotency_key in self._idempotency:
            return self._idempotency[idempotency_key]
        record = _obj(
            id=f"mbur_{uuid4().hex[:14]}",
            subscription_item=subscription_item_id,
            quantity=quantity,
            timestamp=int(timestamp.timestamp()),
        )
        self.usage_records.append(record)
        if idempotency_key:
            self._idempotency[idempotency_key] = record
        return record

    # ---- Webhook operations ----

    def verify_webhook_signature(self, payload: bytes, signature: str) -> Any:
        """Accept only the canned valid signature."""
        self._calls.append(("verify_webhook_signature", (payload, signature), {}))
        if signature != self.VALID_SIGNATURE:
            raise ValueError("Invalid webhook signature")
        return self.construct_event(json.loads(payload))

    def construct_event(self, payload: dict) -> Any:
        """Build an attribute-bag event from a plain dict."""
        return _to_obj(payload)


class _obj:
    """Tiny attribute-bag to emulate Stripe object shapes in tests."""

    def __init__(self, **kwargs: Any):
        for k, v in kwargs.items():
            setattr(self, k, v)

    def get(self, key: str, default: Any = None) -> Any:
        """Get attribute by key with default."""
        return getattr(self, key, default)


def _to_obj(value: Any) -> Any:
    if isinstance(value, dict):
        return _obj(**{k: _to_obj(v) for k, v in value.items()})
    if isinstance(value, list):
        return [_to_obj(v) for v in value]
    return value
