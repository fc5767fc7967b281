"""Unit tests for exception handlers in middleware.py.

Calls handlers directly to cover mappings without going through an endpoint.
"""

import json
from unittest.mock import MagicMock

import pytest

from meterline.api.middleware import (
    meterline_exception_handler,
    usage_limit_exceeded_exception_handler,
    webhook_handler_exception_handler,
)
from meterline.core.exceptions import MeterlineException
from meterline.core.shared_models import LimitAction
from meterline.domains.billing.exceptions import WebhookHandlerError
from meterline.domains.usage.exceptions import UsageLimitExceededError
from meterline.domains.usage.types import ZERO_LIMIT_PERCENTAGE, LimitDecision


@pytest.mark.asyncio
async def test_zero_limit_block_serializes():
    decision = LimitDecision(
        allowed=False,
        action=LimitAction.BLOCK,
        current_usage=0.0,
        new_total=1.0,
        limit=0.0,
        percentage=ZERO_LIMIT_PERCENTAGE,
        reason="Usage limit exceeded",
    )

    response = await usage_limit_exceeded_exception_handler(
        MagicMock(), UsageLimitExceededError(decision, 1.0)
    )

    assert response.status_code == 429
    assert json.loads(response.body)["limits"]["percentage"] == ZERO_LIMIT_PERCENTAGE


@pytest.mark.asyncio
async def test_webhook_handler_error_returns_500_with_event_id():
    response = await webhook_handler_exception_handler(
        MagicMock(), WebhookHandlerError("evt_1", "Handler failed")
    )

    assert response.status_code == 500
    assert json.loads(response.body) == {"detail": "Handler failed", "eventId": "evt_1"}


@pytest.mark.asyncio
async def test_unmapped_meterline_exception_returns_500():
    response = await meterline_exception_handler(MagicMock(), MeterlineException("unexpected"))

    assert response.status_code == 500
    assert b"unexpected" in response.body
