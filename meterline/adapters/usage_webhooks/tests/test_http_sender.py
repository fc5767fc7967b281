"""Unit tests for the HTTP usage webhook sender."""

import json

import httpx
import pytest

from meterline.adapters.usage_webhooks.http import HttpUsageWebhookSender, should_retry

URL = "https://product.example.com/usage"
PAYLOAD = {"subscriptionId": "sub-1", "userId": "user-1", "quantity": 3.0}


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", URL)
    return httpx.HTTPStatusError(
        "error", request=request, response=httpx.Response(status, request=request)
    )


@pytest.mark.parametrize(
    "exc,expected",
    [
        (_status_error(500), True),
        (_status_error(503), True),
        (_status_error(429), True),
        (_status_error(400), False),
        (_status_error(404), False),
        (httpx.ConnectError("refused"), True),
        (httpx.ReadTimeout("slow"), True),
        (ValueError("bad"), False),
    ],
)
def test_should_retry(exc, expected):
    assert should_retry(exc) is expected


@pytest.mark.asyncio
async def test_posts_json_payload():
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(204)

    sender = HttpUsageWebhookSender(transport=httpx.MockTransport(handler))

    assert await sender.send(URL, PAYLOAD) is True
    [request] = received
    assert request.headers["Content-Type"] == "application/json"
    assert json.loads(request.content) == PAYLOAD


@pytest.mark.asyncio
async def test_transient_failure_is_retried():
    statuses = iter([503, 200])
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(next(statuses))

    sender = HttpUsageWebhookSender(max_attempts=2, transport=httpx.MockTransport(handler))

    assert await sender.send(URL, PAYLOAD) is True
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_client_error_is_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(400)

    sender = HttpUsageWebhookSender(max_attempts=3, transport=httpx.MockTransport(handler))

    assert await sender.send(URL, PAYLOAD) is False
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_exhausted_retries_report_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    sender = HttpUsageWebhookSender(max_attempts=1, transport=httpx.MockTransport(handler))

    assert await sender.send(URL, PAYLOAD) is False
