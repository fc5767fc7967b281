"""API tests for the health and metrics endpoints."""

import pytest


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_metrics_are_rendered_without_auth(client, fake_metrics_renderer):
    response = await client.get("/metrics")

    assert response.status_code == 200
    assert response.text == "# fake metrics\n"
    assert response.headers["content-type"].startswith("text/plain")
    assert fake_metrics_renderer.generate_calls == 1
