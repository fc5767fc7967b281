"""Prometheus scrape endpoint."""

from fastapi import APIRouter, Response

from meterline.api.deps import Inject
from meterline.core.protocols import MetricsRenderer

router = APIRouter()


@router.get("", include_in_schema=False)
async def scrape(renderer: MetricsRenderer = Inject(MetricsRenderer)) -> Response:
    """Render the metering counters in the Prometheus text format."""
    return Response(content=renderer.generate(), media_type=renderer.content_type)
