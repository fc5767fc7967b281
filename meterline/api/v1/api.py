"""API routes for the FastAPI application."""

from fastapi import APIRouter

from meterline.api.v1.endpoints import billing_webhooks, health, metrics, usage

api_router = APIRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(metrics.router, prefix="/metrics", tags=["metrics"])
api_router.include_router(usage.router, prefix="/usage", tags=["usage"])
api_router.include_router(
    billing_webhooks.router, prefix="/webhooks/billing-provider", tags=["webhooks"]
)
