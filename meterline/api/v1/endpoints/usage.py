"""Usage ingestion, query and reconciliation endpoints."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from meterline import schemas
from meterline.api.context import ApiContext
from meterline.api.deps import Inject, get_db, require_scope
from meterline.core.shared_models import ApiKeyScope
from meterline.domains.billing.protocols import BillingReporterProtocol
from meterline.domains.usage.protocols import UsageIngestionProtocol

router = APIRouter()


@router.post(
    "",
    status_code=201,
    response_model=schemas.UsageIngestResponse,
    response_model_by_alias=True,
    responses={
        429: {"description": "Usage limit exceeded; body carries the limit state"},
    },
)
async def record_usage(
    usage_in: schemas.UsageCreate,
    db: AsyncSession = Depends(get_db),
    ctx: ApiContext = Depends(require_scope(ApiKeyScope.USAGE_WRITE)),
    ingestion: UsageIngestionProtocol = Inject(UsageIngestionProtocol),
) -> schemas.UsageIngestResponse:
    """Record a usage delta for a subscription.

    The delta is evaluated against the subscription tier's limit. Blocked
    deltas are rejected with 429 and nothing is written; every other delta
    is stored and then forwarded to the billing provider on a best-effort
    basis (``stripeReported`` tells whether that succeeded).
    """
    return await ingestion.ingest(db, ctx, usage_in)


@router.get(
    "",
    response_model=schemas.UsageQueryResponse,
    response_model_by_alias=True,
)
async def query_usage(
    subscription_id: Optional[UUID] = Query(None, alias="subscriptionId"),
    user_id: Optional[UUID] = Query(None, alias="userId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    ctx: ApiContext = Depends(require_scope(ApiKeyScope.USAGE_READ)),
    ingestion: UsageIngestionProtocol = Inject(UsageIngestionProtocol),
) -> schemas.UsageQueryResponse:
    """Aggregate the caller's usage by subscription and/or user over a date range."""
    return await ingestion.query(
        db,
        ctx,
        subscription_id=subscription_id,
        user_id=user_id,
        start_date=start_date,
        end_date=end_date,
    )


@router.post(
    "/reconcile",
    response_model=schemas.ReconcileSummary,
    response_model_by_alias=True,
)
async def reconcile_usage(
    reconcile_in: schemas.ReconcileRequest,
    db: AsyncSession = Depends(get_db),
    ctx: ApiContext = Depends(require_scope(ApiKeyScope.USAGE_WRITE)),
    reporter: BillingReporterProtocol = Inject(BillingReporterProtocol),
) -> schemas.ReconcileSummary:
    """Replay usage records that never reached the billing provider."""
    return await reporter.reconcile(
        db, ctx, subscription_id=reconcile_in.subscription_id, limit=reconcile_in.limit
    )
