"""Webhook processor for billing provider events.

Every delivery is verified, persisted by provider event id and only then
dispatched, so at-least-once delivery applies side effects at most once:

    pending -> processed          handler succeeded (or type unsupported)
    pending -> failed             handler raised; retry_count incremented

A failed event is reprocessed on redelivery until ``max_retries`` is
reached, after which it waits for operator review (``list_failed`` /
``replay``).
"""

import json
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from meterline.core.datetime_utils import from_unix, utc_now
from meterline.core.exceptions import BadRequestException, NotFoundException
from meterline.core.logging import ContextualLogger, logger
from meterline.core.protocols.metrics import MeteringMetrics
from meterline.core.protocols.payment import PaymentGatewayProtocol
from meterline.core.shared_models import AuthMethod, SubscriptionStatus, WebhookEventStatus
from meterline.domains.billing.exceptions import WebhookHandlerError, WebhookSignatureError
from meterline.domains.billing.protocols import BillingWebhookProtocol
from meterline.domains.billing.repository import (
    SubscriptionRepositoryProtocol,
    WebhookEventRepositoryProtocol,
)
from meterline.domains.billing.types import (
    BillingEventType,
    map_provider_status,
    payment_transition,
)
from meterline.domains.notifications.protocols import NotificationOutboxProtocol
from meterline.domains.notifications.templates import render_billing_notification
from meterline.models import Subscription, WebhookEvent

Handler = Callable[[AsyncSession, Any, ContextualLogger], Awaitable[None]]

_MAX_ERROR_LENGTH = 2000


class BillingWebhookProcessor(BillingWebhookProtocol):
    """Process billing provider webhook events."""

    def __init__(
        self,
        payment_gateway: PaymentGatewayProtocol,
        event_repo: WebhookEventRepositoryProtocol,
        subscription_repo: SubscriptionRepositoryProtocol,
        outbox: NotificationOutboxProtocol,
        metrics: MeteringMetrics,
        max_retries: int = 5,
    ) -> None:
        """Initialize with all required dependencies.

        Raises RuntimeError if any supported event type lacks a handler.
        """
        self._payment_gateway = payment_gateway
        self._event_repo = event_repo
        self._subscription_repo = subscription_repo
        self._outbox = outbox
        self._metrics = metrics
        self._max_retries = max_retries

        self.handlers: dict[BillingEventType, Handler] = {
            BillingEventType.CHECKOUT_COMPLETED: self._handle_checkout_completed,
            BillingEventType.SUBSCRIPTION_CREATED: self._handle_subscription_created,
            BillingEventType.SUBSCRIPTION_UPDATED: self._handle_subscription_updated,
            BillingEventType.SUBSCRIPTION_DELETED: self._handle_subscription_deleted,
            BillingEventType.PAYMENT_SUCCEEDED: self._handle_payment_succeeded,
            BillingEventType.PAYMENT_FAILED: self._handle_payment_failed,
        }
        missing = set(BillingEventType) - set(self.handlers)
        if missing:
            raise RuntimeError(
                f"No webhook handler for: {', '.join(sorted(t.value for t in missing))}"
            )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def process_webhook(self, db: AsyncSession, payload: bytes, signature: str) -> None:
        """Verify, persist and apply a webhook delivery."""
        try:
            event = self._payment_gateway.verify_webhook_signature(payload, signature)
        except ValueError as e:
            logger.warning(f"Rejected webhook: {e}")
            self._metrics.inc_webhook_event("unknown", "invalid_signature")
            raise WebhookSignatureError(str(e)) from e

        log = logger.with_context(
            auth_method=AuthMethod.STRIPE_WEBHOOK.value,
            event_type=event.type,
            stripe_event_id=event.id,
        )

        inserted = await self._event_repo.insert_if_absent(
            db, event_id=event.id, event_type=event.type, payload=json.loads(payload)
        )
        await db.commit()

        stored = await self._event_repo.get_by_event_id(db, event_id=event.id, for_update=True)
        if stored is None:
            raise WebhookHandlerError(event.id, "Webhook event vanished after persistence")

        # A concurrent duplicate may have taken the lock first; trust the locked row.
        fresh = inserted and stored.status == WebhookEventStatus.PENDING.value
        if not fresh and not self._should_reprocess(stored, log):
            await db.commit()
            self._metrics.inc_webhook_event(event.type, "duplicate")
            return

        await self._run(db, stored, event, log)

    async def replay(self, db: AsyncSession, event_id: str) -> WebhookEvent:
        """Reprocess a stored failed event once from its persisted payload."""
        stored = await self._event_repo.get_by_event_id(db, event_id=event_id, for_update=True)
        if stored is None:
            raise NotFoundException("Webhook event not found")
        if stored.status != WebhookEventStatus.FAILED.value:
            await db.commit()
            raise BadRequestException(f"Only failed events can be replayed (status: {stored.status})")

        log = logger.with_context(
            auth_method=AuthMethod.SYSTEM.value,
            event_type=stored.event_type,
            stripe_event_id=event_id,
        )
        log.info("Operator replay of failed webhook event")
        event = self._payment_gateway.construct_event(stored.payload)
        await self._run(db, stored, event, log)
        return stored

    async def list_failed(
        self, db: AsyncSession, skip: int = 0, limit: int = 100
    ) -> Sequence[WebhookEvent]:
        """Failed events awaiting operator review."""
        return await self._event_repo.list_failed(db, skip=skip, limit=limit)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _should_reprocess(self, stored: WebhookEvent, log: ContextualLogger) -> bool:
        """Decide what a redelivery of an already-stored event does."""
        if stored.status == WebhookEventStatus.PROCESSED.value:
            log.info("Duplicate delivery of processed event; acknowledging")
            return False
        if stored.status == WebhookEventStatus.FAILED.value:
            if stored.retry_count >= self._max_retries:
                log.error(
                    f"Event failed {stored.retry_count} times; "
                    "acknowledging without processing, needs manual review"
                )
                return False
            log.info(f"Retrying failed event (attempt {stored.retry_count + 1})")
            return True
        log.warning("Event left pending by an interrupted delivery; reprocessing")
        return True

    async def _run(
        self, db: AsyncSession, stored: WebhookEvent, event: Any, log: ContextualLogger
    ) -> None:
        """Dispatch the event and persist the outcome before returning."""
        event_id = stored.event_id
        event_type = BillingEventType.parse(event.type)
        try:
            if event_type is None:
                log.info(f"Unsupported webhook event type: {event.type}")
            else:
                log.info(f"Processing webhook event: {event.type}")
                await self.handlers[event_type](db, event, log)
            await self._event_repo.update(
                db,
                event=stored,
                values={
                    "status": WebhookEventStatus.PROCESSED.value,
                    "processed_at": utc_now(),
                    "error": None,
                },
            )
            await db.commit()
        except Exception as e:
            log.error(f"Error handling {event.type}: {e}", exc_info=True)
            await db.rollback()
            retry_count = await self._mark_failed(db, event_id, str(e))
            self._metrics.inc_webhook_event(event.type, "failed")
            if retry_count >= self._max_retries:
                log.error(f"Event exhausted {retry_count} attempts; needs manual review")
            raise WebhookHandlerError(event_id, f"Handler failed for {event.type}") from e

        self._metrics.inc_webhook_event(
            event.type, "processed" if event_type is not None else "ignored"
        )

    async def _mark_failed(self, db: AsyncSession, event_id: str, error: str) -> int:
        stored = await self._event_repo.get_by_event_id(db, event_id=event_id, for_update=True)
        retry_count = stored.retry_count + 1
        await self._event_repo.update(
            db,
            event=stored,
            values={
                "status": WebhookEventStatus.FAILED.value,
                "retry_count": retry_count,
                "error": error[:_MAX_ERROR_LENGTH],
                "processed_at": None,
            },
        )
        await db.commit()
        return retry_count

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _find_subscription(
        self, db: AsyncSession, stripe_subscription_id: Optional[str], log: ContextualLogger
    ) -> Optional[Subscription]:
        if not stripe_subscription_id:
            log.info("Event carries no subscription; nothing to apply")
            return None
        subscription = await self._subscription_repo.get_by_stripe_subscription_id(
            db, stripe_subscription_id=stripe_subscription_id
        )
        if subscription is None:
            log.warning(f"Subscription not found for provider id {stripe_subscription_id}")
        return subscription

    async def _apply(
        self,
        db: AsyncSession,
        subscription: Subscription,
        event: Any,
        values: dict[str, Any],
        log: ContextualLogger,
    ) -> bool:
        """Compare-and-set write guarded by the event's creation time."""
        event_created: datetime = from_unix(event.created) or utc_now()
        applied = await self._subscription_repo.apply_provider_state(
            db, subscription=subscription, event_created=event_created, values=values
        )
        if not applied:
            log.info(f"Ignoring stale {event.type} for subscription {subscription.id}")
        return applied

    async def _notify(
        self,
        db: AsyncSession,
        subscription: Subscription,
        notification_type: str,
        log: ContextualLogger,
        **extra: Any,
    ) -> None:
        product_name = subscription.product.name if subscription.product else "your product"
        tier_name = subscription.tier.name if subscription.tier else None
        email = render_billing_notification(
            notification_type,
            product_name=product_name,
            tier_name=tier_name,
            subscriptionId=subscription.stripe_subscription_id,
            **extra,
        )
        await self._outbox.enqueue(db, subscription.user_id, email, log)

    @staticmethod
    def _period_values(provider_subscription: Any) -> dict[str, Any]:
        values: dict[str, Any] = {}
        start = from_unix(provider_subscription.get("current_period_start"))
        end = from_unix(provider_subscription.get("current_period_end"))
        if start is not None:
            values["current_period_start"] = start
        if end is not None:
            values["current_period_end"] = end
        return values

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def _handle_checkout_completed(
        self, db: AsyncSession, event: Any, log: ContextualLogger
    ) -> None:
        """Bind a completed checkout to the local subscription it was started for."""
        session = event.data.object
        metadata = session.get("metadata") or {}
        provider_subscription_id = session.get("subscription")
        if not metadata.get("userId") or not metadata.get("tierId"):
            log.info(f"Checkout session {session.id} carries no subscriber metadata; skipping")
            return
        if not provider_subscription_id:
            log.warning(f"Checkout session {session.id} has no subscription id")
            return
        try:
            user_id = UUID(str(metadata.get("userId")))
            tier_id = UUID(str(metadata.get("tierId")))
        except ValueError:
            log.warning(f"Checkout session {session.id} has malformed subscriber metadata")
            return

        subscription = await self._subscription_repo.get_by_user_and_tier(
            db, user_id=user_id, tier_id=tier_id
        )
        if subscription is None:
            log.warning(f"No subscription for user {user_id} on tier {tier_id}")
            return
        if subscription.status == SubscriptionStatus.CANCELED.value:
            log.info(f"Subscription {subscription.id} is canceled; ignoring {event.type}")
            return

        values = {
            "stripe_subscription_id": provider_subscription_id,
            "status": SubscriptionStatus.ACTIVE.value,
        }
        if not await self._apply(db, subscription, event, values, log):
            return
        log.info(f"Subscription {subscription.id} linked to {provider_subscription_id}")

    async def _sync_subscription(
        self, db: AsyncSession, event: Any, log: ContextualLogger, *, include_cancel_flag: bool
    ) -> Optional[Subscription]:
        """Mirror provider status and period bounds onto the local subscription."""
        provider_subscription = event.data.object
        subscription = await self._find_subscription(db, provider_subscription.id, log)
        if subscription is None:
            return None
        if subscription.status == SubscriptionStatus.CANCELED.value:
            log.info(f"Subscription {subscription.id} is canceled; ignoring {event.type}")
            return None

        values = self._period_values(provider_subscription)
        status = map_provider_status(provider_subscription.get("status"))
        if status is not None:
            values["status"] = status.value
        if include_cancel_flag:
            values["cancel_at_period_end"] = bool(
                provider_subscription.get("cancel_at_period_end", False)
            )

        if not await self._apply(db, subscription, event, values, log):
            return None
        return subscription

    async def _handle_subscription_created(
        self, db: AsyncSession, event: Any, log: ContextualLogger
    ) -> None:
        """Handle new subscription creation."""
        subscription = await self._sync_subscription(db, event, log, include_cancel_flag=False)
        if subscription is None:
            return
        log.info(f"Subscription {subscription.id} created: {subscription.status}")
        await self._notify(db, subscription, "subscription_created", log)

    async def _handle_subscription_updated(
        self, db: AsyncSession, event: Any, log: ContextualLogger
    ) -> None:
        """Handle subscription status, period or cancellation changes."""
        subscription = await self._sync_subscription(db, event, log, include_cancel_flag=True)
        if subscription is None:
            return
        log.info(f"Subscription {subscription.id} updated: {subscription.status}")
        notification_type = (
            "subscription_cancelling"
            if subscription.cancel_at_period_end
            else "subscription_updated"
        )
        await self._notify(db, subscription, notification_type, log)

    async def _handle_subscription_deleted(
        self, db: AsyncSession, event: Any, log: ContextualLogger
    ) -> None:
        """Handle subscription cancellation. Terminal regardless of event order."""
        provider_subscription = event.data.object
        subscription = await self._find_subscription(db, provider_subscription.id, log)
        if subscription is None:
            return
        if subscription.status == SubscriptionStatus.CANCELED.value:
            log.info(f"Subscription {subscription.id} already canceled")
            return

        event_created = from_unix(event.created) or utc_now()
        last = subscription.last_provider_event_at
        await self._subscription_repo.apply_provider_state(
            db,
            subscription=subscription,
            event_created=max(event_created, last) if last else event_created,
            values={"status": SubscriptionStatus.CANCELED.value},
        )
        log.info(f"Subscription {subscription.id} canceled")
        await self._notify(db, subscription, "subscription_cancelled", log)

    async def _handle_payment(
        self,
        db: AsyncSession,
        event: Any,
        log: ContextualLogger,
        event_type: BillingEventType,
    ) -> None:
        invoice = event.data.object
        subscription = await self._find_subscription(db, invoice.get("subscription"), log)
        if subscription is None:
            return

        new_status = payment_transition(SubscriptionStatus(subscription.status), event_type)
        if new_status is not None:
            if not await self._apply(db, subscription, event, {"status": new_status.value}, log):
                return
            log.info(f"Subscription {subscription.id} moved to {new_status.value}")

        if event_type == BillingEventType.PAYMENT_SUCCEEDED:
            amount = invoice.get("amount_paid")
            notification_type = "payment_succeeded"
        else:
            amount = invoice.get("amount_due")
            notification_type = "payment_failed"
        await self._notify(
            db, subscription, notification_type, log, amount_cents=amount, invoiceId=invoice.id
        )

    async def _handle_payment_succeeded(
        self, db: AsyncSession, event: Any, log: ContextualLogger
    ) -> None:
        """Handle a paid invoice; clears ``past_due``."""
        await self._handle_payment(db, event, log, BillingEventType.PAYMENT_SUCCEEDED)

    async def _handle_payment_failed(
        self, db: AsyncSession, event: Any, log: ContextualLogger
    ) -> None:
        """Handle a failed invoice payment; moves active subscriptions to ``past_due``."""
        await self._handle_payment(db, event, log, BillingEventType.PAYMENT_FAILED)
