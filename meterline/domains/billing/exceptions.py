"""Billing domain exceptions."""

import functools

from meterline.core.exceptions import ExternalServiceError, MeterlineException


class UpstreamReportingError(ExternalServiceError):
    """Wraps ExternalServiceError from the payment adapter at the domain boundary."""

    def __init__(self, message: str = "Usage reporting failed"):
        """Initialize with default message."""
        super().__init__(service_name="PaymentGateway", message=message)


class WebhookSignatureError(MeterlineException):
    """Raised when a webhook payload fails signature verification."""

    def __init__(self, message: str = "Invalid webhook signature"):
        """Initialize with default message."""
        super().__init__(message)


class WebhookHandlerError(MeterlineException):
    """Raised after a webhook handler failed and the failure was persisted."""

    def __init__(self, event_id: str, message: str = "Webhook handler failed"):
        """Initialize with the provider event id."""
        self.event_id = event_id
        super().__init__(message)


def wrap_gateway_errors(fn):
    """Decorator: catch ExternalServiceError from payment gateway, wrap as UpstreamReportingError."""

    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except UpstreamReportingError:
            raise
        except ExternalServiceError as e:
            raise UpstreamReportingError(message=e.message) from e

    return wrapper
