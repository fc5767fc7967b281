"""CRUD singletons."""

from meterline.models.email_notification import EmailNotification
from meterline.models.user import User

from ._base import CRUDBase
from .crud_api_key import api_key
from .crud_subscription import subscription, subscription_item
from .crud_usage_limit_event import usage_limit_event
from .crud_usage_record import usage_record
from .crud_webhook_event import webhook_event

email_notification = CRUDBase(EmailNotification)
user = CRUDBase(User)

__all__ = [
    "api_key",
    "email_notification",
    "subscription",
    "subscription_item",
    "usage_limit_event",
    "usage_record",
    "user",
    "webhook_event",
]
