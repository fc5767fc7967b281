"""User read model.

Owned by the account layer; this service only reads it to address notifications.
"""

from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from meterline.models._base import Base


class User(Base):
    """Subscriber account."""

    __tablename__ = "app_user"

    email: Mapped[Optional[str]] = mapped_column(String, nullable=True, unique=True)
    name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
