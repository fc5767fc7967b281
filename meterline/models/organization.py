"""Organization (tenant) model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from meterline.models._base import Base


class Organization(Base):
    """A SaaS creator: owns products, tiers, subscriptions and API keys."""

    __tablename__ = "organization"

    name: Mapped[str] = mapped_column(String, nullable=False)
