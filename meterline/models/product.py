"""Product and metering configuration models."""

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from meterline.models._base import Base, OrganizationBase


class Product(OrganizationBase):
    """A product sold by a tenant."""

    __tablename__ = "product"

    name: Mapped[str] = mapped_column(String, nullable=False)

    metering_config: Mapped[Optional["MeteringConfig"]] = relationship(
        "MeteringConfig", uselist=False, lazy="selectin"
    )


class MeteringConfig(Base):
    """How usage for a product is metered and where it is mirrored."""

    __tablename__ = "metering_config"

    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("product.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    metering_type: Mapped[str] = mapped_column(String, nullable=False)
    metering_unit: Mapped[str] = mapped_column(String, nullable=False)
    aggregation_type: Mapped[str] = mapped_column(String, nullable=False, default="sum")
    usage_reporting_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
