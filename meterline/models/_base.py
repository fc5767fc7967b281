"""Declarative base classes shared by all models."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


class Base(DeclarativeBase):
    """Base class with a UUID primary key and audit timestamps."""

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class OrganizationBase(Base):
    """Base class for tenant-owned rows."""

    __abstract__ = True

    @declared_attr
    def organization_id(cls) -> Mapped[uuid.UUID]:
        """Owning tenant."""
        return mapped_column(
            UUID(as_uuid=True),
            ForeignKey("organization.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
