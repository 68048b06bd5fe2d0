"""
Organization model: the venue operator that owns tables, catalog and sessions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK, TimestampMixin

if TYPE_CHECKING:
    from .table import VenueTable


class Organization(TimestampMixin, Base):
    """
    A venue (club, parlour) operating rentable tables.
    Sequence numbers for session codes and invoices are scoped per organization.
    """

    __tablename__ = "organization"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    tables: Mapped[list["VenueTable"]] = relationship(back_populates="organization")

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, slug='{self.slug}')>"
