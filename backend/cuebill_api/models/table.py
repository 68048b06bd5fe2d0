"""
Table and Pricing Models: VenueTable, ServiceType, PricingPolicy.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, ForeignKey, Index, Integer, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK, TimestampMixin

if TYPE_CHECKING:
    from .organization import Organization
    from .session import PlaySession


class VenueTable(TimestampMixin, Base):
    """
    Rentable physical table (snooker, pool, table tennis...).

    Status is flipped available <-> occupied only by the session engine;
    maintenance and reserved are set by administration.
    """

    # "table" is a reserved SQL keyword
    __tablename__ = "venue_table"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    organization_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("organization.id"), nullable=False, index=True
    )
    label: Mapped[str] = mapped_column(Text, nullable=False)  # "T-01", "Snooker 3"
    table_type: Mapped[Optional[str]] = mapped_column(Text)  # snooker, pool, ...
    status: Mapped[str] = mapped_column(
        Text, default="available", nullable=False
    )  # available, occupied, maintenance, reserved

    __table_args__ = (
        CheckConstraint(
            "status IN ('available', 'occupied', 'maintenance', 'reserved')",
            name="chk_venue_table_status",
        ),
        Index("ix_venue_table_org_status", "organization_id", "status"),
    )

    organization: Mapped["Organization"] = relationship(back_populates="tables")
    sessions: Mapped[list["PlaySession"]] = relationship(back_populates="table")
    pricing_policies: Mapped[list["PricingPolicy"]] = relationship(back_populates="table")

    def __repr__(self) -> str:
        return f"<VenueTable(id={self.id}, label='{self.label}', status={self.status})>"


class ServiceType(TimestampMixin, Base):
    """Kind of activity billed on a table (e.g. "Snooker - hourly", "Pool - per frame")."""

    __tablename__ = "service_type"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    organization_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("organization.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    pricing_kind: Mapped[str] = mapped_column(Text, nullable=False)  # fixed, per_minute
    description: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("pricing_kind IN ('fixed', 'per_minute')", name="chk_service_type_kind"),
    )

    def __repr__(self) -> str:
        return f"<ServiceType(id={self.id}, name='{self.name}', kind={self.pricing_kind})>"


class PricingPolicy(TimestampMixin, Base):
    """
    Price of a service type on a table.

    fixed:      fixed_amount_cents, duration ignored.
    per_minute: rate_per_minute_cents, billed up to cap_minutes unless
                unlimited_time is set.

    At most one active policy per (table, service type).
    """

    __tablename__ = "pricing_policy"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    table_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("venue_table.id"), nullable=False, index=True
    )
    service_type_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("service_type.id"), nullable=False, index=True
    )
    kind: Mapped[str] = mapped_column(Text, nullable=False)  # fixed, per_minute
    fixed_amount_cents: Mapped[Optional[int]] = mapped_column(Integer)
    rate_per_minute_cents: Mapped[Optional[int]] = mapped_column(Integer)
    cap_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    unlimited_time: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("kind IN ('fixed', 'per_minute')", name="chk_pricing_kind"),
        CheckConstraint("fixed_amount_cents IS NULL OR fixed_amount_cents >= 0", name="chk_pricing_fixed_non_negative"),
        CheckConstraint("rate_per_minute_cents IS NULL OR rate_per_minute_cents >= 0", name="chk_pricing_rate_non_negative"),
        CheckConstraint("cap_minutes IS NULL OR cap_minutes > 0", name="chk_pricing_cap_positive"),
        Index(
            "uq_pricing_active_per_table_service",
            "table_id",
            "service_type_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    table: Mapped["VenueTable"] = relationship(back_populates="pricing_policies")
    service_type: Mapped["ServiceType"] = relationship()

    def __repr__(self) -> str:
        return f"<PricingPolicy(id={self.id}, table={self.table_id}, service_type={self.service_type_id}, kind={self.kind})>"
