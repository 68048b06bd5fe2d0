"""
Session Models: PlaySession, SessionOrder.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, ForeignKey, Index, Integer, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK, TimestampMixin, UTCDateTime

if TYPE_CHECKING:
    from .table import VenueTable, ServiceType
    from .invoice import Invoice


class PlaySession(TimestampMixin, Base):
    """
    One timed occupancy of a table.

    Pricing parameters are copied from the resolved policy at start, so a
    price change mid-session never alters what this session is billed.
    Paused time accumulates in excluded_duration_ms; paused_at holds only
    the start of the pause in progress.

    Completed and cancelled sessions are never modified again.
    """

    __tablename__ = "play_session"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    code: Mapped[str] = mapped_column(Text, unique=True, nullable=False)  # SES-7-20240513-001
    organization_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("organization.id"), nullable=False, index=True
    )
    table_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("venue_table.id"), nullable=False, index=True
    )
    service_type_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("service_type.id"), nullable=False
    )

    # Registered customer (managed elsewhere) XOR walk-in guest
    customer_id: Mapped[Optional[int]] = mapped_column(BigInteger, index=True)
    guest_name: Mapped[Optional[str]] = mapped_column(Text)
    guest_phone: Mapped[Optional[str]] = mapped_column(Text)

    status: Mapped[str] = mapped_column(
        Text, default="active", nullable=False
    )  # active, paused, completed, cancelled

    # Timing
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    paused_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    excluded_duration_ms: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    pause_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    end_time: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    billable_minutes: Mapped[Optional[int]] = mapped_column(Integer)  # Frozen at close

    # Pricing snapshot
    pricing_kind: Mapped[str] = mapped_column(Text, nullable=False)
    fixed_amount_cents: Mapped[Optional[int]] = mapped_column(Integer)
    rate_per_minute_cents: Mapped[Optional[int]] = mapped_column(Integer)
    cap_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    unlimited_time: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Amounts (cents)
    occupancy_amount_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    consumable_subtotal_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_amount_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    payment_status: Mapped[str] = mapped_column(
        Text, default="pending", nullable=False
    )  # pending, paid, partial

    notes: Mapped[Optional[str]] = mapped_column(Text)
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text)
    opened_by_id: Mapped[Optional[int]] = mapped_column(BigInteger)
    closed_by_id: Mapped[Optional[int]] = mapped_column(BigInteger)

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'paused', 'completed', 'cancelled')",
            name="chk_session_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'partial')",
            name="chk_session_payment_status",
        ),
        CheckConstraint(
            "(customer_id IS NULL) <> (guest_name IS NULL)",
            name="chk_session_customer_xor_guest",
        ),
        CheckConstraint("excluded_duration_ms >= 0", name="chk_session_excluded_non_negative"),
        CheckConstraint("consumable_subtotal_cents >= 0", name="chk_session_subtotal_non_negative"),
        # A table backs at most one open session
        Index(
            "uq_session_open_per_table",
            "table_id",
            unique=True,
            postgresql_where=text("status IN ('active', 'paused')"),
            sqlite_where=text("status IN ('active', 'paused')"),
        ),
        Index("ix_session_org_status", "organization_id", "status"),
    )

    table: Mapped["VenueTable"] = relationship(back_populates="sessions")
    service_type: Mapped["ServiceType"] = relationship()
    orders: Mapped[list["SessionOrder"]] = relationship(
        back_populates="session", order_by="SessionOrder.id"
    )
    invoice: Mapped[Optional["Invoice"]] = relationship(back_populates="session")

    def __repr__(self) -> str:
        return f"<PlaySession(id={self.id}, code='{self.code}', status={self.status}, total={self.total_amount_cents})>"


class SessionOrder(TimestampMixin, Base):
    """
    Consumable order attached to a session.

    Unit price and item name are captured at order time; later catalog
    changes never rewrite history.
    """

    __tablename__ = "session_order"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    session_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("play_session.id"), nullable=False, index=True
    )
    item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("consumable_item.id"), nullable=False, index=True
    )
    item_name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    line_total_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    ordered_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    ordered_by_id: Mapped[Optional[int]] = mapped_column(BigInteger)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_order_quantity_positive"),
        CheckConstraint("line_total_cents = unit_price_cents * quantity", name="chk_order_line_total"),
    )

    session: Mapped["PlaySession"] = relationship(back_populates="orders")

    def __repr__(self) -> str:
        return f"<SessionOrder(id={self.id}, session={self.session_id}, item={self.item_id}, qty={self.quantity})>"
