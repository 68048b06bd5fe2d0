"""
Invoice Models: Invoice, InvoiceItem.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK, TimestampMixin, UTCDateTime

if TYPE_CHECKING:
    from .session import PlaySession


class Invoice(TimestampMixin, Base):
    """
    Financial record of a closed session.

    Everything except payment_status/paid_at is frozen at creation.
    """

    __tablename__ = "invoice"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    number: Mapped[str] = mapped_column(Text, unique=True, nullable=False)  # INV-7-202405-0001
    organization_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("organization.id"), nullable=False, index=True
    )
    # Nullable for counter sales; one invoice per session at most
    session_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("play_session.id"), unique=True
    )
    customer_name: Mapped[Optional[str]] = mapped_column(Text)
    customer_phone: Mapped[Optional[str]] = mapped_column(Text)

    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)
    tax_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    payment_method: Mapped[str] = mapped_column(Text, nullable=False)  # cash, card, upi, bank_transfer
    payment_status: Mapped[str] = mapped_column(
        Text, default="pending", nullable=False
    )  # pending, paid, partial, refunded
    paid_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    issued_by_id: Mapped[Optional[int]] = mapped_column(BigInteger)

    __table_args__ = (
        CheckConstraint("subtotal_cents >= 0", name="chk_invoice_subtotal_non_negative"),
        CheckConstraint("discount_cents >= 0", name="chk_invoice_discount_non_negative"),
        CheckConstraint("total_cents >= 0", name="chk_invoice_total_non_negative"),
        CheckConstraint(
            "payment_method IN ('cash', 'card', 'upi', 'bank_transfer')",
            name="chk_invoice_payment_method",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'partial', 'refunded')",
            name="chk_invoice_payment_status",
        ),
        Index("ix_invoice_org_status", "organization_id", "payment_status"),
    )

    session: Mapped[Optional["PlaySession"]] = relationship(back_populates="invoice")
    items: Mapped[list["InvoiceItem"]] = relationship(
        back_populates="invoice", order_by="InvoiceItem.id", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Invoice(id={self.id}, number='{self.number}', total={self.total_cents}, status={self.payment_status})>"


class InvoiceItem(Base):
    """One invoice line: the occupancy charge or a consumable order."""

    __tablename__ = "invoice_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    invoice_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("invoice.id"), nullable=False, index=True
    )
    item_type: Mapped[str] = mapped_column(Text, nullable=False)  # occupancy, consumable
    reference_id: Mapped[Optional[int]] = mapped_column(BigInteger)  # session or order id
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("item_type IN ('occupancy', 'consumable')", name="chk_invoice_item_type"),
    )

    invoice: Mapped["Invoice"] = relationship(back_populates="items")
