"""
Catalog Models: ConsumableCategory, ConsumableItem.

Catalog maintenance happens elsewhere; the session engine only reads items
and decrements stock.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK, TimestampMixin


class ConsumableCategory(TimestampMixin, Base):
    """Grouping of consumables (drinks, snacks...)."""

    __tablename__ = "consumable_category"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    organization_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("organization.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)

    items: Mapped[list["ConsumableItem"]] = relationship(back_populates="category")


class ConsumableItem(TimestampMixin, Base):
    """Sellable item with a stock counter."""

    __tablename__ = "consumable_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    organization_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("organization.id"), nullable=False, index=True
    )
    category_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("consumable_category.id"), index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="chk_item_stock_non_negative"),
        CheckConstraint("price_cents >= 0", name="chk_item_price_non_negative"),
    )

    category: Mapped[Optional["ConsumableCategory"]] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<ConsumableItem(id={self.id}, name='{self.name}', stock={self.stock_quantity})>"
