"""
SequenceCounter: durable counter row behind session codes and invoice numbers.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK


class SequenceCounter(Base):
    """Last value issued for one (namespace, scope_key) pair."""

    __tablename__ = "sequence_counter"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    namespace: Mapped[str] = mapped_column(Text, nullable=False)  # session_code, invoice
    scope_key: Mapped[str] = mapped_column(Text, nullable=False)  # org:7:2024-05
    value: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("namespace", "scope_key", name="uq_sequence_namespace_scope"),
    )

    def __repr__(self) -> str:
        return f"<SequenceCounter({self.namespace}:{self.scope_key}={self.value})>"
