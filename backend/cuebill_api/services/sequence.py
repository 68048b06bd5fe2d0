"""
Sequence Generator.

Issues strictly increasing integers per (namespace, scope_key) from a
counter row. The increment is a single UPDATE executed by the store, so the
row stays locked until the caller's transaction ends and no two callers can
read the same value. The counter shares the caller's transaction: if the
session start or invoice creation rolls back, so does the number.

Formatting a number into a human-readable code is a separate pure step.
"""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.config.constants import SequenceNamespace
from cuebill_api.models import SequenceCounter

logger = get_logger(__name__)


# =============================================================================
# Pure formatting helpers
# =============================================================================


def session_scope_key(organization_id: int, at: datetime) -> str:
    """Session codes restart every (UTC) day per organization."""
    return f"org:{organization_id}:{at:%Y-%m-%d}"


def invoice_scope_key(organization_id: int, at: datetime) -> str:
    """Invoice numbers restart every (UTC) month per organization."""
    return f"org:{organization_id}:{at:%Y-%m}"


def format_session_code(organization_id: int, at: datetime, seq: int, prefix: str = "SES") -> str:
    """SES-7-20240513-001. Padding is a minimum width."""
    return f"{prefix}-{organization_id}-{at:%Y%m%d}-{seq:03d}"


def format_invoice_number(organization_id: int, at: datetime, seq: int, prefix: str = "INV") -> str:
    """INV-7-202405-0001. Padding is a minimum width."""
    return f"{prefix}-{organization_id}-{at:%Y%m}-{seq:04d}"


# =============================================================================
# Generator
# =============================================================================


class SequenceGenerator:
    """Atomic increment-and-read on sequence_counter rows."""

    def __init__(self, db: Session):
        self._db = db

    def next(self, namespace: str, scope_key: str) -> int:
        """
        Return the next value for (namespace, scope_key), starting at 1.

        Must be called inside the caller's transaction; nothing is committed
        here.
        """
        value = self._increment(namespace, scope_key)
        if value is None:
            self._create_counter(namespace, scope_key)
            value = self._increment(namespace, scope_key)
            if value is None:
                # Row was created above (or by a concurrent caller)
                raise RuntimeError(f"Sequence counter {namespace}:{scope_key} vanished")
        return value

    def next_session_code(self, organization_id: int, at: datetime) -> str:
        seq = self.next(SequenceNamespace.SESSION_CODE, session_scope_key(organization_id, at))
        return format_session_code(organization_id, at, seq, settings.session_code_prefix)

    def next_invoice_number(self, organization_id: int, at: datetime) -> str:
        seq = self.next(SequenceNamespace.INVOICE, invoice_scope_key(organization_id, at))
        return format_invoice_number(organization_id, at, seq, settings.invoice_number_prefix)

    def _increment(self, namespace: str, scope_key: str) -> int | None:
        result = self._db.execute(
            update(SequenceCounter)
            .where(
                SequenceCounter.namespace == namespace,
                SequenceCounter.scope_key == scope_key,
            )
            .values(value=SequenceCounter.value + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None

        # Row is locked by our UPDATE until the transaction ends
        return self._db.scalar(
            select(SequenceCounter.value).where(
                SequenceCounter.namespace == namespace,
                SequenceCounter.scope_key == scope_key,
            )
        )

    def _create_counter(self, namespace: str, scope_key: str) -> None:
        """
        Insert the counter row at 0 inside a SAVEPOINT.

        If a concurrent transaction inserted it first, the unique constraint
        fires, only the savepoint is rolled back, and the caller's retry
        increments the row the other transaction created.
        """
        try:
            with self._db.begin_nested():
                self._db.add(SequenceCounter(namespace=namespace, scope_key=scope_key, value=0))
        except IntegrityError:
            logger.debug("Sequence counter created concurrently", namespace=namespace, scope_key=scope_key)
