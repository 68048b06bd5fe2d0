"""
Invoice Domain Service.

Invoices are immutable once created except for their payment status, which
moves along INVOICE_PAYMENT_TRANSITIONS. The owning session mirrors the
invoice's payment status (refunds stay on the invoice only).
"""

from collections.abc import Callable
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from shared.config.constants import INVOICE_PAYMENT_TRANSITIONS, PaymentStatus
from shared.config.logging import billing_logger as logger
from shared.infrastructure.db import transaction_scope
from shared.infrastructure.events import (
    Event,
    EventPublisher,
    SessionEventPublisher,
    INVOICE_PAYMENT_UPDATED,
)
from shared.utils.exceptions import InvalidTransitionError, InvoiceNotFoundError, ValidationError
from cuebill_api.models import Invoice, PlaySession, utc_now


class InvoiceService:
    """Domain service for invoice reads and payment status updates."""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utc_now,
        publisher: EventPublisher | None = None,
    ):
        self._db = db
        self._clock = clock
        self._publisher = publisher if publisher is not None else SessionEventPublisher()

    def get_invoice(self, invoice_id: int, organization_id: int) -> Invoice:
        invoice = self._db.scalar(
            select(Invoice)
            .options(selectinload(Invoice.items))
            .where(Invoice.id == invoice_id, Invoice.organization_id == organization_id)
        )
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id, organization_id=organization_id)
        return invoice

    def get_for_session(self, session_id: int, organization_id: int) -> Invoice:
        invoice = self._db.scalar(
            select(Invoice)
            .options(selectinload(Invoice.items))
            .where(Invoice.session_id == session_id, Invoice.organization_id == organization_id)
        )
        if invoice is None:
            raise InvoiceNotFoundError(organization_id=organization_id, session_id=session_id)
        return invoice

    def update_payment_status(
        self,
        invoice_id: int,
        organization_id: int,
        new_status: str,
        actor_id: int | None = None,
    ) -> Invoice:
        """
        Move an invoice to ``new_status``.

        Raises:
            ValidationError: Unknown status.
            InvalidTransitionError: Not reachable from the current status.
        """
        if new_status not in PaymentStatus.INVOICE:
            raise ValidationError(f"Unknown payment status '{new_status}'", payment_status=new_status)

        with transaction_scope(self._db, "update_invoice_payment"):
            invoice = self._db.scalar(
                select(Invoice)
                .where(Invoice.id == invoice_id, Invoice.organization_id == organization_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            if invoice is None:
                raise InvoiceNotFoundError(invoice_id, organization_id=organization_id)

            previous = invoice.payment_status
            if new_status not in INVOICE_PAYMENT_TRANSITIONS.get(previous, []):
                raise InvalidTransitionError("Invoice", previous, new_status, invoice_id=invoice.id)

            invoice.payment_status = new_status
            if new_status == PaymentStatus.PAID:
                invoice.paid_at = self._clock()

            session = None
            if invoice.session_id is not None:
                session = self._db.get(PlaySession, invoice.session_id)
                if session is not None and new_status in PaymentStatus.SESSION:
                    session.payment_status = new_status

        logger.info(
            "Invoice payment status updated",
            invoice_id=invoice.id,
            number=invoice.number,
            previous=previous,
            payment_status=new_status,
        )
        self._publisher.publish(
            Event(
                type=INVOICE_PAYMENT_UPDATED,
                organization_id=invoice.organization_id,
                session_id=invoice.session_id,
                table_id=session.table_id if session is not None else None,
                entity={
                    "invoice_id": invoice.id,
                    "number": invoice.number,
                    "previous": previous,
                    "payment_status": new_status,
                },
                actor={"user_id": actor_id},
            )
        )
        return invoice
