"""
Invoice Assembler.

Turns a session that is being closed into an invoice with line items. It
runs inside the close transaction and never commits: if anything here
fails, the caller rolls back the close together with the invoice number.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from shared.config.settings import settings
from shared.config.constants import InvoiceItemType, PaymentStatus
from shared.config.logging import get_logger
from cuebill_api.models import Invoice, InvoiceItem, PlaySession, SessionOrder
from cuebill_api.services.billing.calculator import compute_invoice_totals
from cuebill_api.services.sequence import SequenceGenerator

logger = get_logger(__name__)


def occupancy_description(service_name: str, table_label: str, minutes: int) -> str:
    return f"{service_name} - Table {table_label} ({minutes} min)"


class InvoiceAssembler:
    """Builds and stages (add + flush) the invoice for a closing session."""

    def __init__(self, db: Session, tax_rate: Decimal | None = None):
        self._db = db
        self._tax_rate = settings.tax_rate if tax_rate is None else tax_rate

    def assemble(
        self,
        session: PlaySession,
        orders: list[SessionOrder],
        *,
        table_label: str,
        service_name: str,
        payment_method: str,
        issued_at: datetime,
        discount_cents: int = 0,
        settle_now: bool = False,
        issued_by_id: int | None = None,
        notes: str | None = None,
    ) -> Invoice:
        """
        Create the invoice for ``session``.

        The session must already carry its final occupancy amount and
        billable minutes.

        Raises:
            ValueError: If the discount exceeds subtotal + tax.
        """
        totals = compute_invoice_totals(
            session.occupancy_amount_cents,
            session.consumable_subtotal_cents,
            self._tax_rate,
            discount_cents,
        )
        number = SequenceGenerator(self._db).next_invoice_number(session.organization_id, issued_at)
        status = PaymentStatus.PAID if settle_now else PaymentStatus.PENDING

        invoice = Invoice(
            number=number,
            organization_id=session.organization_id,
            session_id=session.id,
            customer_name=session.guest_name or f"Customer #{session.customer_id}",
            customer_phone=session.guest_phone,
            subtotal_cents=totals.subtotal_cents,
            tax_rate=self._tax_rate,
            tax_cents=totals.tax_cents,
            discount_cents=totals.discount_cents,
            total_cents=totals.total_cents,
            payment_method=payment_method,
            payment_status=status,
            paid_at=issued_at if settle_now else None,
            notes=notes,
            issued_by_id=issued_by_id,
            created_at=issued_at,
        )

        if session.occupancy_amount_cents > 0:
            invoice.items.append(
                InvoiceItem(
                    item_type=InvoiceItemType.OCCUPANCY,
                    reference_id=session.id,
                    description=occupancy_description(service_name, table_label, session.billable_minutes or 0),
                    quantity=1,
                    unit_price_cents=session.occupancy_amount_cents,
                    total_cents=session.occupancy_amount_cents,
                )
            )

        for order in orders:
            invoice.items.append(
                InvoiceItem(
                    item_type=InvoiceItemType.CONSUMABLE,
                    reference_id=order.id,
                    description=order.item_name,
                    quantity=order.quantity,
                    unit_price_cents=order.unit_price_cents,
                    total_cents=order.line_total_cents,
                )
            )

        self._db.add(invoice)
        self._db.flush()

        logger.info(
            "Invoice assembled",
            invoice_id=invoice.id,
            number=number,
            session_id=session.id,
            subtotal_cents=totals.subtotal_cents,
            tax_cents=totals.tax_cents,
            total_cents=totals.total_cents,
            lines=len(invoice.items),
        )
        return invoice
