"""
Tests for InvoiceAssembler and invoice failure handling during close.
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from cuebill_api.models import Invoice, SequenceCounter, VenueTable
from cuebill_api.services.billing.invoice_assembler import InvoiceAssembler, occupancy_description
from cuebill_api.services.domain import SessionService
from shared.config.constants import InvoiceItemType, SessionStatus, TableStatus
from shared.utils.exceptions import InvoiceCreationError


class ExplodingAssembler(InvoiceAssembler):
    """Fails after the invoice number has been drawn."""

    def assemble(self, session, orders, **kwargs):
        invoice = super().assemble(session, orders, **kwargs)
        raise ValueError(f"printer on fire while issuing {invoice.number}")


def test_occupancy_description():
    assert occupancy_description("Per-minute", "T-01", 70) == "Per-minute - Table T-01 (70 min)"


class TestInvoiceAssembler:

    def test_lines_and_totals(self, service, venue, clock):
        session = service.start_session(
            venue.organization_id, venue.table_id, venue.fixed_service_id, guest_name="Ana", guest_phone="+5511999990000"
        )
        service.attach_order(session.id, venue.organization_id, venue.nachos_id, 1)
        service.attach_order(session.id, venue.organization_id, venue.cola_id, 1)
        clock.advance(minutes=1)

        invoice = service.close_session(session.id, venue.organization_id).invoice

        assert invoice.subtotal_cents == 12500
        assert invoice.tax_rate == Decimal("0.18")
        assert invoice.tax_cents == 2250
        assert invoice.total_cents == 14750
        assert invoice.customer_name == "Ana"
        assert invoice.customer_phone == "+5511999990000"
        occupancy, nachos, cola = invoice.items
        assert occupancy.item_type == InvoiceItemType.OCCUPANCY
        assert occupancy.description == "Flat - Table T-01 (1 min)"
        assert occupancy.total_cents == 10000
        assert (nachos.description, nachos.quantity, nachos.total_cents) == ("Nachos", 1, 2000)
        assert (cola.description, cola.quantity, cola.total_cents) == ("Cola", 1, 500)

    def test_registered_customer_name(self, service, venue):
        session = service.start_session(
            venue.organization_id, venue.table_id, venue.fixed_service_id, customer_id=31
        )

        invoice = service.close_session(session.id, venue.organization_id).invoice

        assert invoice.customer_name == "Customer #31"

    def test_discount(self, service, venue):
        session = service.start_session(venue.organization_id, venue.table_id, venue.fixed_service_id, guest_name="Ana")

        invoice = service.close_session(session.id, venue.organization_id, discount_cents=1800).invoice

        assert invoice.discount_cents == 1800
        assert invoice.total_cents == 10000

    def test_invoice_numbers_are_sequential(self, service, venue):
        numbers = []
        for table_id in (venue.table_id, venue.other_table_id):
            session = service.start_session(venue.organization_id, table_id, venue.fixed_service_id, guest_name="Ana")
            numbers.append(service.close_session(session.id, venue.organization_id).invoice.number)

        assert numbers == [
            f"INV-{venue.organization_id}-202405-0001",
            f"INV-{venue.organization_id}-202405-0002",
        ]


class TestInvoiceFailureRollsBackClose:

    def test_failed_invoice_leaves_session_open(self, db_session, venue, clock, events, locks):
        service = SessionService(
            db_session, clock=clock, publisher=events, locks=locks, assembler_factory=ExplodingAssembler
        )
        session = service.start_session(venue.organization_id, venue.table_id, venue.fixed_service_id, guest_name="Ana")
        service.attach_order(session.id, venue.organization_id, venue.cola_id, 2)
        events.events.clear()

        with pytest.raises(InvoiceCreationError) as exc_info:
            service.close_session(session.id, venue.organization_id)

        assert exc_info.value.error_kind == "invoice_failed"
        assert exc_info.value.status_code == 500

        reloaded = service.get_session(session.id, venue.organization_id)
        assert reloaded.status == SessionStatus.ACTIVE
        assert reloaded.end_time is None
        assert reloaded.consumable_subtotal_cents == 1000
        assert db_session.get(VenueTable, venue.table_id).status == TableStatus.OCCUPIED
        assert db_session.scalar(select(func.count(Invoice.id))) == 0
        # The drawn invoice number was rolled back with the close
        assert db_session.scalar(select(func.count(SequenceCounter.id)).where(SequenceCounter.namespace == "invoice")) == 0
        assert events.events == []

    def test_close_succeeds_on_retry(self, db_session, venue, clock, events, locks):
        failing = SessionService(
            db_session, clock=clock, publisher=events, locks=locks, assembler_factory=ExplodingAssembler
        )
        session = failing.start_session(venue.organization_id, venue.table_id, venue.fixed_service_id, guest_name="Ana")
        with pytest.raises(InvoiceCreationError):
            failing.close_session(session.id, venue.organization_id)

        working = SessionService(db_session, clock=clock, publisher=events, locks=locks)
        closed = working.close_session(session.id, venue.organization_id)

        assert closed.session.status == SessionStatus.COMPLETED
        assert closed.invoice.number == f"INV-{venue.organization_id}-202405-0001"
