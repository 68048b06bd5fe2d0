"""
Tests for the sequence generator and code formatting.
"""

from datetime import datetime, timezone

from cuebill_api.models import SequenceCounter
from cuebill_api.services.sequence import (
    SequenceGenerator,
    format_invoice_number,
    format_session_code,
    invoice_scope_key,
    session_scope_key,
)
from shared.config.constants import SequenceNamespace


MAY_13 = datetime(2024, 5, 13, 23, 59, tzinfo=timezone.utc)
MAY_14 = datetime(2024, 5, 14, 0, 1, tzinfo=timezone.utc)


class TestFormatting:

    def test_session_code(self):
        assert format_session_code(7, MAY_13, 1) == "SES-7-20240513-001"

    def test_invoice_number(self):
        assert format_invoice_number(7, MAY_13, 12) == "INV-7-202405-0012"

    def test_padding_is_a_minimum_width(self):
        assert format_session_code(7, MAY_13, 1234) == "SES-7-20240513-1234"
        assert format_invoice_number(7, MAY_13, 12345) == "INV-7-202405-12345"

    def test_scope_keys(self):
        assert session_scope_key(7, MAY_13) == "org:7:2024-05-13"
        assert invoice_scope_key(7, MAY_13) == "org:7:2024-05"


class TestSequenceGenerator:

    def test_starts_at_one_and_increments(self, db_session):
        generator = SequenceGenerator(db_session)

        values = [generator.next(SequenceNamespace.INVOICE, "org:1:2024-05") for _ in range(3)]
        db_session.commit()

        assert values == [1, 2, 3]

    def test_scopes_are_independent(self, db_session):
        generator = SequenceGenerator(db_session)

        assert generator.next(SequenceNamespace.INVOICE, "org:1:2024-05") == 1
        assert generator.next(SequenceNamespace.INVOICE, "org:2:2024-05") == 1
        assert generator.next(SequenceNamespace.SESSION_CODE, "org:1:2024-05") == 1
        assert generator.next(SequenceNamespace.INVOICE, "org:1:2024-05") == 2

    def test_session_codes_restart_each_day(self, db_session):
        generator = SequenceGenerator(db_session)

        first = generator.next_session_code(3, MAY_13)
        second = generator.next_session_code(3, MAY_13)
        next_day = generator.next_session_code(3, MAY_14)

        assert first == "SES-3-20240513-001"
        assert second == "SES-3-20240513-002"
        assert next_day == "SES-3-20240514-001"

    def test_rollback_returns_the_number(self, db_session):
        generator = SequenceGenerator(db_session)
        generator.next(SequenceNamespace.INVOICE, "org:1:2024-05")
        db_session.commit()

        generator.next(SequenceNamespace.INVOICE, "org:1:2024-05")
        db_session.rollback()

        assert generator.next(SequenceNamespace.INVOICE, "org:1:2024-05") == 2

    def test_counter_row_persists_value(self, db_session):
        generator = SequenceGenerator(db_session)
        for _ in range(4):
            generator.next_invoice_number(5, MAY_13)
        db_session.commit()

        counter = db_session.query(SequenceCounter).filter_by(
            namespace=SequenceNamespace.INVOICE, scope_key="org:5:2024-05"
        ).one()
        assert counter.value == 4
