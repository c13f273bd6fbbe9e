"""
Tests for the SQLAlchemy invoice repository.

Runs against an in-memory SQLite database.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from flowinvoice.domain.models import (
    CreditNote,
    ImportErrorEntry,
    ImportErrorType,
    InvoiceStatus,
    PaymentStatus,
)
from flowinvoice.domain.status import apply_credit_note
from flowinvoice.infrastructure.database import ImportErrorRecord
from flowinvoice.infrastructure.repository import (
    ConcurrentUpdateError,
    SqlAlchemyInvoiceRepository,
)

from tests.factories import FIXED_NOW, TODAY, make_invoice, seed


class TestInvoicePersistence:
    async def test_round_trip_with_items_and_credit_notes(self, repository):
        invoice = make_invoice(
            number="1001",
            total="100.00",
            subtotals=("60.00", "40.00"),
            credit_notes=("25.50",),
        )
        await seed(repository, invoice)

        assert invoice.id is not None

        loaded = await repository.get_invoice_by_number("1001")
        assert loaded is not None
        assert loaded.id == invoice.id
        assert loaded.version == 1
        assert loaded.total_amount == Decimal("100.00")
        assert loaded.status is InvoiceStatus.PARTIAL
        assert loaded.is_consistent is True
        assert [item.subtotal for item in loaded.items] == [Decimal("60.00"), Decimal("40.00")]
        assert [note.amount for note in loaded.credit_notes] == [Decimal("25.50")]
        assert loaded.customer.name == "Customer 1001"
        assert type(loaded.issue_date) is date
        assert type(loaded.due_date) is date

    async def test_include_flags_skip_collections(self, repository):
        await seed(repository, make_invoice(number="1001", credit_notes=("10.00",)))

        loaded = await repository.get_invoice_by_number(
            "1001", include_items=False, include_credit_notes=False
        )
        assert loaded.items == []
        assert loaded.credit_notes == []

    async def test_missing_invoice_is_none(self, repository):
        assert await repository.get_invoice_by_number("404") is None

    async def test_invoice_exists(self, repository):
        await seed(repository, make_invoice(number="1001"))

        assert await repository.invoice_exists("1001") is True
        assert await repository.invoice_exists("1002") is False

    async def test_discard_changes_drops_staged_invoices(self, repository):
        await repository.add_invoices([make_invoice(number="1001")])
        await repository.discard_changes()

        assert await repository.invoice_exists("1001") is False

    async def test_import_errors_are_saved(self, repository, session):
        await repository.add_import_error(
            ImportErrorEntry(
                error_type=ImportErrorType.DUPLICATE_INVOICE_NUMBER,
                details="Invoice 1001 already exists.",
                timestamp=FIXED_NOW,
            )
        )
        await repository.save_changes()

        rows = (await session.scalars(select(ImportErrorRecord))).all()
        assert [row.error_type for row in rows] == ["DuplicateInvoiceNumber"]


class TestCreditNoteWrites:
    async def test_append_bumps_version_and_persists(self, repository):
        await seed(repository, make_invoice(number="1001"))
        invoice = await repository.get_invoice_by_number("1001")

        note = CreditNote("NC-1001-a", Decimal("100.00"), FIXED_NOW)
        apply_credit_note(invoice, note)
        await repository.append_credit_note(invoice, note)
        await repository.save_changes()

        assert invoice.version == 2
        loaded = await repository.get_invoice_by_number("1001")
        assert loaded.version == 2
        assert loaded.status is InvoiceStatus.CANCELLED
        assert loaded.payment_status is PaymentStatus.PAID
        assert [n.number for n in loaded.credit_notes] == ["NC-1001-a"]

    async def test_stale_version_is_rejected(self, repository):
        await seed(repository, make_invoice(number="1001"))
        fresh = await repository.get_invoice_by_number("1001")
        stale = await repository.get_invoice_by_number("1001")

        first = CreditNote("NC-1", Decimal("10.00"), FIXED_NOW)
        apply_credit_note(fresh, first)
        await repository.append_credit_note(fresh, first)
        await repository.save_changes()

        second = CreditNote("NC-2", Decimal("10.00"), FIXED_NOW)
        apply_credit_note(stale, second)
        with pytest.raises(ConcurrentUpdateError):
            await repository.append_credit_note(stale, second)
        await repository.discard_changes()

        loaded = await repository.get_invoice_by_number("1001")
        assert [n.number for n in loaded.credit_notes] == ["NC-1"]

    async def test_unsaved_invoice_is_rejected(self, repository):
        invoice = make_invoice(number="1001")
        with pytest.raises(ValueError):
            await repository.append_credit_note(
                invoice, CreditNote("NC-1", Decimal("1.00"), FIXED_NOW)
            )


class TestQueries:
    @pytest.fixture
    async def seeded(self, repository):
        await seed(
            repository,
            make_invoice(number="1001"),
            make_invoice(number="1002", credit_notes=("10.00",)),
            make_invoice(number="2001", due=TODAY - timedelta(days=40)),
            make_invoice(number="2002", subtotals=("99.00",)),
        )
        return repository

    async def test_listing_only_returns_consistent(self, seeded):
        numbers = [i.number for i in await seeded.list_invoices()]
        assert numbers == ["1001", "1002", "2001"]

    async def test_listing_filters_combine(self, seeded: SqlAlchemyInvoiceRepository):
        by_number = await seeded.list_invoices(number_contains="100")
        assert [i.number for i in by_number] == ["1001", "1002"]

        by_status = await seeded.list_invoices(status=InvoiceStatus.PARTIAL)
        assert [i.number for i in by_status] == ["1002"]

        combined = await seeded.list_invoices(
            number_contains="00",
            payment_status=PaymentStatus.OVERDUE,
        )
        assert [i.number for i in combined] == ["2001"]

    async def test_overdue_query(self, seeded):
        due_before = TODAY - timedelta(days=30)
        overdue = await seeded.get_overdue_invoices_without_credit_notes(due_before)
        assert [i.number for i in overdue] == ["2001"]

    async def test_overdue_query_skips_credited_and_paid(self, repository):
        long_ago = TODAY - timedelta(days=90)
        await seed(
            repository,
            make_invoice(number="1", due=long_ago, credit_notes=("5.00",)),
            make_invoice(number="2", due=long_ago, payment_date=FIXED_NOW),
            make_invoice(number="3", due=long_ago),
        )
        overdue = await repository.get_overdue_invoices_without_credit_notes(TODAY)
        assert [i.number for i in overdue] == ["3"]

    async def test_inconsistent_invoices_include_items(self, seeded):
        invoices = await seeded.get_inconsistent_invoices()
        assert [i.number for i in invoices] == ["2002"]
        assert invoices[0].items_subtotal == Decimal("99.00")
