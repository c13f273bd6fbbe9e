"""
Tests for the bulk import workflow.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError
from sqlalchemy import select

from flowinvoice.domain.models import InvoiceStatus, PaymentStatus
from flowinvoice.infrastructure.database import ImportErrorRecord
from flowinvoice.infrastructure.repository import SqlAlchemyInvoiceRepository
from flowinvoice.services.importer import ImportService
from flowinvoice.services.records import InvoiceImportRecord

from tests.factories import FIXED_NOW, TODAY, fixed_clock, make_record, record_payload


@pytest.fixture
def service(repository):
    return ImportService(repository=repository, clock=fixed_clock)


async def _import_errors(session) -> list[ImportErrorRecord]:
    return list((await session.scalars(select(ImportErrorRecord).order_by(ImportErrorRecord.id))).all())


class TestEmptyInput:
    @pytest.mark.parametrize("records", [None, []])
    async def test_empty_batch_touches_nothing(self, records):
        # No repository: any storage call would fail
        service = ImportService(repository=None, clock=fixed_clock)
        result = await service.import_batch(records)

        assert result.total_processed == 0
        assert result.imported_successfully == 0
        assert result.message == "The import document is empty or contains no invoices."


class TestImportBatch:
    async def test_mixed_batch(self, service, repository, session):
        result = await service.import_batch([
            make_record(number=1001),
            make_record(number=1002, subtotals=("60.00", "30.00")),
            make_record(number=1001),
        ])

        assert result.total_processed == 3
        assert result.imported_successfully == 1
        assert result.marked_inconsistent == 1
        assert result.skipped_duplicate == 1
        assert result.persisted == 2
        assert result.duplicate_errors == ["Invoice 1001 already exists."]
        assert result.inconsistent_errors == [
            "Invoice 1002: total amount does not match the sum of item subtotals."
        ]
        assert result.message == (
            "Import finished. Processed: 3, imported: 1, skipped duplicates: 1, inconsistent: 1."
        )

        errors = await _import_errors(session)
        assert [e.error_type for e in errors] == ["InconsistentAmount", "DuplicateInvoiceNumber"]
        assert all(e.timestamp.replace(tzinfo=None) == FIXED_NOW.replace(tzinfo=None) for e in errors)

    async def test_first_occurrence_wins_within_batch(self, service, repository, session):
        await service.import_batch([
            make_record(number=1001, total="100.00"),
            make_record(number=1001, total="50.00", subtotals=("50.00",)),
        ])

        invoice = await repository.get_invoice_by_number("1001")
        assert invoice.total_amount == Decimal("100.00")

        [error] = await _import_errors(session)
        assert error.details.startswith("Invoice 1001 already exists. JSON: ")
        assert '"total_amount":"50.00"' in error.details

    async def test_duplicate_across_imports(self, service, repository):
        first = await service.import_batch([make_record(number=1001)])
        second = await service.import_batch([make_record(number=1001)])

        assert first.imported_successfully == 1
        assert second.imported_successfully == 0
        assert second.skipped_duplicate == 1
        assert len(await repository.list_invoices()) == 1

    async def test_inconsistent_invoice_is_stored_flagged(self, service, repository):
        result = await service.import_batch([
            make_record(number=1001, total="100.00", subtotals=("99.99",)),
        ])

        assert result.marked_inconsistent == 1
        stored = await repository.get_invoice_by_number("1001")
        assert stored is not None
        assert stored.is_consistent is False
        assert await repository.list_invoices() == []

    async def test_duplicate_of_inconsistent_invoice_is_skipped(self, service):
        await service.import_batch([make_record(number=1001, subtotals=("1.00",))])
        result = await service.import_batch([make_record(number=1001)])

        assert result.skipped_duplicate == 1
        assert result.imported_successfully == 0

    async def test_existing_credit_notes_and_payment(self, service, repository):
        await service.import_batch([
            make_record(number=1001, credit_notes=("30.00",)),
            make_record(number=1002, payment_date="2024-06-01T10:00:00"),
            make_record(number=1003, due=TODAY - timedelta(days=1)),
        ])

        credited = await repository.get_invoice_by_number("1001")
        assert credited.status is InvoiceStatus.PARTIAL
        assert credited.payment_status is PaymentStatus.PENDING
        assert [n.number for n in credited.credit_notes] == ["9001"]

        paid = await repository.get_invoice_by_number("1002")
        assert paid.payment_status is PaymentStatus.PAID
        assert paid.payment_method == "transfer"

        late = await repository.get_invoice_by_number("1003")
        assert late.status is InvoiceStatus.ISSUED
        assert late.payment_status is PaymentStatus.OVERDUE

    async def test_items_are_copied(self, service, repository):
        await service.import_batch([make_record(number=1001, subtotals=("60.00", "40.00"))])

        stored = await repository.get_invoice_by_number("1001")
        assert [item.product_name for item in stored.items] == ["Product 1", "Product 2"]
        assert stored.issue_date.isoformat() == "2024-05-01"


class TestRecordPrecision:
    @pytest.mark.parametrize("overrides", [
        {"total": "100.001", "subtotals": ("100.00",)},
        {"total": "100.00", "subtotals": ("100.001",)},
        {"total": "100.00", "subtotals": ("100.00",), "credit_notes": ("0.001",)},
    ])
    def test_sub_cent_amounts_are_rejected(self, overrides):
        with pytest.raises(ValidationError):
            make_record(**overrides)

    def test_sub_cent_unit_price_is_rejected(self):
        payload = record_payload()
        payload["invoice_detail"][0]["unit_price"] = "59.995"

        with pytest.raises(ValidationError):
            InvoiceImportRecord.model_validate(payload)

    async def test_inconsistency_survives_storage(self, service, repository):
        await service.import_batch([make_record(number=1001, total="100.00", subtotals=("99.99",))])

        [stored] = await repository.get_inconsistent_invoices()
        assert stored.total_amount == Decimal("100.00")
        assert stored.items_subtotal == Decimal("99.99")


class FailingSaveRepository(SqlAlchemyInvoiceRepository):
    async def save_changes(self) -> None:
        raise RuntimeError("disk full")


class TestStorageFailure:
    async def test_save_failure_propagates(self, session, repository):
        service = ImportService(repository=FailingSaveRepository(session), clock=fixed_clock)

        with pytest.raises(RuntimeError, match="disk full"):
            await service.import_batch([make_record(number=1001), make_record(number=1001)])

        await session.rollback()
        assert await repository.invoice_exists("1001") is False
        assert await _import_errors(session) == []
