"""
Bulk invoice import orchestrator.

Coordinates the import pipeline for each record, in input order:
1. Duplicate detection (storage and in-batch)
2. Mapping to the domain invoice
3. Status derivation and consistency check
4. Error recording for duplicates and inconsistencies

Everything accepted is persisted in a single save at the end. Row-level
problems never abort the batch; storage failures propagate.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime

from flowinvoice.domain.models import (
    CreditNote,
    Customer,
    ImportErrorEntry,
    ImportErrorType,
    Invoice,
    InvoiceItem,
)
from flowinvoice.domain.status import build_invoice, utc_now
from flowinvoice.infrastructure.repository import InvoiceRepository

from .duplicates import DuplicateDetector
from .records import InvoiceImportRecord

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Summary of one bulk import call."""
    total_processed: int = 0
    imported_successfully: int = 0
    skipped_duplicate: int = 0
    marked_inconsistent: int = 0
    duplicate_errors: list[str] = field(default_factory=list)
    inconsistent_errors: list[str] = field(default_factory=list)
    message: str = ""

    @property
    def persisted(self) -> int:
        """Invoices written to storage (consistent and inconsistent)."""
        return self.imported_successfully + self.marked_inconsistent


def invoice_from_record(record: InvoiceImportRecord, today: date) -> Invoice:
    """
    Map an import record to a new invoice with derived state.

    Items and pre-existing credit notes are copied one to one.
    """
    payment = record.invoice_payment
    return build_invoice(
        number=str(record.invoice_number),
        issue_date=record.invoice_date.date(),
        due_date=record.payment_due_date.date(),
        total_amount=record.total_amount,
        customer=Customer(
            run=record.customer.customer_run,
            name=record.customer.customer_name,
            email=record.customer.customer_email,
        ),
        items=[
            InvoiceItem(
                product_name=detail.product_name,
                quantity=detail.quantity,
                unit_price=detail.unit_price,
                subtotal=detail.subtotal,
            )
            for detail in record.invoice_detail
        ],
        credit_notes=[
            CreditNote(
                number=str(note.credit_note_number),
                amount=note.credit_note_amount,
                created_at=note.credit_note_date,
            )
            for note in record.invoice_credit_note
        ],
        payment_method=payment.payment_method if payment else None,
        payment_date=payment.payment_date if payment else None,
        today=today,
    )


class ImportService:
    """
    Imports invoice batches.

    Example:
        service = ImportService(repository=SqlAlchemyInvoiceRepository(session))
        result = await service.import_batch(request.invoices)
    """

    def __init__(
        self,
        repository: InvoiceRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize import service.

        Args:
            repository: Storage collaborator
            clock: Returns the current UTC time (injectable for tests)
        """
        self.repository = repository
        self.clock = clock

    async def import_batch(
        self,
        records: Sequence[InvoiceImportRecord] | None,
    ) -> ImportResult:
        """
        Import a batch of invoice records.

        Args:
            records: Parsed invoices from the bulk JSON document

        Returns:
            ImportResult with counters, error messages and a summary message
        """
        if not records:
            logger.warning("Import requested with no invoices")
            return ImportResult(message="The import document is empty or contains no invoices.")

        now = self.clock()
        detector = DuplicateDetector(self.repository)
        result = ImportResult(total_processed=len(records))
        batch: list[Invoice] = []

        for record in records:
            number = str(record.invoice_number)

            # Duplicates are checked before consistency
            if await detector.is_duplicate(number):
                await self._record_duplicate(result, record, now)
                continue

            detector.mark_seen(number)
            invoice = invoice_from_record(record, now.date())

            if not invoice.is_consistent:
                await self._record_inconsistent(result, record, now)
            else:
                result.imported_successfully += 1

            # Inconsistent invoices are stored too, flagged for the report
            batch.append(invoice)

        if batch:
            await self.repository.add_invoices(batch)
        await self.repository.save_changes()

        result.message = (
            f"Import finished. Processed: {result.total_processed}, "
            f"imported: {result.imported_successfully}, "
            f"skipped duplicates: {result.skipped_duplicate}, "
            f"inconsistent: {result.marked_inconsistent}."
        )
        logger.info(result.message)
        return result

    async def _record_duplicate(
        self,
        result: ImportResult,
        record: InvoiceImportRecord,
        now: datetime,
    ) -> None:
        message = f"Invoice {record.invoice_number} already exists."
        logger.warning(f"Skipping duplicate: {message}")

        result.skipped_duplicate += 1
        result.duplicate_errors.append(message)
        await self.repository.add_import_error(
            ImportErrorEntry(
                error_type=ImportErrorType.DUPLICATE_INVOICE_NUMBER,
                details=f"{message} JSON: {record.model_dump_json()}",
                timestamp=now,
            )
        )

    async def _record_inconsistent(
        self,
        result: ImportResult,
        record: InvoiceImportRecord,
        now: datetime,
    ) -> None:
        message = (
            f"Invoice {record.invoice_number}: total amount does not match "
            f"the sum of item subtotals."
        )
        logger.warning(message)

        result.marked_inconsistent += 1
        result.inconsistent_errors.append(message)
        await self.repository.add_import_error(
            ImportErrorEntry(
                error_type=ImportErrorType.INCONSISTENT_AMOUNT,
                details=f"{message} JSON: {record.model_dump_json()}",
                timestamp=now,
            )
        )
