"""
Invoice storage collaborator.

Exposes the persistence operations used by the import, credit-note and
report services, and maps between ORM records and domain objects.

Design Decisions:
- Abstract repository interface so services never touch SQLAlchemy
- Unit of work: add/append operations are staged on the session and only
  committed by ``save_changes``
- Credit-note writes are conditional updates guarded by the invoice version
- Reads always refresh identity-mapped records (``populate_existing``) so a
  long-lived session never returns stale derived state
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import date

from sqlalchemy import Select, exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from flowinvoice.domain.models import (
    CreditNote,
    Customer,
    ImportErrorEntry,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    PaymentStatus,
)

from .database import CreditNoteRecord, ImportErrorRecord, InvoiceItemRecord, InvoiceRecord

logger = logging.getLogger(__name__)


class ConcurrentUpdateError(Exception):
    """Raised when an invoice changed between being read and being written."""

    def __init__(self, invoice_number: str) -> None:
        super().__init__(f"Invoice {invoice_number} was modified concurrently")
        self.invoice_number = invoice_number


class InvoiceRepository(ABC):
    """Abstract interface for invoice storage backends."""

    @abstractmethod
    async def invoice_exists(self, number: str) -> bool:
        """Check whether an invoice with this number is already stored."""
        pass

    @abstractmethod
    async def add_invoices(self, invoices: Sequence[Invoice]) -> None:
        """Stage new invoices (with items and credit notes) for insertion."""
        pass

    @abstractmethod
    async def add_import_error(self, error: ImportErrorEntry) -> None:
        """Stage an import error audit row."""
        pass

    @abstractmethod
    async def get_invoice_by_number(
        self,
        number: str,
        include_items: bool = True,
        include_credit_notes: bool = True,
    ) -> Invoice | None:
        """Load one invoice, optionally with its items and credit notes."""
        pass

    @abstractmethod
    async def append_credit_note(self, invoice: Invoice, note: CreditNote) -> None:
        """
        Stage a credit note and the invoice's new derived state.

        Raises:
            ConcurrentUpdateError: If the stored invoice version no longer
                matches ``invoice.version``
        """
        pass

    @abstractmethod
    async def save_changes(self) -> None:
        """Commit everything staged so far, all or nothing."""
        pass

    @abstractmethod
    async def discard_changes(self) -> None:
        """Drop everything staged since the last save."""
        pass

    @abstractmethod
    async def list_invoices(
        self,
        number_contains: str | None = None,
        status: InvoiceStatus | None = None,
        payment_status: PaymentStatus | None = None,
    ) -> list[Invoice]:
        """Consistent invoices matching all given filters."""
        pass

    @abstractmethod
    async def get_overdue_invoices_without_credit_notes(self, due_before: date) -> list[Invoice]:
        """Consistent, unpaid invoices with no credit notes due before a date."""
        pass

    @abstractmethod
    async def get_consistent_invoices(self) -> list[Invoice]:
        """All consistent invoices."""
        pass

    @abstractmethod
    async def get_inconsistent_invoices(self) -> list[Invoice]:
        """All inconsistent invoices, with their items loaded."""
        pass


def _to_record(invoice: Invoice) -> InvoiceRecord:
    return InvoiceRecord(
        number=invoice.number,
        issue_date=invoice.issue_date,
        due_date=invoice.due_date,
        total_amount=invoice.total_amount,
        customer_run=invoice.customer.run,
        customer_name=invoice.customer.name,
        customer_email=invoice.customer.email,
        payment_method=invoice.payment_method,
        payment_date=invoice.payment_date,
        status=invoice.status.value,
        payment_status=invoice.payment_status.value,
        is_consistent=invoice.is_consistent,
        version=invoice.version,
        items=[
            InvoiceItemRecord(
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                subtotal=item.subtotal,
            )
            for item in invoice.items
        ],
        credit_notes=[
            CreditNoteRecord(
                number=note.number,
                amount=note.amount,
                created_at=note.created_at,
            )
            for note in invoice.credit_notes
        ],
    )


def _to_domain(
    record: InvoiceRecord,
    include_items: bool,
    include_credit_notes: bool,
) -> Invoice:
    items = []
    if include_items:
        items = [
            InvoiceItem(
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                subtotal=item.subtotal,
            )
            for item in record.items
        ]

    credit_notes = []
    if include_credit_notes:
        credit_notes = [
            CreditNote(number=note.number, amount=note.amount, created_at=note.created_at)
            for note in record.credit_notes
        ]

    return Invoice(
        id=record.id,
        version=record.version,
        number=record.number,
        issue_date=record.issue_date,
        due_date=record.due_date,
        total_amount=record.total_amount,
        customer=Customer(
            run=record.customer_run,
            name=record.customer_name,
            email=record.customer_email,
        ),
        status=InvoiceStatus(record.status),
        payment_status=PaymentStatus(record.payment_status),
        is_consistent=record.is_consistent,
        payment_method=record.payment_method,
        payment_date=record.payment_date,
        items=items,
        credit_notes=credit_notes,
    )


def _select_invoices(include_items: bool = False, include_credit_notes: bool = False) -> Select:
    stmt = select(InvoiceRecord).execution_options(populate_existing=True)
    if include_items:
        stmt = stmt.options(selectinload(InvoiceRecord.items))
    if include_credit_notes:
        stmt = stmt.options(selectinload(InvoiceRecord.credit_notes))
    return stmt


class SqlAlchemyInvoiceRepository(InvoiceRepository):
    """
    Repository backed by an async SQLAlchemy session.

    One instance per request; the session's transaction is the unit of work.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._staged: list[tuple[Invoice, InvoiceRecord]] = []

    async def invoice_exists(self, number: str) -> bool:
        stmt = select(exists().where(InvoiceRecord.number == number))
        return bool(await self.session.scalar(stmt))

    async def add_invoices(self, invoices: Sequence[Invoice]) -> None:
        records = [_to_record(invoice) for invoice in invoices]
        self.session.add_all(records)
        self._staged.extend(zip(invoices, records))

    async def add_import_error(self, error: ImportErrorEntry) -> None:
        self.session.add(
            ImportErrorRecord(
                timestamp=error.timestamp,
                error_type=error.error_type.value,
                details=error.details,
            )
        )

    async def get_invoice_by_number(
        self,
        number: str,
        include_items: bool = True,
        include_credit_notes: bool = True,
    ) -> Invoice | None:
        stmt = _select_invoices(include_items, include_credit_notes).where(
            InvoiceRecord.number == number
        )
        record = await self.session.scalar(stmt)
        if record is None:
            return None
        return _to_domain(record, include_items, include_credit_notes)

    async def append_credit_note(self, invoice: Invoice, note: CreditNote) -> None:
        if invoice.id is None:
            raise ValueError(f"Invoice {invoice.number} has not been persisted")

        stmt = (
            update(InvoiceRecord)
            .where(
                InvoiceRecord.id == invoice.id,
                InvoiceRecord.version == invoice.version,
            )
            .values(
                status=invoice.status.value,
                payment_status=invoice.payment_status.value,
                version=InvoiceRecord.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            logger.warning(f"Version conflict on invoice {invoice.number} (expected v{invoice.version})")
            raise ConcurrentUpdateError(invoice.number)

        self.session.add(
            CreditNoteRecord(
                invoice_id=invoice.id,
                number=note.number,
                amount=note.amount,
                created_at=note.created_at,
            )
        )
        invoice.version += 1

    async def save_changes(self) -> None:
        await self.session.commit()
        for invoice, record in self._staged:
            invoice.id = record.id
        self._staged.clear()

    async def discard_changes(self) -> None:
        await self.session.rollback()
        self._staged.clear()

    async def list_invoices(
        self,
        number_contains: str | None = None,
        status: InvoiceStatus | None = None,
        payment_status: PaymentStatus | None = None,
    ) -> list[Invoice]:
        stmt = _select_invoices().where(InvoiceRecord.is_consistent.is_(True))

        if number_contains:
            stmt = stmt.where(InvoiceRecord.number.contains(number_contains, autoescape=True))
        if status is not None:
            stmt = stmt.where(InvoiceRecord.status == status.value)
        if payment_status is not None:
            stmt = stmt.where(InvoiceRecord.payment_status == payment_status.value)

        records = await self.session.scalars(stmt.order_by(InvoiceRecord.id))
        return [_to_domain(record, False, False) for record in records]

    async def get_overdue_invoices_without_credit_notes(self, due_before: date) -> list[Invoice]:
        stmt = (
            _select_invoices()
            .where(
                InvoiceRecord.is_consistent.is_(True),
                InvoiceRecord.payment_status != PaymentStatus.PAID.value,
                ~InvoiceRecord.credit_notes.any(),
                InvoiceRecord.due_date < due_before,
            )
            .order_by(InvoiceRecord.due_date, InvoiceRecord.id)
        )
        records = await self.session.scalars(stmt)
        return [_to_domain(record, False, False) for record in records]

    async def get_consistent_invoices(self) -> list[Invoice]:
        stmt = _select_invoices().where(InvoiceRecord.is_consistent.is_(True))
        records = await self.session.scalars(stmt.order_by(InvoiceRecord.id))
        return [_to_domain(record, False, False) for record in records]

    async def get_inconsistent_invoices(self) -> list[Invoice]:
        stmt = _select_invoices(include_items=True).where(InvoiceRecord.is_consistent.is_(False))
        records = await self.session.scalars(stmt.order_by(InvoiceRecord.id))
        return [_to_domain(record, True, False) for record in records]
