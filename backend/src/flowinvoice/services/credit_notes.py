"""
Credit note application workflow.

Validates a credit note against an existing invoice, appends it and
recomputes the invoice's derived state.

Business-rule rejections are returned as structured failures. Storage
errors propagate. The write is guarded by the invoice version: when another
request changed the invoice in between, the whole read-validate-write
sequence is retried.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flowinvoice.domain.models import CreditNote, InvoiceStatus, PaymentStatus
from flowinvoice.domain.numbering import generate_credit_note_number
from flowinvoice.domain.status import apply_credit_note, pending_balance, utc_now
from flowinvoice.infrastructure.repository import ConcurrentUpdateError, InvoiceRepository

logger = logging.getLogger(__name__)

# Smallest amount the money columns can store
CENT = Decimal("0.01")


@dataclass
class CreditNoteResult:
    """
    Outcome of a credit note request.

    On success ``max_allowed_amount`` is the remaining pending balance; on an
    over-limit failure it is the balance the caller may still credit.
    """
    success: bool
    error_message: str | None = None
    max_allowed_amount: Decimal = Decimal(0)
    new_status: InvoiceStatus | None = None
    new_payment_status: PaymentStatus | None = None
    credit_note_number: str | None = None

    @classmethod
    def failure(cls, message: str, max_allowed_amount: Decimal = Decimal(0)) -> "CreditNoteResult":
        return cls(success=False, error_message=message, max_allowed_amount=max_allowed_amount)


class CreditNoteService:
    """Applies credit notes to stored invoices."""

    def __init__(
        self,
        repository: InvoiceRepository,
        max_attempts: int = 3,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize credit note service.

        Args:
            repository: Storage collaborator
            max_attempts: Read-validate-write attempts on version conflicts
            clock: Returns the current UTC time (injectable for tests)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.repository = repository
        self.max_attempts = max_attempts
        self.clock = clock

    async def add_credit_note(self, invoice_number: str, amount: Decimal) -> CreditNoteResult:
        """
        Apply a credit note of ``amount`` to an invoice.

        Raises:
            ConcurrentUpdateError: If every attempt lost a version race
        """
        if amount <= 0:
            return CreditNoteResult.failure("Amount must be greater than zero.")
        if amount != amount.quantize(CENT):
            return CreditNoteResult.failure("Amount must have at most two decimal places.")

        attempt = 1
        while True:
            try:
                return await self._apply(invoice_number, amount)
            except ConcurrentUpdateError:
                await self.repository.discard_changes()
                if attempt >= self.max_attempts:
                    logger.error(
                        f"Giving up on credit note for invoice {invoice_number} "
                        f"after {attempt} conflicting attempts"
                    )
                    raise
                attempt += 1
                logger.info(f"Retrying credit note for invoice {invoice_number} (attempt {attempt})")

    async def _apply(self, invoice_number: str, amount: Decimal) -> CreditNoteResult:
        invoice = await self.repository.get_invoice_by_number(
            invoice_number,
            include_items=False,
            include_credit_notes=True,
        )
        if invoice is None:
            return CreditNoteResult.failure("Invoice not found.")

        if invoice.status is InvoiceStatus.CANCELLED:
            return CreditNoteResult.failure("Cannot add credit notes to cancelled invoices.")

        pending = pending_balance(invoice)
        if amount > pending:
            logger.info(f"Credit note of {amount} rejected for invoice {invoice_number}: pending {pending}")
            return CreditNoteResult.failure(
                f"Amount exceeds pending balance. Available balance: {pending:.2f}.",
                max_allowed_amount=pending,
            )

        now = self.clock()
        note = CreditNote(
            number=generate_credit_note_number(invoice.number, now),
            amount=amount,
            created_at=now,
        )
        apply_credit_note(invoice, note)

        await self.repository.append_credit_note(invoice, note)
        await self.repository.save_changes()

        logger.info(
            f"Credit note {note.number} of {amount} applied to invoice {invoice_number}: "
            f"{invoice.status.value}/{invoice.payment_status.value}"
        )
        return CreditNoteResult(
            success=True,
            max_allowed_amount=pending - amount,
            new_status=invoice.status,
            new_payment_status=invoice.payment_status,
            credit_note_number=note.number,
        )
