"""
Derived-state rules for invoices.

This module contains pure functions that implement the status calculator:
consistency between declared total and item subtotals, the invoice
lifecycle status and the payment status. No I/O, and no clock access unless
the caller omits the reference date.

Design Decisions:
- Pure functions enable easy unit testing and composition
- Exact Decimal comparison for consistency (no tolerance)
- The reference date ("today") is an explicit argument so results are
  reproducible
- New invoices are only created through ``build_invoice`` so derived fields
  are never left at implicit defaults
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from .models import (
    CreditNote,
    Customer,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    PaymentStatus,
)


@dataclass(frozen=True)
class DerivedStatus:
    """Output of the status calculator."""
    status: InvoiceStatus
    payment_status: PaymentStatus
    is_consistent: bool


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Current date in UTC."""
    return utc_now().date()


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def classify_invoice_status(
    credit_notes_total: Decimal,
    declared_total: Decimal,
) -> InvoiceStatus:
    """
    Three-way lifecycle rule.

    No credit -> Issued, credit covering the declared total -> Cancelled,
    anything in between -> Partial.
    """
    if credit_notes_total == 0:
        return InvoiceStatus.ISSUED
    if credit_notes_total >= declared_total:
        return InvoiceStatus.CANCELLED
    return InvoiceStatus.PARTIAL


def derive_status(
    declared_total: Decimal,
    item_subtotals: Iterable[Decimal],
    credit_note_amounts: Iterable[Decimal],
    due_date: date | datetime,
    payment_date: date | datetime | None = None,
    today: date | None = None,
) -> DerivedStatus:
    """
    Derive status, payment status and consistency from raw invoice data.

    Args:
        declared_total: Total amount stated on the invoice
        item_subtotals: Declared subtotal of every line item
        credit_note_amounts: Amounts of all credit notes applied so far
        due_date: Payment due date (only the date part is compared)
        payment_date: When the invoice was paid, if it was
        today: Reference date for overdue detection, UTC today if None

    Returns:
        DerivedStatus for the invoice
    """
    today = today or utc_today()

    is_consistent = sum(item_subtotals, Decimal(0)) == declared_total

    credit_total = sum(credit_note_amounts, Decimal(0))
    status = classify_invoice_status(credit_total, declared_total)

    outstanding = declared_total - credit_total
    if outstanding <= 0:
        payment_status = PaymentStatus.PAID
    elif payment_date is not None:
        payment_status = PaymentStatus.PAID
    elif _as_date(due_date) < today:
        payment_status = PaymentStatus.OVERDUE
    else:
        payment_status = PaymentStatus.PENDING

    return DerivedStatus(
        status=status,
        payment_status=payment_status,
        is_consistent=is_consistent,
    )


def pending_balance(invoice: Invoice) -> Decimal:
    """Declared total minus every credit note applied so far."""
    return invoice.total_amount - invoice.credit_notes_total


def build_invoice(
    *,
    number: str,
    issue_date: date,
    due_date: date,
    total_amount: Decimal,
    customer: Customer,
    items: Iterable[InvoiceItem],
    credit_notes: Iterable[CreditNote] = (),
    payment_method: str | None = None,
    payment_date: datetime | None = None,
    today: date | None = None,
) -> Invoice:
    """
    Create a new invoice with its derived fields computed.

    This is the only supported way to build an invoice that has not been
    loaded from storage.
    """
    items = list(items)
    credit_notes = list(credit_notes)

    derived = derive_status(
        declared_total=total_amount,
        item_subtotals=(item.subtotal for item in items),
        credit_note_amounts=(note.amount for note in credit_notes),
        due_date=due_date,
        payment_date=payment_date,
        today=today,
    )

    return Invoice(
        number=number,
        issue_date=issue_date,
        due_date=due_date,
        total_amount=total_amount,
        customer=customer,
        status=derived.status,
        payment_status=derived.payment_status,
        is_consistent=derived.is_consistent,
        payment_method=payment_method,
        payment_date=payment_date,
        items=items,
        credit_notes=credit_notes,
    )


def apply_credit_note(invoice: Invoice, note: CreditNote) -> None:
    """
    Append a credit note and recompute the lifecycle status in place.

    Cancellation by credit note counts as settlement: the payment status is
    forced to Paid regardless of due date or payment date. Otherwise the
    payment status is left unchanged.

    Callers are responsible for checking the pending balance first.
    """
    invoice.credit_notes.append(note)
    invoice.status = classify_invoice_status(
        invoice.credit_notes_total,
        invoice.total_amount,
    )
    if invoice.status is InvoiceStatus.CANCELLED:
        invoice.payment_status = PaymentStatus.PAID
