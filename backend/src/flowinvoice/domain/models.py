"""
Domain models for invoice lifecycle management.

These models represent the core business entities handled by the import
and credit-note workflows. They carry no persistence or transport concerns.

Design Decisions:
- Dataclasses for typed domain objects; Invoice is mutable because credit
  notes are appended to it after import
- Derived fields (status, payment status, consistency) are never defaulted;
  they are supplied by the factory in ``domain.status``
- Decimal for all monetary values to avoid floating-point errors
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class InvoiceStatus(Enum):
    """Lifecycle status based on cumulative credit notes vs. declared total."""
    ISSUED = "Issued"
    PARTIAL = "Partial"
    CANCELLED = "Cancelled"


class PaymentStatus(Enum):
    """Payment status based on outstanding balance, due date and payment date."""
    PENDING = "Pending"
    OVERDUE = "Overdue"
    PAID = "Paid"


class ImportErrorType(Enum):
    """Kinds of row-level problems recorded during a bulk import."""
    DUPLICATE_INVOICE_NUMBER = "DuplicateInvoiceNumber"
    INCONSISTENT_AMOUNT = "InconsistentAmount"


@dataclass(frozen=True)
class Customer:
    """Billed customer. ``run`` is the national tax id (RUN/RUT)."""
    run: str
    name: str
    email: str


@dataclass(frozen=True)
class InvoiceItem:
    """
    A single invoice line.

    The subtotal is the declared value from the source document and is
    never recomputed from quantity * unit_price.
    """
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError(f"Quantity must be positive, got {self.quantity}")
        if self.unit_price <= 0:
            raise ValueError(f"Unit price must be positive, got {self.unit_price}")


@dataclass(frozen=True)
class CreditNote:
    """A credit note owned by exactly one invoice."""
    number: str
    amount: Decimal
    created_at: datetime

    def __post_init__(self) -> None:
        if not self.number:
            raise ValueError("Credit note number is required")
        if self.amount <= 0:
            raise ValueError(f"Credit note amount must be positive, got {self.amount}")


@dataclass
class Invoice:
    """
    Invoice with its items and credit notes.

    ``status``, ``payment_status`` and ``is_consistent`` are derived values.
    Build new invoices with ``domain.status.build_invoice`` and mutate them
    only through ``domain.status.apply_credit_note``.

    ``id`` and ``version`` belong to storage: ``id`` is None until the
    invoice is persisted, ``version`` guards concurrent credit-note writes.
    """
    number: str
    issue_date: date
    due_date: date
    total_amount: Decimal
    customer: Customer
    status: InvoiceStatus
    payment_status: PaymentStatus
    is_consistent: bool
    payment_method: str | None = None
    payment_date: datetime | None = None
    items: list[InvoiceItem] = field(default_factory=list)
    credit_notes: list[CreditNote] = field(default_factory=list)
    id: int | None = None
    version: int = 1

    def __post_init__(self) -> None:
        if not self.number:
            raise ValueError("Invoice number is required")

    @property
    def credit_notes_total(self) -> Decimal:
        """Sum of all applied credit note amounts."""
        return sum((note.amount for note in self.credit_notes), Decimal(0))

    @property
    def items_subtotal(self) -> Decimal:
        """Sum of declared item subtotals."""
        return sum((item.subtotal for item in self.items), Decimal(0))


@dataclass(frozen=True)
class ImportErrorEntry:
    """
    Audit row for a record rejected or flagged during import.

    ``details`` embeds the serialized offending record.
    """
    error_type: ImportErrorType
    details: str
    timestamp: datetime
