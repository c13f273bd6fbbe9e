"""
Bulk import JSON contract.

These pydantic models mirror the external invoice export format consumed by
the import endpoint. Field names match the JSON keys exactly.
Amounts are parsed as Decimal (never as float) and limited to cents,
matching the NUMERIC(18, 2) storage columns.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class InvoiceDetailRecord(BaseModel):
    """One line item of an imported invoice."""
    product_name: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., gt=0, decimal_places=2)
    subtotal: Decimal = Field(..., decimal_places=2)


class InvoicePaymentRecord(BaseModel):
    """Payment information, present when the invoice was paid."""
    payment_method: str | None = None
    payment_date: datetime | None = None


class InvoiceCreditNoteRecord(BaseModel):
    """Credit note already applied in the source system."""
    credit_note_number: int
    credit_note_amount: Decimal = Field(..., gt=0, decimal_places=2)
    credit_note_date: datetime


class CustomerRecord(BaseModel):
    """Billed customer."""
    customer_run: str
    customer_name: str
    customer_email: str


class InvoiceImportRecord(BaseModel):
    """
    A single invoice from the bulk export.

    ``invoice_status``, ``days_to_due`` and ``payment_status`` are accepted
    for compatibility but ignored: derived state is always recomputed.
    """
    invoice_number: int
    invoice_date: datetime
    invoice_status: str | None = None
    total_amount: Decimal = Field(..., decimal_places=2)
    days_to_due: int | None = None
    payment_due_date: datetime
    payment_status: str | None = None
    invoice_detail: list[InvoiceDetailRecord] = Field(default_factory=list)
    invoice_payment: InvoicePaymentRecord | None = None
    invoice_credit_note: list[InvoiceCreditNoteRecord] = Field(default_factory=list)
    customer: CustomerRecord


class ImportRequest(BaseModel):
    """Root document of a bulk import."""
    invoices: list[InvoiceImportRecord] = Field(default_factory=list)
