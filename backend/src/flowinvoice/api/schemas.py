"""
Pydantic schemas for API request/response validation.

These schemas define the contract between frontend and backend.
Monetary values are Decimal, serialized as strings to avoid floating point
issues. The bulk import request lives in ``services.records``.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from flowinvoice.domain.models import Invoice, InvoiceStatus, PaymentStatus


# =============================================================================
# Request Schemas
# =============================================================================

class AddCreditNoteRequest(BaseModel):
    """Request to apply a credit note to an invoice."""
    credit_note_amount: Decimal = Field(
        ...,
        decimal_places=2,
        description="Amount to credit, at most two decimal places; must not exceed the pending balance",
    )


# =============================================================================
# Response Schemas
# =============================================================================

class ImportResultResponse(BaseModel):
    """Summary of a bulk import."""
    model_config = ConfigDict(from_attributes=True)

    total_processed: int
    imported_successfully: int
    skipped_duplicate: int
    marked_inconsistent: int
    duplicate_errors: list[str] = []
    inconsistent_errors: list[str] = []
    message: str


class CreditNoteResultResponse(BaseModel):
    """Outcome of a credit note request."""
    model_config = ConfigDict(from_attributes=True)

    success: bool
    error_message: str | None = None
    max_allowed_amount: Decimal
    new_status: InvoiceStatus | None = None
    new_payment_status: PaymentStatus | None = None
    credit_note_number: str | None = None


class InvoiceListItemResponse(BaseModel):
    """Invoice row in the listing."""
    invoice_number: str
    customer_name: str
    total_amount: Decimal
    status: InvoiceStatus
    payment_status: PaymentStatus


class CustomerResponse(BaseModel):
    customer_run: str
    customer_name: str
    customer_email: str


class InvoicePaymentResponse(BaseModel):
    payment_method: str | None = None
    payment_date: datetime | None = None


class InvoiceItemResponse(BaseModel):
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class CreditNoteResponse(BaseModel):
    credit_note_number: str
    credit_note_amount: Decimal
    created_date: datetime


class InvoiceDetailResponse(BaseModel):
    """Full invoice with customer, payment, items and credit notes."""
    invoice_number: str
    invoice_date: date
    due_date: date
    total_amount: Decimal
    status: InvoiceStatus
    payment_status: PaymentStatus
    is_consistent: bool
    customer: CustomerResponse
    invoice_payment: InvoicePaymentResponse
    items: list[InvoiceItemResponse]
    credit_notes: list[CreditNoteResponse]

    @classmethod
    def from_invoice(cls, invoice: Invoice) -> "InvoiceDetailResponse":
        return cls(
            invoice_number=invoice.number,
            invoice_date=invoice.issue_date,
            due_date=invoice.due_date,
            total_amount=invoice.total_amount,
            status=invoice.status,
            payment_status=invoice.payment_status,
            is_consistent=invoice.is_consistent,
            customer=CustomerResponse(
                customer_run=invoice.customer.run,
                customer_name=invoice.customer.name,
                customer_email=invoice.customer.email,
            ),
            invoice_payment=InvoicePaymentResponse(
                payment_method=invoice.payment_method,
                payment_date=invoice.payment_date,
            ),
            items=[
                InvoiceItemResponse(
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    subtotal=item.subtotal,
                )
                for item in invoice.items
            ],
            credit_notes=[
                CreditNoteResponse(
                    credit_note_number=note.number,
                    credit_note_amount=note.amount,
                    created_date=note.created_at,
                )
                for note in invoice.credit_notes
            ],
        )


class OverdueInvoiceResponse(BaseModel):
    """Row of the overdue report."""
    model_config = ConfigDict(from_attributes=True)

    invoice_number: str
    customer_name: str
    total_amount: Decimal
    due_date: date
    days_overdue: int


class PaymentStatusShareResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: PaymentStatus
    total_count: int
    percentage: Decimal


class PaymentStatusReportResponse(BaseModel):
    """Payment status breakdown over consistent invoices."""
    model_config = ConfigDict(from_attributes=True)

    total_invoices: int
    summaries: list[PaymentStatusShareResponse]


class InconsistentInvoiceResponse(BaseModel):
    """Row of the inconsistent-invoice report."""
    model_config = ConfigDict(from_attributes=True)

    invoice_number: str
    declared_total_amount: Decimal
    calculated_subtotal_sum: Decimal
    discrepancy_details: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    version: str
    database: str = "connected"


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: str | None = None
    code: str | None = None
