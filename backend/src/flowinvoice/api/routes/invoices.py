"""
Invoice endpoints.

Listing with filters, invoice detail, and credit note application.
"""

import logging
from enum import Enum
from typing import Annotated, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from flowinvoice.api.dependencies import get_credit_note_service, get_report_service
from flowinvoice.api.schemas import (
    AddCreditNoteRequest,
    CreditNoteResultResponse,
    InvoiceDetailResponse,
    InvoiceListItemResponse,
)
from flowinvoice.domain.models import InvoiceStatus, PaymentStatus
from flowinvoice.infrastructure.repository import ConcurrentUpdateError
from flowinvoice.services.credit_notes import CreditNoteService
from flowinvoice.services.reports import InvoiceReportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invoices", tags=["invoices"])

E = TypeVar("E", bound=Enum)


def normalize_query_param(value: str | None) -> str | None:
    """Blank query parameters mean "no filter"."""
    if value is None or not value.strip():
        return None
    return value.strip()


def _parse_filter(enum_type: type[E], value: str | None, name: str) -> E | None:
    value = normalize_query_param(value)
    if value is None:
        return None
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {name} '{value}'. Allowed: {allowed}",
        )


@router.get("", response_model=list[InvoiceListItemResponse])
async def list_invoices(
    service: Annotated[InvoiceReportService, Depends(get_report_service)],
    invoice_number: Annotated[str | None, Query(alias="invoiceNumber")] = None,
    invoice_status: Annotated[str | None, Query(alias="status")] = None,
    payment_status: Annotated[str | None, Query(alias="paymentStatus")] = None,
) -> list[InvoiceListItemResponse]:
    """
    List consistent invoices.

    Filters combine with AND; the invoice number filter is a substring match.
    """
    invoices = await service.list_invoices(
        number_contains=normalize_query_param(invoice_number),
        status=_parse_filter(InvoiceStatus, invoice_status, "status"),
        payment_status=_parse_filter(PaymentStatus, payment_status, "paymentStatus"),
    )
    return [
        InvoiceListItemResponse(
            invoice_number=invoice.number,
            customer_name=invoice.customer.name,
            total_amount=invoice.total_amount,
            status=invoice.status,
            payment_status=invoice.payment_status,
        )
        for invoice in invoices
    ]


@router.get(
    "/{invoice_number}",
    response_model=InvoiceDetailResponse,
    responses={404: {"description": "Invoice not found"}},
)
async def get_invoice(
    invoice_number: str,
    service: Annotated[InvoiceReportService, Depends(get_report_service)],
) -> InvoiceDetailResponse:
    """Full invoice with items and credit notes."""
    invoice = await service.get_invoice_detail(invoice_number)
    if invoice is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Invoice {invoice_number} not found.",
        )
    return InvoiceDetailResponse.from_invoice(invoice)


@router.post(
    "/{invoice_number}/credit-note",
    response_model=CreditNoteResultResponse,
    responses={
        400: {"description": "Credit note rejected (see error_message)"},
        409: {"description": "Invoice kept changing concurrently"},
    },
)
async def add_credit_note(
    invoice_number: str,
    request: AddCreditNoteRequest,
    service: Annotated[CreditNoteService, Depends(get_credit_note_service)],
):
    """
    Apply a credit note to an invoice.

    A rejected amount answers 400 with ``max_allowed_amount`` set to the
    pending balance so the caller can retry with a valid amount.
    """
    try:
        result = await service.add_credit_note(invoice_number, request.credit_note_amount)
    except ConcurrentUpdateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    response = CreditNoteResultResponse.model_validate(result)
    if not result.success:
        logger.info(f"Credit note rejected for invoice {invoice_number}: {result.error_message}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=response.model_dump(mode="json"),
        )
    return response
