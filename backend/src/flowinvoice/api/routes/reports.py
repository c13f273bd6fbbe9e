"""
Report endpoints.

Overdue invoices, payment status breakdown and inconsistent invoices.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from flowinvoice.api.dependencies import get_report_service
from flowinvoice.api.schemas import (
    InconsistentInvoiceResponse,
    OverdueInvoiceResponse,
    PaymentStatusReportResponse,
)
from flowinvoice.services.reports import InvoiceReportService

router = APIRouter(prefix="/invoices/reports", tags=["reports"])


@router.get("/overdue-without-creditnotes", response_model=list[OverdueInvoiceResponse])
async def overdue_report(
    service: Annotated[InvoiceReportService, Depends(get_report_service)],
) -> list[OverdueInvoiceResponse]:
    """Unpaid invoices without credit notes, past due beyond the threshold."""
    rows = await service.overdue_report()
    return [OverdueInvoiceResponse.model_validate(row) for row in rows]


@router.get("/payment-status-summary", response_model=PaymentStatusReportResponse)
async def payment_status_summary(
    service: Annotated[InvoiceReportService, Depends(get_report_service)],
) -> PaymentStatusReportResponse:
    """Share of consistent invoices in each payment status."""
    summary = await service.payment_status_summary()
    return PaymentStatusReportResponse.model_validate(summary)


@router.get("/inconsistent-invoices", response_model=list[InconsistentInvoiceResponse])
async def inconsistent_report(
    service: Annotated[InvoiceReportService, Depends(get_report_service)],
) -> list[InconsistentInvoiceResponse]:
    """Invoices whose declared total differs from the sum of item subtotals."""
    rows = await service.inconsistent_report()
    return [InconsistentInvoiceResponse.model_validate(row) for row in rows]
