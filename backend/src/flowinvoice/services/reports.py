"""
Read-only invoice queries and reports.

Listing and reports only consider consistent invoices, except the
inconsistent-invoice report which exists to surface the others.
"""

import logging
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal

from flowinvoice.domain.models import Invoice, InvoiceStatus, PaymentStatus
from flowinvoice.domain.status import utc_now
from flowinvoice.infrastructure.repository import InvoiceRepository

logger = logging.getLogger(__name__)

PERCENT_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class OverdueInvoice:
    """Row of the overdue report."""
    invoice_number: str
    customer_name: str
    total_amount: Decimal
    due_date: date
    days_overdue: int


@dataclass(frozen=True)
class PaymentStatusShare:
    """Count and share of invoices in one payment status."""
    status: PaymentStatus
    total_count: int
    percentage: Decimal


@dataclass
class PaymentStatusSummary:
    """Payment status breakdown over all consistent invoices."""
    total_invoices: int
    summaries: list[PaymentStatusShare] = field(default_factory=list)


@dataclass(frozen=True)
class InconsistentInvoice:
    """Row of the inconsistent-invoice report."""
    invoice_number: str
    declared_total_amount: Decimal
    calculated_subtotal_sum: Decimal

    @property
    def discrepancy_details(self) -> str:
        return f"Declared: {self.declared_total_amount}, Calculated: {self.calculated_subtotal_sum}"


class InvoiceReportService:
    """Invoice listing, detail and reports."""

    def __init__(
        self,
        repository: InvoiceRepository,
        overdue_threshold_days: int = 30,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize report service.

        Args:
            repository: Storage collaborator
            overdue_threshold_days: Days past due before an invoice is reported
            clock: Returns the current UTC time (injectable for tests)
        """
        self.repository = repository
        self.overdue_threshold_days = overdue_threshold_days
        self.clock = clock

    async def list_invoices(
        self,
        number_contains: str | None = None,
        status: InvoiceStatus | None = None,
        payment_status: PaymentStatus | None = None,
    ) -> list[Invoice]:
        """Consistent invoices matching every given filter."""
        logger.debug(
            f"Listing invoices: number={number_contains!r}, status={status}, "
            f"payment_status={payment_status}"
        )
        return await self.repository.list_invoices(number_contains, status, payment_status)

    async def get_invoice_detail(self, invoice_number: str) -> Invoice | None:
        """Full invoice with items and credit notes, or None."""
        return await self.repository.get_invoice_by_number(
            invoice_number,
            include_items=True,
            include_credit_notes=True,
        )

    async def overdue_report(self) -> list[OverdueInvoice]:
        """
        Unpaid invoices without credit notes, overdue by more than the threshold.
        """
        today = self.clock().date()
        due_before = today - timedelta(days=self.overdue_threshold_days)
        invoices = await self.repository.get_overdue_invoices_without_credit_notes(due_before)

        return [
            OverdueInvoice(
                invoice_number=invoice.number,
                customer_name=invoice.customer.name,
                total_amount=invoice.total_amount,
                due_date=invoice.due_date,
                days_overdue=(today - invoice.due_date).days,
            )
            for invoice in invoices
        ]

    async def payment_status_summary(self) -> PaymentStatusSummary:
        """Count and percentage of consistent invoices per payment status."""
        invoices = await self.repository.get_consistent_invoices()
        total = len(invoices)
        counts = Counter(invoice.payment_status for invoice in invoices)

        summaries = [
            PaymentStatusShare(
                status=status,
                total_count=counts[status],
                percentage=(Decimal(counts[status]) * 100 / total).quantize(PERCENT_PLACES),
            )
            for status in PaymentStatus
            if counts[status]
        ]
        return PaymentStatusSummary(total_invoices=total, summaries=summaries)

    async def inconsistent_report(self) -> list[InconsistentInvoice]:
        """Inconsistent invoices with declared total vs. sum of item subtotals."""
        invoices = await self.repository.get_inconsistent_invoices()
        return [
            InconsistentInvoice(
                invoice_number=invoice.number,
                declared_total_amount=invoice.total_amount,
                calculated_subtotal_sum=invoice.items_subtotal,
            )
            for invoice in invoices
        ]
