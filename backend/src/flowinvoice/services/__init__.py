"""
Services package - Invoice workflows on top of the storage collaborator.

Includes bulk import, credit notes, and reporting.
"""

from .credit_notes import CreditNoteResult, CreditNoteService
from .importer import ImportResult, ImportService
from .reports import InvoiceReportService

__all__ = [
    "CreditNoteResult",
    "CreditNoteService",
    "ImportResult",
    "ImportService",
    "InvoiceReportService",
]
