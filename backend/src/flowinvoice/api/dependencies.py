"""
FastAPI dependencies.

One database session per request; services are built on top of a
repository bound to that session.
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from flowinvoice.config import Settings, get_settings
from flowinvoice.infrastructure.database import get_session
from flowinvoice.infrastructure.repository import InvoiceRepository, SqlAlchemyInvoiceRepository
from flowinvoice.services.credit_notes import CreditNoteService
from flowinvoice.services.importer import ImportService
from flowinvoice.services.reports import InvoiceReportService


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped database session."""
    async with get_session() as session:
        yield session


def get_repository(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> InvoiceRepository:
    return SqlAlchemyInvoiceRepository(session)


def get_import_service(
    repository: Annotated[InvoiceRepository, Depends(get_repository)],
) -> ImportService:
    return ImportService(repository=repository)


def get_credit_note_service(
    repository: Annotated[InvoiceRepository, Depends(get_repository)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> CreditNoteService:
    return CreditNoteService(
        repository=repository,
        max_attempts=settings.credit_note_max_attempts,
    )


def get_report_service(
    repository: Annotated[InvoiceRepository, Depends(get_repository)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> InvoiceReportService:
    return InvoiceReportService(
        repository=repository,
        overdue_threshold_days=settings.overdue_threshold_days,
    )
