"""
Database configuration and session management with SQLAlchemy.

Uses async SQLAlchemy for non-blocking database operations.
Invoices, their items and credit notes, and import errors are persisted here.

Design Decisions:
- AsyncSession for non-blocking operations
- Connection pooling with sensible defaults (not for SQLite)
- Explicit transaction management
- Session-per-request pattern
- Monetary columns are NUMERIC(18, 2) and map to Decimal
"""

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from flowinvoice.config import get_settings

logger = logging.getLogger(__name__)

MONEY = Numeric(18, 2)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class InvoiceRecord(Base):
    """
    Persisted invoice.

    ``version`` is bumped by every credit-note write and used as an
    optimistic concurrency token.
    """
    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    number: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    issue_date: Mapped[date] = mapped_column(Date)
    due_date: Mapped[date] = mapped_column(Date)
    total_amount: Mapped[Decimal] = mapped_column(MONEY)

    # Customer
    customer_run: Mapped[str] = mapped_column(String(20))
    customer_name: Mapped[str] = mapped_column(String(100))
    customer_email: Mapped[str] = mapped_column(String(100))

    # Payment
    payment_method: Mapped[str | None] = mapped_column(String(50))
    payment_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Derived state
    status: Mapped[str] = mapped_column(String(20), index=True)
    payment_status: Mapped[str] = mapped_column(String(20), index=True)
    is_consistent: Mapped[bool] = mapped_column(Boolean, index=True)

    version: Mapped[int] = mapped_column(Integer, default=1)

    items: Mapped[list["InvoiceItemRecord"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItemRecord.id",
    )
    credit_notes: Mapped[list["CreditNoteRecord"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="CreditNoteRecord.id",
    )


class InvoiceItemRecord(Base):
    """Invoice line; deleted together with its invoice."""
    __tablename__ = "invoice_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("invoices.id", ondelete="CASCADE"), index=True)

    product_name: Mapped[str] = mapped_column(String(255))
    quantity: Mapped[int] = mapped_column(Integer)
    unit_price: Mapped[Decimal] = mapped_column(MONEY)
    subtotal: Mapped[Decimal] = mapped_column(MONEY)

    invoice: Mapped[InvoiceRecord] = relationship(back_populates="items")


class CreditNoteRecord(Base):
    """Credit note applied to an invoice."""
    __tablename__ = "credit_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey("invoices.id", ondelete="CASCADE"), index=True)

    number: Mapped[str] = mapped_column(String(80))
    amount: Mapped[Decimal] = mapped_column(MONEY)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    invoice: Mapped[InvoiceRecord] = relationship(back_populates="credit_notes")


class ImportErrorRecord(Base):
    """
    Audit record for a rejected or flagged import row.

    ``details`` holds a message plus the serialized source record.
    """
    __tablename__ = "import_errors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
    error_type: Mapped[str] = mapped_column(String(50), index=True)
    details: Mapped[str] = mapped_column(Text)


# Engine and session factory (initialized lazily)
_engine = None
_session_factory = None


def get_engine():
    """Get or create the async database engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        pool_options = {}
        if not settings.is_sqlite:
            pool_options = {"pool_size": 5, "max_overflow": 10, "pool_timeout": 30}
        _engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            **pool_options,
        )
        logger.info(f"Database engine created for {_engine.url.render_as_string(hide_password=True)}")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory for creating database sessions."""
    global _session_factory
    if _session_factory is None:
        engine = get_engine()
        _session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Get a database session for a request.

    Usage:
        async with get_session() as session:
            session.add(record)
            await session.commit()
    """
    factory = get_session_factory()
    session = factory()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db() -> None:
    """
    Initialize database tables.

    Call this on application startup to ensure tables exist.
    In production, use Alembic migrations instead.
    """
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized")


async def close_db() -> None:
    """Close database connections on shutdown."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None
    logger.info("Database connections closed")
