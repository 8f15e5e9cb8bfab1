"""
Invoice repository.

An invoice is a snapshot: minutes and amount are aggregated once, from
the entries overlapping its period at generation time, and are never
recomputed when those entries change later.
"""

import logging
from datetime import date, datetime
from typing import Optional, List

from sqlalchemy import select

from ..connection import Database, get_database
from ..models import InvoiceDB, ProjectDB, TimeEntryDB
from ..exceptions import DatabaseError, DatabaseOperationError, EmptyPeriodError
from .ownership import load_owned
from ...services.aggregation import aggregate, round_half_up, round_currency
from ...utils.datetime_utils import get_local_now, start_of_day, end_of_day
from ...utils.formatting import format_duration, format_currency

logger = logging.getLogger(__name__)


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


class InvoiceRepository:
    """Repository for invoice operations."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()
        self.clock = get_local_now

    async def generate_invoice(
        self,
        user_id: str,
        project_id: int,
        period_start: date,
        period_end: date,
    ) -> InvoiceDB:
        """
        Bill a project's tracked time for an inclusive date range.

        Entries overlapping [start of period_start, end of period_end] count
        with their full duration. Minutes are stored rounded to 2 decimals;
        the amount is computed from the unrounded minutes at the client's
        current rate, then rounded to cents.

        Raises:
            EmptyPeriodError: no tracked time in the period (or the period
                is reversed); nothing is written
        """
        period_start = _as_date(period_start)
        period_end = _as_date(period_end)

        async with self.db.session() as session:
            try:
                project = await load_owned(session, ProjectDB, project_id, user_id, "Project")

                if period_end < period_start:
                    raise EmptyPeriodError(f"Invoice period {period_start} -> {period_end} is reversed")

                result = await session.execute(
                    select(TimeEntryDB)
                    .where(
                        TimeEntryDB.project_id == project.id,
                        TimeEntryDB.end_time.is_not(None),
                        TimeEntryDB.start_time <= end_of_day(period_end),
                        TimeEntryDB.end_time >= start_of_day(period_start),
                    )
                )
                entries = list(result.unique().scalars().all())

                rate = project.client.hourly_rate_usd if project.client else 0.0
                totals = aggregate(entries, {project.id: rate})

                if totals.minutes <= 0:
                    raise EmptyPeriodError(
                        f"No tracked time for project {project.name} "
                        f"between {period_start} and {period_end}"
                    )

                invoice = InvoiceDB(
                    project_id=project.id,
                    user_id=user_id,
                    period_start=period_start,
                    period_end=period_end,
                    total_minutes=round_half_up(totals.minutes, "0.01"),
                    amount_usd=round_currency(totals.amount),
                )
                session.add(invoice)
                await session.flush()
                await session.refresh(invoice)

                logger.info(
                    f"Generated invoice {invoice.id} for project {project.name}: "
                    f"{format_duration(totals.minutes)}, {format_currency(invoice.amount_usd)} "
                    f"from {totals.entry_count} entries"
                )
                return invoice

            except DatabaseError:
                raise
            except Exception as e:
                logger.error(f"CRITICAL: Invoice generation failed for project {project_id}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to generate invoice: {e}") from e

    async def get_invoice(self, user_id: str, invoice_id: int) -> InvoiceDB:
        async with self.db.session() as session:
            return await load_owned(session, InvoiceDB, invoice_id, user_id, "Invoice")

    async def list_invoices(self, user_id: str, project_id: int) -> List[InvoiceDB]:
        """Invoices of a project, newest period_end first."""
        async with self.db.session() as session:
            await load_owned(session, ProjectDB, project_id, user_id, "Project")
            result = await session.execute(
                select(InvoiceDB)
                .where(InvoiceDB.project_id == project_id)
                .order_by(InvoiceDB.period_end.desc(), InvoiceDB.id.desc())
            )
            return list(result.scalars().all())

    async def set_sent(self, user_id: str, invoice_id: int, is_sent: bool = True) -> InvoiceDB:
        """Mark an invoice sent (timestamped) or not sent (timestamp cleared)."""
        async with self.db.session() as session:
            invoice = await load_owned(session, InvoiceDB, invoice_id, user_id, "Invoice")
            invoice.is_sent = bool(is_sent)
            invoice.sent_at = self.clock() if is_sent else None
            await session.flush()
            await session.refresh(invoice)

            logger.info(f"Invoice {invoice_id} sent={invoice.is_sent}")
            return invoice

    async def set_paid(self, user_id: str, invoice_id: int, is_paid: bool = True) -> InvoiceDB:
        """Mark an invoice paid (timestamped) or unpaid (timestamp cleared)."""
        async with self.db.session() as session:
            invoice = await load_owned(session, InvoiceDB, invoice_id, user_id, "Invoice")
            invoice.is_paid = bool(is_paid)
            invoice.paid_at = self.clock() if is_paid else None
            await session.flush()
            await session.refresh(invoice)

            logger.info(f"Invoice {invoice_id} paid={invoice.is_paid}")
            return invoice

    async def toggle_sent(self, user_id: str, invoice_id: int) -> InvoiceDB:
        invoice = await self.get_invoice(user_id, invoice_id)
        return await self.set_sent(user_id, invoice_id, not invoice.is_sent)

    async def toggle_paid(self, user_id: str, invoice_id: int) -> InvoiceDB:
        invoice = await self.get_invoice(user_id, invoice_id)
        return await self.set_paid(user_id, invoice_id, not invoice.is_paid)

    async def delete_invoice(self, user_id: str, invoice_id: int) -> bool:
        """Delete the invoice only; its time entries are untouched."""
        async with self.db.session() as session:
            invoice = await load_owned(session, InvoiceDB, invoice_id, user_id, "Invoice")
            await session.delete(invoice)

            logger.info(f"Deleted invoice {invoice_id}")
            return True


# Singleton
_invoice_repo: Optional[InvoiceRepository] = None


def get_invoice_repository() -> InvoiceRepository:
    """Get the invoice repository singleton."""
    global _invoice_repo
    if _invoice_repo is None:
        _invoice_repo = InvoiceRepository()
    return _invoice_repo
