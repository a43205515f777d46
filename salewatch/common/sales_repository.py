"""
Sales Ledger - durable store of accepted sale records

Append-mostly: records are never updated in place. The only removals are the
operator corrections `delete_last` / `delete_last_for`.

All date windows are computed at call time in the business timezone:
- today / yesterday: exact day
- week: trailing 7 days including today (today-6 .. today)
- month: first day of the current month .. today

total_clp is always quantity x unit price; callers cannot set it independently.
"""
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from salewatch.common.business_time import BusinessCalendar
from salewatch.common.errors import StoreFailure
from salewatch.common.schemas.sales import (
    CustomerRef,
    FinancialSummary,
    MonthlySaleRow,
    PeriodTotals,
    SaleRecord,
    TopCustomer,
)

logger = structlog.get_logger()

WEEK_WINDOW_DAYS = 7


class SalesLedger:
    """
    Repository for the `sales` table.

    Every method takes the caller's AsyncSession; commit/rollback belongs to
    the session scope (see DatabaseSessionManager.session).
    """

    def __init__(self, calendar: BusinessCalendar, unit_price: int = 2000):
        if unit_price < 0:
            raise ValueError(f"unit_price must be >= 0, got {unit_price}")
        self.calendar = calendar
        self.unit_price = unit_price

    async def _execute(self, db: AsyncSession, sql: str, params: Optional[Dict[str, Any]] = None, *, op: str):
        try:
            return await db.execute(text(sql), params or {})
        except (SQLAlchemyError, OverflowError) as e:
            logger.error("ledger_query_failed", op=op, error=str(e), exc_info=True)
            raise StoreFailure(f"Ledger {op} failed: {e}") from e

    # ---- writes -------------------------------------------------------------------------

    async def append(
        self,
        db: AsyncSession,
        customer_name: str,
        customer_id: str,
        quantity: int = 1,
        total_amount: Optional[int] = None,
        address: str = "",
        date: Optional[str] = None,
    ) -> int:
        """
        Insert a new sale.

        Args:
            db: Database session
            customer_name: Display name (push name or number)
            customer_id: Stable customer identifier (phone number digits)
            quantity: Units sold, >= 1
            total_amount: Optional check value; must equal quantity x unit price
            address: Delivery address, may be empty
            date: YYYY-MM-DD in the business timezone (defaults to today).
                  Back-dated by the retroactive scanner.

        Returns:
            New record id
        """
        if quantity < 1:
            raise ValueError(f"quantity must be >= 1, got {quantity}")

        derived_total = quantity * self.unit_price
        if total_amount is not None and total_amount != derived_total:
            raise ValueError(
                f"total_amount {total_amount} does not match quantity x unit price ({derived_total})"
            )

        sale_date = date or self.calendar.today_str()

        result = await self._execute(
            db,
            """
            INSERT INTO sales (name, number, date, address, quantity, total_clp)
            VALUES (:name, :number, :date, :address, :quantity, :total_clp)
            RETURNING id
            """,
            {
                "name": customer_name,
                "number": customer_id,
                "date": sale_date,
                "address": address or "",
                "quantity": quantity,
                "total_clp": derived_total,
            },
            op="append",
        )
        sale_id = int(result.scalar_one())

        logger.info("sale_appended",
                    sale_id=sale_id,
                    customer_id=customer_id,
                    date=sale_date,
                    quantity=quantity,
                    total_clp=derived_total)

        return sale_id

    async def delete_last(self, db: AsyncSession) -> int:
        """Remove the highest-id record. Returns rows removed (0 or 1)."""
        result = await self._execute(
            db,
            "DELETE FROM sales WHERE id = (SELECT MAX(id) FROM sales)",
            op="delete_last",
        )
        removed = result.rowcount or 0
        logger.info("sale_deleted_last", removed=removed)
        return removed

    async def delete_last_for(self, db: AsyncSession, customer_id: str) -> int:
        """Remove the highest-id record of one customer. Returns rows removed (0 or 1)."""
        result = await self._execute(
            db,
            "DELETE FROM sales WHERE id = (SELECT MAX(id) FROM sales WHERE number = :number)",
            {"number": customer_id},
            op="delete_last_for",
        )
        removed = result.rowcount or 0
        logger.info("sale_deleted_last_for_customer", customer_id=customer_id, removed=removed)
        return removed

    async def clear_all(self, db: AsyncSession) -> None:
        """Delete every record (test fixtures only)"""
        await self._execute(db, "DELETE FROM sales", op="clear_all")

    # ---- point / range queries ----------------------------------------------------------

    async def get(self, db: AsyncSession, sale_id: int) -> Optional[SaleRecord]:
        result = await self._execute(
            db,
            "SELECT id, name, number, date, address, quantity, total_clp FROM sales WHERE id = :id",
            {"id": sale_id},
            op="get",
        )
        row = result.fetchone()
        if row is None:
            return None
        return SaleRecord(
            id=row.id,
            customer_name=row.name or "",
            customer_id=row.number or "",
            date=row.date,
            address=row.address or "",
            quantity=row.quantity,
            total_amount=row.total_clp,
        )

    async def records_on_day(self, db: AsyncSession, date: str) -> List[CustomerRef]:
        """Distinct customers with any record on `date`"""
        result = await self._execute(
            db,
            "SELECT DISTINCT name, number FROM sales WHERE date = :date ORDER BY name, number",
            {"date": date},
            op="records_on_day",
        )
        return [CustomerRef(customer_name=r.name or "", customer_id=r.number or "") for r in result.fetchall()]

    async def records_days_ago(self, db: AsyncSession, days: int) -> List[CustomerRef]:
        return await self.records_on_day(db, self.calendar.days_ago(days))

    async def records_in_range(self, db: AsyncSession, min_days_ago: int, max_days_ago: int) -> List[CustomerRef]:
        """Distinct customers with a record in [today - max_days_ago, today - min_days_ago]"""
        if min_days_ago > max_days_ago:
            raise ValueError("min_days_ago must be <= max_days_ago")

        result = await self._execute(
            db,
            """
            SELECT DISTINCT name, number FROM sales
            WHERE date BETWEEN :start AND :end
            ORDER BY name, number
            """,
            {
                "start": self.calendar.days_ago(max_days_ago),
                "end": self.calendar.days_ago(min_days_ago),
            },
            op="records_in_range",
        )
        return [CustomerRef(customer_name=r.name or "", customer_id=r.number or "") for r in result.fetchall()]

    async def exists(self, db: AsyncSession, customer_id: str, date: str) -> bool:
        result = await self._execute(
            db,
            "SELECT id FROM sales WHERE number = :number AND date = :date LIMIT 1",
            {"number": customer_id, "date": date},
            op="exists",
        )
        return result.fetchone() is not None

    async def last_address(self, db: AsyncSession, customer_id: str) -> str:
        """Most recent non-empty address for a customer, '' if none"""
        result = await self._execute(
            db,
            """
            SELECT address FROM sales
            WHERE number = :number AND address IS NOT NULL AND address != ''
            ORDER BY id DESC
            LIMIT 1
            """,
            {"number": customer_id},
            op="last_address",
        )
        row = result.fetchone()
        return row.address if row else ""

    # ---- aggregations -------------------------------------------------------------------

    async def _totals(self, db: AsyncSession, start: str, end: str) -> PeriodTotals:
        result = await self._execute(
            db,
            """
            SELECT COUNT(*) AS sale_count,
                   COALESCE(SUM(total_clp), 0) AS total_clp,
                   COALESCE(SUM(quantity), 0) AS total_qty
            FROM sales
            WHERE date BETWEEN :start AND :end
            """,
            {"start": start, "end": end},
            op="totals",
        )
        row = result.fetchone()
        return PeriodTotals(count=int(row.sale_count), total=int(row.total_clp), qty=int(row.total_qty))

    async def financial_summary(self, db: AsyncSession) -> FinancialSummary:
        """Counts, CLP totals and units for today, yesterday, trailing week and month-to-date"""
        today = self.calendar.today_str()
        yesterday = self.calendar.days_ago(1)

        summary = FinancialSummary(
            today=await self._totals(db, today, today),
            yesterday=await self._totals(db, yesterday, yesterday),
            week=await self._totals(db, self.calendar.days_ago(WEEK_WINDOW_DAYS - 1), today),
            month=await self._totals(db, self.calendar.month_start(), today),
        )

        logger.debug("financial_summary_computed",
                     today_total=summary.today.total,
                     month_total=summary.month.total)
        return summary

    async def monthly_sales_detail(self, db: AsyncSession) -> List[MonthlySaleRow]:
        """Every record since the first of the month, newest first"""
        result = await self._execute(
            db,
            """
            SELECT id, date, name, number, address, quantity, total_clp
            FROM sales
            WHERE date >= :month_start
            ORDER BY date DESC, id DESC
            """,
            {"month_start": self.calendar.month_start()},
            op="monthly_sales_detail",
        )
        return [
            MonthlySaleRow(
                id=r.id,
                date=r.date,
                customer_name=r.name or "",
                customer_id=r.number or "",
                address=r.address or "",
                quantity=r.quantity,
                total_amount=r.total_clp,
            )
            for r in result.fetchall()
        ]

    async def top_customers(self, db: AsyncSession, limit: int = 3) -> List[TopCustomer]:
        """Customers ranked by units this month; ties keep first-seen order"""
        result = await self._execute(
            db,
            """
            SELECT name, number, SUM(quantity) AS total_qty, MIN(id) AS first_id
            FROM sales
            WHERE date >= :month_start
            GROUP BY name, number
            ORDER BY total_qty DESC, first_id ASC
            LIMIT :limit
            """,
            {"month_start": self.calendar.month_start(), "limit": limit},
            op="top_customers",
        )
        return [
            TopCustomer(customer_name=r.name or "", customer_id=r.number or "", total_qty=int(r.total_qty))
            for r in result.fetchall()
        ]
