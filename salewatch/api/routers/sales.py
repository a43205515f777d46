"""
Sales reporting API - ledger aggregations as JSON

Same figures the operator gets over chat (!finanzas, !excel, !reporte),
for dashboards. Read-only: corrections go through the admin commands.
"""
from typing import List

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from salewatch.common.business_time import BusinessCalendar
from salewatch.common.config import get_settings
from salewatch.common.database import get_db_session
from salewatch.common.sales_repository import SalesLedger
from salewatch.common.schemas.sales import FinancialSummary, FollowUpLists, MonthlySaleRow, TopCustomer

logger = structlog.get_logger()
router = APIRouter()


def get_ledger() -> SalesLedger:
    settings = get_settings()
    return SalesLedger(BusinessCalendar(settings.business_timezone), unit_price=settings.unit_price_clp)


@router.get("/summary", response_model=FinancialSummary)
async def get_financial_summary(
    db: AsyncSession = Depends(get_db_session),
    ledger: SalesLedger = Depends(get_ledger),
) -> FinancialSummary:
    """Count / CLP total / units for today, yesterday, last 7 days and month to date"""
    return await ledger.financial_summary(db)


@router.get("/top-customers", response_model=List[TopCustomer])
async def get_top_customers(
    limit: int = Query(3, ge=1, le=50, description="Number of customers"),
    db: AsyncSession = Depends(get_db_session),
    ledger: SalesLedger = Depends(get_ledger),
) -> List[TopCustomer]:
    """Month-to-date customers by units bought"""
    return await ledger.top_customers(db, limit)


@router.get("/monthly", response_model=List[MonthlySaleRow])
async def get_monthly_sales(
    db: AsyncSession = Depends(get_db_session),
    ledger: SalesLedger = Depends(get_ledger),
) -> List[MonthlySaleRow]:
    """Month-to-date sales, newest first"""
    rows = await ledger.monthly_sales_detail(db)
    logger.info("monthly_sales_listed", rows=len(rows))
    return rows


@router.get("/follow-ups", response_model=FollowUpLists)
async def get_follow_ups(
    db: AsyncSession = Depends(get_db_session),
    ledger: SalesLedger = Depends(get_ledger),
) -> FollowUpLists:
    """Today's reminder and lapsed-customer lists"""
    settings = get_settings()
    reminder = await ledger.records_days_ago(db, settings.follow_up_reminder_days)
    lapsed = await ledger.records_in_range(
        db, settings.follow_up_range_min_days, settings.follow_up_range_max_days
    )
    return FollowUpLists(reminder=reminder, lapsed=lapsed)
