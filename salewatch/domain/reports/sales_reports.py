"""
Sales Reports - daily follow-up notifications and finance summaries

Daily follow-up job (triggered once a day by an external scheduler):
- Reminder: customers who bought exactly 4 days ago (offer a refill)
- Lapsed: customers whose purchases fall 5-10 days ago

Each non-empty list becomes one message to the alert destination.
"""
from typing import List, Sequence

import structlog

from salewatch.common.database import SessionFactory
from salewatch.common.platform import MessagingPlatform
from salewatch.common.sales_repository import SalesLedger
from salewatch.common.schemas.sales import CustomerRef, FinancialSummary, FollowUpLists, PeriodTotals, TopCustomer

logger = structlog.get_logger()


def format_clp(amount: int) -> str:
    """2000 -> $2.000"""
    return "$" + f"{amount:,}".replace(",", ".")


def _customer_lines(customers: Sequence[CustomerRef]) -> str:
    return "".join(f"👤 {c.customer_name}\n🔗 https://wa.me/{c.customer_id}\n\n" for c in customers)


def format_reminder(customers: Sequence[CustomerRef], days: int = 4) -> str:
    return (
        f"📋 *RECORDATORIO ({days} DÍAS)*\n"
        "_Ofrecer recarga de agua:_\n\n"
        + _customer_lines(customers)
    )


def format_lapsed(customers: Sequence[CustomerRef], min_days: int = 5, max_days: int = 10) -> str:
    return (
        f"📋 *SEGUIMIENTO ({min_days}-{max_days} DÍAS)*\n"
        "_Clientes que no han comprado recientemente:_\n\n"
        + _customer_lines(customers)
    )


def _period_line(label: str, totals: PeriodTotals) -> str:
    return f"*{label}:* {totals.count} ventas · {totals.qty} unidades · {format_clp(totals.total)}"


def format_finance_report(summary: FinancialSummary, top: Sequence[TopCustomer] = ()) -> str:
    lines = [
        "💰 *RESUMEN FINANCIERO*",
        "",
        _period_line("Hoy", summary.today),
        _period_line("Ayer", summary.yesterday),
        _period_line("Últimos 7 días", summary.week),
        _period_line("Mes", summary.month),
    ]
    if top:
        lines += ["", "🏆 *MEJORES CLIENTES DEL MES*"]
        lines += [f"{i}. {c.customer_name} ({c.total_qty} u.)" for i, c in enumerate(top, start=1)]
    return "\n".join(lines)


class SalesReporter:
    """Reads the ledger aggregation surface and renders operator messages"""

    def __init__(
        self,
        ledger: SalesLedger,
        session_factory: SessionFactory,
        reminder_days: int = 4,
        range_min_days: int = 5,
        range_max_days: int = 10,
        top_limit: int = 3,
    ):
        self.ledger = ledger
        self.session_factory = session_factory
        self.reminder_days = reminder_days
        self.range_min_days = range_min_days
        self.range_max_days = range_max_days
        self.top_limit = top_limit

    async def follow_up_lists(self) -> FollowUpLists:
        async with self.session_factory() as db:
            reminder = await self.ledger.records_days_ago(db, self.reminder_days)
            lapsed = await self.ledger.records_in_range(db, self.range_min_days, self.range_max_days)
        return FollowUpLists(reminder=reminder, lapsed=lapsed)

    async def follow_up_messages(self) -> List[str]:
        """Formatted messages for the non-empty follow-up lists"""
        lists = await self.follow_up_lists()
        messages = []
        if lists.reminder:
            messages.append(format_reminder(lists.reminder, self.reminder_days))
        if lists.lapsed:
            messages.append(format_lapsed(lists.lapsed, self.range_min_days, self.range_max_days))
        return messages

    async def send_follow_up_reports(self, platform: MessagingPlatform, destination: str) -> int:
        """
        Daily job: send follow-up notifications.

        Returns:
            Number of messages sent
        """
        logger.info("follow_up_report_started", destination=destination)
        messages = await self.follow_up_messages()
        for message in messages:
            await platform.send_message(destination, message)
        logger.info("follow_up_report_sent", destination=destination, messages=len(messages))
        return len(messages)

    async def finance_report(self) -> str:
        async with self.session_factory() as db:
            summary = await self.ledger.financial_summary(db)
            top = await self.ledger.top_customers(db, self.top_limit)
        return format_finance_report(summary, top)
