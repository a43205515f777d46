"""
Tests for `domain/reports/sales_reports.py`.
"""
import pytest

from salewatch.domain.reports.sales_reports import SalesReporter, format_clp

ALERT_DESTINATION = "120363000000000000@g.us"


@pytest.mark.parametrize("amount, expected", [(0, "$0"), (2000, "$2.000"), (1234567, "$1.234.567")])
def test_format_clp(amount, expected) -> None:
    assert format_clp(amount) == expected


@pytest.fixture
def reporter(ledger, session_factory) -> SalesReporter:
    return SalesReporter(ledger, session_factory)


async def test_follow_up_lists_split_reminder_and_lapsed(reporter, ledger, session_factory) -> None:
    async with session_factory() as db:
        await ledger.append(db, "Ana", "56911112222", date="2025-03-11")
        await ledger.append(db, "Luis", "56933334444", date="2025-03-08")
        await ledger.append(db, "Eva", "56955556666", date="2025-03-14")

    lists = await reporter.follow_up_lists()

    assert [c.customer_name for c in lists.reminder] == ["Ana"]
    assert [c.customer_name for c in lists.lapsed] == ["Luis"]


async def test_send_follow_up_reports_sends_one_message_per_list(reporter, ledger, session_factory, platform) -> None:
    async with session_factory() as db:
        await ledger.append(db, "Ana", "56911112222", date="2025-03-11")
        await ledger.append(db, "Luis", "56933334444", date="2025-03-06")

    sent = await reporter.send_follow_up_reports(platform, ALERT_DESTINATION)

    messages = platform.sent_to(ALERT_DESTINATION)
    assert sent == 2
    assert "RECORDATORIO (4 DÍAS)" in messages[0]
    assert "https://wa.me/56911112222" in messages[0]
    assert "SEGUIMIENTO (5-10 DÍAS)" in messages[1]
    assert "Luis" in messages[1]


async def test_empty_lists_send_nothing(reporter, platform) -> None:
    assert await reporter.send_follow_up_reports(platform, ALERT_DESTINATION) == 0
    assert platform.sent == []


async def test_finance_report_includes_totals_and_top_customers(reporter, ledger, session_factory) -> None:
    async with session_factory() as db:
        await ledger.append(db, "Ana", "56911112222", quantity=2)
        await ledger.append(db, "Luis", "56933334444", quantity=3)

    report = await reporter.finance_report()

    assert "RESUMEN FINANCIERO" in report
    assert "*Hoy:* 2 ventas · 5 unidades · $10.000" in report
    assert "1. Luis (3 u.)" in report
    assert "2. Ana (2 u.)" in report
