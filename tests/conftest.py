"""
Shared fixtures: in-memory SQLite ledger on a fixed business clock.

The clock is pinned to 2025-03-15 12:00 in America/Santiago (UTC-3 in March).
"""
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from salewatch.common.business_time import BusinessCalendar
from salewatch.common.database import DatabaseSessionManager
from salewatch.common.sales_repository import SalesLedger
from salewatch.common.transcription_cache import TranscriptionCache
from tests.fakes import FakePlatform

BUSINESS_TZ = "America/Santiago"
FIXED_NOW = datetime(2025, 3, 15, 15, 0, tzinfo=timezone.utc)
TODAY = "2025-03-15"


def local_timestamp(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> float:
    """Epoch seconds for a wall-clock time in the business timezone"""
    return datetime(year, month, day, hour, minute, tzinfo=ZoneInfo(BUSINESS_TZ)).timestamp()


@pytest.fixture
def calendar() -> BusinessCalendar:
    return BusinessCalendar(BUSINESS_TZ, clock=lambda: FIXED_NOW)


@pytest.fixture
async def db_manager():
    manager = DatabaseSessionManager()
    await manager.init("sqlite+aiosqlite:///:memory:")
    yield manager
    await manager.close()


@pytest.fixture
def session_factory(db_manager):
    return db_manager.session


@pytest.fixture
def ledger(calendar) -> SalesLedger:
    return SalesLedger(calendar, unit_price=2000)


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def cache() -> TranscriptionCache:
    return TranscriptionCache(capacity=100)
