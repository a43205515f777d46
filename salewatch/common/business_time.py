"""
Business calendar helpers.

Every ledger `date` is a YYYY-MM-DD string in the business timezone, no matter
where or when the process runs.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BusinessCalendar:
    """Computes calendar days in a fixed timezone from an injectable clock"""

    def __init__(self, tz_name: str = "America/Santiago", clock: Optional[Clock] = None):
        self.tz = ZoneInfo(tz_name)
        self._clock = clock or utc_now

    def now(self) -> datetime:
        return self._clock().astimezone(self.tz)

    def today(self) -> date:
        return self.now().date()

    def today_str(self) -> str:
        return self.today().isoformat()

    def days_ago(self, days: int) -> str:
        """Calendar day `days` before today"""
        return (self.today() - timedelta(days=days)).isoformat()

    def month_start(self) -> str:
        return self.today().replace(day=1).isoformat()

    def date_of(self, moment: datetime) -> str:
        """Business-day string for an instant; naive datetimes are taken as UTC"""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(self.tz).date().isoformat()

    def date_of_timestamp(self, epoch_seconds: float) -> str:
        return self.date_of(datetime.fromtimestamp(epoch_seconds, tz=timezone.utc))
