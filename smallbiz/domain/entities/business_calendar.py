from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class BusinessCalendar:
    """Calendar arithmetic in the business's local zone (wall-clock days, configurable week start)."""

    timezone: tzinfo = field(default_factory=lambda: ZoneInfo("UTC"))
    first_weekday: int = 0  # 0=Monday ... 6=Sunday

    @classmethod
    def from_settings(cls, timezone_name: str, first_weekday: int = 0) -> "BusinessCalendar":
        return cls(timezone=_safe_timezone(timezone_name), first_weekday=first_weekday % 7)

    def localize(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=self.timezone)
        return value.astimezone(self.timezone)

    def start_of_day(self, value: datetime) -> datetime:
        return self.localize(value).replace(hour=0, minute=0, second=0, microsecond=0)

    def start_of_week(self, value: datetime) -> datetime:
        day = self.start_of_day(value)
        offset = (day.weekday() - self.first_weekday) % 7
        return self.start_of_day(day - timedelta(days=offset))

    def add_days(self, value: datetime, days: int) -> datetime:
        return self.localize(value) + timedelta(days=days)

    def start_of_year(self, value: datetime) -> datetime:
        local = self.localize(value)
        return datetime(local.year, 1, 1, tzinfo=self.timezone)

    def month_interval(self, value: datetime) -> tuple[datetime, datetime]:
        """Half-open [start, end) of the month containing value."""
        start = self.start_of_day(value).replace(day=1)
        if start.month == 12:
            end = start.replace(year=start.year + 1, month=1)
        else:
            end = start.replace(month=start.month + 1)
        return start, end


def _safe_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except Exception:
        return ZoneInfo("UTC")
