"""Report windows: calendar weeks, calendar months and the expiration horizon"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Optional, Union


class Cadence(str, Enum):
    """How often a report is produced"""
    WEEKLY = "weekly"
    MONTHLY = "monthly"


def ensure_utc(value: Union[datetime, date, str]) -> datetime:
    """Coerce a datetime, date or ISO-8601 string into an aware UTC datetime

    Naive datetimes are assumed to already be in UTC.
    """
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, time.min)

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _month_start(year: int, month: int) -> datetime:
    # month may overflow past 12; roll it into the year
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return datetime(year, month, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class ReportWindow:
    """A half-open [start, end) reporting period in UTC"""
    start: datetime
    end: datetime
    cadence: Cadence

    def __post_init__(self):
        object.__setattr__(self, "start", ensure_utc(self.start))
        object.__setattr__(self, "end", ensure_utc(self.end))
        if self.end < self.start:
            raise ValueError(f"Window end {self.end} precedes start {self.start}")

    @property
    def hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600

    @property
    def days(self) -> float:
        return (self.end - self.start).total_seconds() / 86400

    @property
    def last_instant(self) -> datetime:
        return self.end - timedelta(microseconds=1)

    @property
    def label(self) -> str:
        if self.cadence == Cadence.MONTHLY:
            return self.start.strftime("%Y-%m")
        return f"{self.start.date().isoformat()}/{self.end.date().isoformat()}"

    def contains(self, moment: datetime) -> bool:
        moment = ensure_utc(moment)
        return self.start <= moment < self.end

    def to_dict(self) -> dict:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "cadence": self.cadence.value,
            "hours": self.hours,
            "days": self.days,
        }


def last_complete_week(now: Optional[datetime] = None) -> ReportWindow:
    """The Sunday-to-Sunday week before the week containing ``now``"""
    now = ensure_utc(now or utcnow())
    days_since_sunday = (now.weekday() + 1) % 7
    this_sunday = datetime.combine(
        now.date() - timedelta(days=days_since_sunday), time.min, tzinfo=timezone.utc
    )
    return ReportWindow(this_sunday - timedelta(days=7), this_sunday, Cadence.WEEKLY)


def last_complete_month(now: Optional[datetime] = None) -> ReportWindow:
    """The calendar month before the month containing ``now``"""
    now = ensure_utc(now or utcnow())
    end = _month_start(now.year, now.month)
    start = _month_start(now.year, now.month - 1)
    return ReportWindow(start, end, Cadence.MONTHLY)


def window_for(cadence: Union[Cadence, str], now: Optional[datetime] = None) -> ReportWindow:
    """Return the last complete window of the given cadence"""
    cadence = Cadence(cadence)
    if cadence == Cadence.MONTHLY:
        return last_complete_month(now)
    return last_complete_week(now)


def expiration_horizon(window: ReportWindow, months_ahead: int = 2) -> datetime:
    """First instant of the month ``months_ahead`` months after the window's last month

    With the default of two months this covers everything expiring up to the
    end of the month following the report.
    """
    if months_ahead < 1:
        raise ValueError("months_ahead must be at least 1")
    last = window.last_instant
    return _month_start(last.year, last.month + months_ahead)
