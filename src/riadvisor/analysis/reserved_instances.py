"""
Reserved Instance inventory analysis.
Summarizes the active reservations of an account and forecasts which of them
expire before the next-but-one report, grouped by instance type.
"""

import logging
from typing import List, Dict, Any, Iterable, Tuple
from datetime import datetime
from dataclasses import dataclass, field
from collections import defaultdict
from enum import Enum

from ..core.base.resource import ReservedInstanceRecord
from ..core.period import ReportWindow, expiration_horizon

logger = logging.getLogger(__name__)


class ForecastStatus(str, Enum):
    """Outcome of an expiration forecast"""
    NO_DATA = "no_data"  # no active reservation at all
    NOTHING_EXPIRING = "nothing_expiring"
    EXPIRING = "expiring"


@dataclass(frozen=True)
class ReservationSummary:
    """Totals over the active reservations of an account"""
    reservation_count: int
    instance_count: int
    invested_cost: float
    computational_power: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reservation_count": self.reservation_count,
            "instance_count": self.instance_count,
            "invested_cost": round(self.invested_cost, 2),
            "computational_power": self.computational_power,
        }


@dataclass(frozen=True)
class ExpirationDate:
    """A calendar date on which some reserved instances expire"""
    date: str
    instance_count: int


@dataclass(frozen=True)
class ExpiringReservation:
    """Expiring reservations of one instance type"""
    instance_type: str
    family: str
    instance_count: int
    computational_power: float
    dates: Tuple[ExpirationDate, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instance_type": self.instance_type,
            "family": self.family,
            "instance_count": self.instance_count,
            "computational_power": self.computational_power,
            "dates": [{"date": d.date, "instance_count": d.instance_count} for d in self.dates],
        }


@dataclass(frozen=True)
class ExpirationForecast:
    """Reservations expiring before the horizon"""
    status: ForecastStatus
    horizon: datetime
    by_type: Tuple[ExpiringReservation, ...] = field(default_factory=tuple)

    @property
    def instance_count(self) -> int:
        return sum(e.instance_count for e in self.by_type)

    @property
    def computational_power(self) -> float:
        return sum(e.computational_power for e in self.by_type)

    @property
    def horizon_date(self) -> str:
        return self.horizon.date().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "horizon": self.horizon.isoformat(),
            "instance_count": self.instance_count,
            "computational_power": self.computational_power,
            "by_type": [e.to_dict() for e in self.by_type],
        }


class ReservedInstanceAnalyzer:
    """
    Builds the reservation summary and the expiration forecast of a report.
    Retired, queued and payment-pending reservations are ignored.
    """

    def __init__(self, months_ahead: int = 2):
        """
        Initialize Reserved Instance Analyzer.

        Args:
            months_ahead: Months after the report window covered by the forecast
        """
        self.months_ahead = months_ahead

    @staticmethod
    def active(reservations: Iterable[ReservedInstanceRecord]) -> List[ReservedInstanceRecord]:
        return [r for r in reservations if r.is_active]

    def summarize(self, reservations: Iterable[ReservedInstanceRecord]) -> ReservationSummary:
        """
        Count active reservations and the money invested in them.

        Args:
            reservations: Inventory of the account

        Returns:
            ReservationSummary over active reservations
        """
        active = self.active(reservations)
        return ReservationSummary(
            reservation_count=len(active),
            instance_count=sum(r.instance_count for r in active),
            invested_cost=sum(r.invested_cost for r in active),
            computational_power=sum(r.computational_power for r in active),
        )

    def expiring(self, reservations: Iterable[ReservedInstanceRecord],
                 horizon: datetime) -> List[ReservedInstanceRecord]:
        """Active reservations ending strictly before ``horizon``"""
        return [r for r in self.active(reservations) if r.end < horizon]

    def forecast(self, reservations: Iterable[ReservedInstanceRecord],
                 window: ReportWindow) -> ExpirationForecast:
        """
        Forecast reservations expiring before the horizon of a report window.

        Args:
            reservations: Inventory of the account
            window: Report window the horizon is derived from

        Returns:
            ExpirationForecast grouped by instance type, largest power first
        """
        reservations = list(reservations)
        horizon = expiration_horizon(window, self.months_ahead)

        if not self.active(reservations):
            return ExpirationForecast(status=ForecastStatus.NO_DATA, horizon=horizon)

        expiring = self.expiring(reservations, horizon)
        if not expiring:
            return ExpirationForecast(status=ForecastStatus.NOTHING_EXPIRING, horizon=horizon)

        grouped: Dict[str, List[ReservedInstanceRecord]] = defaultdict(list)
        for reservation in expiring:
            grouped[reservation.instance_type].append(reservation)

        by_type = []
        for instance_type, records in grouped.items():
            dates: Dict[str, int] = defaultdict(int)
            for record in records:
                dates[record.end.date().isoformat()] += record.instance_count

            by_type.append(ExpiringReservation(
                instance_type=instance_type,
                family=records[0].family,
                instance_count=sum(r.instance_count for r in records),
                computational_power=sum(r.computational_power for r in records),
                dates=tuple(ExpirationDate(d, dates[d]) for d in sorted(dates)),
            ))

        by_type.sort(key=lambda e: (-e.computational_power, e.instance_type))
        logger.info(f"{len(expiring)} reservations expire before {horizon.date().isoformat()}")

        return ExpirationForecast(status=ForecastStatus.EXPIRING, horizon=horizon, by_type=tuple(by_type))
