"""
On-demand to reserved conversion advice.

For every on-demand usage bucket (family + normalization factor) estimate how
many machines of the matching size ran over the window, what reserving them
would have cost at the reserved hourly unit price, and how that compares with
what was paid on demand.
"""

import logging
import math
from collections import Counter
from typing import List, Dict, Any, Iterable, Optional, Tuple, Union
from datetime import datetime
from dataclasses import dataclass, field
from enum import Enum

from ..core.base.resource import UsageRecord, UsageType
from ..core.period import ensure_utc
from .normalization import UNKNOWN, inverse_factor

logger = logging.getLogger(__name__)


class RankBy(str, Enum):
    """Orderings offered over accepted suggestions"""
    PERCENT_DELTA = "percent_delta"
    ON_DEMAND_COST = "on_demand_cost"


class SkipReason(str, Enum):
    NO_FAMILY = "no_family"
    UNKNOWN_SIZE = "unknown_size"
    NO_PRICE = "no_price"
    EMPTY_WINDOW = "empty_window"
    NO_SAVINGS = "no_savings"


@dataclass(frozen=True)
class ConversionSuggestion:
    """Reserving ``machines`` instances of ``instance_type`` would have cost less"""
    instance_type: str
    family: str
    machines: int
    on_demand_cost: float
    reserved_cost: float
    percent_delta: float

    @property
    def savings(self) -> float:
        return self.on_demand_cost - self.reserved_cost

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instance_type": self.instance_type,
            "family": self.family,
            "machines": self.machines,
            "on_demand_cost": round(self.on_demand_cost, 2),
            "reserved_cost": round(self.reserved_cost, 2),
            "savings": round(self.savings, 2),
            "percent_delta": round(self.percent_delta, 1),
        }


@dataclass(frozen=True)
class ConversionAdvice:
    """Accepted suggestions of one window, plus how many buckets were skipped"""
    suggestions: Tuple[ConversionSuggestion, ...] = field(default_factory=tuple)
    skipped: int = 0
    skip_reasons: Dict[str, int] = field(default_factory=dict)

    @property
    def no_viable_conversion(self) -> bool:
        return not self.suggestions

    @property
    def total_savings(self) -> float:
        return sum(s.savings for s in self.suggestions)

    def ranked(self, by: Union[RankBy, str] = RankBy.PERCENT_DELTA) -> Tuple[ConversionSuggestion, ...]:
        """Every accepted suggestion, best first"""
        by = RankBy(by)
        if by == RankBy.ON_DEMAND_COST:
            key = lambda s: (-s.on_demand_cost, s.instance_type)
        else:
            key = lambda s: (-s.percent_delta, s.instance_type)
        return tuple(sorted(self.suggestions, key=key))

    def top(self, n: int, by: Union[RankBy, str] = RankBy.PERCENT_DELTA) -> Tuple[ConversionSuggestion, ...]:
        return self.ranked(by)[:max(n, 0)]

    def to_dict(self, top_n: Optional[int] = None,
                by: Union[RankBy, str] = RankBy.PERCENT_DELTA) -> Dict[str, Any]:
        suggestions = self.ranked(by) if top_n is None else self.top(top_n, by)
        return {
            "no_viable_conversion": self.no_viable_conversion,
            "accepted": len(self.suggestions),
            "skipped": self.skipped,
            "skip_reasons": dict(self.skip_reasons),
            "total_savings": round(self.total_savings, 2),
            "suggestions": [s.to_dict() for s in suggestions],
        }


class ConversionAdvisor:
    """
    Turns on-demand usage buckets into reservation suggestions.
    Buckets that cannot be evaluated are skipped, never raised.
    """

    def evaluate(self, usage: UsageRecord, prices: Dict[str, float],
                 window_hours: float) -> Tuple[Optional[ConversionSuggestion], Optional[SkipReason]]:
        """
        Evaluate one usage bucket.

        Args:
            usage: On-demand usage bucket
            prices: Hourly reserved unit price per instance type
            window_hours: Length of the report window in hours

        Returns:
            (suggestion, None) when reserving is cheaper, (None, reason) otherwise
        """
        if not usage.family:
            return None, SkipReason.NO_FAMILY

        size = inverse_factor(usage.normalization_factor)
        if size == UNKNOWN or usage.normalization_factor <= 0:
            return None, SkipReason.UNKNOWN_SIZE

        instance_type = f"{usage.family}.{size}"
        unit_price = prices.get(instance_type)
        if not unit_price or unit_price <= 0:
            return None, SkipReason.NO_PRICE

        if window_hours <= 0:
            return None, SkipReason.EMPTY_WINDOW

        hours_per_machine = usage.normalized_usage / usage.normalization_factor
        machines = math.ceil(hours_per_machine / window_hours)
        reserved_cost = machines * unit_price * window_hours

        # also guards the percentage against a zero on-demand cost
        if usage.cost - reserved_cost <= 0:
            return None, SkipReason.NO_SAVINGS

        return ConversionSuggestion(
            instance_type=instance_type,
            family=usage.family,
            machines=machines,
            on_demand_cost=usage.cost,
            reserved_cost=reserved_cost,
            percent_delta=100 * (usage.cost - reserved_cost) / usage.cost,
        ), None

    def advise(self, usages: Iterable[UsageRecord], prices: Dict[str, float],
               start: datetime, end: datetime) -> ConversionAdvice:
        """
        Evaluate every on-demand bucket of a window.

        Args:
            usages: Usage buckets; discounted buckets are not candidates
            prices: Hourly reserved unit price per instance type
            start: Window start
            end: Window end (exclusive)

        Returns:
            ConversionAdvice ordered by descending percent delta
        """
        window_hours = (ensure_utc(end) - ensure_utc(start)).total_seconds() / 3600

        accepted: List[ConversionSuggestion] = []
        reasons: Counter = Counter()

        for usage in usages:
            if usage.usage_type != UsageType.USAGE:
                continue
            suggestion, reason = self.evaluate(usage, prices, window_hours)
            if suggestion is None:
                reasons[reason.value] += 1
                logger.debug(f"Skipped {usage.family}/{usage.normalization_factor}: {reason.value}")
            else:
                accepted.append(suggestion)

        advice = ConversionAdvice(
            suggestions=tuple(sorted(accepted, key=lambda s: (-s.percent_delta, s.instance_type))),
            skipped=sum(reasons.values()),
            skip_reasons=dict(reasons),
        )
        if advice.no_viable_conversion:
            logger.info("No viable on-demand to reserved conversion")
        else:
            logger.info(f"{len(accepted)} conversion suggestions, {advice.total_savings:.2f} potential savings")
        return advice
