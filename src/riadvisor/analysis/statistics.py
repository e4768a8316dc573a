"""Histograms and usage proportions for the report"""

import math
from typing import List, Dict, Any, Iterable, Tuple
from dataclasses import dataclass, field

from ..core.base.resource import InstanceUtilizationRecord, ResourceKind, UsageRecord, UsageType


@dataclass(frozen=True)
class Histogram:
    """K equal-width buckets over [minimum, maximum]

    Buckets are half-open ``[lower, upper)`` except the last one, which also
    holds values equal to the maximum.
    """
    minimum: float
    maximum: float
    width: float
    counts: Tuple[int, ...] = field(default_factory=tuple)

    @property
    def bucket_count(self) -> int:
        return len(self.counts)

    @property
    def total(self) -> int:
        return sum(self.counts)

    def bounds(self) -> List[Tuple[float, float]]:
        return [
            (self.minimum + i * self.width, self.minimum + (i + 1) * self.width)
            for i in range(self.bucket_count)
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "minimum": self.minimum,
            "maximum": self.maximum,
            "width": self.width,
            "buckets": [
                {"lower": lower, "upper": upper, "count": count}
                for (lower, upper), count in zip(self.bounds(), self.counts)
            ],
        }


def build_histogram(values: Iterable[float], k: int = 5) -> Histogram:
    """Bucket ``values`` into ``k`` equal-width buckets

    Raises:
        ValueError: if ``k`` is lower than 1
    """
    if k < 1:
        raise ValueError(f"Histogram needs at least one bucket, got {k}")

    values = list(values)
    if not values:
        return Histogram(minimum=0.0, maximum=0.0, width=0.0, counts=(0,) * k)

    minimum, maximum = min(values), max(values)
    width = (maximum - minimum) / k

    counts = [0] * k
    for value in values:
        if width == 0:
            index = 0
        else:
            index = min(int(math.floor((value - minimum) / width)), k - 1)
        counts[max(index, 0)] += 1

    return Histogram(minimum=minimum, maximum=maximum, width=width, counts=tuple(counts))


def cpu_histogram(records: Iterable[InstanceUtilizationRecord], k: int = 5,
                  kind: ResourceKind = ResourceKind.EC2) -> Histogram:
    """Histogram of the CPU average of every record of one kind"""
    return build_histogram((r.cpu_average for r in records if r.kind == kind), k)


@dataclass(frozen=True)
class UsageProportion:
    """On-demand vs discounted share of normalized usage, in percent"""
    on_demand_usage: float
    discounted_usage: float
    on_demand_percentage: float
    discounted_percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "on_demand_usage": self.on_demand_usage,
            "discounted_usage": self.discounted_usage,
            "on_demand_percentage": round(self.on_demand_percentage, 2),
            "discounted_percentage": round(self.discounted_percentage, 2),
        }


def usage_proportion(usages: Iterable[UsageRecord]) -> UsageProportion:
    """Share of normalized usage paid on demand vs covered by reservations"""
    on_demand = 0.0
    discounted = 0.0
    for usage in usages:
        if usage.usage_type == UsageType.USAGE:
            on_demand += usage.normalized_usage
        elif usage.usage_type == UsageType.DISCOUNTED:
            discounted += usage.normalized_usage

    total = on_demand + discounted
    if total <= 0:
        return UsageProportion(on_demand, discounted, 0.0, 0.0)

    return UsageProportion(
        on_demand_usage=on_demand,
        discounted_usage=discounted,
        on_demand_percentage=100 * on_demand / total,
        discounted_percentage=100 * discounted / total,
    )
