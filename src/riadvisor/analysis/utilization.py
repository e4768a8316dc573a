"""
Usage and utilization aggregation.
Classifies EC2 instances and RDS databases as unused from their CPU statistics
and groups the low-used ones by instance type / DB instance class.
"""

import logging
from typing import List, Dict, Any, Iterable, Optional, Tuple
from dataclasses import dataclass, field
from collections import defaultdict

from ..core.base.resource import InstanceUtilizationRecord, ReservedInstanceRecord, ResourceKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnusedPolicy:
    """CPU thresholds (percent) below which a resource is considered unused"""
    cpu_average_threshold: float = 10.0
    cpu_peak_threshold: float = 60.0

    def is_unused(self, record: InstanceUtilizationRecord) -> bool:
        return (record.cpu_average < self.cpu_average_threshold
                and record.cpu_peak < self.cpu_peak_threshold)


DEFAULT_POLICY = UnusedPolicy()


def is_unused(record: InstanceUtilizationRecord, policy: Optional[UnusedPolicy] = None) -> bool:
    """True when both CPU average and CPU peak are under the policy thresholds"""
    return (policy or DEFAULT_POLICY).is_unused(record)


@dataclass(frozen=True)
class LowUsedGroup:
    """Low-used resources sharing an instance type or DB instance class"""
    instance_type: str
    family: str
    count: int
    computational_power: float
    cost: float
    names: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instance_type": self.instance_type,
            "family": self.family,
            "count": self.count,
            "computational_power": self.computational_power,
            "cost": round(self.cost, 2),
            "names": list(self.names),
        }


@dataclass(frozen=True)
class LowUsedReport:
    """Counters and ranked low-used groups for one resource kind"""
    kind: ResourceKind
    total_instances: int = 0
    total_cost: float = 0.0
    low_used_count: int = 0
    low_used_cost: float = 0.0
    groups: Tuple[LowUsedGroup, ...] = field(default_factory=tuple)

    def top(self, n: int) -> Tuple[LowUsedGroup, ...]:
        """The ``n`` most expensive groups; counters still cover every group"""
        return self.groups[:max(n, 0)]

    def to_dict(self, top_n: Optional[int] = None) -> Dict[str, Any]:
        groups = self.groups if top_n is None else self.top(top_n)
        return {
            "kind": self.kind.value,
            "total_instances": self.total_instances,
            "total_cost": round(self.total_cost, 2),
            "low_used_count": self.low_used_count,
            "low_used_cost": round(self.low_used_cost, 2),
            "groups": [g.to_dict() for g in groups],
        }


@dataclass(frozen=True)
class FamilyShare:
    """Share of the computational power held by one instance family"""
    family: str
    computational_power: float
    percentage: float


class UtilizationAggregator:
    """Aggregate per-resource utilization records into a low-used report"""

    def __init__(self, policy: Optional[UnusedPolicy] = None):
        self.policy = policy or DEFAULT_POLICY

    def aggregate(self, records: Iterable[InstanceUtilizationRecord],
                  kind: ResourceKind) -> LowUsedReport:
        """
        Aggregate the records of one kind.

        Args:
            records: Utilization records; records of another kind are ignored
            kind: EC2 (grouped by instance type) or RDS (grouped by DB instance class)

        Returns:
            LowUsedReport with groups sorted by descending cost
        """
        kind = ResourceKind(kind)
        records = [r for r in records if r.kind == kind]

        low_used = [r for r in records if self.policy.is_unused(r)]

        grouped: Dict[str, List[InstanceUtilizationRecord]] = defaultdict(list)
        for record in low_used:
            grouped[record.instance_type].append(record)

        groups = [
            LowUsedGroup(
                instance_type=instance_type,
                family=members[0].family,
                count=len(members),
                computational_power=sum(m.normalization_factor for m in members),
                cost=sum(m.total_cost for m in members),
                names=tuple(m.display_name for m in members),
            )
            for instance_type, members in grouped.items()
        ]
        groups.sort(key=lambda g: (-g.cost, g.instance_type))

        logger.debug(f"{kind.value}: {len(low_used)} low-used out of {len(records)}")

        return LowUsedReport(
            kind=kind,
            total_instances=len(records),
            total_cost=sum(r.total_cost for r in records),
            low_used_count=len(low_used),
            low_used_cost=sum(r.total_cost for r in low_used),
            groups=tuple(groups),
        )


def family_power_distribution(instances: Iterable[InstanceUtilizationRecord],
                              reservations: Iterable[ReservedInstanceRecord]) -> List[FamilyShare]:
    """
    Share of computational power per family over EC2 instances and active reservations.

    Args:
        instances: Utilization records; only EC2 ones count, each as one instance
        reservations: Inventory; only active reservations count

    Returns:
        FamilyShare list sorted by descending percentage, empty when there is no power
    """
    power: Dict[str, float] = defaultdict(float)

    for instance in instances:
        if instance.kind == ResourceKind.EC2 and instance.normalization_factor > 0:
            power[instance.family] += instance.normalization_factor

    for reservation in reservations:
        if reservation.is_active and reservation.computational_power > 0:
            power[reservation.family] += reservation.computational_power

    total = sum(power.values())
    if total <= 0:
        return []

    shares = [
        FamilyShare(family=family, computational_power=value, percentage=100 * value / total)
        for family, value in power.items()
    ]
    shares.sort(key=lambda s: (-s.percentage, s.family))
    return shares
