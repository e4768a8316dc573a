"""Most expensive applications: EC2 and RDS cost grouped by Application/Owner tags"""

import logging
from collections import defaultdict
from typing import Dict, Any, Iterable, Tuple
from dataclasses import dataclass, field

from ..core.base.resource import TagCostRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApplicationCost:
    application: str
    owner: str
    ec2_cost: float
    rds_cost: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "application": self.application,
            "owner": self.owner,
            "ec2_cost": round(self.ec2_cost, 2),
            "rds_cost": round(self.rds_cost, 2),
        }


@dataclass(frozen=True)
class ApplicationCostSummary:
    """Tagged EC2/RDS spend; totals cover every group, ``top`` only the most expensive"""
    group_count: int = 0
    ec2_cost: float = 0.0
    rds_cost: float = 0.0
    top: Tuple[ApplicationCost, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "group_count": self.group_count,
            "ec2_cost": round(self.ec2_cost, 2),
            "rds_cost": round(self.rds_cost, 2),
            "top": [a.to_dict() for a in self.top],
        }


def summarize_applications(records: Iterable[TagCostRecord], top_n: int = 7) -> ApplicationCostSummary:
    """
    Rank tag groups by EC2 cost.

    Records with the same Application/Owner pair (compared case-insensitively)
    are merged before ranking.

    Args:
        records: Tag-grouped costs
        top_n: Number of groups to keep, by descending EC2 cost

    Returns:
        ApplicationCostSummary
    """
    groups: Dict[Tuple[str, str], Dict[str, float]] = defaultdict(lambda: {"ec2": 0.0, "rds": 0.0})
    for record in records:
        key = (record.application.strip().lower(), record.owner.strip().lower())
        groups[key]["ec2"] += record.ec2_cost
        groups[key]["rds"] += record.rds_cost

    costs = [
        ApplicationCost(application, owner, values["ec2"], values["rds"])
        for (application, owner), values in groups.items()
    ]
    ranked = sorted(costs, key=lambda a: (-a.ec2_cost, a.application, a.owner))

    return ApplicationCostSummary(
        group_count=len(costs),
        ec2_cost=sum(a.ec2_cost for a in costs),
        rds_cost=sum(a.rds_cost for a in costs),
        top=tuple(ranked[:max(top_n, 0)]),
    )
