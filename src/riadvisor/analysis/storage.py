"""S3 storage summary: volume, daily figures and the most expensive buckets"""

import logging
from typing import Dict, Any, Iterable, Tuple
from dataclasses import dataclass, field

from ..core.base.resource import S3BucketUsage
from ..core.period import ReportWindow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BucketCost:
    bucket: str
    total_cost: float
    storage_gb_month: float
    cost_per_gb: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bucket": self.bucket,
            "total_cost": round(self.total_cost, 2),
            "storage_gb_month": round(self.storage_gb_month, 2),
            "cost_per_gb": round(self.cost_per_gb, 4),
        }


@dataclass(frozen=True)
class StorageSummary:
    bucket_count: int = 0
    total_cost: float = 0.0
    storage_gb_month: float = 0.0
    daily_storage_gb: float = 0.0
    daily_cost: float = 0.0
    top_buckets: Tuple[BucketCost, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bucket_count": self.bucket_count,
            "total_cost": round(self.total_cost, 2),
            "storage_gb_month": round(self.storage_gb_month, 2),
            "daily_storage_gb": round(self.daily_storage_gb, 2),
            "daily_cost": round(self.daily_cost, 2),
            "top_buckets": [b.to_dict() for b in self.top_buckets],
        }


def summarize_buckets(buckets: Iterable[S3BucketUsage], window: ReportWindow,
                      top_n: int = 5) -> StorageSummary:
    """
    Summarize S3 usage over a window.

    Args:
        buckets: Per-bucket usage
        window: Report window; daily figures divide by its day count
        top_n: Number of most expensive buckets to keep

    Returns:
        StorageSummary
    """
    buckets = list(buckets)
    total_cost = sum(b.total_cost for b in buckets)
    storage = sum(b.storage_gb_month for b in buckets)
    days = window.days

    ranked = sorted(buckets, key=lambda b: (-b.total_cost, b.bucket))[:max(top_n, 0)]

    return StorageSummary(
        bucket_count=len(buckets),
        total_cost=total_cost,
        storage_gb_month=storage,
        daily_storage_gb=storage / days if days > 0 else 0.0,
        daily_cost=total_cost / days if days > 0 else 0.0,
        top_buckets=tuple(
            BucketCost(b.bucket, b.total_cost, b.storage_gb_month, b.cost_per_gb) for b in ranked
        ),
    )
