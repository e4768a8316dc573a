"""
Report assembly.
Composes the analysis components over one account's inputs for one window
into an immutable ReportSummary.
"""

import logging
from typing import List, Dict, Any, Optional, Tuple
from datetime import datetime, timezone
from dataclasses import dataclass, field

from ..analysis.applications import ApplicationCostSummary, summarize_applications
from ..analysis.conversion import ConversionAdvice, ConversionAdvisor
from ..analysis.reserved_instances import (
    ExpirationForecast, ReservationSummary, ReservedInstanceAnalyzer
)
from ..analysis.statistics import Histogram, UsageProportion, cpu_histogram, usage_proportion
from ..analysis.storage import StorageSummary, summarize_buckets
from ..analysis.utilization import (
    FamilyShare, LowUsedReport, UnusedPolicy, UtilizationAggregator, family_power_distribution
)
from ..core.base.account import AwsAccount
from ..core.base.resource import (
    InstanceUtilizationRecord, ReservedInstanceRecord, ResourceKind, S3BucketUsage, TagCostRecord, UsageRecord
)
from ..core.period import ReportWindow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportPolicy:
    """Thresholds and view sizes applied when assembling a report"""
    cpu_average_threshold: float = 10.0
    cpu_peak_threshold: float = 60.0
    top_low_used: int = 5
    top_suggestions: int = 7
    top_buckets: int = 5
    top_applications: int = 7
    histogram_buckets: int = 5
    expiration_months_ahead: int = 2

    @classmethod
    def from_config(cls, config) -> "ReportPolicy":
        """Build a policy from a ``ReportPolicyConfig`` section"""
        return cls(
            cpu_average_threshold=config.cpu_average_threshold,
            cpu_peak_threshold=config.cpu_peak_threshold,
            top_low_used=config.top_low_used,
            top_suggestions=config.top_suggestions,
            top_buckets=config.top_buckets,
            top_applications=config.top_applications,
            histogram_buckets=config.histogram_buckets,
            expiration_months_ahead=config.expiration_months_ahead,
        )


@dataclass
class ReportInputs:
    """Everything fetched for one account and window"""
    reservations: List[ReservedInstanceRecord] = field(default_factory=list)
    usage: List[UsageRecord] = field(default_factory=list)
    utilization: List[InstanceUtilizationRecord] = field(default_factory=list)
    prices: Dict[str, float] = field(default_factory=dict)
    buckets: List[S3BucketUsage] = field(default_factory=list)
    tag_costs: List[TagCostRecord] = field(default_factory=list)
    unavailable_sections: List[str] = field(default_factory=list)
    failed_regions: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ReportSummary:
    """Outcome of one report for one account and window"""
    account_id: str
    account_name: str
    window: ReportWindow
    generated_at: datetime
    policy: ReportPolicy
    reservations: ReservationSummary
    expiration: ExpirationForecast
    ec2: LowUsedReport
    rds: LowUsedReport
    conversion: ConversionAdvice
    cpu_histogram: Histogram
    usage_proportion: UsageProportion
    family_distribution: Tuple[FamilyShare, ...]
    storage: StorageSummary
    applications: ApplicationCostSummary = field(default_factory=ApplicationCostSummary)
    unavailable_sections: Tuple[str, ...] = ()
    failed_regions: Tuple[str, ...] = ()

    @property
    def complete(self) -> bool:
        return not self.unavailable_sections and not self.failed_regions

    def product_totals(self) -> Dict[str, Dict[str, float]]:
        return {
            "ec2": {"instances": self.ec2.total_instances, "cost": round(self.ec2.total_cost, 2)},
            "rds": {"instances": self.rds.total_instances, "cost": round(self.rds.total_cost, 2)},
            "s3": {
                "buckets": self.storage.bucket_count,
                "cost": round(self.storage.total_cost, 2),
                "storage_gb_month": round(self.storage.storage_gb_month, 2),
            },
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account": {"id": self.account_id, "name": self.account_name},
            "window": self.window.to_dict(),
            "generated_at": self.generated_at.isoformat(),
            "totals": self.product_totals(),
            "reservations": self.reservations.to_dict(),
            "expiration": self.expiration.to_dict(),
            "low_used": {
                "ec2": self.ec2.to_dict(self.policy.top_low_used),
                "rds": self.rds.to_dict(self.policy.top_low_used),
            },
            "conversion": self.conversion.to_dict(self.policy.top_suggestions),
            "cpu_histogram": self.cpu_histogram.to_dict(),
            "usage_proportion": self.usage_proportion.to_dict(),
            "family_distribution": [
                {"family": s.family, "computational_power": s.computational_power,
                 "percentage": round(s.percentage, 2)}
                for s in self.family_distribution
            ],
            "storage": self.storage.to_dict(),
            "applications": self.applications.to_dict(),
            "unavailable_sections": list(self.unavailable_sections),
            "failed_regions": list(self.failed_regions),
        }


class ReportAssembler:
    """Pure composition of the analysis components; does no I/O"""

    def __init__(self, policy: Optional[ReportPolicy] = None):
        self.policy = policy or ReportPolicy()
        self.inventory = ReservedInstanceAnalyzer(self.policy.expiration_months_ahead)
        self.aggregator = UtilizationAggregator(
            UnusedPolicy(self.policy.cpu_average_threshold, self.policy.cpu_peak_threshold)
        )
        self.advisor = ConversionAdvisor()

    def assemble(self, account: AwsAccount, window: ReportWindow, inputs: ReportInputs,
                 generated_at: Optional[datetime] = None) -> ReportSummary:
        """
        Build the report summary of one account.

        Args:
            account: Account reported on
            window: Report window
            inputs: Fetched data; sections that failed are empty
            generated_at: Timestamp of the report, now by default

        Returns:
            ReportSummary
        """
        ec2_records = [r for r in inputs.utilization if r.kind == ResourceKind.EC2]

        summary = ReportSummary(
            account_id=account.account_id,
            account_name=account.display_name,
            window=window,
            generated_at=generated_at or datetime.now(timezone.utc),
            policy=self.policy,
            reservations=self.inventory.summarize(inputs.reservations),
            expiration=self.inventory.forecast(inputs.reservations, window),
            ec2=self.aggregator.aggregate(inputs.utilization, ResourceKind.EC2),
            rds=self.aggregator.aggregate(inputs.utilization, ResourceKind.RDS),
            conversion=self.advisor.advise(inputs.usage, inputs.prices, window.start, window.end),
            cpu_histogram=cpu_histogram(ec2_records, self.policy.histogram_buckets),
            usage_proportion=usage_proportion(inputs.usage),
            family_distribution=tuple(family_power_distribution(ec2_records, inputs.reservations)),
            storage=summarize_buckets(inputs.buckets, window, self.policy.top_buckets),
            applications=summarize_applications(inputs.tag_costs, self.policy.top_applications),
            unavailable_sections=tuple(inputs.unavailable_sections),
            failed_regions=tuple(inputs.failed_regions),
        )

        logger.info(
            f"Assembled report for {account.account_id} over {window.label}: "
            f"{summary.ec2.low_used_count} low-used EC2, {summary.rds.low_used_count} low-used RDS, "
            f"{len(summary.conversion.suggestions)} conversion suggestions"
        )
        return summary
