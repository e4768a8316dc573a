"""
Interfaces of the data sources a report is built from, and the per-region
scatter-gather used to fetch reservation inventory.
"""

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, as_completed, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, TypeVar, Generic
import logging
import threading
import time

from .account import AwsAccount
from .resource import (
    InstanceUtilizationRecord, ReservedInstanceRecord, ResourceKind, S3BucketUsage, TagCostRecord, UsageRecord
)
from ..exceptions import FetchCancelledError, InventoryFetchError
from ..period import ReportWindow

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FetchContext:
    """Deadline and cancellation shared by every fetch of one report"""

    def __init__(self, timeout: Optional[float] = None, cancel_event: Optional[threading.Event] = None):
        self.deadline = time.monotonic() + timeout if timeout else None
        self._cancel_event = cancel_event or threading.Event()

    def cancel(self):
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, None when there is no deadline"""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def check(self):
        """Raise ``FetchCancelledError`` if the fetch should stop"""
        if self.cancelled:
            raise FetchCancelledError("Fetch cancelled")
        if self.expired:
            raise FetchCancelledError("Fetch deadline exceeded")


@dataclass
class RegionFailure:
    region: str
    error: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class FanOutResult(Generic[T]):
    """Merged records of every region that succeeded, plus the ones that did not"""
    records: List[T] = field(default_factory=list)
    failures: List[RegionFailure] = field(default_factory=list)
    regions: List[str] = field(default_factory=list)

    @property
    def failed_regions(self) -> List[str]:
        return [f.region for f in self.failures]

    @property
    def complete(self) -> bool:
        return not self.failures


def gather_regions(fetch: Callable[[str], List[T]],
                   regions: List[str],
                   ctx: Optional[FetchContext] = None,
                   max_workers: int = 8) -> FanOutResult:
    """Run ``fetch(region)`` for every region on a bounded pool and join all of them

    A region that raises is logged and recorded as a failure; its records are
    left out of the merged result. When the context deadline passes, regions
    still pending are recorded as failures and the context is cancelled.
    Records are merged in the order regions were given.
    """
    ctx = ctx or FetchContext()
    result = FanOutResult(regions=list(regions))
    if not regions:
        return result

    per_region: Dict[str, List[T]] = {}
    errors: Dict[str, str] = {}

    executor = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(regions))))
    try:
        futures = {executor.submit(fetch, region): region for region in regions}
        try:
            for future in as_completed(futures, timeout=ctx.remaining()):
                region = futures[future]
                try:
                    per_region[region] = list(future.result())
                    logger.debug(f"Fetched {len(per_region[region])} records from {region}")
                except Exception as e:
                    logger.error(f"Error fetching region {region}: {e}")
                    errors[region] = str(e)
        except FuturesTimeoutError:
            ctx.cancel()
            for future, region in futures.items():
                if region not in per_region and region not in errors:
                    future.cancel()
                    logger.error(f"Region {region} did not answer before the deadline")
                    errors[region] = "deadline exceeded"
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    for region in regions:
        if region in per_region:
            result.records.extend(per_region[region])
        else:
            result.failures.append(RegionFailure(region=region, error=errors.get(region, "unknown error")))

    return result


class InventorySource(ABC):
    """Where reserved-instance inventory comes from"""

    @abstractmethod
    def list_regions(self, account: AwsAccount, ctx: FetchContext) -> List[str]:
        """Regions to scan when the account does not pin a list"""
        pass

    @abstractmethod
    def fetch_reservations(self, account: AwsAccount, region: str,
                           ctx: FetchContext) -> List[ReservedInstanceRecord]:
        """Reservations purchased in one region"""
        pass

    def fetch_inventory(self, account: AwsAccount, ctx: FetchContext,
                        max_workers: int = 8, strict: bool = False) -> FanOutResult:
        """Fan out over every region of the account and merge the reservations

        Args:
            account: Account to scan
            ctx: Fetch deadline and cancellation
            max_workers: Size of the region pool
            strict: Raise instead of returning a partial inventory

        Returns:
            Merged reservations and the list of failed regions
        """
        regions = list(account.regions) or self.list_regions(account, ctx)
        result = gather_regions(
            lambda region: self.fetch_reservations(account, region, ctx),
            regions, ctx, max_workers=max_workers
        )
        if result.failures:
            logger.warning(
                f"Inventory incomplete, failed regions: {', '.join(result.failed_regions)}"
            )
            if strict:
                raise InventoryFetchError(
                    f"Failed to fetch reservations in {', '.join(result.failed_regions)}",
                    account_id=account.account_id
                )
        return result


class UsageSource(ABC):

    @abstractmethod
    def query_usage(self, account: AwsAccount, window: ReportWindow, product: ResourceKind,
                    ctx: FetchContext) -> List[UsageRecord]:
        """On-demand and discounted usage buckets of one product over the window"""
        pass


class UtilizationSource(ABC):

    @abstractmethod
    def query_utilization(self, account: AwsAccount, window: ReportWindow, kind: ResourceKind,
                          ctx: FetchContext) -> List[InstanceUtilizationRecord]:
        """Per-resource cost and CPU statistics over the window"""
        pass


class PricingSource(ABC):

    @abstractmethod
    def fetch_reserved_unit_prices(self, profile, ctx: FetchContext) -> Dict[str, float]:
        """Hourly reserved unit price per instance type for a pricing profile"""
        pass


class StorageSource(ABC):

    @abstractmethod
    def query_buckets(self, account: AwsAccount, window: ReportWindow,
                      ctx: FetchContext) -> List[S3BucketUsage]:
        """Per-bucket S3 storage and costs over the window"""
        pass


class TagCostSource(ABC):

    @abstractmethod
    def query_tag_costs(self, account: AwsAccount, window: ReportWindow,
                        ctx: FetchContext) -> List[TagCostRecord]:
        """EC2 and RDS cost grouped by Application/Owner tags over the window"""
        pass
