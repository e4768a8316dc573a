"""
Snapshot provider.

Serves every data source from an exported analytics-store snapshot, a YAML or
JSON document shaped like::

    prices:
      m5.large: 0.0574
    accounts:
      "123456789012":
        regions: [us-east-1, eu-west-1]
        reservations: [{reservedInstancesId: ..., instanceType: m5.large, ...}]
        usage:
          ec2: [{usageType: Usage, family: m5, normalizationFactor: 4, ...}]
        utilization:
          ec2: [{id: i-0abc, type: m5.large, cpu: {average: 3, peak: 20}, costs: {...}}]
          rds: [...]
        s3: [{bucket: logs, gbMonth: 120, storageCost: 2.7, ...}]
        tags: [{application: checkout, owner: payments, ec2Cost: 140, rdsCost: 180}]

Snapshots are exported per report window, so the window is not used to filter.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..core.base.account import AwsAccount
from ..core.base.resource import (
    InstanceUtilizationRecord, ReservedInstanceRecord, ResourceKind, S3BucketUsage, TagCostRecord,
    UsageRecord
)
from ..core.base.source import (
    FetchContext, InventorySource, PricingSource, StorageSource, TagCostSource, UsageSource,
    UtilizationSource
)
from ..core.exceptions import (
    ConfigurationError, InventoryFetchError, PricingFetchError,
    StorageQueryError, TagCostQueryError, UsageQueryError, UtilizationQueryError, ValidationError
)
from ..core.period import ReportWindow

logger = logging.getLogger(__name__)


class SnapshotSource(InventorySource, UsageSource, UtilizationSource, PricingSource, StorageSource,
                     TagCostSource):
    """Every report input read from one in-memory snapshot document"""

    def __init__(self, data: Dict[str, Any], name: str = "snapshot"):
        if not isinstance(data, dict):
            raise ConfigurationError(f"Snapshot {name} is not a mapping")
        self.data = data
        self.name = name

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "SnapshotSource":
        """Load a YAML or JSON snapshot"""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Snapshot file {path} not found")

        with open(path, 'r') as f:
            if path.suffix in ('.yaml', '.yml'):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)

        logger.info(f"Loaded snapshot from {path}")
        return cls(data or {}, name=str(path))

    def account_ids(self) -> List[str]:
        return [str(account_id) for account_id in self.data.get('accounts', {})]

    def _account(self, account: AwsAccount, error: type) -> Dict[str, Any]:
        accounts = {str(k): v for k, v in (self.data.get('accounts') or {}).items()}
        if account.account_id not in accounts:
            raise error(f"Account not present in {self.name}", account_id=account.account_id)
        return accounts[account.account_id] or {}

    def _records(self, items: Optional[List[Dict[str, Any]]], factory, error: type,
                 account: AwsAccount) -> List[Any]:
        try:
            return [factory(item) for item in items or []]
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            raise error(f"Malformed record in {self.name}: {e}", account_id=account.account_id) from e

    def _region_of(self, item: Dict[str, Any]) -> str:
        return item.get('region') or self.data.get('default_region', 'us-east-1')

    def list_regions(self, account: AwsAccount, ctx: FetchContext) -> List[str]:
        ctx.check()
        data = self._account(account, InventoryFetchError)
        if data.get('regions'):
            return list(data['regions'])
        return sorted({self._region_of(r) for r in data.get('reservations') or []})

    def fetch_reservations(self, account: AwsAccount, region: str,
                           ctx: FetchContext) -> List[ReservedInstanceRecord]:
        ctx.check()
        data = self._account(account, InventoryFetchError)
        items = [r for r in data.get('reservations') or [] if self._region_of(r) == region]
        return self._records(
            items, lambda item: ReservedInstanceRecord.from_dict(item, region=region),
            InventoryFetchError, account
        )

    def query_usage(self, account: AwsAccount, window: ReportWindow, product: ResourceKind,
                    ctx: FetchContext) -> List[UsageRecord]:
        ctx.check()
        data = self._account(account, UsageQueryError)
        items = (data.get('usage') or {}).get(ResourceKind(product).value)
        return self._records(items, UsageRecord.from_dict, UsageQueryError, account)

    def query_utilization(self, account: AwsAccount, window: ReportWindow, kind: ResourceKind,
                          ctx: FetchContext) -> List[InstanceUtilizationRecord]:
        ctx.check()
        kind = ResourceKind(kind)
        data = self._account(account, UtilizationQueryError)
        items = (data.get('utilization') or {}).get(kind.value)
        return self._records(
            items, lambda item: InstanceUtilizationRecord.from_dict(item, kind=kind),
            UtilizationQueryError, account
        )

    def fetch_reserved_unit_prices(self, profile, ctx: FetchContext) -> Dict[str, float]:
        ctx.check()
        try:
            return {str(k): float(v) for k, v in (self.data.get('prices') or {}).items()}
        except (TypeError, ValueError) as e:
            raise PricingFetchError(f"Malformed price table in {self.name}: {e}") from e

    def query_buckets(self, account: AwsAccount, window: ReportWindow,
                      ctx: FetchContext) -> List[S3BucketUsage]:
        ctx.check()
        data = self._account(account, StorageQueryError)
        return self._records(data.get('s3'), S3BucketUsage.from_dict, StorageQueryError, account)

    def query_tag_costs(self, account: AwsAccount, window: ReportWindow,
                        ctx: FetchContext) -> List[TagCostRecord]:
        ctx.check()
        data = self._account(account, TagCostQueryError)
        return self._records(data.get('tags'), TagCostRecord.from_dict, TagCostQueryError, account)
