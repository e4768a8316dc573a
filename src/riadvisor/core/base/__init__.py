from .resource import (
    ReservedInstanceRecord, UsageRecord, InstanceUtilizationRecord, S3BucketUsage, TagCostRecord,
    ResourceKind, UsageType, ReservationState
)
from .account import AwsAccount
from .source import (
    FetchContext, FanOutResult, RegionFailure, gather_regions,
    InventorySource, UsageSource, UtilizationSource, PricingSource, StorageSource, TagCostSource
)

__all__ = [
    'ReservedInstanceRecord', 'UsageRecord', 'InstanceUtilizationRecord', 'S3BucketUsage', 'TagCostRecord',
    'ResourceKind', 'UsageType', 'ReservationState',
    'AwsAccount',
    'FetchContext', 'FanOutResult', 'RegionFailure', 'gather_regions',
    'InventorySource', 'UsageSource', 'UtilizationSource', 'PricingSource', 'StorageSource', 'TagCostSource'
]
