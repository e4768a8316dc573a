"""On-demand and discounted usage buckets from Cost Explorer GetCostAndUsage"""

import logging
from collections import defaultdict
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type

from botocore.exceptions import BotoCoreError, ClientError

from .client import AWSClient
from ...analysis.normalization import normalization_factor
from ...core.base.account import AwsAccount
from ...core.base.resource import ResourceKind, TagCostRecord, UsageRecord, UsageType
from ...core.base.source import FetchContext, TagCostSource, UsageSource
from ...core.exceptions import AWSError, DataCollectionError, TagCostQueryError, UsageQueryError
from ...core.period import ReportWindow

logger = logging.getLogger(__name__)

SERVICE_NAMES = {
    ResourceKind.EC2: "Amazon Elastic Compute Cloud - Compute",
    ResourceKind.RDS: "Amazon Relational Database Service",
}

METRICS = ["NormalizedUsageAmount", "UnblendedCost", "AmortizedCost"]

TAG_KEYS = ("Application", "Owner")


def usage_type_for(purchase_type: str) -> Optional[UsageType]:
    """Map a Cost Explorer purchase type onto a usage-type tag, None when irrelevant"""
    if purchase_type == "On Demand Instances":
        return UsageType.USAGE
    if "Reserved" in purchase_type or purchase_type == "Savings Plans":
        return UsageType.DISCOUNTED
    return None


def _amount(metrics: Dict[str, Any], name: str) -> float:
    return float(metrics.get(name, {}).get("Amount", 0) or 0)


def _groups(ce, params: Dict[str, Any], ctx: FetchContext, error: Type[DataCollectionError],
            account: AwsAccount) -> Iterator[Dict[str, Any]]:
    """Every result group of a GetCostAndUsage query, following NextPageToken"""
    params = dict(params)
    while True:
        ctx.check()
        try:
            response = ce.get_cost_and_usage(**params)
        except (BotoCoreError, ClientError) as e:
            raise error(f"GetCostAndUsage failed: {e}", account_id=account.account_id) from e

        for period in response.get('ResultsByTime', []):
            yield from period.get('Groups', [])

        next_token = response.get('NextPageToken')
        if not next_token:
            return
        params['NextPageToken'] = next_token


def _cost_explorer(aws_client: AWSClient, account: AwsAccount, error: Type[DataCollectionError]):
    try:
        return aws_client.for_account(account).get_client('ce', 'us-east-1')
    except AWSError as e:
        raise error(str(e), account_id=account.account_id) from e


class AwsUsageSource(UsageSource):
    """Usage grouped by instance type and purchase type, folded into family/size buckets"""

    def __init__(self, aws_client: AWSClient):
        self.aws_client = aws_client

    def query_usage(self, account: AwsAccount, window: ReportWindow, product: ResourceKind,
                    ctx: FetchContext) -> List[UsageRecord]:
        """
        Query normalized usage and cost of a product over a window.

        Args:
            account: Account to query
            window: Report window (Cost Explorer end date is exclusive, like the window)
            product: EC2 or RDS
            ctx: Fetch deadline and cancellation, checked between pages

        Returns:
            One UsageRecord per usage type, family and normalization factor
        """
        ce = _cost_explorer(self.aws_client, account, UsageQueryError)

        params = {
            'TimePeriod': {
                'Start': window.start.date().isoformat(),
                'End': window.end.date().isoformat(),
            },
            'Granularity': 'MONTHLY',
            'Metrics': METRICS,
            'Filter': {'Dimensions': {'Key': 'SERVICE', 'Values': [SERVICE_NAMES[ResourceKind(product)]]}},
            'GroupBy': [
                {'Type': 'DIMENSION', 'Key': 'INSTANCE_TYPE'},
                {'Type': 'DIMENSION', 'Key': 'PURCHASE_TYPE'},
            ],
        }

        buckets: Dict[Tuple[UsageType, str, float], Dict[str, float]] = defaultdict(
            lambda: {'usage': 0.0, 'cost': 0.0, 'discounted': 0.0}
        )

        for group in _groups(ce, params, ctx, UsageQueryError, account):
            instance_type, purchase_type = (group.get('Keys', []) + ['', ''])[:2]
            usage_type = usage_type_for(purchase_type)
            family, factor = normalization_factor(instance_type)
            if usage_type is None or factor == 0:
                continue

            metrics = group.get('Metrics', {})
            bucket = buckets[(usage_type, family, factor)]
            bucket['usage'] += _amount(metrics, 'NormalizedUsageAmount')
            bucket['cost'] += _amount(metrics, 'UnblendedCost')
            if usage_type == UsageType.DISCOUNTED:
                bucket['discounted'] += _amount(metrics, 'AmortizedCost')

        records = [
            UsageRecord(
                usage_type=usage_type,
                family=family,
                normalization_factor=factor,
                normalized_usage=max(values['usage'], 0.0),
                cost=max(values['cost'], 0.0),
                discounted_cost=max(values['discounted'], 0.0),
            )
            for (usage_type, family, factor), values in buckets.items()
        ]
        logger.info(f"Cost Explorer returned {len(records)} usage buckets for {ResourceKind(product).value}")
        return records


def tag_value(key: str) -> str:
    """Value part of a Cost Explorer tag group key such as ``Application$checkout``"""
    return key.split('$', 1)[1] if '$' in key else key


class AwsTagCostSource(TagCostSource):
    """EC2 and RDS unblended cost grouped by the Application and Owner tags"""

    def __init__(self, aws_client: AWSClient):
        self.aws_client = aws_client

    def query_tag_costs(self, account: AwsAccount, window: ReportWindow,
                        ctx: FetchContext) -> List[TagCostRecord]:
        ce = _cost_explorer(self.aws_client, account, TagCostQueryError)
        costs: Dict[Tuple[str, str], Dict[ResourceKind, float]] = defaultdict(
            lambda: {ResourceKind.EC2: 0.0, ResourceKind.RDS: 0.0}
        )

        for product, service in SERVICE_NAMES.items():
            params = {
                'TimePeriod': {
                    'Start': window.start.date().isoformat(),
                    'End': window.end.date().isoformat(),
                },
                'Granularity': 'MONTHLY',
                'Metrics': ['UnblendedCost'],
                'Filter': {'And': [
                    {'Dimensions': {'Key': 'SERVICE', 'Values': [service]}},
                    {'Dimensions': {'Key': 'RECORD_TYPE', 'Values': ['Usage']}},
                ]},
                'GroupBy': [{'Type': 'TAG', 'Key': key} for key in TAG_KEYS],
            }
            for group in _groups(ce, params, ctx, TagCostQueryError, account):
                application, owner = [tag_value(k) for k in (group.get('Keys', []) + ['', ''])[:2]]
                costs[(application, owner)][product] += _amount(group.get('Metrics', {}), 'UnblendedCost')

        records = [
            TagCostRecord(
                application=application,
                owner=owner,
                ec2_cost=max(values[ResourceKind.EC2], 0.0),
                rds_cost=max(values[ResourceKind.RDS], 0.0),
            )
            for (application, owner), values in costs.items()
        ]
        logger.info(f"Cost Explorer returned {len(records)} Application/Owner tag groups")
        return records
