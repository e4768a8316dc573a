"""EC2 reserved-instance inventory read with DescribeReservedInstances"""

import logging
from typing import List

from botocore.exceptions import BotoCoreError, ClientError

from .client import AWSClient
from ...core.base.account import AwsAccount
from ...core.base.resource import ReservedInstanceRecord
from ...core.base.source import FetchContext, InventorySource
from ...core.exceptions import AWSError, InventoryFetchError, ValidationError

logger = logging.getLogger(__name__)


class AwsReservedInstanceSource(InventorySource):
    """Reserved instances of an account, one DescribeReservedInstances call per region"""

    def __init__(self, aws_client: AWSClient):
        self.aws_client = aws_client

    def client_for(self, account: AwsAccount) -> AWSClient:
        try:
            return self.aws_client.for_account(account)
        except AWSError as e:
            raise InventoryFetchError(str(e), account_id=account.account_id) from e

    def list_regions(self, account: AwsAccount, ctx: FetchContext) -> List[str]:
        ctx.check()
        try:
            return self.client_for(account).get_regions()
        except AWSError as e:
            raise InventoryFetchError(str(e), account_id=account.account_id) from e

    def fetch_reservations(self, account: AwsAccount, region: str,
                           ctx: FetchContext) -> List[ReservedInstanceRecord]:
        ctx.check()
        try:
            ec2 = self.client_for(account).get_client('ec2', region)
            response = ec2.describe_reserved_instances()
        except AWSError as e:
            raise InventoryFetchError(str(e), account_id=account.account_id) from e
        except (BotoCoreError, ClientError) as e:
            raise InventoryFetchError(
                f"DescribeReservedInstances failed in {region}: {e}", account_id=account.account_id
            ) from e

        records = []
        for item in response.get('ReservedInstances', []):
            try:
                records.append(ReservedInstanceRecord.from_dict(item, region=region))
            except ValidationError as e:
                logger.warning(f"Skipping reservation in {region}: {e}")
        logger.info(f"Found {len(records)} reservations in {region}")
        return records
