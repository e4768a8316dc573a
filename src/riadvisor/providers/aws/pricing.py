"""
Reserved unit prices from the AWS Price List (Pricing GetProducts).

Only the upfront fee of a matching reserved term is read; it is spread over a
year of hours to give the hourly unit price the conversion advice works with.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from botocore.exceptions import BotoCoreError, ClientError

from .client import AWSClient
from ...core.base.source import FetchContext, PricingSource
from ...core.config import PricingProfileConfig
from ...core.exceptions import AWSError, PricingFetchError

logger = logging.getLogger(__name__)

HOURS_PER_YEAR = 8765.81256
HOURS_PER_MONTH = 730.48438


def build_filters(profile: PricingProfileConfig) -> List[Dict[str, str]]:
    """TERM_MATCH filters selecting the profile's compute instances"""
    terms = {
        'PurchaseOption': profile.purchase_option,
        'ProductFamily': 'Compute Instance',
        'location': profile.location,
        'operatingSystem': profile.operating_system,
        'preInstalledSw': profile.pre_installed_sw,
        'tenancy': profile.tenancy,
    }
    return [{'Type': 'TERM_MATCH', 'Field': field, 'Value': value} for field, value in terms.items()]


def parse_price_item(item: Union[str, Dict[str, Any]],
                     profile: PricingProfileConfig) -> Optional[Tuple[str, float]]:
    """
    Extract ``(instance_type, hourly_price)`` from one price list document.

    Args:
        item: Price list entry, as the JSON string GetProducts returns or already decoded
        profile: Pricing profile the reserved term must match

    Returns:
        The instance type and hourly price, or None when no term matches
    """
    if isinstance(item, str):
        item = json.loads(item)

    instance_type = item.get('product', {}).get('attributes', {}).get('instanceType')
    if not instance_type:
        return None

    for term in item.get('terms', {}).get('Reserved', {}).values():
        attributes = term.get('termAttributes', {})
        if (attributes.get('PurchaseOption') != profile.purchase_option
                or attributes.get('OfferingClass') != profile.offering_class
                or attributes.get('LeaseContractLength') != profile.lease_contract_length):
            continue

        for dimension in term.get('priceDimensions', {}).values():
            # the upfront fee, not the hourly component
            if dimension.get('unit') != 'Quantity':
                continue
            upfront = float(dimension.get('pricePerUnit', {}).get(profile.currency, 0))
            return instance_type, upfront / HOURS_PER_YEAR

    return None


class AwsPricingSource(PricingSource):
    """Hourly reserved unit prices, paginated over GetProducts"""

    def __init__(self, aws_client: AWSClient, region: str = "us-east-1"):
        self.aws_client = aws_client
        self.region = region

    def fetch_reserved_unit_prices(self, profile: PricingProfileConfig,
                                   ctx: FetchContext) -> Dict[str, float]:
        """
        Fetch the hourly reserved price of every instance type of the profile.

        Args:
            profile: Pricing profile (location, OS, tenancy, term)
            ctx: Fetch deadline and cancellation, checked between pages

        Returns:
            Instance type to hourly reserved unit price
        """
        try:
            pricing = self.aws_client.get_client('pricing', self.region)
        except AWSError as e:
            raise PricingFetchError(str(e)) from e

        params = {
            'ServiceCode': profile.service_code,
            'Filters': build_filters(profile),
            'FormatVersion': 'aws_v1',
            'MaxResults': profile.page_size,
        }

        prices: Dict[str, float] = {}
        pages = 0
        while True:
            ctx.check()
            try:
                response = pricing.get_products(**params)
            except (BotoCoreError, ClientError) as e:
                raise PricingFetchError(f"GetProducts failed: {e}") from e
            pages += 1

            for item in response.get('PriceList', []):
                try:
                    parsed = parse_price_item(item, profile)
                except (ValueError, TypeError, AttributeError) as e:
                    logger.warning(f"Failed to process a price list item: {e}")
                    continue
                if parsed:
                    instance_type, hourly = parsed
                    prices[instance_type] = hourly

            next_token = response.get('NextToken')
            if not next_token:
                break
            params['NextToken'] = next_token

        logger.info(f"Loaded {len(prices)} reserved unit prices from {pages} pages")
        return prices
