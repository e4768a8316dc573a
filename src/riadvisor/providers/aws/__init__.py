from .client import AWSClient
from .reserved_instances import AwsReservedInstanceSource
from .pricing import AwsPricingSource
from .cost_explorer import AwsTagCostSource, AwsUsageSource

__all__ = ['AWSClient', 'AwsReservedInstanceSource', 'AwsPricingSource', 'AwsTagCostSource', 'AwsUsageSource']
