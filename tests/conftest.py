"""Pytest configuration and fixtures"""

import pytest
import os
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch
import yaml

from riadvisor.core.base.account import AwsAccount
from riadvisor.core.base.resource import (
    InstanceUtilizationRecord, ReservedInstanceRecord, ResourceKind, S3BucketUsage, TagCostRecord,
    UsageRecord, UsageType
)
from riadvisor.core.config import Settings
from riadvisor.core.monitoring import MetricsCollector, PerformanceTracker
from riadvisor.core.period import Cadence, ReportWindow
from riadvisor.reporting.summary import ReportInputs


ACCOUNT_ID = "123456789012"


@pytest.fixture
def test_settings():
    """Create test settings"""
    return Settings(
        environment="test",
        debug=True,
        aws={"regions": ["us-east-1"]},
        logging={"level": "DEBUG", "structured": False, "console": False},
        monitoring={"enabled": True, "datadog_enabled": False},
    )


@pytest.fixture
def account():
    """Account reached with the current credentials"""
    return AwsAccount(account_id=ACCOUNT_ID, name="production", regions=["us-east-1", "eu-west-1"])


@pytest.fixture
def monthly_window():
    """March 2024"""
    return ReportWindow(
        datetime(2024, 3, 1, tzinfo=timezone.utc),
        datetime(2024, 4, 1, tzinfo=timezone.utc),
        Cadence.MONTHLY,
    )


@pytest.fixture
def weekly_window():
    return ReportWindow(
        datetime(2024, 3, 3, tzinfo=timezone.utc),
        datetime(2024, 3, 10, tzinfo=timezone.utc),
        Cadence.WEEKLY,
    )


@pytest.fixture
def hours_730_window():
    """A 730 hour window, roughly one month"""
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return ReportWindow(start, start + timedelta(hours=730), Cadence.MONTHLY)


@pytest.fixture
def reservations():
    """Active and retired reservations spread over two regions"""
    return [
        ReservedInstanceRecord(
            reserved_instances_id="ri-1", instance_type="m5.large", instance_count=2,
            fixed_price=500.0, end=datetime(2024, 4, 15, tzinfo=timezone.utc), region="us-east-1",
        ),
        ReservedInstanceRecord(
            reserved_instances_id="ri-2", instance_type="m5.large", instance_count=1,
            fixed_price=500.0, end=datetime(2024, 5, 20, tzinfo=timezone.utc), region="eu-west-1",
        ),
        ReservedInstanceRecord(
            reserved_instances_id="ri-3", instance_type="c5.2xlarge", instance_count=1,
            fixed_price=1500.0, end=datetime(2024, 4, 30, tzinfo=timezone.utc), region="us-east-1",
        ),
        ReservedInstanceRecord(
            reserved_instances_id="ri-4", instance_type="r5.xlarge", instance_count=3,
            fixed_price=900.0, end=datetime(2025, 1, 1, tzinfo=timezone.utc), region="us-east-1",
        ),
        ReservedInstanceRecord(
            reserved_instances_id="ri-5", instance_type="t3.micro", instance_count=10,
            fixed_price=50.0, end=datetime(2024, 4, 1, tzinfo=timezone.utc), state="retired",
            region="us-east-1",
        ),
    ]


@pytest.fixture
def usage_records():
    """On-demand and discounted usage buckets"""
    return [
        UsageRecord(UsageType.USAGE, "m5", 8, 17520.0, 500.0),
        UsageRecord(UsageType.USAGE, "c5", 4, 2920.0, 60.0),
        UsageRecord(UsageType.USAGE, "", 4, 100.0, 10.0),
        UsageRecord(UsageType.DISCOUNTED, "m5", 4, 5840.0, 0.0, discounted_cost=120.0),
    ]


@pytest.fixture
def utilization_records():
    """EC2 instances and RDS databases with various CPU profiles"""
    return [
        InstanceUtilizationRecord("i-01", ResourceKind.EC2, "m5.large", 3.0, 20.0, name="web-1",
                                  costs={"compute": 70.0}),
        InstanceUtilizationRecord("i-02", ResourceKind.EC2, "m5.large", 5.0, 30.0, name="web-2",
                                  costs={"compute": 70.0}),
        InstanceUtilizationRecord("i-03", ResourceKind.EC2, "c5.2xlarge", 2.0, 10.0,
                                  costs={"compute": 250.0, "ebs": 12.0}),
        InstanceUtilizationRecord("i-04", ResourceKind.EC2, "m5.xlarge", 45.0, 90.0, name="batch",
                                  costs={"compute": 140.0}),
        InstanceUtilizationRecord("i-05", ResourceKind.EC2, "t3.small", 9.0, 75.0, name="bursty",
                                  costs={"compute": 15.0}),
        InstanceUtilizationRecord("orders-db", ResourceKind.RDS, "db.r5.large", 1.0, 5.0,
                                  costs={"instance": 180.0, "storage": 20.0}),
        InstanceUtilizationRecord("users-db", ResourceKind.RDS, "db.m5.large", 30.0, 70.0,
                                  costs={"instance": 130.0}),
    ]


@pytest.fixture
def bucket_usage():
    return [
        S3BucketUsage("logs", storage_gb_month=1200.0, storage_cost=27.6, bandwidth_cost=1.0, requests_cost=0.4),
        S3BucketUsage("backups", storage_gb_month=5000.0, storage_cost=115.0),
        S3BucketUsage("assets", storage_gb_month=20.0, storage_cost=0.46, bandwidth_cost=12.0, requests_cost=2.0),
    ]


@pytest.fixture
def tag_costs():
    """EC2/RDS cost per Application/Owner tag pair"""
    return [
        TagCostRecord("checkout", "payments", ec2_cost=420.0, rds_cost=180.0),
        TagCostRecord("web", "frontend", ec2_cost=140.0),
        TagCostRecord("Web", "Frontend", ec2_cost=60.0, rds_cost=10.0),
        TagCostRecord("", "", ec2_cost=35.5),
    ]


@pytest.fixture
def prices():
    """Hourly reserved unit prices"""
    return {"m5.xlarge": 0.10, "c5.large": 0.05, "m5.large": 0.0574}


@pytest.fixture
def report_inputs(reservations, usage_records, utilization_records, prices, bucket_usage, tag_costs):
    return ReportInputs(
        reservations=list(reservations),
        usage=list(usage_records),
        utilization=list(utilization_records),
        prices=dict(prices),
        buckets=list(bucket_usage),
        tag_costs=list(tag_costs),
    )


@pytest.fixture
def snapshot_data():
    """Analytics snapshot document for one account"""
    return {
        "prices": {"m5.2xlarge": 0.10, "c5.large": 0.05},
        "accounts": {
            ACCOUNT_ID: {
                "regions": ["us-east-1", "eu-west-1"],
                "reservations": [
                    {"reservedInstancesId": "ri-1", "instanceType": "m5.large", "instanceCount": 2,
                     "fixedPrice": 500, "endDate": "2024-04-15T00:00:00Z", "state": "active",
                     "region": "us-east-1"},
                    {"reservedInstancesId": "ri-2", "instanceType": "c5.xlarge", "instanceCount": 1,
                     "fixedPrice": 700, "endDate": "2025-06-01T00:00:00Z", "state": "active",
                     "region": "eu-west-1"},
                ],
                "usage": {
                    "ec2": [
                        {"usageType": "Usage", "family": "m5", "normalizationFactor": 16,
                         "normalizedUsage": 23808.0, "cost": 500.0},
                        {"usageType": "DiscountedUsage", "family": "m5", "normalizationFactor": 4,
                         "normalizedUsage": 5952.0, "cost": 0.0, "discountedCost": 80.0},
                    ],
                },
                "utilization": {
                    "ec2": [
                        {"id": "i-01", "type": "m5.large", "name": "web-1",
                         "cpu": {"average": 3, "peak": 20}, "costs": {"compute": 70}},
                        {"id": "i-02", "type": "m5.xlarge", "name": "batch",
                         "cpu": {"average": 50, "peak": 95}, "costs": {"compute": 140}},
                    ],
                    "rds": [
                        {"id": "orders-db", "type": "db.r5.large",
                         "cpu": {"average": 2, "peak": 8}, "costs": {"instance": 180}},
                    ],
                },
                "s3": [
                    {"bucket": "logs", "gbMonth": 1240, "storageCost": 28.5, "bandwidthCost": 1.5},
                ],
                "tags": [
                    {"application": "checkout", "owner": "payments", "ec2Cost": 140, "rdsCost": 180},
                    {"application": "web", "owner": "frontend", "ec2Cost": 70},
                ],
            },
        },
    }


@pytest.fixture
def snapshot_file(tmp_path, snapshot_data):
    """Snapshot written to a YAML file"""
    path = tmp_path / "snapshot.yaml"
    with open(path, 'w') as f:
        yaml.safe_dump(snapshot_data, f)
    return path


@pytest.fixture
def metrics_collector():
    """Fresh metrics collector"""
    return MetricsCollector()


@pytest.fixture
def performance_tracker(metrics_collector):
    return PerformanceTracker(metrics_collector)


@pytest.fixture
def mock_aws_client():
    """Mock boto3 session and clients"""
    with patch('boto3.Session') as mock_session:
        mock_client = MagicMock()
        mock_session.return_value.client.return_value = mock_client

        # Mock STS responses
        mock_client.get_caller_identity.return_value = {
            'Account': ACCOUNT_ID,
            'Arn': f'arn:aws:iam::{ACCOUNT_ID}:user/test',
            'UserId': 'AIDACKCEVSQ6C2EXAMPLE'
        }

        # Mock EC2 responses
        mock_client.describe_regions.return_value = {
            'Regions': [
                {'RegionName': 'us-west-2'},
                {'RegionName': 'us-east-1'}
            ]
        }

        yield mock_client


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset singleton instances between tests"""
    import riadvisor.core.config as config_module
    config_module.settings = None
    yield
    config_module.settings = None


@pytest.fixture
def mock_env_vars():
    """Mock environment variables"""
    env_vars = {
        "RIADVISOR_ENVIRONMENT": "test",
        "RIADVISOR_DEBUG": "true",
        "RIADVISOR_AWS__DEFAULT_REGION": "eu-west-1",
        "RIADVISOR_REPORT__TOP_SUGGESTIONS": "3",
    }

    with patch.dict(os.environ, env_vars):
        yield env_vars


def pytest_configure(config):
    """Configure pytest"""
    # Add custom markers
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow"
    )
    config.addinivalue_line(
        "markers", "aws: mark test as AWS-specific"
    )
