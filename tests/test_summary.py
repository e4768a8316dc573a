"""Tests for report assembly"""

import json
import pytest
from datetime import datetime, timezone

from riadvisor.analysis.reserved_instances import ForecastStatus
from riadvisor.core.config import ReportPolicyConfig
from riadvisor.reporting.summary import ReportAssembler, ReportInputs, ReportPolicy


GENERATED_AT = datetime(2024, 4, 2, 6, 0, tzinfo=timezone.utc)


class TestReportPolicy:

    def test_from_config(self):
        policy = ReportPolicy.from_config(ReportPolicyConfig(top_suggestions=3, cpu_average_threshold=15))
        assert policy.top_suggestions == 3
        assert policy.cpu_average_threshold == 15
        assert policy.expiration_months_ahead == 2
        assert policy.top_applications == 7

    def test_from_config_top_applications(self):
        assert ReportPolicy.from_config(ReportPolicyConfig(top_applications=3)).top_applications == 3


class TestReportAssembler:
    """Test ReportAssembler"""

    @pytest.fixture
    def summary(self, account, monthly_window, report_inputs):
        return ReportAssembler().assemble(account, monthly_window, report_inputs, generated_at=GENERATED_AT)

    def test_sections(self, summary):
        assert summary.account_name == "production"
        assert summary.reservations.instance_count == 7
        assert summary.expiration.status == ForecastStatus.EXPIRING
        assert summary.ec2.low_used_count == 3
        assert summary.rds.low_used_count == 1
        assert [s.instance_type for s in summary.conversion.suggestions] == ["m5.xlarge", "c5.large"]
        assert summary.cpu_histogram.total == 5
        assert summary.storage.bucket_count == 3
        assert summary.family_distribution[0].family == "c5"
        assert summary.applications.group_count == 3
        assert summary.applications.top[0].application == "checkout"
        assert summary.complete

    def test_conversion_uses_window_hours(self, summary):
        """Test March has 744 hours"""
        m5 = summary.conversion.suggestions[0]
        assert m5.machines == 3
        assert m5.reserved_cost == pytest.approx(3 * 0.10 * 744)

    def test_product_totals(self, summary):
        totals = summary.product_totals()
        assert totals["ec2"] == {"instances": 5, "cost": 557.0}
        assert totals["rds"] == {"instances": 2, "cost": 330.0}
        assert totals["s3"]["buckets"] == 3

    def test_to_dict_is_json_serializable(self, summary):
        data = json.loads(json.dumps(summary.to_dict()))

        assert data["account"] == {"id": "123456789012", "name": "production"}
        assert data["window"]["cadence"] == "monthly"
        assert data["generated_at"] == "2024-04-02T06:00:00+00:00"
        assert data["expiration"]["horizon"].startswith("2024-05-01")

    def test_top_views(self, account, monthly_window, report_inputs):
        policy = ReportPolicy(top_low_used=1, top_suggestions=1)
        summary = ReportAssembler(policy).assemble(account, monthly_window, report_inputs)
        data = summary.to_dict()

        assert len(data["low_used"]["ec2"]["groups"]) == 1
        assert data["low_used"]["ec2"]["low_used_count"] == 3
        assert len(data["conversion"]["suggestions"]) == 1
        assert len(summary.conversion.suggestions) == 2

    def test_empty_inputs(self, account, monthly_window):
        inputs = ReportInputs(unavailable_sections=["utilization_ec2", "storage"], failed_regions=["eu-west-1"])
        summary = ReportAssembler().assemble(account, monthly_window, inputs)

        assert summary.expiration.status == ForecastStatus.NO_DATA
        assert summary.conversion.no_viable_conversion
        assert summary.ec2.total_instances == 0
        assert summary.cpu_histogram.counts == (0, 0, 0, 0, 0)
        assert summary.family_distribution == ()
        assert summary.unavailable_sections == ("utilization_ec2", "storage")
        assert not summary.complete
