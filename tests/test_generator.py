"""Tests for report generation"""

import pytest
from unittest.mock import MagicMock

from riadvisor.core.base.account import AwsAccount
from riadvisor.core.base.resource import ResourceKind
from riadvisor.core.exceptions import (
    ConfigurationError, ReportDataError, UsageQueryError, UtilizationQueryError
)
from riadvisor.providers.snapshot import SnapshotSource
from riadvisor.reporting.generator import FetchErrorPolicy, ReportGenerator, ReportSources
from riadvisor.reporting.telemetry import MetricsCollectorSink


class FailingUsage(SnapshotSource):
    """Snapshot whose usage query always fails"""

    def query_usage(self, account, window, product, ctx):
        raise UsageQueryError("Cost Explorer throttled", account_id=account.account_id)


class FailingRdsUtilization(SnapshotSource):
    """Snapshot whose RDS utilization query fails"""

    def query_utilization(self, account, window, kind, ctx):
        if kind == ResourceKind.RDS:
            raise UtilizationQueryError("analytics store timeout", account_id=account.account_id)
        return super().query_utilization(account, window, kind, ctx)


class BrokenAccount(SnapshotSource):
    """Snapshot that hits an unexpected error for one account"""

    def __init__(self, data, broken_id):
        super().__init__(data)
        self.broken_id = broken_id

    def query_usage(self, account, window, product, ctx):
        if account.account_id == self.broken_id:
            raise KeyError("Datapoints")
        return super().query_usage(account, window, product, ctx)


@pytest.fixture
def snapshot(snapshot_data):
    return SnapshotSource(snapshot_data)


@pytest.fixture
def generator(snapshot, metrics_collector, performance_tracker):
    return ReportGenerator(
        ReportSources.single(snapshot),
        telemetry=MetricsCollectorSink(metrics_collector),
        tracker=performance_tracker,
    )


class TestReportGenerator:
    """Test ReportGenerator"""

    def test_generate(self, generator, account, monthly_window, metrics_collector):
        summary = generator.generate(account, monthly_window)

        assert summary.complete
        assert summary.reservations.instance_count == 3
        assert summary.ec2.low_used_count == 1
        assert summary.rds.low_used_count == 1
        assert summary.storage.bucket_count == 1

        suggestion = summary.conversion.suggestions[0]
        assert suggestion.instance_type == "m5.2xlarge"
        assert suggestion.machines == 2

        tags = {"account": account.account_id}
        assert metrics_collector.get_gauge("riadvisor.rds.instances", tags) == 1
        assert metrics_collector.get_gauge("riadvisor.ec2.reserved_instances.expiration", tags) == 2
        assert metrics_collector.get_counter(
            "operation.report.count", {"cadence": "monthly", "success": "true"}
        ) == 1

    def test_default_window(self, generator, account):
        summary = generator.generate(account, cadence="weekly")
        assert summary.window.cadence.value == "weekly"
        assert summary.window.hours == 7 * 24

    def test_prices_are_cached(self, snapshot_data, account, monthly_window):
        source = SnapshotSource(snapshot_data)
        source.fetch_reserved_unit_prices = MagicMock(return_value={"m5.2xlarge": 0.10})
        generator = ReportGenerator(ReportSources.single(source))

        generator.generate(account, monthly_window)
        generator.generate(account, monthly_window)

        assert source.fetch_reserved_unit_prices.call_count == 1

    def test_refresh_prices(self, generator):
        assert generator.refresh_prices() == {"m5.2xlarge": 0.10, "c5.large": 0.05}

    def test_refresh_prices_without_source(self):
        with pytest.raises(ConfigurationError):
            ReportGenerator(ReportSources()).refresh_prices()

    def test_abort_policy(self, snapshot_data, account, monthly_window):
        generator = ReportGenerator(ReportSources.single(FailingUsage(snapshot_data)))

        with pytest.raises(ReportDataError) as exc_info:
            generator.generate(account, monthly_window)
        assert exc_info.value.section == "usage"

    def test_empty_policy(self, snapshot_data, account, monthly_window):
        generator = ReportGenerator(
            ReportSources.single(FailingUsage(snapshot_data)), on_fetch_error=FetchErrorPolicy.EMPTY
        )

        summary = generator.generate(account, monthly_window)

        assert summary.unavailable_sections == ("usage",)
        assert summary.conversion.no_viable_conversion
        assert summary.reservations.instance_count == 3

    def test_missing_sources_are_unavailable(self, snapshot, account, monthly_window):
        sources = ReportSources(inventory=snapshot, usage=snapshot, pricing=snapshot)
        summary = ReportGenerator(sources).generate(account, monthly_window)

        assert summary.unavailable_sections == ("utilization_ec2", "utilization_rds", "storage", "applications")
        assert summary.ec2.total_instances == 0

    def test_rds_utilization_failure_keeps_ec2(self, snapshot_data, account, monthly_window):
        generator = ReportGenerator(
            ReportSources.single(FailingRdsUtilization(snapshot_data)), on_fetch_error="empty"
        )

        summary = generator.generate(account, monthly_window)

        assert summary.unavailable_sections == ("utilization_rds",)
        assert summary.ec2.total_instances == 2
        assert summary.ec2.low_used_count == 1
        assert summary.rds.total_instances == 0

    def test_rds_utilization_failure_aborts(self, snapshot_data, account, monthly_window):
        generator = ReportGenerator(ReportSources.single(FailingRdsUtilization(snapshot_data)))

        with pytest.raises(ReportDataError) as exc_info:
            generator.generate(account, monthly_window)
        assert exc_info.value.section == "utilization_rds"

    def test_applications_from_tags(self, generator, account, monthly_window):
        summary = generator.generate(account, monthly_window)

        assert summary.applications.group_count == 2
        assert summary.applications.top[0].application == "checkout"
        assert summary.applications.rds_cost == 180.0

    def test_fetch_inputs(self, generator, account, monthly_window):
        inputs = generator.fetch_inputs(account, monthly_window)

        kinds = {r.kind for r in inputs.utilization}
        assert kinds == {ResourceKind.EC2, ResourceKind.RDS}
        assert inputs.failed_regions == []

    def test_deliver(self, snapshot, account, monthly_window):
        sink = MagicMock()
        sink.deliver.return_value = ["report.json"]
        generator = ReportGenerator(ReportSources.single(snapshot), sinks=[sink])

        summary = generator.generate(account, monthly_window, deliver=False)
        sink.deliver.assert_not_called()

        assert generator.deliver(summary) == ["report.json"]
        sink.deliver.assert_called_once_with(summary)

    def test_generate_many(self, snapshot, account, monthly_window):
        unknown = AwsAccount("210987654321")
        generator = ReportGenerator(ReportSources.single(snapshot))

        result = generator.generate_many([account, unknown], monthly_window)

        assert list(result.summaries) == [account.account_id]
        assert unknown.account_id in result.errors
        assert not result.success

    def test_generate_many_unexpected_error(self, snapshot_data, account, monthly_window):
        broken = AwsAccount("111111111111")
        snapshot_data["accounts"][broken.account_id] = snapshot_data["accounts"][account.account_id]
        generator = ReportGenerator(ReportSources.single(BrokenAccount(snapshot_data, broken.account_id)))

        result = generator.generate_many([account, broken], monthly_window)

        assert list(result.summaries) == [account.account_id]
        assert result.errors[broken.account_id].startswith("KeyError")

    def test_from_settings(self, test_settings, snapshot, tmp_path):
        generator = ReportGenerator.from_settings(
            test_settings, ReportSources.single(snapshot), formats=["json"], output_dir=tmp_path
        )
        assert generator.on_fetch_error == FetchErrorPolicy.ABORT
        assert generator.policy.top_suggestions == 7
        assert len(generator.sinks) == 1
        assert isinstance(generator.telemetry, MetricsCollectorSink)
